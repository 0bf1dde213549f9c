from typing import Any

from fastapi import APIRouter, Request

from planner.services.platform_client import create_browser_client
from planner.services.platform_errors import PlatformError

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict[str, Any]:
    checks = {
        "platform": "unhealthy",
    }

    # Anonymous call to the auth settings endpoint
    client = create_browser_client(
        transport=getattr(request.app.state, "platform_transport", None)
    )
    try:
        await client.request("GET", "/auth/v1/settings", authenticated=False)
        checks["platform"] = "healthy"
    except PlatformError as e:
        checks["platform"] = f"unhealthy: {e.message}"

    overall = "healthy" if all(v == "healthy" for v in checks.values()) else "unhealthy"

    return {
        "status": overall,
        "checks": checks,
    }
