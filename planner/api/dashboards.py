from fastapi import APIRouter

from planner.schemas.dashboard import AdminDashboard, IntermittentDashboard, RegisseurDashboard
from planner.services.dashboard_service import DashboardService
from planner.utils.auth import AdminProfile, Auth, CurrentProfile, ManagerProfile
from planner.utils.dates import utc_now

# Mounted at the root: these are the route guard's redirect targets
router = APIRouter(prefix="/dashboard", tags=["Dashboards"])


@router.get("/regisseur", response_model=RegisseurDashboard)
async def regisseur_dashboard(auth: Auth, profile: ManagerProfile) -> RegisseurDashboard:
    return await DashboardService(auth).regisseur(profile, utc_now().date())


@router.get("/intermittent", response_model=IntermittentDashboard)
async def intermittent_dashboard(auth: Auth, profile: CurrentProfile) -> IntermittentDashboard:
    return await DashboardService(auth).intermittent(profile, utc_now().date())


@router.get("/admin", response_model=AdminDashboard)
async def admin_dashboard(auth: Auth, profile: AdminProfile) -> AdminDashboard:
    return await DashboardService(auth).admin(profile)
