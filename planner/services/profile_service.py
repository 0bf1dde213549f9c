import logging
from collections import Counter
from uuid import UUID

from planner.models import Profile, Role
from planner.schemas.profile import ProfileUpdate
from planner.services.auth_context import AuthContext
from planner.utils.dates import utc_now

logger = logging.getLogger(__name__)

DASHBOARDS = {
    Role.admin: "/dashboard/admin",
    Role.regisseur: "/dashboard/regisseur",
    Role.intermittent: "/dashboard/intermittent",
}


def dashboard_for(profile: Profile | None) -> str:
    if profile is None:
        return "/"
    return DASHBOARDS.get(profile.role, "/")


class ProfileService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    async def update_me(self, profile_data: ProfileUpdate) -> Profile:
        values = profile_data.model_dump(mode="json", exclude_unset=True)
        if not values and self.auth.profile is not None:
            return self.auth.profile
        values["updated_at"] = utc_now()
        return await self.auth.update_profile(values)

    async def count_by_role(self) -> dict[str, int]:
        query = self.client.table("profiles").select("role")
        result = await self.auth.execute_auth_operation(query.execute)
        counts = Counter(row["role"] for row in result.data or [])
        return {role.value: counts.get(role.value, 0) for role in Role}

    async def delete(self, user_id: UUID) -> None:
        """Remove a user and everything attached to them (admin only)."""
        profile = self.auth.profile
        if profile is None or profile.role != Role.admin:
            raise ProfilePermissionError("Vous n'avez pas les permissions nécessaires")
        if user_id == profile.id:
            raise ProfilePermissionError("Vous ne pouvez pas supprimer votre propre compte")

        deleted = await self.auth.execute_auth_operation(
            lambda: self.client.rpc("delete_user_profile_complete", {"user_id": user_id})
        )
        if not deleted:
            raise ProfileNotFoundError("Utilisateur introuvable")
        logger.info(f"User {user_id} deleted by admin {profile.id}")


class ProfilePermissionError(Exception):
    pass


class ProfileNotFoundError(Exception):
    pass
