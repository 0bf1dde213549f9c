from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from planner.models import Profile
from planner.schemas.profile import ProfileUpdate
from planner.services.profile_service import (
    ProfileNotFoundError,
    ProfilePermissionError,
    ProfileService,
)
from planner.utils.auth import AdminProfile, Auth, CurrentProfile

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=Profile)
async def get_my_profile(current_profile: CurrentProfile) -> Profile:
    return current_profile


@router.patch("/me", response_model=Profile)
async def update_my_profile(
    profile_data: ProfileUpdate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> Profile:
    return await ProfileService(auth).update_me(profile_data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_profile(user_id: UUID, auth: Auth, admin: AdminProfile) -> None:
    try:
        await ProfileService(auth).delete(user_id)
    except ProfilePermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ProfileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
