from fastapi import APIRouter, Depends

from tradespark.backend.client import BackendClient
from tradespark.core.auth import AuthSession, Route, get_current_session
from tradespark.core.dependencies import get_user_backend
from tradespark.users.profile_service import ProfileService
from tradespark.users.users_schema import UpdateProfileSchema

router = APIRouter(prefix="/api/profile", tags=["Profile"])


def get_profile_service(
    session: AuthSession = Depends(get_current_session),
    backend: BackendClient = Depends(get_user_backend),
) -> ProfileService:
    return ProfileService(backend, session)


#get profile
@router.get("")
async def get_profile(profile: ProfileService = Depends(get_profile_service)):
    return {"success": True, "data": await profile.get_profile()}


#update profile
@router.put("")
async def update_profile(
    data: UpdateProfileSchema,
    profile: ProfileService = Depends(get_profile_service),
):
    return {"success": True, "data": await profile.update_profile(data)}


@router.delete("")
async def delete_account(profile: ProfileService = Depends(get_profile_service)):
    message = await profile.delete_account()
    return {"success": True, "data": {"title": "Account Deleted", "message": message, "route": Route.SIGN_IN}}
