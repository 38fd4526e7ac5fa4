from fastapi import APIRouter, Depends, status

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.dependencies import get_account_service
from workpilot.models import ChangePasswordRequest, UserProfile, UserUpdateRequest
from workpilot.services import AccountService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserProfile)
async def get_profile(
        service: AccountService = Depends(get_account_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.get_profile(current_user.user_id)


@router.put("", response_model=UserProfile)
async def update_profile(
        request: UserUpdateRequest,
        service: AccountService = Depends(get_account_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Partial update: only the fields present in the body change."""
    return await service.update_profile(current_user.user_id, request)


@router.put("/change/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
        request: ChangePasswordRequest,
        service: AccountService = Depends(get_account_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    await service.change_password(current_user.user_id, request)
