from fastapi import APIRouter, Depends, status

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.dependencies import get_account_service
from workpilot.models import AuthenticationRequest, AuthResponse, RefreshRequest, RegisterRequest
from workpilot.services import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse)
async def register(
        request: RegisterRequest,
        service: AccountService = Depends(get_account_service)
):
    """Create an account and log it in straight away."""
    return await service.register(request)


@router.put("/authenticate", response_model=AuthResponse)
async def authenticate(
        request: AuthenticationRequest,
        service: AccountService = Depends(get_account_service)
):
    return await service.authenticate(str(request.email), request.password)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
        request: RefreshRequest,
        service: AccountService = Depends(get_account_service)
):
    """Exchange a refresh token for a new token pair."""
    return await service.refresh(request.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
        service: AccountService = Depends(get_account_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Revoke every token issued to the caller so far."""
    await service.logout(current_user.user_id)
