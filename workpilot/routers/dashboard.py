from fastapi import APIRouter, Depends

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.dependencies import get_order_service
from workpilot.models import DashboardSummary
from workpilot.services import OrderService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummary)
async def get_summary(
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.get_dashboard_summary(current_user.user_id)
