from fastapi import APIRouter, Depends

from workpilot.dependencies import get_order_service
from workpilot.models import CustomerOrderView
from workpilot.services import OrderService

router = APIRouter(prefix="/customer-order", tags=["customer_orders"])


@router.get("/{token}", response_model=CustomerOrderView)
async def view_customer_order(
        token: str,
        service: OrderService = Depends(get_order_service)
):
    """Public tracking page data; the token is the only credential."""
    return await service.get_customer_order_view(token)
