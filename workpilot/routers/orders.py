from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.db_models.enums import OrderStatus
from workpilot.dependencies import get_order_service
from workpilot.models import OrderCreate, OrderDetail, PageResult
from workpilot.query import DEFAULT_PAGE_SIZE, DEFAULT_SORT, MAX_PAGE_SIZE, OrderSearchFilter
from workpilot.services import OrderService

router = APIRouter(prefix="/order", tags=["orders"])


@router.get("", response_model=PageResult[OrderDetail])
async def search_orders(
        customer_id: Optional[int] = Query(None, alias="customerId"),
        task_id: Optional[int] = Query(None, alias="taskId"),
        current_stage_id: Optional[int] = Query(None, alias="currentStageId"),
        task_current_stage_id: Optional[int] = None,
        order_status: List[OrderStatus] = Query([], alias="status"),
        active: Optional[bool] = None,
        q: Optional[str] = None,
        customer_name: Optional[str] = Query(None, alias="customerName"),
        task_name: Optional[str] = Query(None, alias="taskName"),
        stage_name: Optional[str] = Query(None, alias="stageName"),
        sort: str = DEFAULT_SORT,
        page: int = Query(0, ge=0),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Filter, sort and page the caller's orders. All given filters must match."""
    criteria = OrderSearchFilter(
        customer_id=customer_id,
        task_id=task_id,
        current_stage_id=current_stage_id if current_stage_id is not None else task_current_stage_id,
        status=order_status,
        active=active,
        q=q,
        customer_name=customer_name,
        task_name=task_name,
        stage_name=stage_name,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    return await service.search_orders(current_user.user_id, criteria)


@router.post("", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
async def create_order(
        order: OrderCreate,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.create_order(current_user.user_id, order.customer_id, order.task_id)


@router.get("/{order_id}", response_model=OrderDetail)
async def get_order(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.get_order(current_user.user_id, order_id)


@router.put("/{order_id}/start", response_model=OrderDetail)
async def start_order(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.start(current_user.user_id, order_id)


@router.put("/{order_id}/next-stage", response_model=OrderDetail)
async def move_to_next_stage(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.move_to_next_stage(current_user.user_id, order_id)


@router.put("/{order_id}/previous-stage", response_model=OrderDetail)
async def move_to_previous_stage(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.move_to_previous_stage(current_user.user_id, order_id)


@router.put("/{order_id}/complete", response_model=OrderDetail)
async def complete_order(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.complete(current_user.user_id, order_id)


@router.put("/{order_id}/revert", response_model=OrderDetail)
async def revert_order(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Put the order back to CREATED so it can be started again."""
    return await service.revert(current_user.user_id, order_id)


@router.delete("/{order_id}/cancel", response_model=OrderDetail)
async def cancel_order(
        order_id: int,
        service: OrderService = Depends(get_order_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Cancel the order. Orders are never removed, only moved to CANCELLED."""
    return await service.cancel(current_user.user_id, order_id)
