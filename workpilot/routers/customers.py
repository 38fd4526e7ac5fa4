from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.dependencies import get_customer_service
from workpilot.models import Customer, CustomerCreate, PageResult
from workpilot.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from workpilot.services import CustomerService

router = APIRouter(prefix="/customer", tags=["customers"])


@router.get("", response_model=PageResult[Customer])
async def list_customers(
        page: int = Query(0, ge=0),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
        service: CustomerService = Depends(get_customer_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.search_customers(current_user.user_id, page=page, page_size=page_size)


@router.get("/search", response_model=PageResult[Customer])
async def search_customers(
        q: Optional[str] = None,
        name: Optional[str] = None,
        phone_number: Optional[str] = Query(None, alias="phoneNumber"),
        email: Optional[str] = None,
        page: int = Query(0, ge=0),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
        service: CustomerService = Depends(get_customer_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Every given filter must match; ``q`` matches name, phone or email."""
    return await service.search_customers(
        current_user.user_id, q=q, name=name, phone_number=phone_number, email=email,
        page=page, page_size=page_size,
    )


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(
        customer_id: int,
        service: CustomerService = Depends(get_customer_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.get_customer(current_user.user_id, customer_id)


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def create_customer(
        customer: CustomerCreate,
        service: CustomerService = Depends(get_customer_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.create_customer(current_user.user_id, customer)


@router.put("/{customer_id}", response_model=Customer)
async def update_customer(
        customer_id: int,
        customer: CustomerCreate,
        service: CustomerService = Depends(get_customer_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.update_customer(current_user.user_id, customer_id, customer)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
        customer_id: int,
        service: CustomerService = Depends(get_customer_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Fails with 409 while the customer still has orders."""
    await service.delete_customer(current_user.user_id, customer_id)
