"""Filtering, sorting and paging of order projections.

Every active clause of an ``OrderSearchFilter`` must match for an order to be
kept; unset or empty clauses match everything. Text clauses are
case-insensitive substring matches.
"""
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from pydantic import Field, field_validator

from workpilot.db_models.enums import OrderStatus
from workpilot.models import ApiModel, OrderDetail, PageResult

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_SORT = "createdDate,desc"

SORT_KEYS: Dict[str, Callable[[OrderDetail], object]] = {
    "createdDate": lambda o: o.created_date,
    "updatedDate": lambda o: o.updated_date,
    "id": lambda o: o.id,
    "status": lambda o: o.status.value,
    "customerName": lambda o: o.customer.name.lower(),
    "taskName": lambda o: o.task.name.lower(),
}


class OrderSearchFilter(ApiModel):
    customer_id: Optional[int] = None
    task_id: Optional[int] = None
    current_stage_id: Optional[int] = None
    status: List[OrderStatus] = Field(default_factory=list)
    active: Optional[bool] = None
    q: Optional[str] = None
    customer_name: Optional[str] = None
    task_name: Optional[str] = None
    stage_name: Optional[str] = None
    sort: str = DEFAULT_SORT
    page: int = Field(0, ge=0)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("sort")
    @classmethod
    def check_sort(cls, value: str) -> str:
        parse_sort(value)
        return value


def parse_sort(sort: str) -> Tuple[str, bool]:
    """Split ``"field,dir"`` into the field and whether it sorts descending."""
    field, _, direction = (sort or DEFAULT_SORT).partition(",")
    field = field.strip()
    direction = (direction.strip() or "asc").lower()
    if field not in SORT_KEYS:
        raise ValueError(f"Cannot sort by '{field}'. Allowed: {', '.join(SORT_KEYS)}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Sort direction must be 'asc' or 'desc', got '{direction}'")
    return field, direction == "desc"


def contains_text(value: Optional[str], needle: Optional[str]) -> bool:
    if not needle:
        return True
    return needle.lower() in (value or "").lower()


def matches(order: OrderDetail, criteria: OrderSearchFilter) -> bool:
    if criteria.customer_id is not None and order.customer.id != criteria.customer_id:
        return False
    if criteria.task_id is not None and order.task.id != criteria.task_id:
        return False
    if criteria.current_stage_id is not None:
        if order.current_task_stage is None or order.current_task_stage.id != criteria.current_stage_id:
            return False
    if criteria.status and order.status not in criteria.status:
        return False
    if criteria.active is not None and criteria.active == order.status.is_terminal:
        return False
    if criteria.q:
        query = criteria.q.lower()
        haystack = (str(order.id), order.customer.name.lower(), order.task.name.lower(),
                    str(order.customer.id), str(order.task.id))
        if not any(query in field for field in haystack):
            return False
    if not contains_text(order.customer.name, criteria.customer_name):
        return False
    if not contains_text(order.task.name, criteria.task_name):
        return False
    stage_name = order.current_task_stage.name if order.current_task_stage else None
    if not contains_text(stage_name, criteria.stage_name):
        return False
    return True


def sort_orders(orders: Sequence[OrderDetail], sort: str = DEFAULT_SORT) -> List[OrderDetail]:
    field, descending = parse_sort(sort)
    key = SORT_KEYS[field]
    # id as a tie-breaker keeps pages stable.
    ordered = sorted(orders, key=lambda o: o.id, reverse=descending)
    return sorted(ordered, key=key, reverse=descending)


def page_of(content: Sequence[T], total: int, page: int, page_size: int) -> PageResult[T]:
    """Wrap one already-sliced page of ``total`` items."""
    total_pages = max(1, math.ceil(total / page_size))
    return PageResult(
        content=list(content),
        total_elements=total,
        total_pages=total_pages,
        size=page_size,
        number=page,
        first=page == 0,
        last=page >= total_pages - 1,
    )


def paginate(items: Sequence[T], page: int, page_size: int) -> PageResult[T]:
    start = page * page_size
    return page_of(items[start:start + page_size], len(items), page, page_size)


def search_orders(orders: Sequence[OrderDetail], criteria: OrderSearchFilter) -> PageResult[OrderDetail]:
    kept = [order for order in orders if matches(order, criteria)]
    return paginate(sort_orders(kept, criteria.sort), criteria.page, criteria.page_size)
