# models.py
from datetime import datetime, timezone
from typing import Annotated, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, model_validator
from pydantic.alias_generators import to_camel

from workpilot.db_models.enums import OrderStatus, TaskStageStatus

T = TypeVar("T")

TASK_STAGE_NAME_MIN_LENGTH = 3
TASK_STAGE_NAME_MAX_LENGTH = 50
NOTE_MAX_LENGTH = 250
PASSWORD_MIN_LENGTH = 8


def to_epoch_seconds(value: datetime) -> int:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


EpochSeconds = Annotated[datetime, PlainSerializer(to_epoch_seconds, return_type=int, when_used="json")]


class ApiModel(BaseModel):
    """Base for every DTO exchanged with the front-end (camelCase on the wire)."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# --- Task stages ---

class TaskStageCreate(ApiModel):
    name: str = Field(..., min_length=TASK_STAGE_NAME_MIN_LENGTH, max_length=TASK_STAGE_NAME_MAX_LENGTH,
                      title="Stage Name", examples=["Onay", "Kargo"])
    note: Optional[str] = Field(None, max_length=NOTE_MAX_LENGTH)
    status: Optional[TaskStageStatus] = None


class TaskStage(ApiModel):
    id: int
    user_id: int
    name: str
    note: Optional[str] = None
    status: TaskStageStatus = TaskStageStatus.ACTIVE


# --- Tasks (workflow templates) ---

class FlowNode(ApiModel):
    id: str
    stage_id: int


class FlowEdge(ApiModel):
    source: str
    target: str


class FlowGraph(ApiModel):
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)


class TaskCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100, title="Task Name")
    note: Optional[str] = ""
    stage_ids: Optional[List[int]] = Field(None, description="Stage ids in workflow order")
    flow: Optional[FlowGraph] = Field(None, description="Stage chain drawn in the flow builder")

    @model_validator(mode="after")
    def check_stage_source(self):
        if self.stage_ids is not None and self.flow is not None:
            raise ValueError("Provide either stageIds or flow, not both.")
        return self


class Task(ApiModel):
    id: int
    user_id: int
    name: str
    note: Optional[str] = ""
    stages: List[TaskStage] = Field(default_factory=list)

    @property
    def stage_ids(self) -> List[int]:
        return [stage.id for stage in self.stages]


# --- Customers ---

class CustomerCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field("", max_length=30)
    email: Union[EmailStr, Literal[""]] = ""
    address: str = Field("", max_length=250)
    note: str = ""


class Customer(ApiModel):
    id: int
    user_id: int
    name: str
    phone_number: str = ""
    email: str = ""
    address: str = ""
    note: str = ""
    created_date: EpochSeconds
    updated_date: EpochSeconds


# --- Orders ---

class OrderCreate(ApiModel):
    customer_id: int
    task_id: int


class OrderState(BaseModel):
    """The part of an order the state machine reads and writes."""
    status: OrderStatus = OrderStatus.CREATED
    current_stage_id: Optional[int] = None
    stage_ids: List[int] = Field(default_factory=list)

    @property
    def position(self) -> Optional[int]:
        if self.current_stage_id is None or self.current_stage_id not in self.stage_ids:
            return None
        return self.stage_ids.index(self.current_stage_id)

    @property
    def has_next_stage(self) -> bool:
        if self.status != OrderStatus.IN_PROGRESS:
            return False
        pos = self.position
        return pos is not None and pos < len(self.stage_ids) - 1


class CustomerSimple(ApiModel):
    id: int
    name: str


class TaskSimple(ApiModel):
    id: int
    name: str


class TaskStageSimple(ApiModel):
    id: int
    name: str
    order: int


class OrderDetail(ApiModel):
    id: int
    user_id: int
    customer: CustomerSimple
    task: TaskSimple
    current_task_stage: Optional[TaskStageSimple] = None
    status: OrderStatus
    has_next_stage: bool = False
    token: str
    created_date: EpochSeconds
    updated_date: EpochSeconds
    task_stages: List[TaskStage] = Field(default_factory=list)


class CustomerOrderView(ApiModel):
    """What an unauthenticated customer sees through the tracking link."""
    user_company: str
    user_email: str
    customer_name: str
    task_name: str
    stages: Optional[List[str]] = None
    current_stage: Optional[str] = None
    status: OrderStatus
    created_date: EpochSeconds
    updated_date: EpochSeconds


class PageResult(ApiModel, Generic[T]):
    content: List[T] = Field(default_factory=list)
    total_elements: int = 0
    total_pages: int = 1
    size: int = 10
    number: int = 0
    first: bool = True
    last: bool = True


# --- Users & auth ---

class RegisterRequest(ApiModel):
    firstname: str = Field(..., min_length=1, max_length=50)
    lastname: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    company_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=250)


class AuthenticationRequest(ApiModel):
    email: EmailStr
    password: str


class RefreshRequest(ApiModel):
    refresh_token: str


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str


class UserProfile(ApiModel):
    firstname: str
    lastname: str
    email: str
    company_name: str
    phone: Optional[str] = None
    address: Optional[str] = None


class UserAccount(UserProfile):
    """Server-side view of a user, credentials included. Never returned by the API."""
    id: int
    password_hash: str
    token_version: int = 0


class UserUpdateRequest(ApiModel):
    firstname: Optional[str] = Field(None, min_length=1, max_length=50)
    lastname: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    company_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=250)


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    confirmation_password: str


class DashboardSummary(ApiModel):
    active_customers: int = 0
    active_tasks: int = 0
    active_orders: int = 0
    active_stages: int = 0
    completed_orders: int = 0
    pending_orders: int = 0
