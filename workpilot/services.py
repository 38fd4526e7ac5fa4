# services.py
import logging
from typing import Any, Dict, List, Optional

from workpilot.core.security import (
    REFRESH_TOKEN_TYPE, create_access_token, create_refresh_token, decode_token, hash_password, verify_password,
)
from workpilot.db_models.enums import TaskStageStatus
from workpilot.flow import stage_sequence_from_flow
from workpilot.models import (
    NOTE_MAX_LENGTH, TASK_STAGE_NAME_MAX_LENGTH, TASK_STAGE_NAME_MIN_LENGTH, AuthResponse, ChangePasswordRequest,
    Customer, CustomerCreate, CustomerOrderView, DashboardSummary, OrderDetail, PageResult, RegisterRequest, Task,
    TaskCreate, TaskStage, UserAccount, UserProfile, UserUpdateRequest,
)
from workpilot.query import OrderSearchFilter, page_of, search_orders
from workpilot.repository import (
    CustomerNotFoundError, CustomerRepository, OrderNotFoundError, OrderRepository, TaskNotFoundError,
    TaskRepository, TaskStageNotFoundError, TaskStageRepository, UserNotFoundError, UserRepository,
)
from workpilot.transitions import OrderAction, OrderTransitionError, TRANSITIONS

log = logging.getLogger(__name__)


class InvalidCredentialsError(Exception):
    code = "INVALID_CREDENTIALS"


class StageCatalogService:
    def __init__(self, stage_repo: TaskStageRepository):
        self.stage_repo = stage_repo

    @staticmethod
    def _clean(name: str, note: Optional[str]) -> tuple:
        name = (name or "").strip()
        note = note.strip() if note else None
        if not TASK_STAGE_NAME_MIN_LENGTH <= len(name) <= TASK_STAGE_NAME_MAX_LENGTH:
            raise ValueError(
                f"Stage name must be between {TASK_STAGE_NAME_MIN_LENGTH} and "
                f"{TASK_STAGE_NAME_MAX_LENGTH} characters."
            )
        if note and len(note) > NOTE_MAX_LENGTH:
            raise ValueError(f"Stage note cannot be longer than {NOTE_MAX_LENGTH} characters.")
        return name, note

    async def create_stage(self, user_id: int, name: str, note: Optional[str] = None) -> TaskStage:
        name, note = self._clean(name, note)
        return await self.stage_repo.create_task_stage(user_id, name, note, TaskStageStatus.ACTIVE)

    async def list_stages(self, user_id: int, name: Optional[str] = None) -> List[TaskStage]:
        return await self.stage_repo.list_task_stages(user_id, status=TaskStageStatus.ACTIVE, name=name)

    async def get_stage(self, user_id: int, stage_id: int) -> TaskStage:
        stage = await self.stage_repo.get_task_stage_by_id(user_id, stage_id)
        if not stage:
            raise TaskStageNotFoundError(f"Task stage with id {stage_id} not found")
        return stage

    async def update_stage(self, user_id: int, stage_id: int, name: str, note: Optional[str] = None,
                           status: Optional[TaskStageStatus] = None) -> TaskStage:
        current = await self.get_stage(user_id, stage_id)
        name, note = self._clean(name, note)
        return await self.stage_repo.update_task_stage(user_id, stage_id, name, note, status or current.status)

    async def soft_delete_stage(self, user_id: int, stage_id: int) -> TaskStage:
        stage = await self.get_stage(user_id, stage_id)
        log.info("Soft-deleting stage %s", stage_id, extra={"user_id": user_id})
        return await self.stage_repo.update_task_stage(user_id, stage_id, stage.name, stage.note,
                                                       TaskStageStatus.DELETED)

    async def hard_delete_stage(self, user_id: int, stage_id: int) -> None:
        log.info("Hard-deleting stage %s", stage_id, extra={"user_id": user_id})
        await self.stage_repo.delete_task_stage(user_id, stage_id)


class TaskService:
    def __init__(self, task_repo: TaskRepository, stage_repo: TaskStageRepository):
        self.task_repo = task_repo
        self.stage_repo = stage_repo

    async def _resolve_stage_ids(self, user_id: int, data: TaskCreate, keep: Optional[List[int]] = None) -> List[int]:
        """Turn the request into a validated, ordered list of stage ids.

        ``keep`` holds stages already on the task; those may stay even if
        they were soft-deleted after the task was built.
        """
        if data.flow is not None:
            stage_ids = stage_sequence_from_flow(data.flow)
        else:
            stage_ids = list(data.stage_ids or [])

        if len(set(stage_ids)) != len(stage_ids):
            raise ValueError("A task cannot contain the same stage twice.")

        stages = {s.id: s for s in await self.stage_repo.get_task_stages_by_ids(user_id, stage_ids)}
        keep = set(keep or [])
        for stage_id in stage_ids:
            stage = stages.get(stage_id)
            if stage is None:
                raise ValueError(f"Stage {stage_id} does not exist.")
            if stage.status != TaskStageStatus.ACTIVE and stage_id not in keep:
                raise ValueError(f"Stage '{stage.name}' has been deleted and cannot be added to a task.")
        return stage_ids

    async def create_task(self, user_id: int, data: TaskCreate) -> Task:
        if not data.name.strip():
            raise ValueError("Task name cannot be empty.")
        stage_ids = await self._resolve_stage_ids(user_id, data)
        task = await self.task_repo.create_task(user_id, data.name.strip(), data.note, stage_ids)
        log.info("Created task %s with %d stage(s)", task.id, len(stage_ids), extra={"user_id": user_id})
        return task

    async def update_task(self, user_id: int, task_id: int, data: TaskCreate) -> Task:
        if not data.name.strip():
            raise ValueError("Task name cannot be empty.")
        current = await self.get_task(user_id, task_id)
        stage_ids = await self._resolve_stage_ids(user_id, data, keep=current.stage_ids)
        return await self.task_repo.update_task(user_id, task_id, data.name.strip(), data.note, stage_ids)

    async def get_task(self, user_id: int, task_id: int) -> Task:
        task = await self.task_repo.get_task_by_id(user_id, task_id)
        if not task:
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        return task

    async def list_tasks(self, user_id: int, name: Optional[str] = None) -> List[Task]:
        return await self.task_repo.list_tasks(user_id, name=name)

    async def delete_task(self, user_id: int, task_id: int) -> None:
        await self.task_repo.delete_task(user_id, task_id)


class OrderService:
    def __init__(self, order_repo: OrderRepository, customer_repo: CustomerRepository, task_repo: TaskRepository):
        self.order_repo = order_repo
        self.customer_repo = customer_repo
        self.task_repo = task_repo

    async def create_order(self, user_id: int, customer_id: int, task_id: int) -> OrderDetail:
        customer = await self.customer_repo.get_customer_by_id(user_id, customer_id)
        if not customer:
            raise CustomerNotFoundError(f"Customer with id {customer_id} not found")
        task = await self.task_repo.get_task_by_id(user_id, task_id)
        if not task:
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        order = await self.order_repo.create_order(user_id, customer_id, task_id, task.stage_ids)
        log.info("Created order for customer %s on task %s", customer_id, task_id,
                 extra={"user_id": user_id, "order_id": order.id})
        return order

    async def get_order(self, user_id: int, order_id: int) -> OrderDetail:
        order = await self.order_repo.get_order_by_id(user_id, order_id)
        if not order:
            raise OrderNotFoundError(f"Order with id {order_id} not found")
        return order

    async def search_orders(self, user_id: int, criteria: OrderSearchFilter) -> PageResult[OrderDetail]:
        orders = await self.order_repo.list_orders(
            user_id,
            customer_id=criteria.customer_id,
            task_id=criteria.task_id,
            current_stage_id=criteria.current_stage_id,
            statuses=criteria.status or None,
        )
        return search_orders(orders, criteria)

    async def transition(self, user_id: int, order_id: int, action: OrderAction) -> OrderDetail:
        """Apply one state-machine step atomically and return the reloaded order."""
        try:
            order = await self.order_repo.transition_order(user_id, order_id, TRANSITIONS[action])
        except OrderTransitionError as e:
            log.warning("Rejected %s: %s", action.value, e, extra={"user_id": user_id, "order_id": order_id})
            raise
        log.info("Order %s -> %s (stage=%s)", action.value, order.status.value,
                 order.current_task_stage.id if order.current_task_stage else None,
                 extra={"user_id": user_id, "order_id": order_id})
        return order

    async def start(self, user_id: int, order_id: int) -> OrderDetail:
        return await self.transition(user_id, order_id, OrderAction.START)

    async def move_to_next_stage(self, user_id: int, order_id: int) -> OrderDetail:
        return await self.transition(user_id, order_id, OrderAction.NEXT_STAGE)

    async def move_to_previous_stage(self, user_id: int, order_id: int) -> OrderDetail:
        return await self.transition(user_id, order_id, OrderAction.PREVIOUS_STAGE)

    async def complete(self, user_id: int, order_id: int) -> OrderDetail:
        return await self.transition(user_id, order_id, OrderAction.COMPLETE)

    async def cancel(self, user_id: int, order_id: int) -> OrderDetail:
        return await self.transition(user_id, order_id, OrderAction.CANCEL)

    async def revert(self, user_id: int, order_id: int) -> OrderDetail:
        return await self.transition(user_id, order_id, OrderAction.REVERT)

    async def get_customer_order_view(self, token: str) -> CustomerOrderView:
        view = await self.order_repo.get_customer_order_view(token)
        if not view:
            raise OrderNotFoundError("Order not found")
        return view

    async def get_dashboard_summary(self, user_id: int) -> DashboardSummary:
        return await self.order_repo.get_dashboard_summary(user_id)


class CustomerService:
    def __init__(self, customer_repo: CustomerRepository):
        self.customer_repo = customer_repo

    async def search_customers(self, user_id: int, q: Optional[str] = None, name: Optional[str] = None,
                               phone_number: Optional[str] = None, email: Optional[str] = None,
                               page: int = 0, page_size: int = 10) -> PageResult[Customer]:
        customers, total = await self.customer_repo.search_customers(
            user_id, q=q, name=name, phone_number=phone_number, email=email,
            offset=page * page_size, limit=page_size,
        )
        return page_of(customers, total, page, page_size)

    async def get_customer(self, user_id: int, customer_id: int) -> Customer:
        customer = await self.customer_repo.get_customer_by_id(user_id, customer_id)
        if not customer:
            raise CustomerNotFoundError(f"Customer with id {customer_id} not found")
        return customer

    async def create_customer(self, user_id: int, data: CustomerCreate) -> Customer:
        return await self.customer_repo.create_customer(user_id, data)

    async def update_customer(self, user_id: int, customer_id: int, data: CustomerCreate) -> Customer:
        return await self.customer_repo.update_customer(user_id, customer_id, data)

    async def delete_customer(self, user_id: int, customer_id: int) -> None:
        await self.customer_repo.delete_customer(user_id, customer_id)


class AccountService:
    """Registration, login, token refresh/logout and profile management."""

    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    @staticmethod
    def _issue_tokens(account: UserAccount) -> AuthResponse:
        return AuthResponse(
            access_token=create_access_token(account.id, account.email, account.token_version),
            refresh_token=create_refresh_token(account.id, account.email, account.token_version),
        )

    async def _get_account(self, user_id: int) -> UserAccount:
        account = await self.user_repo.get_user_by_id(user_id)
        if not account:
            raise UserNotFoundError(f"User with id {user_id} not found")
        return account

    async def register(self, data: RegisterRequest) -> AuthResponse:
        fields: Dict[str, Any] = data.model_dump(exclude={"password"})
        fields["email"] = str(data.email).lower()
        fields["password_hash"] = hash_password(data.password)
        account = await self.user_repo.create_user(fields)
        log.info("Registered user %s", account.id, extra={"user_id": account.id})
        return self._issue_tokens(account)

    async def authenticate(self, email: str, password: str) -> AuthResponse:
        account = await self.user_repo.get_user_by_email(email)
        if not account or not verify_password(password, account.password_hash):
            log.warning("Failed login for %s", email)
            raise InvalidCredentialsError("Invalid email or password")
        return self._issue_tokens(account)

    async def refresh(self, refresh_token: str) -> AuthResponse:
        payload = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
        account = await self.user_repo.get_user_by_id(int(payload["sub"]))
        if not account or account.token_version != payload.get("ver"):
            raise InvalidCredentialsError("Refresh token is no longer valid")
        return self._issue_tokens(account)

    async def logout(self, user_id: int) -> None:
        account = await self._get_account(user_id)
        await self.user_repo.update_user(user_id, {"token_version": account.token_version + 1})
        log.info("User logged out; tokens revoked", extra={"user_id": user_id})

    async def get_profile(self, user_id: int) -> UserProfile:
        account = await self._get_account(user_id)
        return UserProfile.model_validate(account.model_dump())

    async def update_profile(self, user_id: int, data: UserUpdateRequest) -> UserProfile:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = str(changes["email"]).lower()
        account = await self.user_repo.update_user(user_id, changes)
        return UserProfile.model_validate(account.model_dump())

    async def change_password(self, user_id: int, data: ChangePasswordRequest) -> None:
        account = await self._get_account(user_id)
        if not verify_password(data.current_password, account.password_hash):
            raise ValueError("Current password is incorrect.")
        if data.new_password != data.confirmation_password:
            raise ValueError("New password and confirmation do not match.")
        await self.user_repo.update_user(user_id, {
            "password_hash": hash_password(data.new_password),
            "token_version": account.token_version + 1,
        })
        log.info("Password changed", extra={"user_id": user_id})
