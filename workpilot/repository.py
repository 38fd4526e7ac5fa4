# repository.py
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from workpilot.db_models import Customer as CustomerORM
from workpilot.db_models import Order as OrderORM
from workpilot.db_models import Task as TaskORM
from workpilot.db_models import TaskStage as TaskStageORM
from workpilot.db_models import TaskStageLink as TaskStageLinkORM
from workpilot.db_models import User as UserORM
from workpilot.db_models.enums import OrderStatus, TaskStageStatus
from workpilot.db_models.user import utcnow
from workpilot.models import (
    Customer, CustomerCreate, CustomerOrderView, CustomerSimple, DashboardSummary, OrderDetail, OrderState,
    Task, TaskSimple, TaskStage, TaskStageSimple, UserAccount,
)

TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class NotFoundError(Exception):
    """Unknown id, or a row owned by another user."""
    code = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    pass


class CustomerNotFoundError(NotFoundError):
    pass


class TaskStageNotFoundError(NotFoundError):
    pass


class TaskNotFoundError(NotFoundError):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class InUseError(Exception):
    """Deleting the row would leave other rows pointing at nothing."""
    code = "IN_USE"


class StageInUseError(InUseError):
    pass


class TaskInUseError(InUseError):
    pass


class CustomerInUseError(InUseError):
    pass


class EmailAlreadyRegisteredError(Exception):
    code = "EMAIL_TAKEN"


class ConcurrentUpdateError(Exception):
    """Another request changed the order between our read and our write."""
    code = "CONCURRENT_UPDATE"


class UserRepository(ABC):
    @abstractmethod
    async def get_user_by_id(self, user_id: int) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def create_user(self, account: Dict[str, Any]) -> UserAccount:
        pass

    @abstractmethod
    async def update_user(self, user_id: int, changes: Dict[str, Any]) -> UserAccount:
        pass


class CustomerRepository(ABC):
    @abstractmethod
    async def search_customers(self, user_id: int, q: Optional[str] = None, name: Optional[str] = None,
                               phone_number: Optional[str] = None, email: Optional[str] = None,
                               offset: int = 0, limit: Optional[int] = None) -> Tuple[List[Customer], int]:
        pass

    @abstractmethod
    async def get_customer_by_id(self, user_id: int, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    async def create_customer(self, user_id: int, data: CustomerCreate) -> Customer:
        pass

    @abstractmethod
    async def update_customer(self, user_id: int, customer_id: int, data: CustomerCreate) -> Customer:
        pass

    @abstractmethod
    async def delete_customer(self, user_id: int, customer_id: int) -> None:
        pass


class TaskStageRepository(ABC):
    @abstractmethod
    async def list_task_stages(self, user_id: int, status: Optional[TaskStageStatus] = None,
                               name: Optional[str] = None) -> List[TaskStage]:
        pass

    @abstractmethod
    async def get_task_stage_by_id(self, user_id: int, stage_id: int) -> Optional[TaskStage]:
        pass

    @abstractmethod
    async def get_task_stages_by_ids(self, user_id: int, stage_ids: Sequence[int]) -> List[TaskStage]:
        pass

    @abstractmethod
    async def create_task_stage(self, user_id: int, name: str, note: Optional[str],
                                status: TaskStageStatus = TaskStageStatus.ACTIVE) -> TaskStage:
        pass

    @abstractmethod
    async def update_task_stage(self, user_id: int, stage_id: int, name: str, note: Optional[str],
                                status: TaskStageStatus) -> TaskStage:
        pass

    @abstractmethod
    async def delete_task_stage(self, user_id: int, stage_id: int) -> None:
        pass


class TaskRepository(ABC):
    @abstractmethod
    async def list_tasks(self, user_id: int, name: Optional[str] = None) -> List[Task]:
        pass

    @abstractmethod
    async def get_task_by_id(self, user_id: int, task_id: int) -> Optional[Task]:
        pass

    @abstractmethod
    async def create_task(self, user_id: int, name: str, note: Optional[str], stage_ids: List[int]) -> Task:
        pass

    @abstractmethod
    async def update_task(self, user_id: int, task_id: int, name: str, note: Optional[str],
                          stage_ids: List[int]) -> Task:
        pass

    @abstractmethod
    async def delete_task(self, user_id: int, task_id: int) -> None:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def create_order(self, user_id: int, customer_id: int, task_id: int, stage_ids: List[int]) -> OrderDetail:
        pass

    @abstractmethod
    async def get_order_by_id(self, user_id: int, order_id: int) -> Optional[OrderDetail]:
        pass

    @abstractmethod
    async def list_orders(self, user_id: int, customer_id: Optional[int] = None, task_id: Optional[int] = None,
                          current_stage_id: Optional[int] = None,
                          statuses: Optional[Sequence[OrderStatus]] = None) -> List[OrderDetail]:
        pass

    @abstractmethod
    async def transition_order(self, user_id: int, order_id: int,
                               transition: Callable[[OrderState], OrderState]) -> OrderDetail:
        pass

    @abstractmethod
    async def get_customer_order_view(self, token: str) -> Optional[CustomerOrderView]:
        pass

    @abstractmethod
    async def get_dashboard_summary(self, user_id: int) -> DashboardSummary:
        pass


def _contains(column, value: str):
    return func.lower(column).contains(value.lower(), autoescape=True)


class PostgreSQLWorkPilotRepository(UserRepository, CustomerRepository, TaskStageRepository, TaskRepository,
                                    OrderRepository):
    def __init__(self, db_session: Session):
        self.db_session = db_session

    # --- users ---

    def _user_orm(self, user_id: int) -> UserORM:
        user = self.db_session.query(UserORM).filter(UserORM.id == user_id).first()
        if not user:
            raise UserNotFoundError(f"User with id {user_id} not found")
        return user

    async def get_user_by_id(self, user_id: int) -> Optional[UserAccount]:
        user = self.db_session.query(UserORM).filter(UserORM.id == user_id).first()
        return UserAccount.model_validate(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        user = self.db_session.query(UserORM).filter(func.lower(UserORM.email) == email.lower()).first()
        return UserAccount.model_validate(user) if user else None

    async def create_user(self, account: Dict[str, Any]) -> UserAccount:
        if await self.get_user_by_email(account["email"]):
            raise EmailAlreadyRegisteredError(f"Email {account['email']} is already registered")
        user = UserORM(**account)
        self.db_session.add(user)
        try:
            self.db_session.commit()
        except IntegrityError as e:
            self.db_session.rollback()
            raise EmailAlreadyRegisteredError(f"Email {account['email']} is already registered") from e
        self.db_session.refresh(user)
        return UserAccount.model_validate(user)

    async def update_user(self, user_id: int, changes: Dict[str, Any]) -> UserAccount:
        user = self._user_orm(user_id)
        new_email = changes.get("email")
        if new_email and new_email.lower() != user.email.lower():
            existing = await self.get_user_by_email(new_email)
            if existing and existing.id != user_id:
                raise EmailAlreadyRegisteredError(f"Email {new_email} is already registered")
        for key, value in changes.items():
            setattr(user, key, value)
        self.db_session.commit()
        self.db_session.refresh(user)
        return UserAccount.model_validate(user)

    # --- customers ---

    def _customer_orm(self, user_id: int, customer_id: int) -> CustomerORM:
        customer = self.db_session.query(CustomerORM).filter(
            CustomerORM.id == customer_id, CustomerORM.user_id == user_id
        ).first()
        if not customer:
            raise CustomerNotFoundError(f"Customer with id {customer_id} not found")
        return customer

    async def search_customers(self, user_id: int, q: Optional[str] = None, name: Optional[str] = None,
                               phone_number: Optional[str] = None, email: Optional[str] = None,
                               offset: int = 0, limit: Optional[int] = None) -> Tuple[List[Customer], int]:
        query = self.db_session.query(CustomerORM).filter(CustomerORM.user_id == user_id)
        if q:
            query = query.filter(or_(
                _contains(CustomerORM.name, q),
                _contains(CustomerORM.phone_number, q),
                _contains(CustomerORM.email, q),
            ))
        if name:
            query = query.filter(_contains(CustomerORM.name, name))
        if phone_number:
            query = query.filter(_contains(CustomerORM.phone_number, phone_number))
        if email:
            query = query.filter(_contains(CustomerORM.email, email))
        total = query.count()
        query = query.order_by(CustomerORM.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [Customer.model_validate(c) for c in query.all()], total

    async def get_customer_by_id(self, user_id: int, customer_id: int) -> Optional[Customer]:
        customer = self.db_session.query(CustomerORM).filter(
            CustomerORM.id == customer_id, CustomerORM.user_id == user_id
        ).first()
        return Customer.model_validate(customer) if customer else None

    async def create_customer(self, user_id: int, data: CustomerCreate) -> Customer:
        customer = CustomerORM(user_id=user_id, **data.model_dump())
        self.db_session.add(customer)
        self.db_session.commit()
        self.db_session.refresh(customer)
        return Customer.model_validate(customer)

    async def update_customer(self, user_id: int, customer_id: int, data: CustomerCreate) -> Customer:
        customer = self._customer_orm(user_id, customer_id)
        for key, value in data.model_dump().items():
            setattr(customer, key, value)
        self.db_session.commit()
        self.db_session.refresh(customer)
        return Customer.model_validate(customer)

    async def delete_customer(self, user_id: int, customer_id: int) -> None:
        customer = self._customer_orm(user_id, customer_id)
        order_count = self.db_session.query(OrderORM).filter(OrderORM.customer_id == customer_id).count()
        if order_count > 0:
            raise CustomerInUseError(
                f"Cannot delete customer: It has {order_count} order(s)."
            )
        self.db_session.delete(customer)
        self.db_session.commit()

    # --- task stages ---

    def _task_stage_orm(self, user_id: int, stage_id: int) -> TaskStageORM:
        stage = self.db_session.query(TaskStageORM).filter(
            TaskStageORM.id == stage_id, TaskStageORM.user_id == user_id
        ).first()
        if not stage:
            raise TaskStageNotFoundError(f"Task stage with id {stage_id} not found")
        return stage

    async def list_task_stages(self, user_id: int, status: Optional[TaskStageStatus] = None,
                               name: Optional[str] = None) -> List[TaskStage]:
        query = self.db_session.query(TaskStageORM).filter(TaskStageORM.user_id == user_id)
        if status is not None:
            query = query.filter(TaskStageORM.status == status)
        if name:
            query = query.filter(_contains(TaskStageORM.name, name))
        return [TaskStage.model_validate(s) for s in query.order_by(TaskStageORM.id).all()]

    async def get_task_stage_by_id(self, user_id: int, stage_id: int) -> Optional[TaskStage]:
        stage = self.db_session.query(TaskStageORM).filter(
            TaskStageORM.id == stage_id, TaskStageORM.user_id == user_id
        ).first()
        return TaskStage.model_validate(stage) if stage else None

    async def get_task_stages_by_ids(self, user_id: int, stage_ids: Sequence[int]) -> List[TaskStage]:
        if not stage_ids:
            return []
        stages = self.db_session.query(TaskStageORM).filter(
            TaskStageORM.user_id == user_id, TaskStageORM.id.in_(list(stage_ids))
        ).all()
        return [TaskStage.model_validate(s) for s in stages]

    async def create_task_stage(self, user_id: int, name: str, note: Optional[str],
                                status: TaskStageStatus = TaskStageStatus.ACTIVE) -> TaskStage:
        stage = TaskStageORM(user_id=user_id, name=name, note=note, status=status)
        self.db_session.add(stage)
        self.db_session.commit()
        self.db_session.refresh(stage)
        return TaskStage.model_validate(stage)

    async def update_task_stage(self, user_id: int, stage_id: int, name: str, note: Optional[str],
                                status: TaskStageStatus) -> TaskStage:
        stage = self._task_stage_orm(user_id, stage_id)
        stage.name = name
        stage.note = note
        stage.status = status
        self.db_session.commit()
        self.db_session.refresh(stage)
        return TaskStage.model_validate(stage)

    async def delete_task_stage(self, user_id: int, stage_id: int) -> None:
        stage = self._task_stage_orm(user_id, stage_id)
        task_count = self.db_session.query(TaskStageLinkORM).filter(TaskStageLinkORM.stage_id == stage_id).count()
        if task_count > 0:
            raise StageInUseError(f"Cannot delete stage: It is currently used by {task_count} task(s).")
        order_count = sum(
            1 for (stage_ids,) in self.db_session.query(OrderORM.stage_ids).filter(OrderORM.user_id == user_id)
            if stage_id in (stage_ids or [])
        )
        if order_count > 0:
            raise StageInUseError(f"Cannot delete stage: It is currently used by {order_count} order(s).")
        self.db_session.delete(stage)
        self.db_session.commit()

    # --- tasks ---

    def _task_orm(self, user_id: int, task_id: int) -> TaskORM:
        task = self.db_session.query(TaskORM).filter(TaskORM.id == task_id, TaskORM.user_id == user_id).first()
        if not task:
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        return task

    @staticmethod
    def _to_task(task: TaskORM) -> Task:
        return Task(
            id=task.id,
            user_id=task.user_id,
            name=task.name,
            note=task.note,
            stages=[TaskStage.model_validate(link.stage) for link in task.stage_links],
        )

    def _set_task_stages(self, task: TaskORM, stage_ids: List[int]) -> None:
        task.stage_links.clear()
        # Old links must be gone before new ones take their positions.
        self.db_session.flush()
        for position, stage_id in enumerate(stage_ids):
            task.stage_links.append(TaskStageLinkORM(stage_id=stage_id, position=position))

    async def list_tasks(self, user_id: int, name: Optional[str] = None) -> List[Task]:
        query = self.db_session.query(TaskORM).filter(TaskORM.user_id == user_id)
        if name:
            query = query.filter(_contains(TaskORM.name, name))
        return [self._to_task(t) for t in query.order_by(TaskORM.id).all()]

    async def get_task_by_id(self, user_id: int, task_id: int) -> Optional[Task]:
        task = self.db_session.query(TaskORM).filter(TaskORM.id == task_id, TaskORM.user_id == user_id).first()
        return self._to_task(task) if task else None

    async def create_task(self, user_id: int, name: str, note: Optional[str], stage_ids: List[int]) -> Task:
        task = TaskORM(user_id=user_id, name=name, note=note)
        self.db_session.add(task)
        self.db_session.flush()
        self._set_task_stages(task, stage_ids)
        self.db_session.commit()
        self.db_session.refresh(task)
        return self._to_task(task)

    async def update_task(self, user_id: int, task_id: int, name: str, note: Optional[str],
                          stage_ids: List[int]) -> Task:
        task = self._task_orm(user_id, task_id)
        task.name = name
        task.note = note
        self._set_task_stages(task, stage_ids)
        self.db_session.commit()
        self.db_session.refresh(task)
        return self._to_task(task)

    async def delete_task(self, user_id: int, task_id: int) -> None:
        task = self._task_orm(user_id, task_id)
        order_count = self.db_session.query(OrderORM).filter(OrderORM.task_id == task_id).count()
        if order_count > 0:
            raise TaskInUseError(f"Cannot delete task: It is currently used by {order_count} order(s).")
        self.db_session.delete(task)
        self.db_session.commit()

    # --- orders ---

    def _order_orm(self, user_id: int, order_id: int, for_update: bool = False) -> OrderORM:
        query = self.db_session.query(OrderORM).filter(OrderORM.id == order_id, OrderORM.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        order = query.first()
        if not order:
            raise OrderNotFoundError(f"Order with id {order_id} not found")
        return order

    def _stages_by_id(self, stage_ids: Sequence[int]) -> Dict[int, TaskStageORM]:
        if not stage_ids:
            return {}
        stages = self.db_session.query(TaskStageORM).filter(TaskStageORM.id.in_(set(stage_ids))).all()
        return {stage.id: stage for stage in stages}

    @staticmethod
    def _to_order_state(order: OrderORM) -> OrderState:
        return OrderState(
            status=order.status,
            current_stage_id=order.current_stage_id,
            stage_ids=list(order.stage_ids or []),
        )

    def _to_order_detail(self, order: OrderORM, stages_by_id: Dict[int, TaskStageORM]) -> OrderDetail:
        state = self._to_order_state(order)
        current = None
        if state.current_stage_id is not None and state.current_stage_id in stages_by_id:
            current = TaskStageSimple(
                id=state.current_stage_id,
                name=stages_by_id[state.current_stage_id].name,
                order=state.position if state.position is not None else 0,
            )
        return OrderDetail(
            id=order.id,
            user_id=order.user_id,
            customer=CustomerSimple(id=order.customer.id, name=order.customer.name),
            task=TaskSimple(id=order.task.id, name=order.task.name),
            current_task_stage=current,
            status=state.status,
            has_next_stage=state.has_next_stage,
            token=order.token,
            created_date=order.created_date,
            updated_date=order.updated_date,
            task_stages=[TaskStage.model_validate(stages_by_id[i]) for i in state.stage_ids if i in stages_by_id],
        )

    def _to_order_details(self, orders: List[OrderORM]) -> List[OrderDetail]:
        all_stage_ids = [stage_id for order in orders for stage_id in (order.stage_ids or [])]
        stages_by_id = self._stages_by_id(all_stage_ids)
        return [self._to_order_detail(order, stages_by_id) for order in orders]

    async def create_order(self, user_id: int, customer_id: int, task_id: int, stage_ids: List[int]) -> OrderDetail:
        now = utcnow()
        order = OrderORM(
            user_id=user_id,
            customer_id=customer_id,
            task_id=task_id,
            stage_ids=list(stage_ids),
            current_stage_id=None,
            status=OrderStatus.CREATED,
            created_date=now,
            updated_date=now,
        )
        self.db_session.add(order)
        self.db_session.commit()
        self.db_session.refresh(order)
        return self._to_order_details([order])[0]

    async def get_order_by_id(self, user_id: int, order_id: int) -> Optional[OrderDetail]:
        order = self.db_session.query(OrderORM).filter(OrderORM.id == order_id, OrderORM.user_id == user_id).first()
        return self._to_order_details([order])[0] if order else None

    async def list_orders(self, user_id: int, customer_id: Optional[int] = None, task_id: Optional[int] = None,
                          current_stage_id: Optional[int] = None,
                          statuses: Optional[Sequence[OrderStatus]] = None) -> List[OrderDetail]:
        query = self.db_session.query(OrderORM).filter(OrderORM.user_id == user_id)
        if customer_id is not None:
            query = query.filter(OrderORM.customer_id == customer_id)
        if task_id is not None:
            query = query.filter(OrderORM.task_id == task_id)
        if current_stage_id is not None:
            query = query.filter(OrderORM.current_stage_id == current_stage_id)
        if statuses:
            query = query.filter(OrderORM.status.in_(list(statuses)))
        orders = query.order_by(OrderORM.created_date.desc(), OrderORM.id.desc()).all()
        return self._to_order_details(orders)

    async def transition_order(self, user_id: int, order_id: int,
                               transition: Callable[[OrderState], OrderState]) -> OrderDetail:
        try:
            order = self._order_orm(user_id, order_id, for_update=True)
            new_state = transition(self._to_order_state(order))
            order.status = new_state.status
            order.current_stage_id = new_state.current_stage_id
            order.updated_date = utcnow()
            self.db_session.commit()
        except StaleDataError as e:
            self.db_session.rollback()
            raise ConcurrentUpdateError(f"Order {order_id} was modified by another request") from e
        except Exception:
            self.db_session.rollback()
            raise
        self.db_session.refresh(order)
        return self._to_order_details([order])[0]

    async def get_customer_order_view(self, token: str) -> Optional[CustomerOrderView]:
        order = self.db_session.query(OrderORM).filter(OrderORM.token == token).first()
        if not order:
            return None
        owner = self._user_orm(order.user_id)
        state = self._to_order_state(order)
        stages_by_id = self._stages_by_id(state.stage_ids)
        stage_names = [stages_by_id[i].name for i in state.stage_ids if i in stages_by_id]
        current = stages_by_id.get(state.current_stage_id) if state.current_stage_id is not None else None
        return CustomerOrderView(
            user_company=owner.company_name,
            user_email=owner.email,
            customer_name=order.customer.name,
            task_name=order.task.name,
            stages=stage_names or None,
            current_stage=current.name if current else None,
            status=state.status,
            created_date=order.created_date,
            updated_date=order.updated_date,
        )

    async def get_dashboard_summary(self, user_id: int) -> DashboardSummary:
        return DashboardSummary(
            active_customers=self.db_session.query(CustomerORM).filter(CustomerORM.user_id == user_id).count(),
            active_tasks=self.db_session.query(TaskORM).filter(TaskORM.user_id == user_id).count(),
            active_orders=self.db_session.query(OrderORM).filter(
                OrderORM.user_id == user_id, OrderORM.status.notin_(TERMINAL_STATUSES)
            ).count(),
            active_stages=self.db_session.query(TaskStageORM).filter(
                TaskStageORM.user_id == user_id, TaskStageORM.status == TaskStageStatus.ACTIVE
            ).count(),
            completed_orders=self.db_session.query(OrderORM).filter(
                OrderORM.user_id == user_id, OrderORM.status == OrderStatus.COMPLETED
            ).count(),
            pending_orders=self.db_session.query(OrderORM).filter(
                OrderORM.user_id == user_id, OrderORM.status == OrderStatus.CREATED
            ).count(),
        )
