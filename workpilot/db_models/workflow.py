import uuid

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint, \
    Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship

from .base import Base
from .enums import TaskStageStatus, OrderStatus
from .user import utcnow


class TaskStage(Base):
    __tablename__ = "task_stages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    note = Column(String(250), nullable=True)
    status = Column(SQLAlchemyEnum(TaskStageStatus), nullable=False, default=TaskStageStatus.ACTIVE)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    note = Column(Text, nullable=True, default="")

    stage_links = relationship(
        "TaskStageLink",
        back_populates="task",
        order_by="TaskStageLink.position",
        cascade="all, delete-orphan",
    )


class TaskStageLink(Base):
    __tablename__ = "task_stage_links"
    __table_args__ = (
        UniqueConstraint("task_id", "stage_id", name="uq_task_stage_links_task_stage"),
        UniqueConstraint("task_id", "position", name="uq_task_stage_links_task_position"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    stage_id = Column(Integer, ForeignKey("task_stages.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    task = relationship("Task", back_populates="stage_links")
    stage = relationship("TaskStage")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    # Stage sequence of the task at the time the order was created.
    stage_ids = Column(JSON, nullable=False, default=list)
    current_stage_id = Column(Integer, ForeignKey("task_stages.id"), nullable=True)
    status = Column(SQLAlchemyEnum(OrderStatus), nullable=False, default=OrderStatus.CREATED, index=True)
    token = Column(String(64), nullable=False, unique=True, index=True, default=lambda: uuid.uuid4().hex)
    created_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    customer = relationship("Customer")
    task = relationship("Task")
    current_stage = relationship("TaskStage")

    __mapper_args__ = {"version_id_col": version}
