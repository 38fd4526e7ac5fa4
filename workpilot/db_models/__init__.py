from .base import Base
from .user import User
from .customer import Customer
from .workflow import TaskStage, Task, TaskStageLink, Order

__all__ = ["Base", "User", "Customer", "TaskStage", "Task", "TaskStageLink", "Order"]
