from fastapi import Depends

from workpilot.database import get_db
from workpilot.repository import PostgreSQLWorkPilotRepository
from workpilot.services import (
    AccountService, CustomerService, OrderService, StageCatalogService, TaskService,
)


# --- Dependencies ---
def get_repository(db=Depends(get_db)) -> PostgreSQLWorkPilotRepository:
    """One repository per request; it implements every repository interface."""
    return PostgreSQLWorkPilotRepository(db)


def get_stage_catalog_service(repo: PostgreSQLWorkPilotRepository = Depends(get_repository)) -> StageCatalogService:
    return StageCatalogService(stage_repo=repo)


def get_task_service(repo: PostgreSQLWorkPilotRepository = Depends(get_repository)) -> TaskService:
    return TaskService(task_repo=repo, stage_repo=repo)


def get_order_service(repo: PostgreSQLWorkPilotRepository = Depends(get_repository)) -> OrderService:
    return OrderService(order_repo=repo, customer_repo=repo, task_repo=repo)


def get_customer_service(repo: PostgreSQLWorkPilotRepository = Depends(get_repository)) -> CustomerService:
    return CustomerService(customer_repo=repo)


def get_account_service(repo: PostgreSQLWorkPilotRepository = Depends(get_repository)) -> AccountService:
    return AccountService(user_repo=repo)
