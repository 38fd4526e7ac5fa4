from typing import List, Optional

from fastapi import APIRouter, Depends, status

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.dependencies import get_task_service
from workpilot.models import Task, TaskCreate
from workpilot.services import TaskService

router = APIRouter(prefix="/task", tags=["tasks"])


@router.get("", response_model=List[Task])
async def list_tasks(
        name: Optional[str] = None,
        service: TaskService = Depends(get_task_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.list_tasks(current_user.user_id, name=name)


@router.get("/{task_id}", response_model=Task)
async def get_task(
        task_id: int,
        service: TaskService = Depends(get_task_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.get_task(current_user.user_id, task_id)


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
        task: TaskCreate,
        service: TaskService = Depends(get_task_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Build a task from ``stageIds`` or from a drawn ``flow``."""
    return await service.create_task(current_user.user_id, task)


@router.put("/{task_id}", response_model=Task)
async def update_task(
        task_id: int,
        task: TaskCreate,
        service: TaskService = Depends(get_task_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.update_task(current_user.user_id, task_id, task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
        task_id: int,
        service: TaskService = Depends(get_task_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    await service.delete_task(current_user.user_id, task_id)
