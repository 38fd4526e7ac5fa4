from typing import List, Optional

from fastapi import APIRouter, Depends, status

from workpilot.core.security import AuthenticatedUser, get_current_active_user
from workpilot.db_models.enums import TaskStageStatus
from workpilot.dependencies import get_stage_catalog_service
from workpilot.models import TaskStage, TaskStageCreate
from workpilot.services import StageCatalogService

router = APIRouter(prefix="/task-stage", tags=["task_stages"])


@router.get("", response_model=List[TaskStage])
async def list_task_stages(
        name: Optional[str] = None,
        service: StageCatalogService = Depends(get_stage_catalog_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Active stages only, optionally filtered by a name fragment."""
    return await service.list_stages(current_user.user_id, name=name)


@router.get("/{stage_id}", response_model=TaskStage)
async def get_task_stage(
        stage_id: int,
        service: StageCatalogService = Depends(get_stage_catalog_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.get_stage(current_user.user_id, stage_id)


@router.post("", response_model=TaskStage, status_code=status.HTTP_201_CREATED)
async def create_task_stage(
        stage: TaskStageCreate,
        service: StageCatalogService = Depends(get_stage_catalog_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    return await service.create_stage(current_user.user_id, stage.name, stage.note)


@router.put("/{stage_id}", response_model=TaskStage)
async def update_task_stage(
        stage_id: int,
        stage: TaskStageCreate,
        service: StageCatalogService = Depends(get_stage_catalog_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Rename a stage. Sending ``status: DELETED`` soft-deletes it."""
    if stage.status == TaskStageStatus.DELETED:
        return await service.soft_delete_stage(current_user.user_id, stage_id)
    return await service.update_stage(current_user.user_id, stage_id, stage.name, stage.note, stage.status)


@router.delete("/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_stage(
        stage_id: int,
        service: StageCatalogService = Depends(get_stage_catalog_service),
        current_user: AuthenticatedUser = Depends(get_current_active_user)
):
    """Remove the stage for good; 409 while a task or order uses it."""
    await service.hard_delete_stage(current_user.user_id, stage_id)
