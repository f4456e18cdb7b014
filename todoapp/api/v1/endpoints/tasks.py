"""Task list router for the todo service."""

import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from todoapp.constants.constants import INT32_MAX, INT32_MIN
from todoapp.core.security import RequestIdentityProvider, get_identity_provider
from todoapp.schemas.taskSchema import (
    LinkRequest,
    RelationshipResponse,
    RevisionResponse,
    SequenceItem,
    SetLinksRequest,
    TaskCreateRequest,
    TaskDetailResponse,
    TaskDetailsUpdateRequest,
    TaskIdsRequest,
    TaskListResponse,
    TaskResponse,
    TextItem,
)
from todoapp.services.TaskMutationService import TaskMutationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"]
)


def get_task_service(
    identity: RequestIdentityProvider = Depends(get_identity_provider),
) -> TaskMutationService:
    return TaskMutationService(identity)


def _no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=TaskListResponse)
async def list_tasks(service: TaskMutationService = Depends(get_task_service)):
    """
    Get the current user's tasks ordered by sequence, then creation time.
    The revision tells the client which "data changed" signal this read reflects.
    """
    revision = await service.revision()
    tasks = await service.list_tasks()
    return TaskListResponse(tasks=tasks, revision=revision)


@router.get("/revision", response_model=RevisionResponse)
async def get_revision(service: TaskMutationService = Depends(get_task_service)):
    return RevisionResponse(revision=await service.revision())


@router.get("/relationships", response_model=list[RelationshipResponse])
async def list_relationships(service: TaskMutationService = Depends(get_task_service)):
    return await service.list_relationships()


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreateRequest,
    service: TaskMutationService = Depends(get_task_service),
):
    """Create a task at the top of the list and return it, id included."""
    return await service.create(task_data.text)


@router.post("/bulk-delete", status_code=status.HTTP_204_NO_CONTENT)
async def bulk_delete_tasks(
    payload: TaskIdsRequest,
    service: TaskMutationService = Depends(get_task_service),
):
    await service.bulk_delete(payload.ids)
    return _no_content()


@router.post("/toggle-done", status_code=status.HTTP_204_NO_CONTENT)
async def toggle_tasks_done(
    payload: TaskIdsRequest,
    service: TaskMutationService = Depends(get_task_service),
):
    """Flip the done flag of every selected task."""
    await service.toggle_done(payload.ids)
    return _no_content()


@router.put("/sequence", status_code=status.HTTP_204_NO_CONTENT)
async def update_task_sequence(
    items: list[SequenceItem],
    service: TaskMutationService = Depends(get_task_service),
):
    await service.update_sequence(items)
    return _no_content()


@router.put("/texts", status_code=status.HTTP_204_NO_CONTENT)
async def update_task_texts(
    items: list[TextItem],
    service: TaskMutationService = Depends(get_task_service),
):
    await service.update_texts(items)
    return _no_content()


@router.post("/links", status_code=status.HTTP_204_NO_CONTENT)
async def link_tasks(
    payload: LinkRequest,
    service: TaskMutationService = Depends(get_task_service),
):
    await service.link(payload.parent_id, payload.child_id)
    return _no_content()


@router.delete("/links/{parent_id}/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_tasks(
    parent_id: int = Path(..., ge=INT32_MIN, le=INT32_MAX),
    child_id: int = Path(..., ge=INT32_MIN, le=INT32_MAX),
    service: TaskMutationService = Depends(get_task_service),
):
    await service.unlink(parent_id, child_id)
    return _no_content()


@router.get("/{task_id}", response_model=TaskDetailResponse)
async def get_task(
    task_id: int = Path(..., ge=INT32_MIN, le=INT32_MAX),
    service: TaskMutationService = Depends(get_task_service),
):
    task = await service.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int = Path(..., ge=INT32_MIN, le=INT32_MAX),
    service: TaskMutationService = Depends(get_task_service),
):
    """Delete a task. Unknown ids and other users' ids are ignored."""
    await service.delete(task_id)
    return _no_content()


@router.patch("/{task_id}/details", status_code=status.HTTP_204_NO_CONTENT)
async def update_task_details(
    task_id: Annotated[int, Path(ge=INT32_MIN, le=INT32_MAX)],
    details: TaskDetailsUpdateRequest,
    service: TaskMutationService = Depends(get_task_service),
):
    """Partially update description, attachments, parent or title."""
    await service.update_details(task_id, details)
    return _no_content()


@router.put("/{task_id}/links", status_code=status.HTTP_204_NO_CONTENT)
async def set_task_links(
    task_id: Annotated[int, Path(ge=INT32_MIN, le=INT32_MAX)],
    payload: SetLinksRequest,
    service: TaskMutationService = Depends(get_task_service),
):
    await service.set_links(task_id, payload.child_ids)
    return _no_content()
