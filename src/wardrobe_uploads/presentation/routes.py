from __future__ import annotations

from typing import cast

import inject
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field

from src.wardrobe_uploads.application.services import UploadService
from src.wardrobe_uploads.domain.exceptions import TaskNotFoundError, TaskNotReadyError
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.task_view import TaskView
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem

router = APIRouter(prefix="/uploads", tags=["uploads"])


def get_upload_service() -> UploadService:
    return cast(UploadService, inject.instance(UploadService))


class SubmitResponse(BaseModel):
    task_ids: list[str] = Field(..., description="One task id per submitted file.")


class ActiveTaskRequest(BaseModel):
    task_id: str | None = Field(default=None, description="Task to select, or null.")


class RetryResponse(BaseModel):
    task_id: str
    scheduled: bool = Field(..., description="Whether a new run was started.")


class ClearResponse(BaseModel):
    removed: list[str]


def _view(service: UploadService, task_id: str) -> TaskView:
    task = service.get_task(task_id)
    return TaskView.from_task(task, active=service.registry.active_task_id == task.id)


@router.post(
    "",
    response_model=SubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit photos",
    description="Creates one upload task per file and starts its upload and analysis.",
)
async def submit_uploads(
    files: list[UploadFile] = File(..., description="Photos to add to the wardrobe."),
    service: UploadService = Depends(get_upload_service),
):
    sources = [
        SourceFile(
            file_name=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        )
        for upload in files
    ]
    return SubmitResponse(task_ids=service.submit(sources))


@router.get("", response_model=list[TaskView], summary="List upload tasks")
def list_uploads(service: UploadService = Depends(get_upload_service)):
    active_id = service.registry.active_task_id
    return [
        TaskView.from_task(task, active=task.id == active_id) for task in service.list_tasks()
    ]


@router.get("/active", response_model=TaskView | None, summary="Get the active task")
def get_active_upload(service: UploadService = Depends(get_upload_service)):
    task = service.registry.active_task
    if task is None:
        return None
    return TaskView.from_task(task, active=True)


@router.put("/active", status_code=status.HTTP_204_NO_CONTENT, summary="Select a task")
async def set_active_upload(
    body: ActiveTaskRequest, service: UploadService = Depends(get_upload_service)
):
    try:
        service.select(body.task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/clear-completed", response_model=ClearResponse, summary="Clear finished tasks")
async def clear_completed(service: UploadService = Depends(get_upload_service)):
    return ClearResponse(removed=service.clear_completed())


@router.get("/{task_id}", response_model=TaskView, summary="Get an upload task")
def get_upload(task_id: str, service: UploadService = Depends(get_upload_service)):
    try:
        return _view(service, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/{task_id}/retry", response_model=RetryResponse, summary="Retry a failed task")
async def retry_upload(task_id: str, service: UploadService = Depends(get_upload_service)):
    if service.registry.get_task(task_id) is None:
        raise HTTPException(status_code=404, detail=str(TaskNotFoundError(task_id)))
    return RetryResponse(task_id=task_id, scheduled=service.retry(task_id))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Dismiss a task")
async def dismiss_upload(task_id: str, service: UploadService = Depends(get_upload_service)):
    try:
        service.dismiss(task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{task_id}/editor",
    response_model=WardrobeItem,
    summary="Open the item editor",
    description="Opens the editor with the item snapshot cached on a successful task.",
)
async def open_item_editor(task_id: str, service: UploadService = Depends(get_upload_service)):
    try:
        return await service.open_editor(task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TaskNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
