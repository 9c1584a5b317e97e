from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ..auth import get_current_user_id
from ..dependencies import Services, get_services
from ..schemas import TaskCreate, TaskOut, TaskUpdate

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)

_ERRORS = {
    400: {"description": "Validation error"},
    401: {"description": "Missing or invalid session"},
}
_NOT_FOUND = {404: {"description": "Task not found (or owned by another user)"}}


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="List the caller's own tasks in creation order.",
    responses={200: {"description": "List retrieved successfully"}, **_ERRORS},
)
def list_tasks(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> List[TaskOut]:
    """
    List tasks owned by the authenticated user.
    """
    return [TaskOut(**t) for t in services.tasks.list(user_id)]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    summary="Create Task",
    description="Create a new task for the caller and return the created resource.",
    responses={200: {"description": "Task created successfully"}, **_ERRORS},
)
def create_task(
    payload: TaskCreate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> TaskOut:
    """
    Create a new task.
    """
    created = services.tasks.create(user_id, payload)
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description="Partially update the title and/or completion flag of one of the caller's tasks.",
    responses={200: {"description": "Task updated"}, **_ERRORS, **_NOT_FOUND},
)
def patch_task(
    task_id: int,
    payload: TaskUpdate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> TaskOut:
    """
    Partial update of a task.
    """
    updated = services.tasks.update(user_id, task_id, payload)
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete one of the caller's tasks by ID.",
    responses={
        204: {"description": "Task deleted"},
        401: _ERRORS[401],
        **_NOT_FOUND,
    },
)
def delete_task(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> None:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    services.tasks.delete(user_id, task_id)
    return None
