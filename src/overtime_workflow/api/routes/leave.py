"""Leave request API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from overtime_workflow.api.dependencies import ActorId, Leaves
from overtime_workflow.api.schemas import (
    CommentRequest,
    ErrorResponse,
    LeaveRequestResponse,
    LeaveSubmit,
)

router = APIRouter(prefix="/leave", tags=["leave"])

LeaveId = Annotated[UUID, Path()]

ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def submit_leave(
    leaves: Leaves,
    actor_id: ActorId,
    payload: LeaveSubmit,
) -> LeaveRequestResponse:
    request = await leaves.submit_leave(
        actor_id,
        payload.leave_type,
        payload.start_date,
        payload.end_date,
        payload.total_days,
        payload.reason,
    )
    return LeaveRequestResponse.model_validate(request)


@router.get("/{leave_id}", response_model=LeaveRequestResponse, responses=ERRORS)
async def get_leave(leaves: Leaves, actor_id: ActorId, leave_id: LeaveId) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(await leaves.get_leave(leave_id))


@router.post("/{leave_id}/approve", response_model=LeaveRequestResponse, responses=ERRORS)
async def approve_leave(
    leaves: Leaves,
    actor_id: ActorId,
    leave_id: LeaveId,
    payload: CommentRequest,
) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(
        await leaves.approve_leave(leave_id, actor_id, payload.comment)
    )


@router.post("/{leave_id}/reject", response_model=LeaveRequestResponse, responses=ERRORS)
async def reject_leave(
    leaves: Leaves,
    actor_id: ActorId,
    leave_id: LeaveId,
    payload: CommentRequest,
) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(
        await leaves.reject_leave(leave_id, actor_id, payload.comment)
    )


@router.delete("/{leave_id}", response_model=LeaveRequestResponse, responses=ERRORS)
async def cancel_leave(leaves: Leaves, actor_id: ActorId, leave_id: LeaveId) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(await leaves.cancel_leave(leave_id, actor_id))
