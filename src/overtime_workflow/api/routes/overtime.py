"""Overtime request API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from overtime_workflow.api.dependencies import ActorId, OvertimeService
from overtime_workflow.api.schemas import (
    CommentRequest,
    ErrorResponse,
    OvertimeRequestResponse,
    OvertimeSubmit,
    RevisionResponse,
    TransitionResponse,
)
from overtime_workflow.calculators.overtime_totals import EntryInput
from overtime_workflow.services import TransitionResult

router = APIRouter(prefix="/overtime", tags=["overtime"])

RequestId = Annotated[UUID, Path()]

ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    423: {"model": ErrorResponse},
}


def _entries(payload: OvertimeSubmit) -> list[EntryInput]:
    return [
        EntryInput(work_date=e.work_date, hours=e.hours, description=e.description)
        for e in payload.entries
    ]


def _to_response(result: TransitionResult) -> TransitionResponse:
    entry = result.revision_entry
    return TransitionResponse(
        request=OvertimeRequestResponse.model_validate(result.request),
        revision=RevisionResponse.model_validate(entry) if entry is not None else None,
    )


# ============================================================================
# Owner actions
# ============================================================================


@router.post(
    "",
    response_model=TransitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def submit_overtime(
    service: OvertimeService,
    actor_id: ActorId,
    payload: OvertimeSubmit,
) -> TransitionResponse:
    """Submit a new overtime request for the calling employee."""
    return _to_response(await service.submit(actor_id, _entries(payload)))


@router.get("", response_model=list[OvertimeRequestResponse])
async def list_my_overtime(
    service: OvertimeService,
    actor_id: ActorId,
) -> list[OvertimeRequestResponse]:
    requests = await service.list_for_employee(actor_id)
    return [OvertimeRequestResponse.model_validate(r) for r in requests]


@router.get("/pending-approvals", response_model=list[OvertimeRequestResponse])
async def list_pending_approvals(
    service: OvertimeService,
    actor_id: ActorId,
) -> list[OvertimeRequestResponse]:
    """Requests waiting on the caller (all pending requests for admins)."""
    requests = await service.list_pending_approvals(actor_id)
    return [OvertimeRequestResponse.model_validate(r) for r in requests]


@router.get("/{request_id}", response_model=OvertimeRequestResponse, responses=ERRORS)
async def get_overtime(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
) -> OvertimeRequestResponse:
    return OvertimeRequestResponse.model_validate(await service.get_request(request_id))


@router.get("/{request_id}/history", response_model=list[RevisionResponse], responses=ERRORS)
async def get_overtime_history(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
) -> list[RevisionResponse]:
    """Revision ledger for a request, oldest first."""
    history = await service.get_revision_history(request_id)
    return [RevisionResponse.model_validate(r) for r in history]


@router.put("/{request_id}", response_model=TransitionResponse, responses=ERRORS)
async def edit_overtime(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: OvertimeSubmit,
) -> TransitionResponse:
    """Replace the entries of a PENDING or REVISION_REQUESTED request."""
    return _to_response(await service.edit(request_id, actor_id, _entries(payload)))


@router.post("/{request_id}/resubmit", response_model=TransitionResponse, responses=ERRORS)
async def resubmit_overtime(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest | None = None,
) -> TransitionResponse:
    comment = payload.comment if payload else None
    return _to_response(await service.resubmit(request_id, actor_id, comment))


@router.delete("/{request_id}", response_model=TransitionResponse, responses=ERRORS)
async def delete_overtime(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    reason: Annotated[str | None, Query()] = None,
) -> TransitionResponse:
    return _to_response(await service.delete(request_id, actor_id, reason))


# ============================================================================
# Approver actions
# ============================================================================


@router.post(
    "/{request_id}/supervisor/approve", response_model=TransitionResponse, responses=ERRORS
)
async def approve_as_supervisor(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(
        await service.approve_as_supervisor(request_id, actor_id, payload.comment)
    )


@router.post(
    "/{request_id}/supervisor/reject", response_model=TransitionResponse, responses=ERRORS
)
async def reject_as_supervisor(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(await service.reject_as_supervisor(request_id, actor_id, payload.comment))


@router.post(
    "/{request_id}/division-head/approve", response_model=TransitionResponse, responses=ERRORS
)
async def approve_as_division_head(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(
        await service.approve_as_division_head(request_id, actor_id, payload.comment)
    )


@router.post(
    "/{request_id}/division-head/reject", response_model=TransitionResponse, responses=ERRORS
)
async def reject_as_division_head(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(
        await service.reject_as_division_head(request_id, actor_id, payload.comment)
    )


@router.post("/{request_id}/approve", response_model=TransitionResponse, responses=ERRORS)
async def final_approve(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(await service.final_approve(request_id, actor_id, payload.comment))


@router.post("/{request_id}/reject", response_model=TransitionResponse, responses=ERRORS)
async def final_reject(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(await service.final_reject(request_id, actor_id, payload.comment))


@router.post(
    "/{request_id}/request-revision", response_model=TransitionResponse, responses=ERRORS
)
async def request_revision(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    return _to_response(await service.request_revision(request_id, actor_id, payload.comment))


@router.post("/{request_id}/admin-reject", response_model=TransitionResponse, responses=ERRORS)
async def admin_reject(
    service: OvertimeService,
    actor_id: ActorId,
    request_id: RequestId,
    payload: CommentRequest,
) -> TransitionResponse:
    """Override an approved request (system administrators only)."""
    return _to_response(await service.admin_reject(request_id, actor_id, payload.comment))
