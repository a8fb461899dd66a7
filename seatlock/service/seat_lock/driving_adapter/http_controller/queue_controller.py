"""
Queue routes: force-queued lease operations, request results and queue operations.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from seatlock.platform.logging.loguru_io import Logger
from seatlock.service.seat_lock.app.command.queued_seat_lock_use_case import (
    QueuedSeatLockUseCase,
)
from seatlock.service.seat_lock.app.query.get_event_lock_stats_use_case import (
    GetEventLockStatsUseCase,
)
from seatlock.service.seat_lock.app.query.get_request_result_use_case import (
    GetRequestResultUseCase,
)
from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.driving_adapter.http_controller.auth.caller_identity import (
    get_current_holder,
)
from seatlock.service.seat_lock.driving_adapter.http_controller.schema.seat_lock_schema import (
    ExtendRequest,
    LockRequest,
    QueueClearResponse,
    QueuedResponse,
    QueueStatsResponse,
    RequestResultResponse,
)


router = APIRouter()


# ========== Force-queued lease operations ==========


@router.post(
    '/events/{event_id}/seats/{seat_id}/queue/lock', status_code=status.HTTP_202_ACCEPTED
)
@Logger.io
async def queue_lock_seat(
    event_id: str,
    seat_id: str,
    request: Optional[LockRequest] = None,
    holder_id: str = Depends(get_current_holder),
    use_case: QueuedSeatLockUseCase = Depends(QueuedSeatLockUseCase.depends),
) -> QueuedResponse:
    receipt = await use_case.submit(
        event_id=event_id,
        seat_id=seat_id,
        holder_id=holder_id,
        action=LockAction.LOCK,
        ttl_seconds=request.ttl_seconds if request else None,
    )
    return QueuedResponse.from_receipt(receipt)


@router.put(
    '/events/{event_id}/seats/{seat_id}/queue/extend', status_code=status.HTTP_202_ACCEPTED
)
@Logger.io
async def queue_extend_seat_lock(
    event_id: str,
    seat_id: str,
    request: ExtendRequest,
    holder_id: str = Depends(get_current_holder),
    use_case: QueuedSeatLockUseCase = Depends(QueuedSeatLockUseCase.depends),
) -> QueuedResponse:
    receipt = await use_case.submit(
        event_id=event_id,
        seat_id=seat_id,
        holder_id=holder_id,
        action=LockAction.EXTEND,
        token=request.token,
        ttl_seconds=request.ttl_seconds,
    )
    return QueuedResponse.from_receipt(receipt)


@router.delete(
    '/events/{event_id}/seats/{seat_id}/queue/release', status_code=status.HTTP_202_ACCEPTED
)
@Logger.io
async def queue_release_seat_lock(
    event_id: str,
    seat_id: str,
    token: str = Query(min_length=1),
    holder_id: str = Depends(get_current_holder),
    use_case: QueuedSeatLockUseCase = Depends(QueuedSeatLockUseCase.depends),
) -> QueuedResponse:
    receipt = await use_case.submit(
        event_id=event_id,
        seat_id=seat_id,
        holder_id=holder_id,
        action=LockAction.RELEASE,
        token=token,
    )
    return QueuedResponse.from_receipt(receipt)


# ========== Queue operations ==========


@router.get('/events/{event_id}/queue/stats')
async def get_queue_stats(
    event_id: str,
    use_case: GetEventLockStatsUseCase = Depends(GetEventLockStatsUseCase.depends),
) -> QueueStatsResponse:
    stats = await use_case.get_queue_stats(event_id=event_id)
    return QueueStatsResponse.from_stats(stats)


@router.delete('/events/{event_id}/queue/clear')
@Logger.io
async def clear_event_queue(
    event_id: str,
    holder_id: str = Depends(get_current_holder),
    use_case: QueuedSeatLockUseCase = Depends(QueuedSeatLockUseCase.depends),
) -> QueueClearResponse:
    Logger.base.warning(f'🗑️ [QUEUE] Clear of event {event_id} requested by {holder_id}')
    cleared_count = await use_case.clear(event_id=event_id)
    return QueueClearResponse(event_id=event_id, cleared_count=cleared_count)


# ========== Request results ==========


@router.get(
    '/requests/{request_id}/result',
    response_model=RequestResultResponse,
    response_model_exclude_none=True,
)
@router.get(
    '/hybrid/requests/{request_id}/result',
    response_model=RequestResultResponse,
    response_model_exclude_none=True,
    include_in_schema=False,
)
async def get_request_result(
    request_id: str,
    timeout: Optional[int] = Query(default=None, description='Max wait in milliseconds'),
    holder_id: str = Depends(get_current_holder),
    use_case: GetRequestResultUseCase = Depends(GetRequestResultUseCase.depends),
) -> RequestResultResponse:
    outcome = await use_case.get_result(
        request_id=request_id, holder_id=holder_id, timeout_ms=timeout
    )
    return RequestResultResponse.from_outcome(outcome)


@router.get(
    '/requests/{request_id}/poll',
    response_model=RequestResultResponse,
    response_model_exclude_none=True,
)
async def poll_request_result(
    request_id: str,
    timeout: Optional[int] = Query(default=None, description='Max wait in milliseconds'),
    holder_id: str = Depends(get_current_holder),
    use_case: GetRequestResultUseCase = Depends(GetRequestResultUseCase.depends),
) -> RequestResultResponse:
    outcome = await use_case.poll(request_id=request_id, holder_id=holder_id, timeout_ms=timeout)
    return RequestResultResponse.from_outcome(outcome)
