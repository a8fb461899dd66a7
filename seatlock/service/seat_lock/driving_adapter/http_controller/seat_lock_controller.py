"""
Seat lock routes: force-direct lease operations, status views and the load-adaptive
(hybrid) entry style.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from opentelemetry import trace

from seatlock.platform.logging.loguru_io import Logger
from seatlock.service.seat_lock.app.command.direct_seat_lock_use_case import (
    DirectSeatLockUseCase,
)
from seatlock.service.seat_lock.app.command.hybrid_seat_lock_use_case import (
    HybridSeatLockUseCase,
)
from seatlock.service.seat_lock.app.query.get_event_lock_stats_use_case import (
    GetEventLockStatsUseCase,
)
from seatlock.service.seat_lock.app.query.get_seat_lock_status_use_case import (
    GetSeatLockStatusUseCase,
)
from seatlock.service.seat_lock.driving_adapter.http_controller.auth.caller_identity import (
    get_current_holder,
)
from seatlock.service.seat_lock.driving_adapter.http_controller.schema.seat_lock_schema import (
    ActiveLockResponse,
    ExtendRequest,
    ExtendResponse,
    HybridStatsResponse,
    LockGrantedResponse,
    LockRequest,
    LockStatusResponse,
    QueuedResponse,
    ReleaseResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


# ========== Direct ==========


@router.post('/events/{event_id}/seats/{seat_id}/lock', status_code=status.HTTP_200_OK)
@Logger.io
async def lock_seat(
    event_id: str,
    seat_id: str,
    request: Optional[LockRequest] = None,
    holder_id: str = Depends(get_current_holder),
    use_case: DirectSeatLockUseCase = Depends(DirectSeatLockUseCase.depends),
) -> LockGrantedResponse:
    lock = await use_case.lock(
        event_id=event_id,
        seat_id=seat_id,
        holder_id=holder_id,
        ttl_seconds=request.ttl_seconds if request else None,
    )
    return LockGrantedResponse.from_lock(lock)


@router.get(
    '/events/{event_id}/seats/{seat_id}/lock',
    response_model=LockStatusResponse,
    response_model_exclude_none=True,
)
async def get_seat_lock_status(
    event_id: str,
    seat_id: str,
    use_case: GetSeatLockStatusUseCase = Depends(GetSeatLockStatusUseCase.depends),
) -> LockStatusResponse:
    lock_status = await use_case.get_status(event_id=event_id, seat_id=seat_id)
    return LockStatusResponse.from_status(lock_status)


@router.put('/events/{event_id}/seats/{seat_id}/lock/extend')
@Logger.io
async def extend_seat_lock(
    event_id: str,
    seat_id: str,
    request: ExtendRequest,
    holder_id: str = Depends(get_current_holder),
    use_case: DirectSeatLockUseCase = Depends(DirectSeatLockUseCase.depends),
) -> ExtendResponse:
    lock = await use_case.extend(
        event_id=event_id,
        seat_id=seat_id,
        holder_id=holder_id,
        token=request.token,
        ttl_seconds=request.ttl_seconds,
    )
    return ExtendResponse(token=lock.token, expires_at=lock.expires_at_ms)


@router.delete('/events/{event_id}/seats/{seat_id}/lock')
@Logger.io
async def release_seat_lock(
    event_id: str,
    seat_id: str,
    token: str = Query(min_length=1),
    holder_id: str = Depends(get_current_holder),
    use_case: DirectSeatLockUseCase = Depends(DirectSeatLockUseCase.depends),
) -> ReleaseResponse:
    was_held = await use_case.release(
        event_id=event_id, seat_id=seat_id, holder_id=holder_id, token=token
    )
    return ReleaseResponse(was_held=was_held)


@router.get('/events/{event_id}/locks')
async def list_event_locks(
    event_id: str,
    use_case: GetSeatLockStatusUseCase = Depends(GetSeatLockStatusUseCase.depends),
) -> List[ActiveLockResponse]:
    locks = await use_case.list_active_locks(event_id=event_id)
    return ActiveLockResponse.from_locks(locks)


# ========== Hybrid ==========


@router.post(
    '/events/{event_id}/seats/{seat_id}/hybrid/lock',
    responses={status.HTTP_202_ACCEPTED: {'model': QueuedResponse}},
)
@Logger.io
async def hybrid_lock_seat(
    event_id: str,
    seat_id: str,
    response: Response,
    request: Optional[LockRequest] = None,
    holder_id: str = Depends(get_current_holder),
    use_case: HybridSeatLockUseCase = Depends(HybridSeatLockUseCase.depends),
) -> LockGrantedResponse | QueuedResponse:
    with tracer.start_as_current_span('controller.hybrid_lock') as span:
        span.set_attribute('event_id', event_id)
        span.set_attribute('seat_id', seat_id)

        result = await use_case.lock(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=holder_id,
            ttl_seconds=request.ttl_seconds if request else None,
        )
        if result.lock is not None:
            return LockGrantedResponse.from_lock(result.lock)

        assert result.receipt is not None
        span.set_attribute('request_id', result.receipt.request_id)
        response.status_code = status.HTTP_202_ACCEPTED
        return QueuedResponse.from_receipt(result.receipt)


@router.put('/events/{event_id}/seats/{seat_id}/hybrid/extend')
@Logger.io
async def hybrid_extend_seat_lock(
    event_id: str,
    seat_id: str,
    request: ExtendRequest,
    holder_id: str = Depends(get_current_holder),
    use_case: HybridSeatLockUseCase = Depends(HybridSeatLockUseCase.depends),
) -> ExtendResponse:
    lock = await use_case.extend(
        event_id=event_id,
        seat_id=seat_id,
        holder_id=holder_id,
        token=request.token,
        ttl_seconds=request.ttl_seconds,
    )
    return ExtendResponse(token=lock.token, expires_at=lock.expires_at_ms)


@router.delete('/events/{event_id}/seats/{seat_id}/hybrid/release')
@Logger.io
async def hybrid_release_seat_lock(
    event_id: str,
    seat_id: str,
    token: str = Query(min_length=1),
    holder_id: str = Depends(get_current_holder),
    use_case: HybridSeatLockUseCase = Depends(HybridSeatLockUseCase.depends),
) -> ReleaseResponse:
    was_held = await use_case.release(
        event_id=event_id, seat_id=seat_id, holder_id=holder_id, token=token
    )
    return ReleaseResponse(was_held=was_held)


@router.get('/events/{event_id}/hybrid/stats')
async def get_hybrid_stats(
    event_id: str,
    use_case: GetEventLockStatsUseCase = Depends(GetEventLockStatsUseCase.depends),
) -> HybridStatsResponse:
    stats = await use_case.get_event_stats(event_id=event_id)
    return HybridStatsResponse.from_stats(stats)
