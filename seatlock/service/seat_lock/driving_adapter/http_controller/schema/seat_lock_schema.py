from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from seatlock.service.seat_lock.app.dto.seat_lock_dto import (
    EnqueueReceipt,
    EventLockStats,
    LockStatus,
    QueueStats,
)
from seatlock.service.seat_lock.domain.request_outcome import RequestOutcome
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Requests ==========


class LockRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={'examples': [{}, {'ttlSeconds': 120}]},
    )

    ttl_seconds: Optional[float] = Field(default=None, gt=0)


class ExtendRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={'examples': [{'token': '3f0c2a1e9b7d4c55a8e1f0d2b6c4a9e7'}]},
    )

    token: str = Field(min_length=1)
    ttl_seconds: Optional[float] = Field(default=None, gt=0)


# ========== Lease responses ==========


class LockGrantedResponse(CamelModel):
    granted: Literal[True] = True
    event_id: str
    seat_id: str
    holder_id: str
    token: str
    acquired_at: int
    expires_at: int

    @classmethod
    def from_lock(cls, lock: SeatLock) -> 'LockGrantedResponse':
        return cls(
            event_id=lock.event_id,
            seat_id=lock.seat_id,
            holder_id=lock.holder_id,
            token=lock.token,
            acquired_at=lock.acquired_at_ms,
            expires_at=lock.expires_at_ms,
        )


class QueuedResponse(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            'example': {
                'queued': True,
                'status': 'pending',
                'requestId': '01936d8f-5e73-7c4e-a9c5-123456789abc',  # UUID7
                'queuePosition': 2,
                'estimatedWaitSeconds': 4.0,
            }
        },
    )

    queued: Literal[True] = True
    status: str = 'pending'
    request_id: str
    queue_position: int
    estimated_wait_seconds: float

    @classmethod
    def from_receipt(cls, receipt: EnqueueReceipt) -> 'QueuedResponse':
        return cls(
            request_id=receipt.request_id,
            queue_position=receipt.queue_position,
            estimated_wait_seconds=receipt.estimated_wait_seconds,
        )


class ExtendResponse(CamelModel):
    extended: Literal[True] = True
    token: str
    expires_at: int


class ReleaseResponse(CamelModel):
    released: bool = True
    was_held: bool  # False when the lease was already gone (idempotent release)


class LockStatusResponse(CamelModel):
    event_id: str
    seat_id: str
    held: bool
    holder: Optional[str] = None
    ttl_remaining: Optional[int] = None  # milliseconds
    acquired_at: Optional[int] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_status(cls, status: LockStatus) -> 'LockStatusResponse':
        return cls(
            event_id=status.event_id,
            seat_id=status.seat_id,
            held=status.held,
            holder=status.holder_id,
            ttl_remaining=status.ttl_remaining_ms,
            acquired_at=status.acquired_at_ms,
            expires_at=status.expires_at_ms,
        )


class ActiveLockResponse(CamelModel):
    seat: str
    holder: str
    acquired_at: int
    expires_at: int

    @classmethod
    def from_locks(cls, locks: List[SeatLock]) -> List['ActiveLockResponse']:
        return [
            cls(
                seat=lock.seat_id,
                holder=lock.holder_id,
                acquired_at=lock.acquired_at_ms,
                expires_at=lock.expires_at_ms,
            )
            for lock in locks
        ]


# ========== Queue / results ==========


class RequestResultResponse(CamelModel):
    request_id: str
    event_id: str
    seat_id: str
    action: str
    status: str
    token: Optional[str] = None
    expires_at: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: RequestOutcome) -> 'RequestResultResponse':
        return cls(
            request_id=outcome.request_id,
            event_id=outcome.event_id,
            seat_id=outcome.seat_id,
            action=outcome.action.value,
            status=outcome.status.value,
            token=outcome.token,
            expires_at=outcome.expires_at_ms,
            reason=outcome.reason,
        )


class QueueClearResponse(CamelModel):
    event_id: str
    cleared_count: int


# ========== Stats ==========


class HybridStatsResponse(CamelModel):
    event_id: str
    active_locks: int
    queue_depth: int
    queue_depth_by_seat: Dict[str, int]
    load: str
    current_load: int
    threshold: int
    load_window_seconds: float

    @classmethod
    def from_stats(cls, stats: EventLockStats) -> 'HybridStatsResponse':
        return cls(
            event_id=stats.event_id,
            active_locks=stats.active_locks,
            queue_depth=stats.queue_depth,
            queue_depth_by_seat=stats.queue_depth_by_seat,
            load=stats.load.value,
            current_load=stats.current_load,
            threshold=stats.threshold,
            load_window_seconds=stats.load_window_seconds,
        )


class QueueStatsResponse(CamelModel):
    event_id: str
    queue_length: int
    queue_depth_by_seat: Dict[str, int]
    active_workers: int
    estimated_wait_seconds: float
    status: str

    @classmethod
    def from_stats(cls, stats: QueueStats) -> 'QueueStatsResponse':
        return cls(
            event_id=stats.event_id,
            queue_length=stats.queue_length,
            queue_depth_by_seat=stats.queue_depth_by_seat,
            active_workers=stats.active_workers,
            estimated_wait_seconds=stats.estimated_wait_seconds,
            status=stats.status,
        )
