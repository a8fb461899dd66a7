"""
Seat Lock DTOs

Results handed from the engine and use cases to the HTTP layer.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from seatlock.service.seat_lock.domain.enum.load_level import LoadLevel
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


# ========== Direct Lock ==========


@dataclass
class LockStatus:
    """Side-effect free view of one seat"""

    event_id: str
    seat_id: str
    held: bool
    holder_id: Optional[str] = None
    ttl_remaining_ms: Optional[int] = None
    acquired_at_ms: Optional[int] = None
    expires_at_ms: Optional[int] = None

    @classmethod
    def absent(cls, *, event_id: str, seat_id: str) -> 'LockStatus':
        return cls(event_id=event_id, seat_id=seat_id, held=False)

    @classmethod
    def from_lock(cls, lock: SeatLock, *, now_ms: int) -> 'LockStatus':
        return cls(
            event_id=lock.event_id,
            seat_id=lock.seat_id,
            held=True,
            holder_id=lock.holder_id,
            ttl_remaining_ms=lock.ttl_remaining_ms(now_ms),
            acquired_at_ms=lock.acquired_at_ms,
            expires_at_ms=lock.expires_at_ms,
        )


# ========== Queue ==========


@dataclass
class EnqueueReceipt:
    request_id: str
    queue_position: int
    estimated_wait_seconds: float


@dataclass
class HybridLockResult:
    """Either a lease granted on the spot or a receipt for the queued request"""

    lock: Optional[SeatLock] = None
    receipt: Optional[EnqueueReceipt] = None

    @property
    def granted(self) -> bool:
        return self.lock is not None


# ========== Stats ==========


@dataclass
class EventLockStats:
    event_id: str
    active_locks: int
    queue_depth: int
    queue_depth_by_seat: Dict[str, int] = field(default_factory=dict)
    load: LoadLevel = LoadLevel.NORMAL
    current_load: int = 0
    threshold: int = 0
    load_window_seconds: float = 0.0


@dataclass
class QueueStats:
    event_id: str
    queue_length: int
    queue_depth_by_seat: Dict[str, int]
    active_workers: int
    estimated_wait_seconds: float

    @property
    def status(self) -> str:
        return 'active' if self.queue_length > 0 or self.active_workers > 0 else 'idle'
