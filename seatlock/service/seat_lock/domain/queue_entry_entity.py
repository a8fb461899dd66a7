"""
Queue Entry Entity

A pending lock/extend/release request waiting in a per-seat FIFO queue.
The status moves from PENDING to exactly one terminal status.
"""

from typing import Optional

import attrs

from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.domain.enum.request_status import RequestStatus


@attrs.define
class QueueEntry:
    request_id: str
    event_id: str
    seat_id: str
    requester_id: str
    action: LockAction
    enqueued_at_ms: int
    token: Optional[str] = attrs.field(default=None, repr=False)
    ttl_seconds: Optional[float] = None
    status: RequestStatus = RequestStatus.PENDING

    @property
    def seat_key(self) -> tuple[str, str]:
        return (self.event_id, self.seat_id)

    @property
    def dedupe_key(self) -> tuple[str, LockAction]:
        return (self.requester_id, self.action)

    def age_ms(self, now_ms: int) -> int:
        return max(0, now_ms - self.enqueued_at_ms)

    def is_stale(self, *, now_ms: int, max_age_ms: int) -> bool:
        return self.age_ms(now_ms) >= max_age_ms
