from typing import Optional

import attrs

from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.domain.enum.request_status import RequestStatus


@attrs.define
class RequestOutcome:
    """What a caller sees when polling a request id"""

    request_id: str
    event_id: str
    seat_id: str
    requester_id: str
    action: LockAction
    status: RequestStatus
    enqueued_at_ms: int
    completed_at_ms: Optional[int] = None
    token: Optional[str] = attrs.field(default=None, repr=False)
    expires_at_ms: Optional[int] = None
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
