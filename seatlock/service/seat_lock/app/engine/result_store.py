"""
Result Store

Request id -> outcome. Waiters block on a per-request anyio.Event that is set when the
outcome turns terminal, never by polling. Terminal outcomes are kept for the retention
window and then evicted.
"""

from typing import Dict, Optional

import anyio

from seatlock.platform.exception.exceptions import NotFoundError
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.state.clock import Clock, now_ms, seconds_to_ms
from seatlock.service.seat_lock.domain.enum.request_status import RequestStatus
from seatlock.service.seat_lock.domain.queue_entry_entity import QueueEntry
from seatlock.service.seat_lock.domain.request_outcome import RequestOutcome


class ResultStore:
    def __init__(self, *, retention_seconds: float, clock: Clock = now_ms) -> None:
        self.retention_ms = seconds_to_ms(retention_seconds)
        self.clock = clock
        self._outcomes: Dict[str, RequestOutcome] = {}
        self._waiters: Dict[str, anyio.Event] = {}

    def __len__(self) -> int:
        return len(self._outcomes)

    def register(self, entry: QueueEntry) -> RequestOutcome:
        outcome = RequestOutcome(
            request_id=entry.request_id,
            event_id=entry.event_id,
            seat_id=entry.seat_id,
            requester_id=entry.requester_id,
            action=entry.action,
            status=RequestStatus.PENDING,
            enqueued_at_ms=entry.enqueued_at_ms,
        )
        self._outcomes[entry.request_id] = outcome
        return outcome

    def complete(
        self,
        request_id: str,
        *,
        status: RequestStatus,
        token: Optional[str] = None,
        expires_at_ms: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Move a pending outcome to a terminal status and wake its waiters.

        Returns:
            False if the request is unknown or already terminal (the first transition wins)
        """
        if not status.is_terminal:
            raise ValueError(f'{status} is not a terminal status')

        outcome = self._outcomes.get(request_id)
        if outcome is None or outcome.is_terminal:
            return False

        outcome.status = status
        outcome.completed_at_ms = self.clock()
        outcome.token = token
        outcome.expires_at_ms = expires_at_ms
        outcome.reason = reason

        waiter = self._waiters.pop(request_id, None)
        if waiter is not None:
            waiter.set()
        return True

    def get(self, request_id: str) -> RequestOutcome:
        outcome = self._outcomes.get(request_id)
        if outcome is None:
            raise NotFoundError(f'Request {request_id} not found')
        return outcome

    async def wait_for_result(self, request_id: str, *, timeout_seconds: float) -> RequestOutcome:
        """Latest known outcome once terminal or after timeout_seconds, whichever is first"""
        outcome = self.get(request_id)
        if outcome.is_terminal or timeout_seconds <= 0:
            return outcome

        waiter = self._waiters.get(request_id)
        if waiter is None:
            waiter = self._waiters[request_id] = anyio.Event()

        with anyio.move_on_after(timeout_seconds):
            await waiter.wait()

        return self._outcomes.get(request_id, outcome)

    def evict_expired(self) -> int:
        now = self.clock()
        evicted = [
            request_id
            for request_id, outcome in self._outcomes.items()
            if outcome.completed_at_ms is not None
            and now - outcome.completed_at_ms >= self.retention_ms
        ]
        for request_id in evicted:
            del self._outcomes[request_id]
            self._waiters.pop(request_id, None)

        if evicted:
            Logger.base.debug(f'🧹 [RESULT] Evicted {len(evicted)} retained results')
        return len(evicted)
