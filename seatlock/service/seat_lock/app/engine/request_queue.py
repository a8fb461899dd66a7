"""
Request Queue

One FIFO deque per (event, seat). Anyone may enqueue; only the queue worker removes
entries.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

import uuid_utils

from seatlock.platform.exception.exceptions import OverloadedError
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.metrics.seat_lock_metrics import metrics
from seatlock.platform.state.clock import Clock, now_ms
from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.domain.queue_entry_entity import QueueEntry


SeatKey = Tuple[str, str]


class RequestQueue:
    def __init__(self, *, max_depth_per_event: int, clock: Clock = now_ms) -> None:
        self.max_depth_per_event = max_depth_per_event
        self.clock = clock
        self._queues: Dict[SeatKey, Deque[QueueEntry]] = {}
        self._event_depth: Dict[str, int] = {}

    def _set_event_depth(self, event_id: str, delta: int) -> None:
        depth = self._event_depth.get(event_id, 0) + delta
        if depth > 0:
            self._event_depth[event_id] = depth
            metrics.queue_depth.labels(event_id=event_id).set(depth)
        elif self._event_depth.pop(event_id, None) is not None:
            # Label goes away with the last entry of the event
            metrics.queue_depth.remove(event_id)

    def enqueue(
        self,
        *,
        event_id: str,
        seat_id: str,
        requester_id: str,
        action: LockAction,
        token: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
    ) -> Tuple[QueueEntry, bool]:
        """
        Append a request to the seat's queue.

        A requester already waiting on the same seat with the same action gets its
        existing entry back instead of a second one.

        Returns:
            (entry, created)

        Raises:
            OverloadedError: the event's queue is at its hard ceiling
        """
        seat_queue = self._queues.get((event_id, seat_id))
        if seat_queue:
            for existing in seat_queue:
                if existing.dedupe_key == (requester_id, action):
                    Logger.base.info(
                        f'♻️ [QUEUE] {event_id}:{seat_id} duplicate {action.value} from '
                        f'{requester_id}, returning {existing.request_id}'
                    )
                    return existing, False

        if self.total_depth(event_id) >= self.max_depth_per_event:
            raise OverloadedError(
                f'Queue for event {event_id} is full, retry later',
                retry_after_seconds=5,
            )

        entry = QueueEntry(
            request_id=str(uuid_utils.uuid7()),
            event_id=event_id,
            seat_id=seat_id,
            requester_id=requester_id,
            action=action,
            enqueued_at_ms=self.clock(),
            token=token,
            ttl_seconds=ttl_seconds,
        )
        self._queues.setdefault((event_id, seat_id), deque()).append(entry)
        self._set_event_depth(event_id, 1)

        Logger.base.info(
            f'📥 [QUEUE] {event_id}:{seat_id} {action.value} from {requester_id} '
            f'queued as {entry.request_id} (position {self.position(entry)})'
        )
        return entry, True

    def peek(self, event_id: str, seat_id: str) -> Optional[QueueEntry]:
        seat_queue = self._queues.get((event_id, seat_id))
        return seat_queue[0] if seat_queue else None

    def lease_changes(self, event_id: str, seat_id: str) -> List[QueueEntry]:
        """Pending EXTEND/RELEASE entries of the seat, in enqueue order"""
        return [
            entry
            for entry in self._queues.get((event_id, seat_id), ())
            if entry.action is not LockAction.LOCK
        ]

    def remove(self, entry: QueueEntry) -> bool:
        seat_queue = self._queues.get(entry.seat_key)
        if not seat_queue or entry not in seat_queue:
            return False
        seat_queue.remove(entry)
        if not seat_queue:
            del self._queues[entry.seat_key]
        self._set_event_depth(entry.event_id, -1)
        return True

    def depth(self, event_id: str, seat_id: str) -> int:
        return len(self._queues.get((event_id, seat_id), ()))

    def total_depth(self, event_id: str) -> int:
        return self._event_depth.get(event_id, 0)

    def depth_by_seat(self, event_id: str) -> Dict[str, int]:
        return {
            seat_id: len(seat_queue)
            for (queue_event_id, seat_id), seat_queue in sorted(self._queues.items())
            if queue_event_id == event_id
        }

    def position(self, entry: QueueEntry) -> int:
        """1-based position in the seat queue, 0 once the entry left it"""
        seat_queue = self._queues.get(entry.seat_key, ())
        for index, queued in enumerate(seat_queue):
            if queued is entry:
                return index + 1
        return 0

    def seat_keys(self, event_id: Optional[str] = None) -> List[SeatKey]:
        return [key for key in self._queues if event_id is None or key[0] == event_id]

    def entries_for_event(self, event_id: str) -> List[QueueEntry]:
        return [
            entry
            for (queue_event_id, _), seat_queue in self._queues.items()
            if queue_event_id == event_id
            for entry in seat_queue
        ]

    def all_entries(self) -> List[QueueEntry]:
        return [entry for seat_queue in self._queues.values() for entry in seat_queue]
