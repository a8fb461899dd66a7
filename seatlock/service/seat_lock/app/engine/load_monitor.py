"""
Load Monitor

Rolling per-event count of lock attempts. Decides whether a hybrid request goes to the
direct path, the queue, or is turned away. Advisory only: never touches lock state.
"""

from collections import deque
from collections.abc import Callable
import time
from typing import Deque, Dict

from seatlock.platform.logging.loguru_io import Logger
from seatlock.service.seat_lock.app.engine.request_queue import RequestQueue
from seatlock.service.seat_lock.domain.enum.load_level import LoadLevel, Route
from seatlock.service.seat_lock.domain.load_sample import LoadSample


class LoadMonitor:
    def __init__(
        self,
        *,
        request_queue: RequestQueue,
        threshold: int,
        window_seconds: float,
        max_queue_depth: int,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.request_queue = request_queue
        self.threshold = threshold
        self.window_seconds = window_seconds
        self.max_queue_depth = max_queue_depth
        self._monotonic = monotonic
        self._attempts: Dict[str, Deque[float]] = {}

    def _prune(self, event_id: str, now: float) -> Deque[float]:
        attempts = self._attempts.get(event_id)
        if attempts is None:
            return deque()
        cutoff = now - self.window_seconds
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()
        if not attempts:
            del self._attempts[event_id]
        return attempts

    def record_attempt(self, event_id: str) -> int:
        """Count one lock attempt, returns the attempts inside the window including it"""
        now = self._monotonic()
        self._prune(event_id, now)
        attempts = self._attempts.setdefault(event_id, deque())
        attempts.append(now)
        return len(attempts)

    def prune_idle(self) -> int:
        """Forget events with no attempt left inside the window, returns how many"""
        now = self._monotonic()
        before = len(self._attempts)
        for event_id in list(self._attempts):
            self._prune(event_id, now)
        return before - len(self._attempts)

    def current_load(self, event_id: str) -> int:
        return len(self._prune(event_id, self._monotonic()))

    def load_level(self, event_id: str) -> LoadLevel:
        return self.sample(event_id).level

    def sample(self, event_id: str) -> LoadSample:
        return LoadSample(
            event_id=event_id,
            attempts_in_window=self.current_load(event_id),
            queue_depth=self.request_queue.total_depth(event_id),
            threshold=self.threshold,
            window_seconds=self.window_seconds,
        )

    def classify(self, *, event_id: str, seat_id: str) -> Route:
        """
        Record the attempt and pick its route:
        - REJECTED when the event's queue is at its hard ceiling
        - QUEUED when the event is above threshold or the seat already has waiters
        - DIRECT otherwise
        """
        load = self.record_attempt(event_id)

        if self.request_queue.total_depth(event_id) >= self.max_queue_depth:
            route = Route.REJECTED
        elif load > self.threshold or self.request_queue.depth(event_id, seat_id) > 0:
            route = Route.QUEUED
        else:
            route = Route.DIRECT

        Logger.base.debug(
            f'📈 [LOAD] {event_id}:{seat_id} load={load}/{self.threshold} -> {route.value}'
        )
        return route
