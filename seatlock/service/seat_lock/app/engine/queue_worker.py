"""
Queue Worker

Drains the request queue with one task per contested seat, spawned lazily on the first
enqueue for that seat and finished as soon as the seat's queue is empty. Entries of a
seat are handled strictly one at a time in enqueue order; different seats run in
parallel.

A head LOCK entry that finds the seat held sleeps until whichever comes first: the seat
is released, the holder's lease lapses, the entry reaches its max age, or the retry
interval elapses. While it waits, EXTEND and RELEASE entries queued behind it still run
in their own enqueue order, so the holder can change its lease without waiting on the
requests for its own seat. LOCK entries keep strict FIFO among themselves.
"""

from typing import Dict, Optional, Set

import anyio
from anyio.abc import TaskGroup

from seatlock.platform.exception.exceptions import ConflictError, CustomBaseError, DomainError
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.metrics.seat_lock_metrics import metrics
from seatlock.platform.state.clock import Clock, now_ms, seconds_to_ms
from seatlock.service.seat_lock.app.dto.seat_lock_dto import EnqueueReceipt
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.app.engine.request_queue import RequestQueue, SeatKey
from seatlock.service.seat_lock.app.engine.result_store import ResultStore
from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.domain.enum.request_status import RequestStatus
from seatlock.service.seat_lock.domain.queue_entry_entity import QueueEntry


QUEUE_TIMEOUT = 'QUEUE_TIMEOUT'
QUEUE_CLEARED = 'QUEUE_CLEARED'
INTERNAL_ERROR = 'INTERNAL_ERROR'


class QueueWorker:
    def __init__(
        self,
        *,
        lock_manager: DirectLockManager,
        request_queue: RequestQueue,
        result_store: ResultStore,
        entry_max_age_seconds: float,
        retry_interval_seconds: float,
        estimated_seconds_per_request: float,
        clock: Clock = now_ms,
    ) -> None:
        self.lock_manager = lock_manager
        self.request_queue = request_queue
        self.result_store = result_store
        self.entry_max_age_ms = seconds_to_ms(entry_max_age_seconds)
        self.retry_interval_ms = seconds_to_ms(retry_interval_seconds)
        self.estimated_seconds_per_request = estimated_seconds_per_request
        self.clock = clock

        self._task_group: Optional[TaskGroup] = None
        self._active_seats: Set[SeatKey] = set()
        self._wakeups: Dict[SeatKey, anyio.Event] = {}
        self._in_flight: Set[str] = set()

        lock_manager.add_release_listener(self._wake_seat)

    @property
    def is_running(self) -> bool:
        return self._task_group is not None

    async def start(self, *, task_group: TaskGroup) -> None:
        self._task_group = task_group
        # Entries queued before start get their drain tasks now
        for seat_key in self.request_queue.seat_keys():
            self._ensure_drain(seat_key)
        Logger.base.info('👷 [QUEUE] Queue worker started')

    def stop(self) -> None:
        self._task_group = None
        self._active_seats.clear()
        self._wakeups.clear()

    def active_workers(self, event_id: Optional[str] = None) -> int:
        return sum(1 for key in self._active_seats if event_id is None or key[0] == event_id)

    def estimate_wait_seconds(self, position: int) -> float:
        return position * self.estimated_seconds_per_request

    def submit(
        self,
        *,
        event_id: str,
        seat_id: str,
        requester_id: str,
        action: LockAction,
        token: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
    ) -> EnqueueReceipt:
        """Enqueue a request and make sure its seat has a drain task"""
        if action is not LockAction.LOCK and not token:
            raise DomainError(f'token is required to queue a {action.value} request')

        entry, created = self.request_queue.enqueue(
            event_id=event_id,
            seat_id=seat_id,
            requester_id=requester_id,
            action=action,
            token=token,
            ttl_seconds=ttl_seconds,
        )
        if created:
            self.result_store.register(entry)
        self._ensure_drain(entry.seat_key)
        if action is not LockAction.LOCK:
            self._wake_seat(event_id, seat_id)

        position = self.request_queue.position(entry)
        return EnqueueReceipt(
            request_id=entry.request_id,
            queue_position=position,
            estimated_wait_seconds=self.estimate_wait_seconds(position),
        )

    def _ensure_drain(self, seat_key: SeatKey) -> None:
        if self._task_group is None or seat_key in self._active_seats:
            return
        self._active_seats.add(seat_key)
        self._task_group.start_soon(self._drain_seat, seat_key, name=f'drain:{seat_key}')

    def _wake_seat(self, event_id: str, seat_id: str) -> None:
        wakeup = self._wakeups.get((event_id, seat_id))
        if wakeup is not None:
            wakeup.set()

    async def _drain_seat(self, seat_key: SeatKey) -> None:
        event_id, seat_id = seat_key
        Logger.base.debug(f'👷 [QUEUE] Drain task for {event_id}:{seat_id} started')
        try:
            while (entry := self.request_queue.peek(event_id, seat_id)) is not None:
                if entry.is_stale(now_ms=self.clock(), max_age_ms=self.entry_max_age_ms):
                    self._finish(entry, status=RequestStatus.EXPIRED, reason=QUEUE_TIMEOUT)
                    continue

                wakeup = self._wakeups[seat_key] = anyio.Event()
                blocked_for_ms = await self._process(entry)
                if blocked_for_ms is None:
                    continue
                if await self._run_lease_changes(seat_key):
                    # Head is re-checked at once, the seat may have just been released
                    continue
                await self._wait(entry, wakeup=wakeup, blocked_for_ms=blocked_for_ms)
        finally:
            # No await between the empty peek and here, so a concurrent submit either saw
            # this seat as active before its entry was appended or spawns a new task after
            self._active_seats.discard(seat_key)
            self._wakeups.pop(seat_key, None)
            Logger.base.debug(f'👷 [QUEUE] Drain task for {event_id}:{seat_id} finished')

    async def _run_lease_changes(self, seat_key: SeatKey) -> bool:
        """Run the EXTEND/RELEASE entries waiting behind a blocked LOCK head"""
        ran = False
        for entry in self.request_queue.lease_changes(*seat_key):
            if not self.request_queue.position(entry):
                continue
            if entry.is_stale(now_ms=self.clock(), max_age_ms=self.entry_max_age_ms):
                self._finish(entry, status=RequestStatus.EXPIRED, reason=QUEUE_TIMEOUT)
            else:
                await self._process(entry)
            ran = True
        return ran

    async def _wait(self, entry: QueueEntry, *, wakeup: anyio.Event, blocked_for_ms: int) -> None:
        remaining_age_ms = self.entry_max_age_ms - entry.age_ms(self.clock())
        wait_ms = max(0, min(blocked_for_ms, remaining_age_ms, self.retry_interval_ms))
        with anyio.move_on_after(wait_ms / 1000):
            await wakeup.wait()

    async def _process(self, entry: QueueEntry) -> Optional[int]:
        """
        Run the head entry once.

        Returns:
            None when the entry reached a terminal status, otherwise how long (ms) the
            seat stays held by someone else
        """
        self._in_flight.add(entry.request_id)
        try:
            if entry.action is LockAction.LOCK:
                return await self._process_lock(entry)
            await self._process_lease_change(entry)
            return None
        except CustomBaseError as e:
            self._finish(entry, status=RequestStatus.DENIED, reason=e.code)
            return None
        except Exception as e:
            # One bad entry never stalls the seat's queue
            Logger.base.exception(f'💥 [QUEUE] {entry.request_id} failed unexpectedly: {e}')
            self._finish(entry, status=RequestStatus.DENIED, reason=INTERNAL_ERROR)
            return None
        finally:
            self._in_flight.discard(entry.request_id)

    async def _process_lock(self, entry: QueueEntry) -> Optional[int]:
        status = await self.lock_manager.status(event_id=entry.event_id, seat_id=entry.seat_id)
        if status.held and status.holder_id != entry.requester_id:
            return status.ttl_remaining_ms or 0

        # The seat looked free; acquire is still the atomic decision
        try:
            lock = await self.lock_manager.acquire(
                event_id=entry.event_id,
                seat_id=entry.seat_id,
                holder_id=entry.requester_id,
                ttl_seconds=entry.ttl_seconds,
            )
        except ConflictError as e:
            return int(e.extra.get('ttlRemaining', 0))

        self._finish(
            entry,
            status=RequestStatus.GRANTED,
            token=lock.token,
            expires_at_ms=lock.expires_at_ms,
        )
        return None

    async def _process_lease_change(self, entry: QueueEntry) -> None:
        assert entry.token is not None
        if entry.action is LockAction.EXTEND:
            lock = await self.lock_manager.extend(
                event_id=entry.event_id,
                seat_id=entry.seat_id,
                holder_id=entry.requester_id,
                token=entry.token,
                ttl_seconds=entry.ttl_seconds,
            )
            self._finish(
                entry,
                status=RequestStatus.GRANTED,
                token=lock.token,
                expires_at_ms=lock.expires_at_ms,
            )
        else:
            await self.lock_manager.release(
                event_id=entry.event_id,
                seat_id=entry.seat_id,
                holder_id=entry.requester_id,
                token=entry.token,
            )
            self._finish(entry, status=RequestStatus.GRANTED)

    def _finish(
        self,
        entry: QueueEntry,
        *,
        status: RequestStatus,
        token: Optional[str] = None,
        expires_at_ms: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.request_queue.remove(entry)
        entry.status = status
        if not self.result_store.complete(
            entry.request_id, status=status, token=token, expires_at_ms=expires_at_ms, reason=reason
        ):
            return

        metrics.queue_outcomes.labels(action=entry.action.value, status=status.value).inc()
        metrics.queue_wait.labels(action=entry.action.value).observe(
            entry.age_ms(self.clock()) / 1000
        )
        Logger.base.info(
            f'📤 [QUEUE] {entry.event_id}:{entry.seat_id} {entry.action.value} '
            f'{entry.request_id} -> {status.value}' + (f' ({reason})' if reason else '')
        )

    def expire_stale_entries(self) -> int:
        """
        Expire aged entries of seats that have no drain task running. Seats with a drain
        task expire their own head entries.
        """
        now = self.clock()
        expired = 0
        for entry in self.request_queue.all_entries():
            if entry.seat_key in self._active_seats:
                continue
            if entry.is_stale(now_ms=now, max_age_ms=self.entry_max_age_ms):
                self._finish(entry, status=RequestStatus.EXPIRED, reason=QUEUE_TIMEOUT)
                expired += 1
        return expired

    def clear_event(self, event_id: str) -> int:
        """Deny every pending entry of the event that is not being executed right now"""
        cleared = 0
        for entry in self.request_queue.entries_for_event(event_id):
            if entry.request_id in self._in_flight:
                continue
            self._finish(entry, status=RequestStatus.DENIED, reason=QUEUE_CLEARED)
            cleared += 1

        for (queue_event_id, seat_id), wakeup in list(self._wakeups.items()):
            if queue_event_id == event_id:
                wakeup.set()

        Logger.base.warning(
            f'🗑️ [QUEUE] Cleared {cleared} pending requests of event {event_id}'
        )
        return cleared
