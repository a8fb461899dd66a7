"""
Direct Lock Manager

Fast path: acquire / extend / release go straight to the lock store as one conditional
write each, and the outcome is translated into a lease or a domain error.
"""

from collections.abc import Callable
import time
from typing import List, Optional
import uuid

from seatlock.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
)
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.metrics.seat_lock_metrics import metrics
from seatlock.platform.state.clock import Clock, now_ms, seconds_to_ms
from seatlock.service.seat_lock.app.dto.seat_lock_dto import LockStatus
from seatlock.service.seat_lock.app.interface.i_lock_store import ILockStore, LockStoreResult
from seatlock.service.seat_lock.domain.enum.lock_outcome import LockOutcome
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


ReleaseListener = Callable[[str, str], None]


def _require(**fields: Optional[str]) -> None:
    missing = [name for name, value in fields.items() if not value or not str(value).strip()]
    if missing:
        raise DomainError(f'Missing required fields: {", ".join(missing)}')


def _new_token() -> str:
    return uuid.uuid4().hex


class DirectLockManager:
    def __init__(
        self,
        *,
        lock_store: ILockStore,
        default_ttl_seconds: float,
        extend_ttl_seconds: float,
        max_ttl_seconds: float,
        clock: Clock = now_ms,
    ) -> None:
        self.lock_store = lock_store
        self.default_ttl_seconds = default_ttl_seconds
        self.extend_ttl_seconds = extend_ttl_seconds
        self.max_ttl_seconds = max_ttl_seconds
        self.clock = clock
        self._release_listeners: List[ReleaseListener] = []

    def add_release_listener(self, listener: ReleaseListener) -> None:
        """Called with (event_id, seat_id) whenever a seat becomes free through release"""
        self._release_listeners.append(listener)

    def _notify_released(self, *, event_id: str, seat_id: str) -> None:
        for listener in self._release_listeners:
            listener(event_id, seat_id)

    def _resolve_ttl(self, ttl_seconds: Optional[float], *, default: float) -> float:
        if ttl_seconds is None:
            return default
        if ttl_seconds <= 0 or ttl_seconds > self.max_ttl_seconds:
            raise DomainError(f'ttlSeconds must be positive and at most {self.max_ttl_seconds:g}')
        return ttl_seconds

    @staticmethod
    def _record(operation: str, result: LockStoreResult, started: float) -> None:
        metrics.lock_operations.labels(operation=operation, result=result.outcome.value).inc()
        metrics.lock_operation_duration.labels(operation=operation).observe(
            time.perf_counter() - started
        )

    @Logger.io
    async def acquire(
        self, *, event_id: str, seat_id: str, holder_id: str, ttl_seconds: Optional[float] = None
    ) -> SeatLock:
        """
        Create a lease iff the seat has no unexpired one.

        Idempotent for the current holder: the existing lease (same token) is returned.

        Raises:
            ConflictError: another holder owns a valid lease
        """
        _require(event_id=event_id, seat_id=seat_id, holder_id=holder_id)
        ttl = self._resolve_ttl(ttl_seconds, default=self.default_ttl_seconds)

        now = self.clock()
        started = time.perf_counter()
        result = await self.lock_store.try_acquire(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=holder_id,
            token=_new_token(),
            now_ms=now,
            expires_at_ms=now + seconds_to_ms(ttl),
        )
        self._record('acquire', result, started)

        if result.outcome is LockOutcome.CONFLICT:
            ttl_remaining = result.lock.ttl_remaining_ms(now) if result.lock else 0
            Logger.base.info(
                f'⛔ [LOCK] {event_id}:{seat_id} denied for {holder_id}, '
                f'held for another {ttl_remaining}ms'
            )
            raise ConflictError(
                f'Seat {seat_id} is already locked',
                extra={'eventId': event_id, 'seatId': seat_id, 'ttlRemaining': ttl_remaining},
            )

        assert result.lock is not None
        if result.outcome is LockOutcome.GRANTED:
            Logger.base.info(f'🔒 [LOCK] {event_id}:{seat_id} locked by {holder_id} ({ttl}s)')
        return result.lock

    @Logger.io
    async def extend(
        self,
        *,
        event_id: str,
        seat_id: str,
        holder_id: str,
        token: str,
        ttl_seconds: Optional[float] = None,
    ) -> SeatLock:
        """
        Push the expiry of the holder's lease forward; holder and token never change.

        Raises:
            NotFoundError: no lease for the seat
            ForbiddenError: holder/token do not match the lease
            ExpiredError: the lease lapsed before the extend arrived
        """
        _require(event_id=event_id, seat_id=seat_id, holder_id=holder_id, token=token)
        ttl = self._resolve_ttl(ttl_seconds, default=self.extend_ttl_seconds)

        now = self.clock()
        started = time.perf_counter()
        result = await self.lock_store.try_extend(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=holder_id,
            token=token,
            now_ms=now,
            expires_at_ms=now + seconds_to_ms(ttl),
        )
        self._record('extend', result, started)

        match result.outcome:
            case LockOutcome.EXTENDED:
                assert result.lock is not None
                Logger.base.info(
                    f'⏰ [LOCK] {event_id}:{seat_id} extended by {holder_id} ({ttl}s)'
                )
                return result.lock
            case LockOutcome.ABSENT:
                raise NotFoundError(f'No lock held on seat {seat_id}')
            case LockOutcome.EXPIRED:
                raise ExpiredError(f'Lock on seat {seat_id} has expired')
            case _:
                Logger.base.warning(
                    f'🚫 [LOCK] {event_id}:{seat_id} extend refused for {holder_id}'
                )
                raise ForbiddenError('Lock is held by another holder or the token is invalid')

    @Logger.io
    async def release(self, *, event_id: str, seat_id: str, holder_id: str, token: str) -> bool:
        """
        Delete the holder's lease. Releasing an absent or lapsed lease is a no-op success.

        Returns:
            True if this call removed a live lease

        Raises:
            ForbiddenError: the live lease belongs to someone else
        """
        _require(event_id=event_id, seat_id=seat_id, holder_id=holder_id, token=token)

        started = time.perf_counter()
        result = await self.lock_store.try_release(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=holder_id,
            token=token,
            now_ms=self.clock(),
        )
        self._record('release', result, started)

        if result.outcome is LockOutcome.MISMATCH:
            Logger.base.warning(f'🚫 [LOCK] {event_id}:{seat_id} release refused for {holder_id}')
            raise ForbiddenError('Lock is held by another holder or the token is invalid')

        if result.outcome is LockOutcome.RELEASED:
            Logger.base.info(f'🔓 [LOCK] {event_id}:{seat_id} released by {holder_id}')
            self._notify_released(event_id=event_id, seat_id=seat_id)
            return True
        return False

    async def status(self, *, event_id: str, seat_id: str) -> LockStatus:
        now = self.clock()
        lock = await self.lock_store.get(event_id=event_id, seat_id=seat_id, now_ms=now)
        if lock is None:
            return LockStatus.absent(event_id=event_id, seat_id=seat_id)
        return LockStatus.from_lock(lock, now_ms=now)

    async def list_for_event(self, *, event_id: str) -> List[SeatLock]:
        return await self.lock_store.list_for_event(event_id=event_id, now_ms=self.clock())

    async def count_active(self, *, event_id: str) -> int:
        return await self.lock_store.count_active(event_id=event_id, now_ms=self.clock())

    async def sweep_expired(self) -> int:
        purged = await self.lock_store.purge_expired(now_ms=self.clock())
        if purged:
            metrics.expired_locks_purged.inc(purged)
        return purged
