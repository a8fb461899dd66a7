"""
In-Memory Lock Store

Single-process backend. None of the operations await anything, so on one event loop
each call runs to completion before any other task can observe the table: that is the
test-and-set step. Lapsed leases stay in the table for the grace period so extend and
release can still tell EXPIRED apart from ABSENT.
"""

from typing import Dict, List, Optional, Tuple

from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.state.clock import seconds_to_ms
from seatlock.service.seat_lock.app.interface.i_lock_store import ILockStore, LockStoreResult
from seatlock.service.seat_lock.domain.enum.lock_outcome import LockOutcome
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


class InMemoryLockStore(ILockStore):
    def __init__(self, *, expired_grace_seconds: float = 0) -> None:
        self._locks: Dict[Tuple[str, str], SeatLock] = {}
        self._expired_grace_ms = seconds_to_ms(expired_grace_seconds)

    def _lookup(self, key: Tuple[str, str], now_ms: int) -> Optional[SeatLock]:
        lock = self._locks.get(key)
        if lock is not None and now_ms >= lock.expires_at_ms + self._expired_grace_ms:
            # Past the grace period the record is indistinguishable from a missing one
            del self._locks[key]
            return None
        return lock

    async def try_acquire(
        self,
        *,
        event_id: str,
        seat_id: str,
        holder_id: str,
        token: str,
        now_ms: int,
        expires_at_ms: int,
    ) -> LockStoreResult:
        key = (event_id, seat_id)
        current = self._lookup(key, now_ms)

        if current is not None and not current.is_expired(now_ms):
            if current.holder_id == holder_id:
                return LockStoreResult(outcome=LockOutcome.ALREADY_HELD, lock=current)
            return LockStoreResult(outcome=LockOutcome.CONFLICT, lock=current)

        lock = SeatLock(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=holder_id,
            token=token,
            acquired_at_ms=now_ms,
            expires_at_ms=expires_at_ms,
        )
        self._locks[key] = lock
        return LockStoreResult(outcome=LockOutcome.GRANTED, lock=lock)

    async def try_extend(
        self,
        *,
        event_id: str,
        seat_id: str,
        holder_id: str,
        token: str,
        now_ms: int,
        expires_at_ms: int,
    ) -> LockStoreResult:
        key = (event_id, seat_id)
        current = self._lookup(key, now_ms)

        if current is None:
            return LockStoreResult(outcome=LockOutcome.ABSENT)
        if not current.is_owned_by(holder_id=holder_id, token=token):
            return LockStoreResult(outcome=LockOutcome.MISMATCH, lock=current)
        if current.is_expired(now_ms):
            return LockStoreResult(outcome=LockOutcome.EXPIRED, lock=current)

        extended = current.with_expiry(expires_at_ms)
        self._locks[key] = extended
        return LockStoreResult(outcome=LockOutcome.EXTENDED, lock=extended)

    async def try_release(
        self, *, event_id: str, seat_id: str, holder_id: str, token: str, now_ms: int
    ) -> LockStoreResult:
        key = (event_id, seat_id)
        current = self._lookup(key, now_ms)

        if current is None:
            return LockStoreResult(outcome=LockOutcome.ABSENT)
        if current.is_expired(now_ms):
            del self._locks[key]
            return LockStoreResult(outcome=LockOutcome.EXPIRED, lock=current)
        if not current.is_owned_by(holder_id=holder_id, token=token):
            return LockStoreResult(outcome=LockOutcome.MISMATCH, lock=current)

        del self._locks[key]
        return LockStoreResult(outcome=LockOutcome.RELEASED, lock=current)

    async def get(self, *, event_id: str, seat_id: str, now_ms: int) -> Optional[SeatLock]:
        lock = self._locks.get((event_id, seat_id))
        if lock is None or lock.is_expired(now_ms):
            return None
        return lock

    async def list_for_event(self, *, event_id: str, now_ms: int) -> List[SeatLock]:
        locks = [
            lock
            for (lock_event_id, _), lock in self._locks.items()
            if lock_event_id == event_id and not lock.is_expired(now_ms)
        ]
        return sorted(locks, key=lambda lock: lock.seat_id)

    async def count_active(self, *, event_id: str, now_ms: int) -> int:
        return len(await self.list_for_event(event_id=event_id, now_ms=now_ms))

    async def purge_expired(self, *, now_ms: int) -> int:
        stale = [
            key
            for key, lock in self._locks.items()
            if now_ms >= lock.expires_at_ms + self._expired_grace_ms
        ]
        for key in stale:
            del self._locks[key]
        if stale:
            Logger.base.debug(f'🧹 [SWEEP] Purged {len(stale)} lapsed in-memory leases')
        return len(stale)
