"""
Lock Store Interface

Every mutating operation is a single conditional write scoped to one (event, seat) key.
Implementations must never split it into a read followed by a separate write.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import attrs

from seatlock.service.seat_lock.domain.enum.lock_outcome import LockOutcome
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


@attrs.frozen
class LockStoreResult:
    outcome: LockOutcome
    lock: Optional[SeatLock] = None


class ILockStore(ABC):
    @abstractmethod
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
        """
        Create a lease iff no unexpired lease exists for the seat

        Returns:
            GRANTED with the new lock, ALREADY_HELD with the holder's existing lock,
            or CONFLICT with the other holder's lock
        """
        pass

    @abstractmethod
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
        """
        Move the expiry of an unexpired lease owned by holder/token

        Returns:
            EXTENDED, ABSENT, EXPIRED or MISMATCH
        """
        pass

    @abstractmethod
    async def try_release(
        self, *, event_id: str, seat_id: str, holder_id: str, token: str, now_ms: int
    ) -> LockStoreResult:
        """
        Delete the lease iff holder/token match

        Returns:
            RELEASED, ABSENT, EXPIRED (lapsed lease is removed as well) or MISMATCH
        """
        pass

    @abstractmethod
    async def get(self, *, event_id: str, seat_id: str, now_ms: int) -> Optional[SeatLock]:
        """Unexpired lease of the seat, None otherwise. No side effects."""
        pass

    @abstractmethod
    async def list_for_event(self, *, event_id: str, now_ms: int) -> List[SeatLock]:
        pass

    @abstractmethod
    async def count_active(self, *, event_id: str, now_ms: int) -> int:
        pass

    @abstractmethod
    async def purge_expired(self, *, now_ms: int) -> int:
        """Remove lapsed leases, returns how many were removed"""
        pass
