"""
Kvrocks Lock Store

Shared backend for several service instances. Each conditional write is one Lua script,
so the check and the write happen in a single server-side step. Timestamps come from the
caller's clock as epoch milliseconds; the hash itself is dropped by Kvrocks at
expires_at + grace.
"""

from typing import List, Optional, Sequence

from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.state.clock import seconds_to_ms
from seatlock.platform.state.kvrocks_client import kvrocks_client
from seatlock.platform.state.lua_script_executor import LuaScripts, lua_script_executor
from seatlock.service.seat_lock.app.interface.i_lock_store import ILockStore, LockStoreResult
from seatlock.service.seat_lock.domain.enum.lock_outcome import LockOutcome
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock
from seatlock.service.seat_lock.driven_adapter.state.key_str_generator import (
    make_seat_lock_events_key,
    make_seat_lock_index_key,
    make_seat_lock_key,
)


def _decode(value: object) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class KvrocksLockStore(ILockStore):
    def __init__(
        self, *, expired_grace_seconds: float = 0, scripts: Optional[LuaScripts] = None
    ) -> None:
        self._expired_grace_ms = seconds_to_ms(expired_grace_seconds)
        self._scripts = scripts or lua_script_executor

    @staticmethod
    def _to_result(*, event_id: str, seat_id: str, reply: Sequence[object]) -> LockStoreResult:
        fields = [_decode(value) for value in reply]
        outcome = LockOutcome(fields[0])
        if len(fields) < 5:
            return LockStoreResult(outcome=outcome)

        lock = SeatLock(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=fields[1],
            token=fields[2],
            acquired_at_ms=int(fields[3]),
            expires_at_ms=int(fields[4]),
        )
        return LockStoreResult(outcome=outcome, lock=lock)

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
        client = kvrocks_client.get_client()
        reply = await self._scripts.run(
            'acquire_lock',
            client=client,
            keys=[
                make_seat_lock_key(event_id=event_id, seat_id=seat_id),
                make_seat_lock_index_key(event_id=event_id),
            ],
            args=[
                holder_id,
                token,
                str(now_ms),
                str(expires_at_ms),
                str(expires_at_ms + self._expired_grace_ms),
                seat_id,
            ],
        )
        result = self._to_result(event_id=event_id, seat_id=seat_id, reply=reply)

        if result.outcome is LockOutcome.GRANTED:
            # Registry lives outside the event's hash tag, so it is written after the script
            await client.sadd(make_seat_lock_events_key(), event_id)  # type: ignore[misc]
        return result

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
        reply = await self._scripts.run(
            'extend_lock',
            client=kvrocks_client.get_client(),
            keys=[make_seat_lock_key(event_id=event_id, seat_id=seat_id)],
            args=[
                holder_id,
                token,
                str(now_ms),
                str(expires_at_ms),
                str(expires_at_ms + self._expired_grace_ms),
            ],
        )
        return self._to_result(event_id=event_id, seat_id=seat_id, reply=reply)

    async def try_release(
        self, *, event_id: str, seat_id: str, holder_id: str, token: str, now_ms: int
    ) -> LockStoreResult:
        reply = await self._scripts.run(
            'release_lock',
            client=kvrocks_client.get_client(),
            keys=[
                make_seat_lock_key(event_id=event_id, seat_id=seat_id),
                make_seat_lock_index_key(event_id=event_id),
            ],
            args=[holder_id, token, str(now_ms), seat_id],
        )
        return self._to_result(event_id=event_id, seat_id=seat_id, reply=reply)

    async def _read_lock(self, *, event_id: str, seat_id: str) -> Optional[SeatLock]:
        client = kvrocks_client.get_client()
        holder_id, token, acquired_at, expires_at = await client.hmget(  # type: ignore[misc]
            make_seat_lock_key(event_id=event_id, seat_id=seat_id),
            ['holder_id', 'token', 'acquired_at', 'expires_at'],
        )
        if holder_id is None or expires_at is None:
            return None
        return SeatLock(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=_decode(holder_id),
            token=_decode(token),
            acquired_at_ms=int(_decode(acquired_at)),
            expires_at_ms=int(_decode(expires_at)),
        )

    async def get(self, *, event_id: str, seat_id: str, now_ms: int) -> Optional[SeatLock]:
        lock = await self._read_lock(event_id=event_id, seat_id=seat_id)
        if lock is None or lock.is_expired(now_ms):
            return None
        return lock

    async def _indexed_seats(self, *, event_id: str) -> List[str]:
        client = kvrocks_client.get_client()
        index_key = make_seat_lock_index_key(event_id=event_id)
        members = await client.smembers(index_key)  # type: ignore[misc]
        return sorted(_decode(member) for member in members)

    async def list_for_event(self, *, event_id: str, now_ms: int) -> List[SeatLock]:
        locks: List[SeatLock] = []
        for seat_id in await self._indexed_seats(event_id=event_id):
            lock = await self.get(event_id=event_id, seat_id=seat_id, now_ms=now_ms)
            if lock is not None:
                locks.append(lock)
        return locks

    async def count_active(self, *, event_id: str, now_ms: int) -> int:
        return len(await self.list_for_event(event_id=event_id, now_ms=now_ms))

    async def purge_expired(self, *, now_ms: int) -> int:
        """
        Lapsed hashes are removed by Kvrocks itself (PEXPIREAT), this only drops
        index members and registry entries that point at nothing anymore.
        """
        client = kvrocks_client.get_client()
        events_key = make_seat_lock_events_key()
        pruned = 0

        for raw_event_id in await client.smembers(events_key):  # type: ignore[misc]
            event_id = _decode(raw_event_id)
            index_key = make_seat_lock_index_key(event_id=event_id)
            for seat_id in await self._indexed_seats(event_id=event_id):
                pruned += int(
                    await self._scripts.run(
                        'prune_lock_index',
                        client=client,
                        keys=[make_seat_lock_key(event_id=event_id, seat_id=seat_id), index_key],
                        args=[seat_id],
                    )
                )
            if await client.scard(index_key) == 0:  # type: ignore[misc]
                await client.srem(events_key, event_id)  # type: ignore[misc]

        if pruned:
            Logger.base.debug(f'🧹 [SWEEP] Pruned {pruned} stale Kvrocks index members')
        return pruned
