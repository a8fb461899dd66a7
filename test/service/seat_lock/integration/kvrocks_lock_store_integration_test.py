"""
Integration tests for KvrocksLockStore

Runs the real Lua scripts against fakeredis (with Lua support). Kvrocks drops a lease
hash on its own at expires_at + grace, so timestamps here follow the wall clock.
"""

from collections.abc import AsyncIterator

import anyio
import fakeredis
from fakeredis.aioredis import FakeRedis
import pytest
import pytest_asyncio

from seatlock.platform.state.clock import now_ms
from seatlock.platform.state.kvrocks_client import kvrocks_client
from seatlock.platform.state.lua_script_executor import LuaScripts
from seatlock.service.seat_lock.domain.enum.lock_outcome import LockOutcome
from seatlock.service.seat_lock.driven_adapter.state.key_str_generator import (
    make_seat_lock_events_key,
    make_seat_lock_index_key,
    make_seat_lock_key,
)
from seatlock.service.seat_lock.driven_adapter.state.kvrocks_lock_store import (
    KvrocksLockStore,
)
from test.shared.utils import (
    API,
    assert_response_status,
    holder_headers,
    make_settings,
    running_app,
    seat_url,
)


EVENT_ID = 'evt-kv'


@pytest_asyncio.fixture
async def redis_client() -> AsyncIterator[FakeRedis]:
    client = FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    kvrocks_client.use_client(client)
    yield client
    await kvrocks_client.disconnect()


@pytest.fixture
def store(redis_client: FakeRedis) -> KvrocksLockStore:
    return KvrocksLockStore(expired_grace_seconds=10, scripts=LuaScripts())


async def _acquire(
    store: KvrocksLockStore,
    *,
    holder_id: str,
    token: str,
    now: int,
    ttl_ms: int = 5_000,
    seat_id: str = 'A1',
):
    return await store.try_acquire(
        event_id=EVENT_ID,
        seat_id=seat_id,
        holder_id=holder_id,
        token=token,
        now_ms=now,
        expires_at_ms=now + ttl_ms,
    )


@pytest.mark.integration
class TestKvrocksLockStore:
    @pytest.mark.asyncio
    async def test_acquire_writes_hash_index_and_registry(
        self, store: KvrocksLockStore, redis_client: FakeRedis
    ):
        now = now_ms()

        result = await _acquire(store, holder_id='alice', token='t1', now=now)

        assert result.outcome is LockOutcome.GRANTED
        assert result.lock.expires_at_ms == now + 5_000
        lease = await redis_client.hgetall(make_seat_lock_key(event_id=EVENT_ID, seat_id='A1'))
        assert lease == {
            'holder_id': 'alice',
            'token': 't1',
            'acquired_at': str(now),
            'expires_at': str(now + 5_000),
        }
        assert await redis_client.smembers(make_seat_lock_index_key(event_id=EVENT_ID)) == {
            'A1'
        }
        assert await redis_client.smembers(make_seat_lock_events_key()) == {EVENT_ID}
        # Kvrocks keeps the hash until expires_at + grace
        assert await redis_client.pttl(make_seat_lock_key(event_id=EVENT_ID, seat_id='A1')) > 5_000

    @pytest.mark.asyncio
    async def test_conflict_and_already_held(self, store: KvrocksLockStore):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now)

        conflict = await _acquire(store, holder_id='bob', token='t2', now=now + 10)
        again = await _acquire(store, holder_id='alice', token='t3', now=now + 20)

        assert conflict.outcome is LockOutcome.CONFLICT
        assert conflict.lock.holder_id == 'alice'
        assert conflict.lock.ttl_remaining_ms(now + 10) == 4_990
        assert again.outcome is LockOutcome.ALREADY_HELD
        assert again.lock.token == 't1'

    @pytest.mark.asyncio
    async def test_lapsed_lease_can_be_taken_over(self, store: KvrocksLockStore):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now - 6_000)

        result = await _acquire(store, holder_id='bob', token='t2', now=now)

        assert result.outcome is LockOutcome.GRANTED
        assert result.lock.holder_id == 'bob'

    @pytest.mark.asyncio
    async def test_extend_outcomes(self, store: KvrocksLockStore):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now)

        mismatch = await store.try_extend(
            event_id=EVENT_ID,
            seat_id='A1',
            holder_id='alice',
            token='forged',
            now_ms=now + 1,
            expires_at_ms=now + 60_000,
        )
        extended = await store.try_extend(
            event_id=EVENT_ID,
            seat_id='A1',
            holder_id='alice',
            token='t1',
            now_ms=now + 1,
            expires_at_ms=now + 60_000,
        )
        absent = await store.try_extend(
            event_id=EVENT_ID,
            seat_id='B2',
            holder_id='alice',
            token='t1',
            now_ms=now + 1,
            expires_at_ms=now + 60_000,
        )

        assert mismatch.outcome is LockOutcome.MISMATCH
        assert extended.outcome is LockOutcome.EXTENDED
        assert extended.lock.expires_at_ms == now + 60_000
        assert extended.lock.acquired_at_ms == now
        assert absent.outcome is LockOutcome.ABSENT

    @pytest.mark.asyncio
    async def test_extend_within_grace_is_expired(self, store: KvrocksLockStore):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now - 6_000)

        result = await store.try_extend(
            event_id=EVENT_ID,
            seat_id='A1',
            holder_id='alice',
            token='t1',
            now_ms=now,
            expires_at_ms=now + 60_000,
        )

        assert result.outcome is LockOutcome.EXPIRED

    @pytest.mark.asyncio
    async def test_release_outcomes(self, store: KvrocksLockStore, redis_client: FakeRedis):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now)

        mismatch = await store.try_release(
            event_id=EVENT_ID, seat_id='A1', holder_id='bob', token='t1', now_ms=now + 1
        )
        released = await store.try_release(
            event_id=EVENT_ID, seat_id='A1', holder_id='alice', token='t1', now_ms=now + 2
        )
        absent = await store.try_release(
            event_id=EVENT_ID, seat_id='A1', holder_id='alice', token='t1', now_ms=now + 3
        )

        assert mismatch.outcome is LockOutcome.MISMATCH
        assert released.outcome is LockOutcome.RELEASED
        assert absent.outcome is LockOutcome.ABSENT
        assert not await redis_client.exists(make_seat_lock_key(event_id=EVENT_ID, seat_id='A1'))
        assert await redis_client.scard(make_seat_lock_index_key(event_id=EVENT_ID)) == 0

    @pytest.mark.asyncio
    async def test_reads_skip_expired_leases(self, store: KvrocksLockStore):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now - 6_000, seat_id='A1')
        await _acquire(store, holder_id='bob', token='t2', now=now, seat_id='B2')

        assert await store.get(event_id=EVENT_ID, seat_id='A1', now_ms=now) is None
        lock = await store.get(event_id=EVENT_ID, seat_id='B2', now_ms=now)
        assert lock.holder_id == 'bob'
        assert lock.token == 't2'
        locks = await store.list_for_event(event_id=EVENT_ID, now_ms=now)
        assert [lock.seat_id for lock in locks] == ['B2']
        assert await store.count_active(event_id=EVENT_ID, now_ms=now) == 1

    @pytest.mark.asyncio
    async def test_purge_drops_dangling_index_members(
        self, store: KvrocksLockStore, redis_client: FakeRedis
    ):
        now = now_ms()
        # expires_at + grace already in the past: the hash is gone right away
        await _acquire(store, holder_id='alice', token='t1', now=now - 30_000, seat_id='A1')
        await _acquire(store, holder_id='bob', token='t2', now=now, seat_id='B2')

        assert await store.purge_expired(now_ms=now) == 1
        assert await redis_client.smembers(make_seat_lock_index_key(event_id=EVENT_ID)) == {
            'B2'
        }
        assert await redis_client.smembers(make_seat_lock_events_key()) == {EVENT_ID}

    @pytest.mark.asyncio
    async def test_purge_forgets_events_without_leases(
        self, store: KvrocksLockStore, redis_client: FakeRedis
    ):
        now = now_ms()
        await _acquire(store, holder_id='alice', token='t1', now=now - 30_000)

        assert await store.purge_expired(now_ms=now) == 1
        assert await redis_client.smembers(make_seat_lock_events_key()) == set()


@pytest.mark.integration
class TestKvrocksBackedApp:
    @pytest.mark.asyncio
    async def test_lock_lifecycle_over_kvrocks(self, redis_client: FakeRedis):
        settings = make_settings(LOCK_STORE_BACKEND='kvrocks')

        with anyio.fail_after(10):
            async with running_app(settings) as client:
                health = (await client.get('/health')).json()
                locked = await client.post(
                    seat_url(EVENT_ID, 'A1'), headers=holder_headers('alice')
                )
                conflict = await client.post(
                    seat_url(EVENT_ID, 'A1'), headers=holder_headers('bob')
                )
                queued = await client.post(
                    seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers('bob')
                )
                await client.delete(
                    seat_url(EVENT_ID, 'A1'),
                    params={'token': locked.json()['token']},
                    headers=holder_headers('alice'),
                )
                outcome = (
                    await client.get(
                        f'{API}/requests/{queued.json()["requestId"]}/result',
                        params={'timeout': 2_000},
                        headers=holder_headers('bob'),
                    )
                ).json()

        assert health['lockStore'] == 'kvrocks'
        assert_response_status(locked, 200)
        assert_response_status(conflict, 409)
        assert_response_status(queued, 202)
        assert outcome['status'] == 'granted'
