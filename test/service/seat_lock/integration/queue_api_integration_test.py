"""
Integration tests for the hybrid and queued entry styles

The app runs with its real lifespan (queue worker + sweep) inside the test task, so
queued requests are granted by the background worker while the test polls for them.

Test focus:
- Mutual exclusion under concurrent direct attempts
- Hybrid routing: direct grant, conflict turned into a queued request, FIFO grants
- Forced queue: lock / extend / release through request ids, also behind a waiter
- Poll timeout (408), queue timeout, clear, stats and the 503 ceiling
"""

import anyio
import httpx
import pytest

from test.shared.utils import (
    API,
    assert_response_status,
    holder_headers,
    make_settings,
    running_app,
    seat_url,
)


EVENT_ID = 'evt-queue'


async def _result(client: httpx.AsyncClient, request_id: str, holder_id: str, timeout_ms=2_000):
    response = await client.get(
        f'{API}/requests/{request_id}/result',
        params={'timeout': timeout_ms},
        headers=holder_headers(holder_id),
    )
    assert_response_status(response, 200)
    return response.json()


async def _release(client: httpx.AsyncClient, holder_id: str, token: str, seat_id: str = 'A1'):
    response = await client.delete(
        seat_url(EVENT_ID, seat_id), params={'token': token}, headers=holder_headers(holder_id)
    )
    assert_response_status(response, 200)


@pytest.mark.integration
class TestConcurrentDirectLocks:
    @pytest.mark.asyncio
    async def test_exactly_one_of_many_concurrent_attempts_wins(self):
        status_codes: dict[str, int] = {}

        async def attempt(client: httpx.AsyncClient, holder_id: str) -> None:
            response = await client.post(
                seat_url(EVENT_ID, 'A1'), headers=holder_headers(holder_id)
            )
            status_codes[holder_id] = response.status_code

        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                async with anyio.create_task_group() as tg:
                    for index in range(10):
                        tg.start_soon(attempt, client, f'user-{index}')

                status = (await client.get(seat_url(EVENT_ID, 'A1'))).json()

        winners = [holder for holder, code in status_codes.items() if code == 200]
        assert len(winners) == 1
        assert sorted(status_codes.values()) == [200] + [409] * 9
        assert status['holder'] == winners[0]


@pytest.mark.integration
class TestContentionScenarios:
    @pytest.mark.asyncio
    async def test_five_concurrent_hybrid_requests_resolve_to_one_holder(self):
        settings = make_settings(QUEUE_ENTRY_MAX_AGE_SECONDS=0.5)
        responses: dict[str, httpx.Response] = {}

        async def hybrid_lock(client: httpx.AsyncClient, holder_id: str) -> None:
            responses[holder_id] = await client.post(
                seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers(holder_id)
            )

        with anyio.fail_after(10):
            async with running_app(settings) as client:
                async with anyio.create_task_group() as tg:
                    for index in range(5):
                        tg.start_soon(hybrid_lock, client, f'user-{index}')

                # The holder neither releases nor extends: every waiter ages out
                queued = {
                    holder_id: response.json()['requestId']
                    for holder_id, response in responses.items()
                    if response.status_code == 202
                }
                outcomes = {
                    holder_id: await _result(client, request_id, holder_id, 3_000)
                    for holder_id, request_id in queued.items()
                }

        granted = [holder for holder, response in responses.items() if response.status_code == 200]
        assert len(granted) == 1
        assert len(queued) == 4
        assert {outcome['status'] for outcome in outcomes.values()} == {'expired'}

    @pytest.mark.asyncio
    async def test_stats_after_three_queued_and_one_granted(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                request_ids = []
                for holder_id in ('u1', 'u2', 'u3'):
                    response = await client.post(
                        seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers(holder_id)
                    )
                    assert_response_status(response, 202)
                    request_ids.append(response.json()['requestId'])

                first = await _result(client, request_ids[0], 'u1')
                stats = (await client.get(f'{API}/events/{EVENT_ID}/hybrid/stats')).json()

        assert first['status'] == 'granted'
        assert stats['activeLocks'] == 1
        assert stats['queueDepth'] == 2


@pytest.mark.integration
class TestHybridLock:
    @pytest.mark.asyncio
    async def test_conflict_is_queued_and_granted_in_fifo_order(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                # Given: alice holds the seat through the hybrid path
                granted = await client.post(
                    seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers('alice')
                )
                assert_response_status(granted, 200)
                alice = granted.json()

                # When: bob then carol ask for the same seat
                receipts = {}
                for holder_id in ('bob', 'carol'):
                    response = await client.post(
                        seat_url(EVENT_ID, 'A1', 'hybrid/lock'),
                        headers=holder_headers(holder_id),
                    )
                    assert_response_status(response, 202)
                    receipts[holder_id] = response.json()

                # Then: both wait in line
                assert receipts['bob']['queued'] is True
                assert receipts['bob']['queuePosition'] == 1
                assert receipts['carol']['queuePosition'] == 2
                pending = await _result(client, receipts['bob']['requestId'], 'bob', 0)
                assert pending['status'] == 'pending'

                stats = (await client.get(f'{API}/events/{EVENT_ID}/hybrid/stats')).json()
                assert stats['activeLocks'] == 1
                assert stats['queueDepth'] == 2
                assert stats['queueDepthBySeat'] == {'A1': 2}

                # And: each release hands the seat to the next in line
                await _release(client, 'alice', alice['token'])
                bob = await _result(client, receipts['bob']['requestId'], 'bob')
                assert bob['status'] == 'granted'
                carol_pending = await _result(client, receipts['carol']['requestId'], 'carol', 0)
                assert carol_pending['status'] == 'pending'

                await _release(client, 'bob', bob['token'])
                carol = await _result(client, receipts['carol']['requestId'], 'carol')
                assert carol['status'] == 'granted'

                status = (await client.get(seat_url(EVENT_ID, 'A1'))).json()
                assert status['holder'] == 'carol'

    @pytest.mark.asyncio
    async def test_load_above_threshold_routes_to_queue(self):
        with anyio.fail_after(10):
            async with running_app(make_settings(LOAD_THRESHOLD_PER_WINDOW=1)) as client:
                first = await client.post(
                    seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers('alice')
                )
                second = await client.post(
                    seat_url(EVENT_ID, 'B2', 'hybrid/lock'), headers=holder_headers('bob')
                )

                assert_response_status(first, 200)
                assert_response_status(second, 202)
                outcome = await _result(client, second.json()['requestId'], 'bob')
                assert outcome['status'] == 'granted'

                stats = (await client.get(f'{API}/events/{EVENT_ID}/hybrid/stats')).json()
                assert stats['load'] == 'overloaded'
                assert stats['currentLoad'] == 2
                assert stats['activeLocks'] == 2

    @pytest.mark.asyncio
    async def test_queue_ceiling_rejects_with_retry_after(self):
        with anyio.fail_after(10):
            async with running_app(make_settings(QUEUE_MAX_DEPTH_PER_EVENT=2)) as client:
                await client.post(
                    seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers('alice')
                )
                for holder_id in ('bob', 'carol'):
                    queued = await client.post(
                        seat_url(EVENT_ID, 'A1', 'hybrid/lock'),
                        headers=holder_headers(holder_id),
                    )
                    assert_response_status(queued, 202)

                rejected = await client.post(
                    seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers('dave')
                )
                forced = await client.post(
                    seat_url(EVENT_ID, 'B2', 'queue/lock'), headers=holder_headers('dave')
                )

        assert_response_status(rejected, 503)
        assert rejected.headers['Retry-After'] == '5'
        assert rejected.json()['code'] == 'OVERLOADED'
        assert_response_status(forced, 503)

    @pytest.mark.asyncio
    async def test_extend_and_release_go_direct(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                lease = (
                    await client.post(
                        seat_url(EVENT_ID, 'A1', 'hybrid/lock'), headers=holder_headers('alice')
                    )
                ).json()

                extended = await client.put(
                    seat_url(EVENT_ID, 'A1', 'hybrid/extend'),
                    json={'token': lease['token'], 'ttlSeconds': 120},
                    headers=holder_headers('alice'),
                )
                released = await client.delete(
                    seat_url(EVENT_ID, 'A1', 'hybrid/release'),
                    params={'token': lease['token']},
                    headers=holder_headers('alice'),
                )

        assert_response_status(extended, 200)
        assert extended.json()['token'] == lease['token']
        assert_response_status(released, 200)
        assert released.json()['wasHeld'] is True


@pytest.mark.integration
class TestForcedQueue:
    @pytest.mark.asyncio
    async def test_lock_extend_release_through_the_queue(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                queued = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'),
                    json={'ttlSeconds': 30},
                    headers=holder_headers('alice'),
                )
                assert_response_status(queued, 202)
                granted = await _result(client, queued.json()['requestId'], 'alice')
                assert granted['status'] == 'granted'
                assert granted['action'] == 'lock'

                extend = await client.put(
                    seat_url(EVENT_ID, 'A1', 'queue/extend'),
                    json={'token': granted['token'], 'ttlSeconds': 300},
                    headers=holder_headers('alice'),
                )
                assert_response_status(extend, 202)
                extended = await _result(client, extend.json()['requestId'], 'alice')
                assert extended['status'] == 'granted'
                assert extended['expiresAt'] > granted['expiresAt']

                release = await client.delete(
                    seat_url(EVENT_ID, 'A1', 'queue/release'),
                    params={'token': granted['token']},
                    headers=holder_headers('alice'),
                )
                assert_response_status(release, 202)
                released = await _result(client, release.json()['requestId'], 'alice')
                assert released['status'] == 'granted'

                status = (await client.get(seat_url(EVENT_ID, 'A1'))).json()
                assert status['held'] is False

    @pytest.mark.asyncio
    async def test_holder_queued_release_hands_seat_to_waiter(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                # Given: alice holds A1 and bob is queued for it
                held = await client.post(
                    seat_url(EVENT_ID, 'A1'),
                    json={'ttlSeconds': 30},
                    headers=holder_headers('alice'),
                )
                assert_response_status(held, 200)
                waiting = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers('bob')
                )
                assert_response_status(waiting, 202)
                await anyio.sleep(0.1)

                # When: alice releases through the queue
                release = await client.delete(
                    seat_url(EVENT_ID, 'A1', 'queue/release'),
                    params={'token': held.json()['token']},
                    headers=holder_headers('alice'),
                )
                assert_response_status(release, 202)
                released = await _result(client, release.json()['requestId'], 'alice', 500)
                bob = await _result(client, waiting.json()['requestId'], 'bob', 500)

                status = (await client.get(seat_url(EVENT_ID, 'A1'))).json()

        # Then
        assert released['status'] == 'granted'
        assert bob['status'] == 'granted'
        assert status['holder'] == 'bob'

    @pytest.mark.asyncio
    async def test_holder_queued_extend_keeps_seat_from_waiter(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                # Given: alice holds A1 on a one second lease and bob is queued for it
                held = await client.post(
                    seat_url(EVENT_ID, 'A1'),
                    json={'ttlSeconds': 1},
                    headers=holder_headers('alice'),
                )
                assert_response_status(held, 200)
                waiting = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers('bob')
                )
                await anyio.sleep(0.1)

                # When: alice extends through the queue before the lease lapses
                extend = await client.put(
                    seat_url(EVENT_ID, 'A1', 'queue/extend'),
                    json={'token': held.json()['token'], 'ttlSeconds': 60},
                    headers=holder_headers('alice'),
                )
                assert_response_status(extend, 202)
                extended = await _result(client, extend.json()['requestId'], 'alice', 500)
                await anyio.sleep(1.2)

                bob = await _result(client, waiting.json()['requestId'], 'bob', 0)
                status = (await client.get(seat_url(EVENT_ID, 'A1'))).json()

        # Then: the old expiry passed and alice still holds the seat
        assert extended['status'] == 'granted'
        assert bob['status'] == 'pending'
        assert status['holder'] == 'alice'

    @pytest.mark.asyncio
    async def test_duplicate_queue_request_returns_same_id(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                await client.post(seat_url(EVENT_ID, 'A1'), headers=holder_headers('alice'))
                first = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers('bob')
                )
                second = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers('bob')
                )

        assert first.json()['requestId'] == second.json()['requestId']

    @pytest.mark.asyncio
    async def test_queued_request_expires_after_max_age(self):
        settings = make_settings(QUEUE_ENTRY_MAX_AGE_SECONDS=0.3)
        with anyio.fail_after(10):
            async with running_app(settings) as client:
                await client.post(seat_url(EVENT_ID, 'A1'), headers=holder_headers('alice'))
                queued = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers('bob')
                )

                outcome = await _result(client, queued.json()['requestId'], 'bob')

        assert outcome['status'] == 'expired'
        assert outcome['reason'] == 'QUEUE_TIMEOUT'
        assert 'token' not in outcome

    @pytest.mark.asyncio
    async def test_result_access_rules(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                await client.post(seat_url(EVENT_ID, 'A1'), headers=holder_headers('alice'))
                queued = await client.post(
                    seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers('bob')
                )
                request_id = queued.json()['requestId']

                foreign = await client.get(
                    f'{API}/requests/{request_id}/result', headers=holder_headers('mallory')
                )
                unknown = await client.get(
                    f'{API}/requests/does-not-exist/result', headers=holder_headers('bob')
                )
                poll = await client.get(
                    f'{API}/requests/{request_id}/poll',
                    params={'timeout': 100},
                    headers=holder_headers('bob'),
                )
                alias = await client.get(
                    f'{API}/hybrid/requests/{request_id}/result', headers=holder_headers('bob')
                )

        assert_response_status(foreign, 403)
        assert_response_status(unknown, 404)
        assert_response_status(poll, 408)
        assert poll.json() == {
            'detail': f'Request {request_id} is still pending',
            'code': 'PENDING',
            'requestId': request_id,
            'status': 'pending',
        }
        assert_response_status(alias, 200)
        assert alias.json()['status'] == 'pending'

    @pytest.mark.asyncio
    async def test_clear_denies_pending_requests(self):
        with anyio.fail_after(10):
            async with running_app(make_settings()) as client:
                await client.post(seat_url(EVENT_ID, 'A1'), headers=holder_headers('alice'))
                request_ids = {}
                for holder_id in ('bob', 'carol'):
                    response = await client.post(
                        seat_url(EVENT_ID, 'A1', 'queue/lock'), headers=holder_headers(holder_id)
                    )
                    request_ids[holder_id] = response.json()['requestId']

                stats = (await client.get(f'{API}/events/{EVENT_ID}/queue/stats')).json()
                cleared = await client.delete(
                    f'{API}/events/{EVENT_ID}/queue/clear', headers=holder_headers('admin')
                )
                bob = await _result(client, request_ids['bob'], 'bob', 0)
                stats_after = (await client.get(f'{API}/events/{EVENT_ID}/queue/stats')).json()

        assert stats['queueLength'] == 2
        assert stats['queueDepthBySeat'] == {'A1': 2}
        assert stats['status'] == 'active'
        assert_response_status(cleared, 200)
        assert cleared.json() == {'eventId': EVENT_ID, 'clearedCount': 2}
        assert bob['status'] == 'denied'
        assert bob['reason'] == 'QUEUE_CLEARED'
        assert stats_after['queueLength'] == 0
