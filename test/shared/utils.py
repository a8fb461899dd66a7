from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict

import httpx

from seatlock.main import app
from seatlock.platform.config.core_setting import Settings
from seatlock.platform.config.di import cleanup, container


API = '/api'


def make_settings(**overrides: Any) -> Settings:
    """Fast test settings: short queue max age, tight sweep, short poll timeouts"""
    values: Dict[str, Any] = {
        'LOCK_STORE_BACKEND': 'memory',
        'LOAD_THRESHOLD_PER_WINDOW': 100,
        'QUEUE_ENTRY_MAX_AGE_SECONDS': 2.0,
        'QUEUE_RETRY_INTERVAL_SECONDS': 0.05,
        'RESULT_RETENTION_SECONDS': 30.0,
        'SWEEP_INTERVAL_SECONDS': 0.2,
        'RESULT_DEFAULT_POLL_TIMEOUT_MS': 1_000,
        'RESULT_MAX_POLL_TIMEOUT_MS': 3_000,
    }
    values.update(overrides)
    return Settings(**values)


def holder_headers(holder_id: str) -> Dict[str, str]:
    return {'X-User-Id': holder_id}


def seat_url(event_id: str, seat_id: str, suffix: str = 'lock') -> str:
    return f'{API}/events/{event_id}/seats/{seat_id}/{suffix}'


def assert_response_status(response, expected_status: int, message: str | None = None):
    response_text = getattr(response, 'text', getattr(response, 'content', 'N/A'))
    assert response.status_code == expected_status, (
        message
        or f'Expected status {expected_status}, got {response.status_code}: {response_text}'
    )


@asynccontextmanager
async def running_app(settings: Settings) -> AsyncIterator[httpx.AsyncClient]:
    """
    Run the app lifespan inside the calling task, so the worker task group is entered
    and exited by the same task, and hand out an in-process async client.
    """
    cleanup()
    with container.config_service.override(settings):
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(
                transport=transport, base_url='http://testserver'
            ) as async_client:
                yield async_client
    cleanup()
