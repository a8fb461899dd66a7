"""
Test Configuration and Fixtures

- Environment (log dir, Kvrocks key prefix) is set before any application import
- FakeClock drives lease and queue timestamps deterministically in unit tests
- `client` runs the app with overridden settings through the real lifespan

Architecture:
- Unit tests (test/**/unit/): components built by hand, no app lifespan
- Integration tests: FastAPI app with overridden settings, fakeredis for the Kvrocks backend
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# key_str_generator and settings read these variables
# =============================================================================
import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    worker_id = os.environ.get('PYTEST_XDIST_WORKER', 'master')
    if worker_id == 'master':
        os.environ['KVROCKS_KEY_PREFIX'] = 'test_'
    else:
        os.environ['KVROCKS_KEY_PREFIX'] = f'test_{worker_id}_'

    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)


_early_setup_test_environment()

from collections.abc import Generator  # noqa: E402

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402

from seatlock.main import app  # noqa: E402
from seatlock.platform.config.core_setting import Settings  # noqa: E402
from seatlock.platform.config.di import cleanup, container  # noqa: E402
from seatlock.service.seat_lock.app.engine.direct_lock_manager import (  # noqa: E402
    DirectLockManager,
)
from seatlock.service.seat_lock.driven_adapter.state.in_memory_lock_store import (  # noqa: E402
    InMemoryLockStore,
)
from test.shared.utils import make_settings  # noqa: E402


class FakeClock:
    """Epoch-millisecond clock that only moves when told to"""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(round(seconds * 1000))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def lock_store() -> InMemoryLockStore:
    return InMemoryLockStore(expired_grace_seconds=60)


@pytest.fixture
def lock_manager(lock_store: InMemoryLockStore, fake_clock: FakeClock) -> DirectLockManager:
    return DirectLockManager(
        lock_store=lock_store,
        default_ttl_seconds=60,
        extend_ttl_seconds=600,
        max_ttl_seconds=900,
        clock=fake_clock,
    )


# =============================================================================
# HTTP fixtures
# =============================================================================
@pytest.fixture
def app_settings() -> Settings:
    return make_settings()


@pytest.fixture
def client(app_settings: Settings) -> Generator[TestClient, None, None]:
    cleanup()
    with container.config_service.override(app_settings):
        with TestClient(app) as test_client:
            yield test_client
    cleanup()
