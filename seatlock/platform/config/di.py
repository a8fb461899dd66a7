"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi.html
"""

from dependency_injector import containers, providers

from seatlock.platform.config.core_setting import Settings
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.app.engine.load_monitor import LoadMonitor
from seatlock.service.seat_lock.app.engine.lock_sweeper import LockSweeper
from seatlock.service.seat_lock.app.engine.queue_worker import QueueWorker
from seatlock.service.seat_lock.app.engine.request_queue import RequestQueue
from seatlock.service.seat_lock.app.engine.result_store import ResultStore
from seatlock.service.seat_lock.driven_adapter.state.in_memory_lock_store import (
    InMemoryLockStore,
)
from seatlock.service.seat_lock.driven_adapter.state.kvrocks_lock_store import KvrocksLockStore


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Lock store backend (LOCK_STORE_BACKEND: memory | kvrocks)
    lock_store = providers.Selector(
        config_service.provided.LOCK_STORE_BACKEND,
        memory=providers.Singleton(
            InMemoryLockStore,
            expired_grace_seconds=config_service.provided.SEAT_LOCK_EXPIRED_GRACE_SECONDS,
        ),
        kvrocks=providers.Singleton(
            KvrocksLockStore,
            expired_grace_seconds=config_service.provided.SEAT_LOCK_EXPIRED_GRACE_SECONDS,
        ),
    )

    # Lock engine (all singletons: they own the in-process queue and waiter state)
    lock_manager = providers.Singleton(
        DirectLockManager,
        lock_store=lock_store,
        default_ttl_seconds=config_service.provided.SEAT_LOCK_DEFAULT_TTL_SECONDS,
        extend_ttl_seconds=config_service.provided.SEAT_LOCK_EXTEND_TTL_SECONDS,
        max_ttl_seconds=config_service.provided.SEAT_LOCK_MAX_TTL_SECONDS,
    )
    request_queue = providers.Singleton(
        RequestQueue,
        max_depth_per_event=config_service.provided.QUEUE_MAX_DEPTH_PER_EVENT,
    )
    result_store = providers.Singleton(
        ResultStore,
        retention_seconds=config_service.provided.RESULT_RETENTION_SECONDS,
    )
    load_monitor = providers.Singleton(
        LoadMonitor,
        request_queue=request_queue,
        threshold=config_service.provided.LOAD_THRESHOLD_PER_WINDOW,
        window_seconds=config_service.provided.LOAD_WINDOW_SECONDS,
        max_queue_depth=config_service.provided.QUEUE_MAX_DEPTH_PER_EVENT,
    )

    # Background components (started by main.py lifespan)
    queue_worker = providers.Singleton(
        QueueWorker,
        lock_manager=lock_manager,
        request_queue=request_queue,
        result_store=result_store,
        entry_max_age_seconds=config_service.provided.QUEUE_ENTRY_MAX_AGE_SECONDS,
        retry_interval_seconds=config_service.provided.QUEUE_RETRY_INTERVAL_SECONDS,
        estimated_seconds_per_request=config_service.provided.QUEUE_ESTIMATED_SECONDS_PER_REQUEST,
    )
    lock_sweeper = providers.Singleton(
        LockSweeper,
        lock_manager=lock_manager,
        queue_worker=queue_worker,
        result_store=result_store,
        load_monitor=load_monitor,
        interval_seconds=config_service.provided.SWEEP_INTERVAL_SECONDS,
    )


container = Container()


def cleanup() -> None:
    container.reset_singletons()
