import anyio
from anyio.abc import TaskGroup

from seatlock.platform.logging.loguru_io import Logger
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.app.engine.load_monitor import LoadMonitor
from seatlock.service.seat_lock.app.engine.queue_worker import QueueWorker
from seatlock.service.seat_lock.app.engine.result_store import ResultStore


class LockSweeper:
    """Periodic cleanup: lapsed leases, aged queue entries, retained results, idle load windows"""

    def __init__(
        self,
        *,
        lock_manager: DirectLockManager,
        queue_worker: QueueWorker,
        result_store: ResultStore,
        load_monitor: LoadMonitor,
        interval_seconds: float,
    ) -> None:
        self.lock_manager = lock_manager
        self.queue_worker = queue_worker
        self.result_store = result_store
        self.load_monitor = load_monitor
        self.interval_seconds = interval_seconds

    async def start(self, *, task_group: TaskGroup) -> None:
        task_group.start_soon(self._sweep_loop)  # pyrefly: ignore[bad-argument-type]
        Logger.base.info(f'🧹 [SWEEP] Started (every {self.interval_seconds}s)')

    async def sweep_once(self) -> dict[str, int]:
        purged_locks = await self.lock_manager.sweep_expired()
        expired_entries = self.queue_worker.expire_stale_entries()
        evicted_results = self.result_store.evict_expired()
        idle_events = self.load_monitor.prune_idle()

        if purged_locks or expired_entries or evicted_results or idle_events:
            Logger.base.info(
                f'🧹 [SWEEP] locks={purged_locks} queue_expired={expired_entries} '
                f'results_evicted={evicted_results} idle_events={idle_events}'
            )
        return {
            'purged_locks': purged_locks,
            'expired_entries': expired_entries,
            'evicted_results': evicted_results,
            'idle_events': idle_events,
        }

    async def _sweep_loop(self) -> None:
        while True:
            await anyio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception as e:
                Logger.base.error(f'❌ [SWEEP] Error: {e}')
