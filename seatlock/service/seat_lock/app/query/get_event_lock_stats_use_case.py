from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from seatlock.platform.config.di import Container
from seatlock.service.seat_lock.app.dto.seat_lock_dto import EventLockStats, QueueStats
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.app.engine.load_monitor import LoadMonitor
from seatlock.service.seat_lock.app.engine.queue_worker import QueueWorker
from seatlock.service.seat_lock.app.engine.request_queue import RequestQueue


class GetEventLockStatsUseCase:
    """
    Read-only aggregation per event: active leases, queue depth, load classification.
    Reading stats never counts as a lock attempt.
    """

    def __init__(
        self,
        *,
        lock_manager: DirectLockManager,
        request_queue: RequestQueue,
        load_monitor: LoadMonitor,
        queue_worker: QueueWorker,
    ) -> None:
        self.lock_manager = lock_manager
        self.request_queue = request_queue
        self.load_monitor = load_monitor
        self.queue_worker = queue_worker

    @classmethod
    @inject
    def depends(
        cls,
        lock_manager: DirectLockManager = Depends(Provide[Container.lock_manager]),
        request_queue: RequestQueue = Depends(Provide[Container.request_queue]),
        load_monitor: LoadMonitor = Depends(Provide[Container.load_monitor]),
        queue_worker: QueueWorker = Depends(Provide[Container.queue_worker]),
    ) -> Self:
        return cls(
            lock_manager=lock_manager,
            request_queue=request_queue,
            load_monitor=load_monitor,
            queue_worker=queue_worker,
        )

    async def get_event_stats(self, *, event_id: str) -> EventLockStats:
        sample = self.load_monitor.sample(event_id)
        return EventLockStats(
            event_id=event_id,
            active_locks=await self.lock_manager.count_active(event_id=event_id),
            queue_depth=sample.queue_depth,
            queue_depth_by_seat=self.request_queue.depth_by_seat(event_id),
            load=sample.level,
            current_load=sample.attempts_in_window,
            threshold=sample.threshold,
            load_window_seconds=sample.window_seconds,
        )

    async def get_queue_stats(self, *, event_id: str) -> QueueStats:
        queue_length = self.request_queue.total_depth(event_id)
        return QueueStats(
            event_id=event_id,
            queue_length=queue_length,
            queue_depth_by_seat=self.request_queue.depth_by_seat(event_id),
            active_workers=self.queue_worker.active_workers(event_id),
            estimated_wait_seconds=self.queue_worker.estimate_wait_seconds(queue_length),
        )
