from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from seatlock.platform.config.di import Container
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.metrics.seat_lock_metrics import metrics
from seatlock.service.seat_lock.app.dto.seat_lock_dto import EnqueueReceipt
from seatlock.service.seat_lock.app.engine.queue_worker import QueueWorker
from seatlock.service.seat_lock.domain.enum.lock_action import LockAction


class QueuedSeatLockUseCase:
    """
    Force-queued entry style: lock, extend and release are always appended to the seat's
    FIFO queue and resolved by the queue worker; callers poll the request id.
    """

    def __init__(self, *, queue_worker: QueueWorker) -> None:
        self.queue_worker = queue_worker

    @classmethod
    @inject
    def depends(
        cls,
        queue_worker: QueueWorker = Depends(Provide[Container.queue_worker]),
    ) -> Self:
        return cls(queue_worker=queue_worker)

    @Logger.io
    async def submit(
        self,
        *,
        event_id: str,
        seat_id: str,
        holder_id: str,
        action: LockAction,
        token: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
    ) -> EnqueueReceipt:
        metrics.routing_decisions.labels(route='forced_queue').inc()
        return self.queue_worker.submit(
            event_id=event_id,
            seat_id=seat_id,
            requester_id=holder_id,
            action=action,
            token=token,
            ttl_seconds=ttl_seconds,
        )

    @Logger.io
    async def clear(self, *, event_id: str) -> int:
        return self.queue_worker.clear_event(event_id)
