from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from seatlock.platform.config.di import Container
from seatlock.platform.exception.exceptions import ConflictError, OverloadedError
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.metrics.seat_lock_metrics import metrics
from seatlock.service.seat_lock.app.dto.seat_lock_dto import HybridLockResult
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.app.engine.load_monitor import LoadMonitor
from seatlock.service.seat_lock.app.engine.queue_worker import QueueWorker
from seatlock.service.seat_lock.domain.enum.load_level import Route
from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


class HybridSeatLockUseCase:
    """
    Load-adaptive entry style

    Flow:
    1. Load monitor classifies the request (direct / queued / rejected)
    2. Direct: atomic acquire; a conflict is turned into a queued request instead of a failure
    3. Queued: request id returned immediately, the queue worker grants in FIFO order
    4. Rejected: the event queue is at its ceiling, caller backs off (503)

    Extend and release always take the direct path: only the current holder can issue
    them, so there is nothing to wait for.
    """

    def __init__(
        self,
        *,
        lock_manager: DirectLockManager,
        load_monitor: LoadMonitor,
        queue_worker: QueueWorker,
    ) -> None:
        self.lock_manager = lock_manager
        self.load_monitor = load_monitor
        self.queue_worker = queue_worker
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        lock_manager: DirectLockManager = Depends(Provide[Container.lock_manager]),
        load_monitor: LoadMonitor = Depends(Provide[Container.load_monitor]),
        queue_worker: QueueWorker = Depends(Provide[Container.queue_worker]),
    ) -> Self:
        return cls(lock_manager=lock_manager, load_monitor=load_monitor, queue_worker=queue_worker)

    @Logger.io
    async def lock(
        self, *, event_id: str, seat_id: str, holder_id: str, ttl_seconds: Optional[float] = None
    ) -> HybridLockResult:
        with self.tracer.start_as_current_span(
            'use_case.hybrid_lock',
            attributes={'event.id': event_id, 'seat.id': seat_id},
        ) as span:
            route = self.load_monitor.classify(event_id=event_id, seat_id=seat_id)
            span.set_attribute('hybrid.route', route.value)

            if route is Route.REJECTED:
                metrics.routing_decisions.labels(route=route.value).inc()
                raise OverloadedError(
                    f'Event {event_id} is overloaded, retry later', retry_after_seconds=5
                )

            if route is Route.QUEUED:
                # The current holder is not made to wait behind others for its own seat
                status = await self.lock_manager.status(event_id=event_id, seat_id=seat_id)
                if not (status.held and status.holder_id == holder_id):
                    metrics.routing_decisions.labels(route=route.value).inc()
                    return self._enqueue(
                        event_id=event_id,
                        seat_id=seat_id,
                        holder_id=holder_id,
                        ttl_seconds=ttl_seconds,
                    )

            try:
                lock = await self.lock_manager.acquire(
                    event_id=event_id,
                    seat_id=seat_id,
                    holder_id=holder_id,
                    ttl_seconds=ttl_seconds,
                )
            except ConflictError:
                metrics.routing_decisions.labels(route='direct_conflict_queued').inc()
                span.set_attribute('hybrid.route', 'direct_conflict_queued')
                Logger.base.info(
                    f'🔀 [HYBRID] {event_id}:{seat_id} contested, queueing {holder_id}'
                )
                return self._enqueue(
                    event_id=event_id, seat_id=seat_id, holder_id=holder_id, ttl_seconds=ttl_seconds
                )

            metrics.routing_decisions.labels(route=Route.DIRECT.value).inc()
            return HybridLockResult(lock=lock)

    def _enqueue(
        self, *, event_id: str, seat_id: str, holder_id: str, ttl_seconds: Optional[float]
    ) -> HybridLockResult:
        receipt = self.queue_worker.submit(
            event_id=event_id,
            seat_id=seat_id,
            requester_id=holder_id,
            action=LockAction.LOCK,
            ttl_seconds=ttl_seconds,
        )
        return HybridLockResult(receipt=receipt)

    @Logger.io
    async def extend(
        self,
        *,
        event_id: str,
        seat_id: str,
        holder_id: str,
        token: str,
        ttl_seconds: Optional[float] = None,
    ) -> SeatLock:
        with self.tracer.start_as_current_span(
            'use_case.hybrid_extend',
            attributes={'event.id': event_id, 'seat.id': seat_id},
        ):
            return await self.lock_manager.extend(
                event_id=event_id,
                seat_id=seat_id,
                holder_id=holder_id,
                token=token,
                ttl_seconds=ttl_seconds,
            )

    @Logger.io
    async def release(self, *, event_id: str, seat_id: str, holder_id: str, token: str) -> bool:
        with self.tracer.start_as_current_span(
            'use_case.hybrid_release',
            attributes={'event.id': event_id, 'seat.id': seat_id},
        ):
            return await self.lock_manager.release(
                event_id=event_id, seat_id=seat_id, holder_id=holder_id, token=token
            )
