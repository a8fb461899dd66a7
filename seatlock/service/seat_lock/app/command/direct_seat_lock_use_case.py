from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from seatlock.platform.config.di import Container
from seatlock.platform.logging.loguru_io import Logger
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


class DirectSeatLockUseCase:
    """
    Force-direct entry style: every call is one atomic lock store operation and the caller
    gets a definite answer (lease or domain error) synchronously.
    """

    def __init__(self, *, lock_manager: DirectLockManager) -> None:
        self.lock_manager = lock_manager

    @classmethod
    @inject
    def depends(
        cls,
        lock_manager: DirectLockManager = Depends(Provide[Container.lock_manager]),
    ) -> Self:
        return cls(lock_manager=lock_manager)

    @Logger.io
    async def lock(
        self, *, event_id: str, seat_id: str, holder_id: str, ttl_seconds: Optional[float] = None
    ) -> SeatLock:
        return await self.lock_manager.acquire(
            event_id=event_id, seat_id=seat_id, holder_id=holder_id, ttl_seconds=ttl_seconds
        )

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
        return await self.lock_manager.extend(
            event_id=event_id,
            seat_id=seat_id,
            holder_id=holder_id,
            token=token,
            ttl_seconds=ttl_seconds,
        )

    @Logger.io
    async def release(self, *, event_id: str, seat_id: str, holder_id: str, token: str) -> bool:
        return await self.lock_manager.release(
            event_id=event_id, seat_id=seat_id, holder_id=holder_id, token=token
        )
