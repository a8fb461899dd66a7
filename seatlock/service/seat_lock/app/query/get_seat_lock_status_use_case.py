from typing import List, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from seatlock.platform.config.di import Container
from seatlock.service.seat_lock.app.dto.seat_lock_dto import LockStatus
from seatlock.service.seat_lock.app.engine.direct_lock_manager import DirectLockManager
from seatlock.service.seat_lock.domain.seat_lock_entity import SeatLock


class GetSeatLockStatusUseCase:
    def __init__(self, *, lock_manager: DirectLockManager) -> None:
        self.lock_manager = lock_manager

    @classmethod
    @inject
    def depends(
        cls,
        lock_manager: DirectLockManager = Depends(Provide[Container.lock_manager]),
    ) -> Self:
        return cls(lock_manager=lock_manager)

    async def get_status(self, *, event_id: str, seat_id: str) -> LockStatus:
        return await self.lock_manager.status(event_id=event_id, seat_id=seat_id)

    async def list_active_locks(self, *, event_id: str) -> List[SeatLock]:
        return await self.lock_manager.list_for_event(event_id=event_id)
