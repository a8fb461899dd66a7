from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from seatlock.platform.config.core_setting import Settings
from seatlock.platform.config.di import Container
from seatlock.platform.exception.exceptions import ForbiddenError, RequestTimeoutError
from seatlock.service.seat_lock.app.engine.result_store import ResultStore
from seatlock.service.seat_lock.domain.request_outcome import RequestOutcome


class GetRequestResultUseCase:
    """
    Poll-with-timeout access to queued request outcomes.

    A granted outcome carries the lease token, so only the requester may read it.
    """

    def __init__(
        self, *, result_store: ResultStore, max_timeout_ms: int, default_timeout_ms: int
    ) -> None:
        self.result_store = result_store
        self.max_timeout_ms = max_timeout_ms
        self.default_timeout_ms = default_timeout_ms

    @classmethod
    @inject
    def depends(
        cls,
        result_store: ResultStore = Depends(Provide[Container.result_store]),
        config: Settings = Depends(Provide[Container.config_service]),
    ) -> Self:
        return cls(
            result_store=result_store,
            max_timeout_ms=config.RESULT_MAX_POLL_TIMEOUT_MS,
            default_timeout_ms=config.RESULT_DEFAULT_POLL_TIMEOUT_MS,
        )

    def _clamp(self, timeout_ms: int) -> int:
        return max(0, min(timeout_ms, self.max_timeout_ms))

    async def get_result(
        self, *, request_id: str, holder_id: str, timeout_ms: Optional[int] = None
    ) -> RequestOutcome:
        """Current outcome; with a timeout, waits up to that long for a terminal one"""
        outcome = self.result_store.get(request_id)
        if outcome.requester_id != holder_id:
            raise ForbiddenError(f'Request {request_id} belongs to another caller')

        if not timeout_ms or outcome.is_terminal:
            return outcome
        return await self.result_store.wait_for_result(
            request_id, timeout_seconds=self._clamp(timeout_ms) / 1000
        )

    async def poll(
        self, *, request_id: str, holder_id: str, timeout_ms: Optional[int] = None
    ) -> RequestOutcome:
        """
        Like get_result but a request still pending after the timeout is an error.

        Raises:
            RequestTimeoutError: the request did not reach a terminal status in time
        """
        effective_timeout_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        outcome = await self.get_result(
            request_id=request_id, holder_id=holder_id, timeout_ms=effective_timeout_ms
        )
        if not outcome.is_terminal:
            raise RequestTimeoutError(
                f'Request {request_id} is still pending',
                extra={'requestId': request_id, 'status': outcome.status.value},
            )
        return outcome
