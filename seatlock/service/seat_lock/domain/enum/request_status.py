from enum import StrEnum


class RequestStatus(StrEnum):
    PENDING = 'pending'
    GRANTED = 'granted'
    DENIED = 'denied'
    EXPIRED = 'expired'

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING
