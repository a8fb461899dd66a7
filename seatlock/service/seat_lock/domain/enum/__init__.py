from seatlock.service.seat_lock.domain.enum.load_level import LoadLevel, Route
from seatlock.service.seat_lock.domain.enum.lock_action import LockAction
from seatlock.service.seat_lock.domain.enum.lock_outcome import LockOutcome
from seatlock.service.seat_lock.domain.enum.request_status import RequestStatus


__all__ = ['LoadLevel', 'LockAction', 'LockOutcome', 'RequestStatus', 'Route']
