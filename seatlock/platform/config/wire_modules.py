"""
Wire Modules Configuration

Modules whose `depends` classmethods use Provide[Container.x].
Shared between production and test environments.
"""

from types import ModuleType

from seatlock.service.seat_lock.app.command import (
    direct_seat_lock_use_case,
    hybrid_seat_lock_use_case,
    queued_seat_lock_use_case,
)
from seatlock.service.seat_lock.app.query import (
    get_event_lock_stats_use_case,
    get_request_result_use_case,
    get_seat_lock_status_use_case,
)


WIRE_MODULES: list[ModuleType] = [
    direct_seat_lock_use_case,
    hybrid_seat_lock_use_case,
    queued_seat_lock_use_case,
    get_event_lock_stats_use_case,
    get_request_result_use_case,
    get_seat_lock_status_use_case,
]
