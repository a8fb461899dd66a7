import attrs

from seatlock.service.seat_lock.domain.enum.load_level import LoadLevel


@attrs.frozen
class LoadSample:
    """Snapshot of one event's recent lock pressure"""

    event_id: str
    attempts_in_window: int
    queue_depth: int
    threshold: int
    window_seconds: float

    @property
    def level(self) -> LoadLevel:
        if self.attempts_in_window > self.threshold:
            return LoadLevel.OVERLOADED
        return LoadLevel.NORMAL
