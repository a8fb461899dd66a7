"""
Seat Lock Entity

A time-bounded exclusive lease on one (event, seat). Timestamps are epoch milliseconds.
"""

import attrs


@attrs.frozen
class SeatLock:
    event_id: str
    seat_id: str
    holder_id: str
    token: str = attrs.field(repr=False)
    acquired_at_ms: int
    expires_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at_ms

    def ttl_remaining_ms(self, now_ms: int) -> int:
        return max(0, self.expires_at_ms - now_ms)

    def is_owned_by(self, *, holder_id: str, token: str) -> bool:
        return self.holder_id == holder_id and self.token == token

    def with_expiry(self, expires_at_ms: int) -> 'SeatLock':
        """Extend keeps holder and token, only the expiry moves"""
        return attrs.evolve(self, expires_at_ms=expires_at_ms)
