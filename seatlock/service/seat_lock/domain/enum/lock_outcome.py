from enum import StrEnum


class LockOutcome(StrEnum):
    """Result of one conditional write against the lock store"""

    GRANTED = 'granted'
    ALREADY_HELD = 'already_held'  # valid lease already belongs to the requesting holder
    CONFLICT = 'conflict'
    EXTENDED = 'extended'
    RELEASED = 'released'
    ABSENT = 'absent'
    EXPIRED = 'expired'
    MISMATCH = 'mismatch'  # holder or token does not match the stored lease
