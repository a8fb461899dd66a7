from enum import StrEnum


class LockAction(StrEnum):
    LOCK = 'lock'
    EXTEND = 'extend'
    RELEASE = 'release'
