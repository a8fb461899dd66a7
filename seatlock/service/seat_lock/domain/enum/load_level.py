from enum import StrEnum


class LoadLevel(StrEnum):
    NORMAL = 'normal'
    OVERLOADED = 'overloaded'


class Route(StrEnum):
    """Where the load monitor sends an incoming hybrid lock request"""

    DIRECT = 'direct'
    QUEUED = 'queued'
    REJECTED = 'rejected'
