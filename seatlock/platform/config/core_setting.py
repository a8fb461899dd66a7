from pathlib import Path
from typing import List, Literal, Self

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Seat Lock Service'
    VERSION: str = '0.1.0'
    DEBUG: bool = True  # Set to False in production
    API_PREFIX: str = '/api'

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []  # add your frontend URL here

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return v
        return []

    # Lock store backend: 'memory' keeps leases in-process, 'kvrocks' shares them across instances
    LOCK_STORE_BACKEND: Literal['memory', 'kvrocks'] = 'memory'

    # Seat lease lifetimes (seconds)
    SEAT_LOCK_DEFAULT_TTL_SECONDS: float = 60.0  # hold while the buyer picks seats
    SEAT_LOCK_EXTEND_TTL_SECONDS: float = 600.0  # checkout / payment window
    SEAT_LOCK_MAX_TTL_SECONDS: float = 900.0
    SEAT_LOCK_EXPIRED_GRACE_SECONDS: float = 60.0  # lapsed lease still reported as expired

    # Load monitor
    LOAD_THRESHOLD_PER_WINDOW: int = 10  # attempts per window before an event is overloaded
    LOAD_WINDOW_SECONDS: float = 60.0

    # Request queue / worker
    QUEUE_MAX_DEPTH_PER_EVENT: int = 1000  # hard ceiling, beyond it requests are rejected
    QUEUE_ENTRY_MAX_AGE_SECONDS: float = 30.0
    QUEUE_RETRY_INTERVAL_SECONDS: float = 1.0
    QUEUE_ESTIMATED_SECONDS_PER_REQUEST: float = 2.0

    # Result store
    RESULT_RETENTION_SECONDS: float = 60.0
    RESULT_DEFAULT_POLL_TIMEOUT_MS: int = 30_000
    RESULT_MAX_POLL_TIMEOUT_MS: int = 60_000

    # Background sweep
    SWEEP_INTERVAL_SECONDS: float = 5.0

    # Kvrocks Configuration (Redis protocol + Kvrocks storage)
    KVROCKS_HOST: str = 'localhost'
    KVROCKS_PORT: int = 6666
    KVROCKS_DB: int = 0
    KVROCKS_PASSWORD: str = ''
    REDIS_DECODE_RESPONSES: bool = True  # Lua scripts exchange plain strings

    # Kvrocks Connection Pool Configuration
    KVROCKS_POOL_MAX_CONNECTIONS: int = 100
    KVROCKS_POOL_SOCKET_TIMEOUT: int = 10  # Socket read/write timeout (seconds)
    KVROCKS_POOL_SOCKET_CONNECT_TIMEOUT: int = 10  # Connection timeout (seconds)
    KVROCKS_POOL_SOCKET_KEEPALIVE: bool = True
    KVROCKS_POOL_HEALTH_CHECK_INTERVAL: int = 30  # Health check interval (seconds)

    @model_validator(mode='after')
    def check_lock_lifetimes(self) -> Self:
        if self.SEAT_LOCK_DEFAULT_TTL_SECONDS <= 0:
            raise ValueError('SEAT_LOCK_DEFAULT_TTL_SECONDS must be positive')
        if self.SEAT_LOCK_DEFAULT_TTL_SECONDS > self.SEAT_LOCK_MAX_TTL_SECONDS:
            raise ValueError(
                'SEAT_LOCK_DEFAULT_TTL_SECONDS cannot exceed SEAT_LOCK_MAX_TTL_SECONDS'
            )
        if self.SEAT_LOCK_EXTEND_TTL_SECONDS > self.SEAT_LOCK_MAX_TTL_SECONDS:
            raise ValueError(
                'SEAT_LOCK_EXTEND_TTL_SECONDS cannot exceed SEAT_LOCK_MAX_TTL_SECONDS'
            )
        if self.RESULT_DEFAULT_POLL_TIMEOUT_MS > self.RESULT_MAX_POLL_TIMEOUT_MS:
            raise ValueError(
                'RESULT_DEFAULT_POLL_TIMEOUT_MS cannot exceed RESULT_MAX_POLL_TIMEOUT_MS'
            )
        return self


settings = Settings()  # type: ignore
