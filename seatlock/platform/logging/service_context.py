"""
Service context extraction for distributed logging.

Every seat-lock instance owns its own in-process queue and workers, so log lines must say
which instance produced them.
"""

import os
from functools import lru_cache


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'seat-lock-service')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # Container orchestrators expose a hostname per replica; fall back to the PID locally
    instance_id = os.getenv('HOSTNAME', '')[:12] or str(os.getpid())

    return f'{service_name}@{deploy_env}:{instance_id}'
