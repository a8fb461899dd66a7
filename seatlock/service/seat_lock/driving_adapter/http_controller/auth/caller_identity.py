"""
Caller identity

Authentication happens upstream; the gateway forwards the validated user id in the
X-User-Id header and every lock operation uses it as the holder id.
"""

from typing import Optional

from fastapi import Header

from seatlock.platform.exception.exceptions import AuthenticationError


HOLDER_HEADER = 'X-User-Id'


async def get_current_holder(
    x_user_id: Optional[str] = Header(default=None, alias=HOLDER_HEADER),
) -> str:
    if x_user_id is None or not x_user_id.strip():
        raise AuthenticationError(f'Not authenticated: missing {HOLDER_HEADER} header')
    return x_user_id.strip()
