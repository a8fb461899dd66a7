"""
Key String Generator

Kvrocks keys of the seat lock store. A seat's lease hash and its event index share the
`{e:<event>}` hash tag so the Lua scripts only touch one slot.
"""

import os


def _get_key_prefix() -> str:
    # Read on every call: pytest sets KVROCKS_KEY_PREFIX after modules are imported
    return os.getenv('KVROCKS_KEY_PREFIX', '')


def _make_key(key: str) -> str:
    return f'{_get_key_prefix()}{key}'


def make_seat_lock_key(*, event_id: str, seat_id: str) -> str:
    """Hash holding holder_id, token, acquired_at, expires_at of one seat lease"""
    return _make_key(f'seat_lock:{{e:{event_id}}}:{seat_id}')


def make_seat_lock_index_key(*, event_id: str) -> str:
    """Set of seat ids that may hold a lease in this event"""
    return _make_key(f'seat_lock_index:{{e:{event_id}}}')


def make_seat_lock_events_key() -> str:
    """Set of event ids that have an index, walked by the sweep"""
    return _make_key('seat_lock_events')
