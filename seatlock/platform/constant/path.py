from pathlib import Path


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent

# Log directory
LOG_DIR = BASE_DIR / 'logs'

# Lua scripts for the Kvrocks lock store
LUA_SCRIPT_DIR = (
    BASE_DIR / 'seatlock' / 'service' / 'seat_lock' / 'driven_adapter' / 'state' / 'lua_script'
)
