"""
Lua Scripts for Redis/Kvrocks

Simplified approach using redis-py's built-in register_script().
"""

from pathlib import Path
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import NoScriptError

from seatlock.platform.constant.path import LUA_SCRIPT_DIR
from seatlock.platform.logging.loguru_io import Logger


LOCK_SCRIPT_NAMES = ('acquire_lock', 'extend_lock', 'release_lock', 'prune_lock_index')


class LuaScripts:
    """Manages Lua scripts using redis-py's register_script()"""

    def __init__(self, *, script_dir: Path = LUA_SCRIPT_DIR) -> None:
        self._script_dir = script_dir
        self._sources: dict[str, str] = {}
        self._scripts: dict[str, Any] = {}
        self._client_id: int | None = None

    async def initialize(self, *, client: Redis) -> None:
        """Load Lua scripts for this client (idempotent per client)"""
        if self._client_id == id(client):
            return

        for name in LOCK_SCRIPT_NAMES:
            path = self._script_dir / f'{name}.lua'
            if not path.exists():
                raise FileNotFoundError(f'Lua script not found: {path}')
            self._sources[name] = path.read_text()
            self._scripts[name] = client.register_script(self._sources[name])

        self._client_id = id(client)
        Logger.base.info(f'🔥 [LUA] Registered {len(self._scripts)} lock scripts')

    async def run(self, name: str, *, client: Redis, keys: list[str], args: list[str]) -> Any:
        """Execute a registered script with auto-retry on NoScriptError"""
        if self._client_id != id(client):
            await self.initialize(client=client)

        script = self._scripts[name]
        try:
            return await script(keys=keys, args=args, client=client)
        except NoScriptError:
            Logger.base.warning(f'⚠️ [LUA] {name} not found, re-registering...')
            self._scripts[name] = client.register_script(self._sources[name])
            return await self._scripts[name](keys=keys, args=args, client=client)


lua_script_executor = LuaScripts()
