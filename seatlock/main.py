"""
Seat Lock Service - Main Application

Lock engine, queue worker and sweep run inside one anyio task group for the
lifetime of the app.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from seatlock.platform.app_factory import create_app
from seatlock.platform.config.di import container
from seatlock.platform.config.wire_modules import WIRE_MODULES
from seatlock.platform.logging.loguru_io import Logger
from seatlock.platform.observability.tracing import TracingConfig
from seatlock.platform.state.kvrocks_client import kvrocks_client
from seatlock.platform.state.lua_script_executor import lua_script_executor


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown."""
    Logger.base.info('🚀 [Seat Lock Service] Starting up...')
    config = container.config_service()

    tracing = TracingConfig(service_name='seat-lock-service')
    tracing.setup()
    Logger.base.info('📊 [Seat Lock Service] OpenTelemetry tracing configured')

    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Seat Lock Service] Dependency injection wired')

    if config.LOCK_STORE_BACKEND == 'kvrocks':
        tracing.instrument_redis()
        # Fail fast; tests may have injected a client already
        client = (
            kvrocks_client.get_client()
            if kvrocks_client.is_initialized
            else await kvrocks_client.initialize()
        )
        await lua_script_executor.initialize(client=client)
        Logger.base.info('📡 [Seat Lock Service] Kvrocks lock store ready')
    else:
        Logger.base.info('🧠 [Seat Lock Service] In-memory lock store (single instance only)')

    async with anyio.create_task_group() as tg:
        queue_worker = container.queue_worker()
        await queue_worker.start(task_group=tg)
        await container.lock_sweeper().start(task_group=tg)
        Logger.base.info('✅ [Seat Lock Service] Ready to serve requests')

        yield

        Logger.base.info('🛑 [Seat Lock Service] Shutting down...')
        queue_worker.stop()
        tg.cancel_scope.cancel()

    if config.LOCK_STORE_BACKEND == 'kvrocks':
        await kvrocks_client.disconnect()
        Logger.base.info('📡 [Seat Lock Service] Kvrocks disconnected')

    tracing.shutdown()
    container.unwire()
    Logger.base.info('👋 [Seat Lock Service] Shutdown complete')


app = create_app(lifespan=lifespan)


@app.get('/')
async def root() -> RedirectResponse:
    """Root endpoint - redirect to docs."""
    return RedirectResponse(url='/docs')
