# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

This module builds a fully configured application from environment variables
at import time and wires the keep-alive pinger into the lifespan.

Usage:
    uvicorn contact_relay.server:app --host 0.0.0.0 --port 10000
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from .api import create_app
from .dispatcher import Dispatcher, create_dispatcher
from .keepalive import KeepAlivePinger
from .logger import configure_logging, get_logger, mask_address
from .prometheus import RelayMetrics
from .settings import RelaySettings, load_settings

logger = get_logger("Server")


def build_lifespan(settings: RelaySettings, dispatcher: Dispatcher) -> Callable[[FastAPI], AbstractAsyncContextManager]:
    """Lifespan that starts the keep-alive and drains timed-out sends on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        pinger = None
        if settings.keepalive_enabled:
            pinger = KeepAlivePinger(
                f"{settings.server.public_url}/api/health",
                interval=settings.keepalive.interval,
                initial_delay=settings.keepalive.initial_delay,
            )
            pinger.start()
        app.state.pinger = pinger
        logger.info(
            "%s started on %s:%s (environment=%s, url=%s, smtp user=%s, recipient=%s, cors=%s)",
            settings.server.service_name,
            settings.server.host,
            settings.server.port,
            settings.server.environment,
            settings.server.public_url,
            mask_address(settings.smtp.user),
            mask_address(settings.delivery.to_address),
            ",".join(settings.server.cors_origins),
        )
        yield
        if pinger is not None:
            await pinger.stop()
        await dispatcher.drain(timeout=settings.delivery.send_timeout)

    return lifespan


_settings = load_settings()
configure_logging(_settings.log_level)
_metrics = RelayMetrics()
_dispatcher = create_dispatcher(_settings, _metrics)

app = create_app(_settings, _dispatcher, _metrics, lifespan=build_lifespan(_settings, _dispatcher))
