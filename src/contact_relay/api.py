# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory for the contact relay.

This module provides the REST API of the service:

- ``GET /api/health``: liveness payload used by monitors and the keep-alive
- ``POST /api/contact``: contact-form submission relayed as email
- ``GET /metrics``: Prometheus text exposition
- Optional static frontend served for every other ``GET``

Collaborators (settings, dispatcher, metrics, keep-alive pinger) live on
``app.state``; nothing is kept in module globals.

Example:
    Creating and running the API application::

        from contact_relay.api import create_app
        from contact_relay.settings import load_settings

        app = create_app(load_settings())
        uvicorn.run(app, host="0.0.0.0", port=10000)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from .contact import is_valid_email, render_contact_email
from .dispatcher import Dispatcher, create_dispatcher
from .logger import get_logger
from .models import ContactForm
from .prometheus import RelayMetrics
from .settings import RelaySettings

logger = get_logger("API")

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD", "PATCH"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"]
CORS_EXPOSE_HEADERS = ["Content-Range", "X-Content-Range"]
CORS_MAX_AGE = 86400

SEND_FAILED_MESSAGE = "Failed to send email. Please try again later."


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def create_app(
    settings: RelaySettings,
    dispatcher: Dispatcher | None = None,
    metrics: RelayMetrics | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    settings:
        Loaded :class:`RelaySettings`.
    dispatcher:
        Dispatcher to relay submissions through. Built from ``settings``
        when omitted.
    metrics:
        Prometheus collector shared with the dispatcher. Created when
        omitted.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    metrics = metrics or RelayMetrics()
    dispatcher = dispatcher or create_dispatcher(settings, metrics)

    api = FastAPI(title=settings.server.service_name, lifespan=lifespan)
    api.state.settings = settings
    api.state.dispatcher = dispatcher
    api.state.metrics = metrics
    api.state.pinger = None
    api.state.started_at = time.monotonic()

    api.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.server.cors_origins),
        allow_credentials=False,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
        max_age=CORS_MAX_AGE,
    )

    @api.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(
            "Incoming request %s %s (origin=%s, content-type=%s)",
            request.method,
            request.url.path,
            request.headers.get("origin"),
            request.headers.get("content-type"),
        )
        return await call_next(request)

    @api.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Log validation errors with full details."""
        body = await request.body()
        logger.error(f"Validation error on {request.method} {request.url.path}")
        logger.error(f"Request body: {body.decode('utf-8', errors='replace')}")
        logger.error(f"Validation errors: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @api.get("/api/health")
    async def health(request: Request):
        """Health check endpoint for monitors and the keep-alive loop."""
        pinger = request.app.state.pinger
        return {
            "status": "UP",
            "timestamp": _utc_now_iso(),
            "service": settings.server.service_name,
            "port": settings.server.port,
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "keepAlive": "active" if pinger is not None and pinger.running else "inactive",
        }

    @api.post("/api/contact")
    async def contact(
        form: ContactForm,
        dispatcher: Dispatcher = Depends(get_dispatcher),
    ):
        """Relay a contact-form submission to the configured recipient."""
        missing = form.missing_fields()
        if any(missing.values()):
            logger.error("Contact form rejected, missing fields: %s", [k for k, v in missing.items() if v])
            return JSONResponse(
                status_code=400,
                content={"error": "Name, email, and message are required fields.", "missing": missing},
            )
        if not is_valid_email(form.email):
            logger.error("Contact form rejected, invalid email format")
            return JSONResponse(status_code=400, content={"error": "Invalid email format."})

        logger.info("Contact form submission received (message length %d)", len(form.message))
        content = render_contact_email(form, datetime.now(), settings.server.service_name)
        result = await dispatcher.dispatch(content.to_request(settings.delivery.to_address))

        if not result.ok:
            logger.error("Email service error: %s (kind=%s)", result.message, result.kind.value)
            payload = {"error": SEND_FAILED_MESSAGE}
            if settings.server.is_development:
                payload["details"] = result.message
            return JSONResponse(status_code=500, content=payload)

        return {"message": "Email sent successfully.", "timestamp": _utc_now_iso()}

    @api.get("/metrics")
    async def metrics_endpoint(request: Request):
        """Prometheus scrape endpoint."""
        return Response(content=request.app.state.metrics.generate_latest(), media_type=CONTENT_TYPE_LATEST)

    static_dir = settings.server.static_dir
    if static_dir and Path(static_dir).is_dir():
        _mount_frontend(api, Path(static_dir).resolve())
    elif static_dir:
        logger.warning("STATIC_DIR %s is not a directory, frontend will not be served", static_dir)

    return api


def _mount_frontend(api: FastAPI, root: Path) -> None:
    """Serve files under ``root``, falling back to ``index.html`` for client-side routes."""
    index = root / "index.html"

    @api.get("/{full_path:path}", include_in_schema=False)
    async def frontend(full_path: str):
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        if index.is_file():
            return FileResponse(index)
        raise HTTPException(404, "Not Found")
