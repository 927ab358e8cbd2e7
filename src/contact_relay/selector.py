# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Transport selection with fallback and console degradation.

The :class:`TransportSelector` resolves one outbound transport lazily and
caches it for its own lifetime. The composition root creates a single
selector and injects it into the dispatcher.

Resolution order:
1. Cached transport, returned without re-validation
2. Missing credentials: configuration error (strict) or console (permissive)
3. Primary relay, verified when verification is enabled
4. Fallback relay on the alternate port, tried exactly once
5. Console transport

Example:
    Resolving at first use::

        selector = TransportSelector(settings.smtp, settings.delivery)
        transport = await selector.resolve()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import aiosmtplib

from .errors import ConfigurationError
from .logger import get_logger, mask_address
from .prometheus import RelayMetrics
from .settings import DeliverySettings, SecretPolicy, SmtpSettings
from .transports import ConsoleTransport, Transport, fallback_transport, primary_transport

logger = get_logger("TransportSelector")

VERIFY_ERRORS = (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError)


class TransportSelector:
    """Lazily resolves and caches the outbound mail transport.

    Resolution runs under an ``asyncio.Lock`` so concurrent first callers
    wait for a single resolution. Once a transport is cached it is never
    re-resolved, even if a later send fails; only :meth:`reset` clears it.

    Attributes:
        smtp: Relay account and ports.
        delivery: Verification flag, verify timeout and missing-secret policy.
        resolutions: Number of completed resolutions.
    """

    def __init__(
        self,
        smtp: SmtpSettings,
        delivery: DeliverySettings,
        *,
        metrics: RelayMetrics | None = None,
        primary_factory: Callable[[SmtpSettings], Transport] = primary_transport,
        fallback_factory: Callable[[SmtpSettings], Transport] = fallback_transport,
        console_factory: Callable[[], Transport] = ConsoleTransport,
    ):
        self.smtp = smtp
        self.delivery = delivery
        self.metrics = metrics
        self._primary_factory = primary_factory
        self._fallback_factory = fallback_factory
        self._console_factory = console_factory
        self._transport: Transport | None = None
        self._lock = asyncio.Lock()
        self.resolutions = 0

    @property
    def cached(self) -> Transport | None:
        return self._transport

    async def resolve(self) -> Transport:
        """Return the cached transport, resolving it on first use.

        Raises:
            ConfigurationError: Credentials are missing and the policy is
                strict. Nothing is cached in that case.
        """
        if self._transport is not None:
            return self._transport
        async with self._lock:
            if self._transport is None:
                transport = await self._select()
                self._transport = transport
                self.resolutions += 1
                if self.metrics is not None:
                    self.metrics.inc_resolution(transport.variant.value)
        return self._transport

    def reset(self) -> None:
        """Forget the cached transport so the next resolve starts over."""
        self._transport = None

    async def _select(self) -> Transport:
        logger.info(
            "Resolving email transport (host=%s, port=%s, user=%s, password=%s)",
            self.smtp.host,
            self.smtp.port,
            mask_address(self.smtp.user),
            "set" if self.smtp.password else "not set",
        )

        if not self.smtp.has_credentials:
            if self.delivery.secret_policy is SecretPolicy.STRICT:
                logger.error("SMTP credentials are not configured")
                raise ConfigurationError("SMTP_EMAIL and SMTP_PASSWORD environment variables are required")
            logger.warning("SMTP credentials are not configured, emails will be logged to console")
            return self._console_factory()

        primary = self._primary_factory(self.smtp)
        if not self.delivery.verify_transport:
            logger.info("Using %r without verification", primary)
            return primary

        if await self._verify(primary):
            return primary
        logger.info("Trying alternative SMTP configuration on port %s", self.smtp.fallback_port)
        fallback = self._fallback_factory(self.smtp)
        if await self._verify(fallback):
            return fallback

        logger.warning("No SMTP configuration could be verified, emails will be logged to console")
        return self._console_factory()

    async def _verify(self, transport: Transport) -> bool:
        try:
            await transport.verify(self.delivery.verify_timeout)
        except VERIFY_ERRORS as exc:
            logger.warning("Verification of %r failed: %s", transport, str(exc) or exc.__class__.__name__)
            return False
        logger.info("Email transport %r verified", transport)
        return True
