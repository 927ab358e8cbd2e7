# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Outbound mail transports.

A transport delivers one composed :class:`email.message.EmailMessage`. Three
variants exist:

- ``primary``: SMTP relay on the configured port
- ``fallback``: same relay and credentials on the alternate port
- ``console``: writes the message to the log instead of delivering it

TLS behavior based on port:
- Port 465: Direct TLS (implicit TLS)
- Any other port: STARTTLS (upgrade plain to TLS)

Certificate validation is disabled for SMTP transports, so relays with
self-signed or mismatched certificates are accepted.

Example:
    Sending through the primary relay::

        transport = primary_transport(settings.smtp)
        await transport.verify(timeout=10.0)
        receipt = await transport.send(message)
"""

from __future__ import annotations

import asyncio
from email.message import EmailMessage
from enum import Enum
from typing import Protocol

import aiosmtplib

from .logger import get_logger
from .models import SendReceipt
from .settings import SmtpSettings

logger = get_logger("Transport")

IMPLICIT_TLS_PORT = 465
CONSOLE_RESPONSE = "Email logged to console"


class TransportVariant(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    CONSOLE = "console"


class Transport(Protocol):
    """Protocol implemented by every transport variant."""

    variant: TransportVariant

    async def verify(self, timeout: float) -> None:  # pragma: no cover - protocol
        ...

    async def send(self, message: EmailMessage) -> SendReceipt:  # pragma: no cover - protocol
        ...


class SmtpTransport:
    """SMTP relay bound to one host, port and TLS mode.

    Each :meth:`send` opens its own connection, authenticates, sends and
    quits; no connection is kept between sends.

    Attributes:
        variant: Which configuration this transport was built from.
        host: SMTP server hostname.
        port: SMTP server port.
        use_tls: Connect with implicit TLS.
        start_tls: Upgrade the plain connection with STARTTLS.
        timeout: Socket-level timeout handed to ``aiosmtplib``.
    """

    def __init__(
        self,
        variant: TransportVariant,
        host: str,
        port: int,
        user: str | None,
        password: str | None,
        *,
        use_tls: bool,
        start_tls: bool,
        timeout: float = 30.0,
    ):
        self.variant = variant
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"SmtpTransport({self.variant.value}, {self.host}:{self.port}, use_tls={self.use_tls})"

    def _client(self, timeout: float) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            use_tls=self.use_tls,
            start_tls=self.start_tls,
            validate_certs=False,
            timeout=timeout,
        )

    async def _open(self, timeout: float) -> aiosmtplib.SMTP:
        smtp = self._client(timeout)
        try:
            await smtp.connect()
            if self.user and self._password:
                await smtp.login(self.user, self._password)
        except BaseException:
            smtp.close()
            raise
        return smtp

    async def _close(self, smtp: aiosmtplib.SMTP) -> None:
        try:
            await smtp.quit()
        except aiosmtplib.SMTPException as exc:
            logger.debug("Ignoring error on QUIT from %s:%s: %s", self.host, self.port, exc)
            smtp.close()
        except BaseException:
            smtp.close()
            raise

    async def verify(self, timeout: float) -> None:
        """Connect, read the greeting, authenticate and quit.

        Raises:
            asyncio.TimeoutError: If the check takes longer than ``timeout``.
            aiosmtplib.SMTPException: If connection or authentication fails.
        """
        async def _do_verify():
            smtp = await self._open(timeout)
            await self._close(smtp)

        await asyncio.wait_for(_do_verify(), timeout=timeout)

    async def send(self, message: EmailMessage) -> SendReceipt:
        """Deliver ``message`` and return the relay's acknowledgement.

        Raises:
            aiosmtplib.SMTPException: If the relay rejects the message or
                the connection fails.
        """
        smtp = await self._open(self.timeout)
        try:
            _errors, response = await smtp.send_message(message)
        finally:
            await self._close(smtp)
        return SendReceipt(message_id=str(message["Message-ID"] or ""), response=response)


class ConsoleTransport:
    """Inert transport that logs the message instead of delivering it."""

    variant = TransportVariant.CONSOLE

    def __init__(self, sink=None):
        self.sink = sink or get_logger("ConsoleTransport")

    def __repr__(self) -> str:
        return "ConsoleTransport()"

    async def verify(self, timeout: float) -> None:
        return None

    async def send(self, message: EmailMessage) -> SendReceipt:
        separator = "-" * 22
        self.sink.info(
            "%s\nEmail would be sent:\n%s\n%s\n%s",
            separator,
            separator,
            message.as_string(),
            separator,
        )
        return SendReceipt(message_id=str(message["Message-ID"] or ""), response=CONSOLE_RESPONSE)


def _smtp_transport(variant: TransportVariant, smtp: SmtpSettings, port: int) -> SmtpTransport:
    implicit = port == IMPLICIT_TLS_PORT
    return SmtpTransport(
        variant,
        smtp.host,
        port,
        smtp.user,
        smtp.password,
        use_tls=implicit,
        start_tls=not implicit,
    )


def primary_transport(smtp: SmtpSettings) -> SmtpTransport:
    """Build the transport for the configured host and port."""
    return _smtp_transport(TransportVariant.PRIMARY, smtp, smtp.port)


def fallback_transport(smtp: SmtpSettings) -> SmtpTransport:
    """Build the transport for the alternate port, same host and credentials."""
    return _smtp_transport(TransportVariant.FALLBACK, smtp, smtp.fallback_port)
