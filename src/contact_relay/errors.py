# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error taxonomy for mail dispatch.

Every failure the dispatcher can meet is expressed as a :class:`RelayError`
subclass carrying a machine-readable ``kind``, a generic user-facing message,
the raw provider detail and, when available, the SMTP reply code.
:func:`classify_error` maps raw ``aiosmtplib``, asyncio and socket exceptions
onto the taxonomy.
"""

from __future__ import annotations

import asyncio
from enum import Enum

import aiosmtplib

AUTH_FAILURE_CODES = frozenset({535})


class FailureKind(str, Enum):
    """Classification of a failed dispatch."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    CONNECTION = "connection"
    UNKNOWN = "unknown"


class RelayError(RuntimeError):
    """Base class for dispatch failures."""

    kind = FailureKind.UNKNOWN
    user_message = "Failed to send email. Please try again later."

    def __init__(self, details: str | None = None, *, code: int | None = None, user_message: str | None = None):
        super().__init__(details or user_message or self.user_message)
        if user_message is not None:
            self.user_message = user_message
        self.details = details
        self.code = code


class MailValidationError(RelayError):
    """A required request field is missing. Caller fault, never retried."""

    kind = FailureKind.VALIDATION

    def __init__(self, message: str, *, details: str | None = None):
        super().__init__(details, user_message=message)


class ConfigurationError(RelayError):
    """SMTP credentials are missing. Operator fault."""

    kind = FailureKind.CONFIGURATION
    user_message = "Email service is not configured. Please contact support."


class DeliveryTimeoutError(RelayError):
    """The relay did not answer in time. The caller may retry."""

    kind = FailureKind.TIMEOUT
    user_message = "Email service timed out. Please try again."


class AuthenticationError(RelayError):
    """The relay rejected the credentials."""

    kind = FailureKind.AUTHENTICATION
    user_message = "Email authentication failed. Please contact support."


class ConnectionFailedError(RelayError):
    """The relay could not be reached or dropped the connection."""

    kind = FailureKind.CONNECTION
    user_message = "Cannot connect to email server. Please try again."


class UnknownProviderError(RelayError):
    """Any other provider failure, passed through opaquely."""

    kind = FailureKind.UNKNOWN


def _smtp_code(exc: BaseException) -> int | None:
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def classify_error(exc: BaseException) -> RelayError:
    """Map an exception raised while talking to the relay onto the taxonomy.

    Timeouts are checked first: ``aiosmtplib`` connect timeouts are also
    connect errors, and ``TimeoutError`` is an ``OSError``.

    Args:
        exc: The exception to classify.

    Returns:
        A :class:`RelayError` preserving the raw message and SMTP code.
        ``RelayError`` instances are returned unchanged.
    """
    if isinstance(exc, RelayError):
        return exc

    details = str(exc) or exc.__class__.__name__
    code = _smtp_code(exc)

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, aiosmtplib.SMTPTimeoutError)):
        return DeliveryTimeoutError(details, code=code)
    if isinstance(exc, aiosmtplib.SMTPAuthenticationError) or code in AUTH_FAILURE_CODES:
        return AuthenticationError(details, code=code)
    if isinstance(exc, (aiosmtplib.SMTPConnectError, aiosmtplib.SMTPServerDisconnected, ConnectionError, OSError)):
        return ConnectionFailedError(details, code=code)
    return UnknownProviderError(details, code=code)
