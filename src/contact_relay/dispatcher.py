# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Timeout-bounded mail dispatch.

The :class:`Dispatcher` is the boundary between the HTTP layer and the mail
transports. ``dispatch()`` validates a :class:`MailRequest`, resolves the
transport through the injected :class:`TransportSelector`, and races the
send against a fixed timeout. It never raises: every outcome is a
:class:`DispatchSuccess` or a :class:`DispatchFailure`.

A send that outlives the timeout is not cancelled. The caller stops waiting,
the send keeps running in the background and its eventual outcome is logged.
:meth:`Dispatcher.drain` waits for such sends at shutdown.

Example:
    Dispatching a message::

        dispatcher = Dispatcher(selector, settings.delivery)
        result = await dispatcher.dispatch(
            MailRequest(to="ops@example.com", subject="Hi", text="Hello")
        )
        if not result.ok:
            print(result.message)
"""

from __future__ import annotations

import asyncio
from email.message import EmailMessage
from email.utils import formataddr, make_msgid, parseaddr

from .errors import DeliveryTimeoutError, FailureKind, MailValidationError, RelayError, classify_error
from .logger import get_logger
from .models import DispatchFailure, DispatchResult, DispatchSuccess, MailRequest, SendReceipt
from .prometheus import RelayMetrics
from .selector import TransportSelector
from .settings import DEFAULT_FROM_ADDRESS, DeliverySettings, RelaySettings
from .transports import Transport

logger = get_logger("Dispatcher")

_TIPS = {
    FailureKind.TIMEOUT: "Check your SMTP server settings and network connectivity",
    FailureKind.AUTHENTICATION: "Check SMTP_EMAIL and SMTP_PASSWORD; Gmail accounts need an App Password",
    FailureKind.CONNECTION: "Check SMTP_HOST and SMTP_PORT settings",
    FailureKind.CONFIGURATION: "Set SMTP_EMAIL and SMTP_PASSWORD or switch RELAY_MISSING_SECRET_POLICY to permissive",
}


def format_sender(delivery: DeliverySettings, smtp_user: str | None = None) -> str:
    """``From`` header: configured address, then SMTP user, then a default."""
    address = delivery.from_address or smtp_user or DEFAULT_FROM_ADDRESS
    return formataddr((delivery.from_name, address))


def build_message(request: MailRequest, sender: str) -> EmailMessage:
    """Compose the MIME message for a validated request.

    Both bodies present produce ``multipart/alternative``; otherwise the
    single body is used as-is.

    Raises:
        ValueError: If a header value is not representable (for example it
            contains a line break). Malformed addresses can also surface as
            other parser errors.
    """
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = request.to.strip()
    msg["Subject"] = request.subject.strip()
    domain = parseaddr(sender)[1].rpartition("@")[2]
    msg["Message-ID"] = make_msgid(domain=domain or None)
    if request.text and request.text.strip():
        msg.set_content(request.text)
        if request.html and request.html.strip():
            msg.add_alternative(request.html, subtype="html")
    else:
        msg.set_content(request.html, subtype="html")
    return msg


class Dispatcher:
    """Validates, composes and sends one message per call.

    Attributes:
        selector: Source of the outbound transport.
        delivery: Sender identity and timeouts.
        sender: ``From`` header value, see :func:`format_sender`.
        metrics: Optional Prometheus collector.
    """

    def __init__(
        self,
        selector: TransportSelector,
        delivery: DeliverySettings,
        *,
        sender: str | None = None,
        metrics: RelayMetrics | None = None,
    ):
        self.selector = selector
        self.delivery = delivery
        self.sender = sender or format_sender(delivery)
        self.metrics = metrics
        self._orphaned: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of timed-out sends still running in the background."""
        return len(self._orphaned)

    async def dispatch(self, request: MailRequest) -> DispatchResult:
        """Send ``request`` and report the outcome as a result record.

        Validation runs before any transport is touched. Transport errors are
        classified into authentication, connection, timeout or unknown
        failures with a generic user message; raw detail and SMTP code are
        kept on the failure.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()

        problem = request.validation_error()
        if problem:
            logger.error("Rejected email request: %s", problem)
            return self._failure(MailValidationError(problem))

        try:
            message = build_message(request, self.sender)
        except Exception as exc:
            detail = str(exc) or exc.__class__.__name__
            logger.error("Cannot compose email to %r: %s", request.to, detail)
            return self._failure(MailValidationError(f"Invalid email header: {detail}", details=detail))

        try:
            transport = await self.selector.resolve()
            logger.info("Attempting to send email to %s (subject=%r, via %s)", request.to, request.subject, transport.variant.value)
            receipt = await self._send_with_timeout(transport, message)
        except Exception as exc:
            error = classify_error(exc)
            elapsed_ms = (loop.time() - started) * 1000
            logger.error(
                "Error sending email after %.0fms: %s (kind=%s, code=%s)",
                elapsed_ms,
                error.details or error.user_message,
                error.kind.value,
                error.code,
            )
            if tip := _TIPS.get(error.kind):
                logger.error("Tip: %s", tip)
            return self._failure(error)

        elapsed_ms = (loop.time() - started) * 1000
        logger.info(
            "Email sent successfully in %.0fms (message_id=%s, response=%s)",
            elapsed_ms,
            receipt.message_id,
            receipt.response,
        )
        if self.metrics is not None:
            self.metrics.inc_sent(transport.variant.value)
        return DispatchSuccess(message_id=receipt.message_id, response=receipt.response, transport=transport.variant.value)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for timed-out sends that are still running."""
        if not self._orphaned:
            return
        logger.info("Waiting for %d timed-out send(s) to finish", len(self._orphaned))
        await asyncio.wait(set(self._orphaned), timeout=timeout)

    async def _send_with_timeout(self, transport: Transport, message: EmailMessage) -> SendReceipt:
        task = asyncio.ensure_future(transport.send(message))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.delivery.send_timeout)
        except asyncio.TimeoutError:
            if task.done():
                raise
            self._orphaned.add(task)
            task.add_done_callback(self._log_orphan)
            raise DeliveryTimeoutError(f"Email sending timed out after {self.delivery.send_timeout:g} seconds") from None

    def _log_orphan(self, task: asyncio.Task) -> None:
        self._orphaned.discard(task)
        if task.cancelled():
            logger.warning("Timed-out send was cancelled before completing")
        elif (exc := task.exception()) is not None:
            logger.warning("Timed-out send failed later: %s", exc)
        else:
            logger.info("Timed-out send completed later (message_id=%s)", task.result().message_id)

    def _failure(self, error: RelayError) -> DispatchFailure:
        if self.metrics is not None:
            self.metrics.inc_error(error.kind.value)
        return DispatchFailure.from_error(error)


def create_dispatcher(settings: RelaySettings, metrics: RelayMetrics | None = None) -> Dispatcher:
    """Composition root helper: one selector, injected into one dispatcher."""
    selector = TransportSelector(settings.smtp, settings.delivery, metrics=metrics)
    sender = format_sender(settings.delivery, settings.smtp.user)
    return Dispatcher(selector, settings.delivery, sender=sender, metrics=metrics)
