import asyncio

import aiosmtplib
import pytest

from contact_relay.dispatcher import Dispatcher, build_message, create_dispatcher, format_sender
from contact_relay.errors import FailureKind
from contact_relay.models import DispatchFailure, DispatchSuccess, MailRequest
from contact_relay.prometheus import RelayMetrics
from contact_relay.settings import DeliverySettings, RelaySettings, SecretPolicy, SmtpSettings


def _request(**overrides):
    data = {"to": "owner@example.com", "subject": "Hello", "text": "Plain body", "html": None}
    data.update(overrides)
    return MailRequest(**data)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({"to": None}, "Recipient email (to) is required"),
        ({"to": "   "}, "Recipient email (to) is required"),
        ({"subject": ""}, "Email subject is required"),
        ({"text": None, "html": None}, "Email content (text or html) is required"),
        ({"text": " ", "html": ""}, "Email content (text or html) is required"),
    ],
)
async def test_invalid_request_fails_without_touching_transport(dispatcher, selector, primary, overrides, expected):
    result = await dispatcher.dispatch(_request(**overrides))

    assert isinstance(result, DispatchFailure)
    assert result.kind is FailureKind.VALIDATION
    assert result.message == expected
    assert result.code is None
    assert selector.cached is None
    assert primary.verify_calls == 0
    assert primary.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize("recipient", ['"', "<", "a@", "x@["])
async def test_malformed_recipient_is_validation_failure(dispatcher, selector, primary, recipient):
    result = await dispatcher.dispatch(_request(to=recipient))

    assert isinstance(result, DispatchFailure)
    assert result.kind is FailureKind.VALIDATION
    assert result.message.startswith("Invalid email header:")
    assert result.details
    assert selector.cached is None
    assert primary.sent == []


@pytest.mark.asyncio
async def test_successful_send_returns_message_id(dispatcher, primary):
    result = await dispatcher.dispatch(_request())

    assert isinstance(result, DispatchSuccess)
    assert result.ok is True
    assert result.message_id
    assert result.response == "250 2.0.0 OK queued"
    assert result.transport == "primary"

    [message] = primary.sent
    assert message["Message-ID"] == result.message_id
    assert message["To"] == "owner@example.com"
    assert message["Subject"] == "Hello"
    assert message["From"] == "Contact Relay <noreply@example.com>"


@pytest.mark.asyncio
async def test_never_responding_transport_times_out_after_deadline(make_selector, delivery_settings, primary):
    delivery_settings.send_timeout = 0.2
    primary.hang = True
    dispatcher = Dispatcher(make_selector(delivery=delivery_settings), delivery_settings)

    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await dispatcher.dispatch(_request())
    elapsed = loop.time() - started

    assert result.kind is FailureKind.TIMEOUT
    assert result.message == "Email service timed out. Please try again."
    assert elapsed >= 0.19
    assert dispatcher.pending == 1

    # the send keeps running after the caller gave up
    primary.release.set()
    await dispatcher.drain(timeout=1.0)
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_authentication_error_keeps_raw_code(dispatcher, primary):
    primary.send_error = aiosmtplib.SMTPAuthenticationError(535, "5.7.8 Username and Password not accepted")

    result = await dispatcher.dispatch(_request())

    assert result.kind is FailureKind.AUTHENTICATION
    assert result.message == "Email authentication failed. Please contact support."
    assert result.code == 535
    assert "Username and Password not accepted" in result.details


@pytest.mark.asyncio
async def test_connection_error_maps_to_connection_message(dispatcher, primary):
    primary.send_error = aiosmtplib.SMTPConnectError("Error connecting to smtp.example.com on port 465")

    result = await dispatcher.dispatch(_request())

    assert result.kind is FailureKind.CONNECTION
    assert result.message == "Cannot connect to email server. Please try again."
    assert "smtp.example.com" in result.details


@pytest.mark.asyncio
async def test_other_provider_error_is_generic(dispatcher, primary):
    primary.send_error = aiosmtplib.SMTPDataError(554, "Message rejected")

    result = await dispatcher.dispatch(_request())

    assert result.kind is FailureKind.UNKNOWN
    assert result.message == "Failed to send email. Please try again later."
    assert result.code == 554


@pytest.mark.asyncio
async def test_sequential_dispatches_verify_once(dispatcher, selector, primary):
    first = await dispatcher.dispatch(_request())
    second = await dispatcher.dispatch(_request(subject="Again"))

    assert first.ok and second.ok
    assert primary.verify_calls == 1
    assert selector.resolutions == 1
    assert len(primary.sent) == 2


@pytest.mark.asyncio
async def test_failed_send_does_not_trigger_reresolution(dispatcher, selector, primary):
    primary.send_error = aiosmtplib.SMTPServerDisconnected("Connection lost")
    await dispatcher.dispatch(_request())
    primary.send_error = None
    result = await dispatcher.dispatch(_request())

    assert result.ok
    assert selector.resolutions == 1
    assert primary.verify_calls == 1


@pytest.mark.asyncio
async def test_strict_policy_without_secret_is_configuration_failure(make_selector, delivery_settings):
    delivery_settings.secret_policy = SecretPolicy.STRICT
    selector = make_selector(smtp=SmtpSettings(user="relay@example.com", password=None), delivery=delivery_settings)
    dispatcher = Dispatcher(selector, delivery_settings)

    result = await dispatcher.dispatch(_request())

    assert result.kind is FailureKind.CONFIGURATION
    assert "SMTP_PASSWORD" in result.details
    assert selector.cached is None


@pytest.mark.asyncio
async def test_metrics_track_outcomes(make_selector, delivery_settings, primary):
    metrics = RelayMetrics()
    dispatcher = Dispatcher(make_selector(metrics=metrics), delivery_settings, metrics=metrics)

    await dispatcher.dispatch(_request())
    await dispatcher.dispatch(_request(subject=None))

    assert metrics.registry.get_sample_value("relay_sent_total", {"transport": "primary"}) == 1.0
    assert metrics.registry.get_sample_value("relay_errors_total", {"kind": "validation"}) == 1.0
    assert metrics.registry.get_sample_value("relay_transport_resolutions_total", {"variant": "primary"}) == 1.0


def test_sender_falls_back_to_smtp_user_then_default():
    delivery = DeliverySettings(from_address=None, from_name="Site")

    assert format_sender(delivery, "relay@example.com") == "Site <relay@example.com>"
    assert format_sender(delivery) == "Site <noreply@localhost>"
    assert format_sender(DeliverySettings(from_address="web@example.com"), "relay@example.com") == "Contact Relay <web@example.com>"


def test_create_dispatcher_resolves_sender_from_smtp_user():
    settings = RelaySettings(smtp=SmtpSettings(user="relay@example.com", password="secret"))

    dispatcher = create_dispatcher(settings)

    assert dispatcher.sender == "Contact Relay <relay@example.com>"
    assert dispatcher.selector.smtp is settings.smtp


def test_explicit_sender_is_used_verbatim(selector, delivery_settings):
    assert Dispatcher(selector, delivery_settings, sender="Ops <ops@example.com>").sender == "Ops <ops@example.com>"


def test_build_message_with_both_bodies_is_alternative():
    message = build_message(_request(html="<p>Rich</p>"), "Site <noreply@example.com>")

    assert message.get_content_type() == "multipart/alternative"
    assert message.get_body(("plain",)).get_content().strip() == "Plain body"
    assert message.get_body(("html",)).get_content().strip() == "<p>Rich</p>"
    assert message["Message-ID"].endswith("@example.com>")


def test_build_message_with_html_only():
    message = build_message(_request(text=None, html="<p>Rich</p>"), "Site <noreply@example.com>")

    assert message.get_content_type() == "text/html"
