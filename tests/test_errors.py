import asyncio

import aiosmtplib
import pytest

from contact_relay.errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectionFailedError,
    DeliveryTimeoutError,
    FailureKind,
    UnknownProviderError,
    classify_error,
)


@pytest.mark.parametrize(
    "exc, expected",
    [
        (asyncio.TimeoutError(), DeliveryTimeoutError),
        (aiosmtplib.SMTPReadTimeoutError("Timed out waiting for server response"), DeliveryTimeoutError),
        (aiosmtplib.SMTPConnectTimeoutError("Timed out connecting to smtp.example.com"), DeliveryTimeoutError),
        (aiosmtplib.SMTPAuthenticationError(535, "Authentication failed"), AuthenticationError),
        (aiosmtplib.SMTPResponseException(535, "5.7.8 Bad credentials"), AuthenticationError),
        (aiosmtplib.SMTPConnectError("Error connecting"), ConnectionFailedError),
        (aiosmtplib.SMTPServerDisconnected("Unexpected EOF"), ConnectionFailedError),
        (ConnectionRefusedError(111, "Connection refused"), ConnectionFailedError),
        (aiosmtplib.SMTPRecipientRefused(550, "No such user", "nobody@example.com"), UnknownProviderError),
        (ValueError("boom"), UnknownProviderError),
    ],
)
def test_classify_error(exc, expected):
    assert isinstance(classify_error(exc), expected)


def test_classification_keeps_raw_detail_and_code():
    error = classify_error(aiosmtplib.SMTPAuthenticationError(535, "5.7.8 Username and Password not accepted"))

    assert error.kind is FailureKind.AUTHENTICATION
    assert error.code == 535
    assert "Username and Password not accepted" in error.details
    assert error.user_message == "Email authentication failed. Please contact support."


def test_relay_errors_pass_through_unchanged():
    error = ConfigurationError("SMTP_PASSWORD missing")

    assert classify_error(error) is error


def test_empty_exception_message_uses_class_name():
    assert classify_error(asyncio.TimeoutError()).details == "TimeoutError"
