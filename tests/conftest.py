import asyncio

import pytest

from contact_relay.dispatcher import Dispatcher
from contact_relay.models import SendReceipt
from contact_relay.selector import TransportSelector
from contact_relay.settings import DeliverySettings, RelaySettings, SmtpSettings
from contact_relay.transports import TransportVariant


class FakeTransport:
    """Stand-in transport recording verify and send calls."""

    def __init__(self, variant=TransportVariant.PRIMARY, *, verify_error=None, send_error=None, hang=False,
                 response="250 2.0.0 OK queued", verify_delay=0.0):
        self.variant = variant
        self.verify_error = verify_error
        self.send_error = send_error
        self.hang = hang
        self.response = response
        self.verify_delay = verify_delay
        self.verify_calls = 0
        self.sent = []
        self.release = asyncio.Event()

    def __repr__(self):
        return f"FakeTransport({self.variant.value})"

    async def verify(self, timeout):
        self.verify_calls += 1
        if self.verify_delay:
            await asyncio.sleep(self.verify_delay)
        if self.verify_error is not None:
            raise self.verify_error

    async def send(self, message):
        self.sent.append(message)
        if self.hang:
            await self.release.wait()
        if self.send_error is not None:
            raise self.send_error
        return SendReceipt(message_id=str(message["Message-ID"]), response=self.response)


class FactoryRecorder:
    """Callable factory returning one prepared transport and counting calls."""

    def __init__(self, transport):
        self.transport = transport
        self.calls = 0

    def __call__(self, *args):
        self.calls += 1
        return self.transport


@pytest.fixture
def smtp_settings():
    return SmtpSettings(host="smtp.example.com", port=465, fallback_port=587, user="relay@example.com", password="app-password")


@pytest.fixture
def delivery_settings():
    return DeliverySettings(
        from_address="noreply@example.com",
        from_name="Contact Relay",
        to_address="owner@example.com",
        send_timeout=1.0,
        verify_timeout=0.5,
    )


@pytest.fixture
def primary():
    return FakeTransport(TransportVariant.PRIMARY)


@pytest.fixture
def fallback():
    return FakeTransport(TransportVariant.FALLBACK)


@pytest.fixture
def console():
    return FakeTransport(TransportVariant.CONSOLE)


@pytest.fixture
def make_selector(smtp_settings, delivery_settings, primary, fallback, console):
    def factory(smtp=None, delivery=None, metrics=None):
        return TransportSelector(
            smtp or smtp_settings,
            delivery or delivery_settings,
            metrics=metrics,
            primary_factory=FactoryRecorder(primary),
            fallback_factory=FactoryRecorder(fallback),
            console_factory=FactoryRecorder(console),
        )

    return factory


@pytest.fixture
def selector(make_selector):
    return make_selector()


@pytest.fixture
def dispatcher(selector, delivery_settings):
    return Dispatcher(selector, delivery_settings)


@pytest.fixture
def relay_settings(smtp_settings, delivery_settings):
    settings = RelaySettings(smtp=smtp_settings, delivery=delivery_settings)
    settings.server.cors_origins = ("https://site.example.com",)
    return settings
