# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration dataclasses for the contact relay.

Settings are read from the process environment only and grouped into nested
structures for clean parameter organization:

- settings.smtp.host
- settings.delivery.send_timeout
- settings.server.cors_origins
- settings.keepalive.interval

Example:
    Loading settings at the composition root::

        settings = load_settings()
        selector = TransportSelector(settings.smtp, settings.delivery)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from .logger import get_logger

logger = get_logger("Settings")

DEFAULT_FROM_ADDRESS = "noreply@localhost"
DEFAULT_FROM_NAME = "Contact Relay"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://localhost:3001")


class SecretPolicy(str, Enum):
    """What transport resolution does when SMTP credentials are missing.

    Attributes:
        STRICT: Fail with a configuration error.
        PERMISSIVE: Degrade to the console transport.
    """

    STRICT = "strict"
    PERMISSIVE = "permissive"


@dataclass
class SmtpSettings:
    """SMTP relay account and endpoints."""

    host: str = "smtp.gmail.com"
    """Relay hostname shared by the primary and fallback configurations."""

    port: int = 465
    """Primary port. 465 uses implicit TLS, anything else STARTTLS."""

    fallback_port: int = 587
    """Port tried once when the primary fails verification."""

    user: str | None = None
    password: str | None = field(default=None, repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.user) and bool(self.password)


@dataclass
class DeliverySettings:
    """Sender identity, recipient and delivery bounds."""

    from_address: str | None = None
    from_name: str = DEFAULT_FROM_NAME
    to_address: str | None = None
    """Recipient of contact-form submissions."""

    send_timeout: float = 20.0
    verify_timeout: float = 10.0
    verify_transport: bool = True
    secret_policy: SecretPolicy = SecretPolicy.PERMISSIVE


@dataclass
class ServerSettings:
    """HTTP server and deployment environment."""

    host: str = "0.0.0.0"
    port: int = 10000
    environment: str = "development"
    service_name: str = "Contact Relay"
    service_url: str | None = None
    on_render: bool = False
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    static_dir: str | None = None

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def public_url(self) -> str:
        return (self.service_url or f"http://localhost:{self.port}").rstrip("/")


@dataclass
class KeepAliveSettings:
    """Self-ping timing."""

    interval: float = 25.0
    initial_delay: float = 30.0


@dataclass
class RelaySettings:
    """Main configuration container.

    Groups all configuration into logical nested structures:
    - smtp: Relay account and ports
    - delivery: Sender, recipient, timeouts and missing-secret policy
    - server: HTTP binding, environment and CORS
    - keepalive: Self-ping timing
    """

    smtp: SmtpSettings = field(default_factory=SmtpSettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    keepalive: KeepAliveSettings = field(default_factory=KeepAliveSettings)
    log_level: str = "INFO"

    @property
    def keepalive_enabled(self) -> bool:
        return self.server.is_production or self.server.on_render


def load_settings(environ: Mapping[str, str] | None = None) -> RelaySettings:
    """Build :class:`RelaySettings` from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        Fully populated settings; missing or invalid values fall back to
        defaults.
    """
    env = os.environ if environ is None else environ

    def get(*names: str, default: str | None = None) -> str | None:
        for name in names:
            value = env.get(name)
            if value is not None and value.strip():
                return value.strip()
        return default

    def get_int(name: str, default: int) -> int:
        value = get(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid int for {name}, using default {default}")
            return default

    def get_float(name: str, default: float) -> float:
        value = get(name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid float for {name}, using default {default}")
            return default

    def get_bool(name: str, default: bool) -> bool:
        value = get(name)
        if value is None:
            return default
        normalized = value.lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
        logger.warning(f"Invalid bool for {name}, using default {default}")
        return default

    policy_value = (get("RELAY_MISSING_SECRET_POLICY") or SecretPolicy.PERMISSIVE.value).lower()
    try:
        policy = SecretPolicy(policy_value)
    except ValueError:
        logger.warning(f"Unknown RELAY_MISSING_SECRET_POLICY {policy_value!r}, using permissive")
        policy = SecretPolicy.PERMISSIVE

    origins_value = get("CORS_ORIGINS")
    if origins_value:
        cors_origins = tuple(origin.strip() for origin in origins_value.split(",") if origin.strip())
    else:
        cors_origins = DEFAULT_CORS_ORIGINS

    smtp = SmtpSettings(
        host=get("SMTP_HOST", default="smtp.gmail.com"),
        port=get_int("SMTP_PORT", 465),
        fallback_port=get_int("SMTP_FALLBACK_PORT", 587),
        user=get("SMTP_EMAIL", "EMAIL_USER"),
        password=get("SMTP_PASSWORD", "EMAIL_APP_PASSWORD", "EMAIL_PASSWORD"),
    )
    delivery = DeliverySettings(
        from_address=get("FROM_EMAIL"),
        from_name=get("FROM_NAME", default=DEFAULT_FROM_NAME),
        to_address=get("TO_EMAIL"),
        send_timeout=get_float("RELAY_SEND_TIMEOUT", 20.0),
        verify_timeout=get_float("RELAY_VERIFY_TIMEOUT", 10.0),
        verify_transport=get_bool("RELAY_VERIFY_TRANSPORT", True),
        secret_policy=policy,
    )
    server = ServerSettings(
        host=get("HOST", default="0.0.0.0"),
        port=get_int("PORT", 10000),
        environment=(get("ENVIRONMENT", "NODE_ENV", default="development")).lower(),
        service_url=get("RENDER_EXTERNAL_URL", "SERVICE_URL"),
        on_render=bool(get("RENDER")),
        cors_origins=cors_origins,
        static_dir=get("STATIC_DIR"),
    )
    keepalive = KeepAliveSettings(
        interval=get_float("KEEPALIVE_INTERVAL", 25.0),
        initial_delay=get_float("KEEPALIVE_INITIAL_DELAY", 30.0),
    )
    return RelaySettings(
        smtp=smtp,
        delivery=delivery,
        server=server,
        keepalive=keepalive,
        log_level=get("LOG_LEVEL", default="INFO").upper(),
    )
