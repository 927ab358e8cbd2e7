# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the contact relay.

Metrics exposed (all with the ``relay_`` prefix):
    - ``relay_sent_total``: Counter of accepted messages per transport variant.
    - ``relay_errors_total``: Counter of failed dispatches per failure kind.
    - ``relay_transport_resolutions_total``: Counter of transport resolutions
      per chosen variant.

Example:
    Accessing metrics via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class RelayMetrics:
    """Prometheus metrics collector for the relay.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        sent: Counter tracking accepted messages.
        errors: Counter tracking failed dispatches.
        resolutions: Counter tracking transport resolutions.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.sent = Counter(
            "relay_sent_total",
            "Total messages accepted by a transport",
            ["transport"],
            registry=self.registry,
        )
        self.errors = Counter(
            "relay_errors_total",
            "Total failed dispatches",
            ["kind"],
            registry=self.registry,
        )
        self.resolutions = Counter(
            "relay_transport_resolutions_total",
            "Total transport resolutions",
            ["variant"],
            registry=self.registry,
        )

    def inc_sent(self, transport: str) -> None:
        self.sent.labels(transport=transport or "unknown").inc()

    def inc_error(self, kind: str) -> None:
        self.errors.labels(kind=kind or "unknown").inc()

    def inc_resolution(self, variant: str) -> None:
        self.resolutions.labels(variant=variant).inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
