"""Contact-form relay microservice with fallback SMTP transport selection.

This package receives contact-form submissions over HTTP and relays them as
email through an SMTP provider. It includes:

- Lazy, lock-guarded transport selection (primary SMTP, fallback SMTP,
  console degradation)
- Timeout-bounded dispatch that always returns a result record
- FastAPI REST API with CORS and optional static frontend
- Self-ping keep-alive for hosts that idle free-tier processes
- Prometheus metrics for monitoring

Example:
    Basic usage with the FastAPI application::

        from contact_relay.api import create_app
        from contact_relay.settings import load_settings

        app = create_app(load_settings())
"""

__version__ = "1.0.0"
