"""Command-line interface for the contact relay.

Usage:
    contact-relay serve --port 10000
    contact-relay verify
    contact-relay send --to ops@example.com --subject "Test" --text "Hello"

All commands read their configuration from the environment, like the server.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import click
import uvicorn
from rich.console import Console
from rich.table import Table

from contact_relay import __version__
from contact_relay.dispatcher import create_dispatcher
from contact_relay.errors import ConfigurationError
from contact_relay.logger import configure_logging, mask_address
from contact_relay.models import MailRequest
from contact_relay.selector import TransportSelector
from contact_relay.settings import RelaySettings, load_settings
from contact_relay.transports import TransportVariant

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


@click.group()
@click.version_option(__version__)
@click.option("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR).")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Contact-form relay: HTTP submissions delivered over SMTP."""
    settings = load_settings()
    if log_level:
        settings.log_level = log_level.upper()
    configure_logging(settings.log_level)
    ctx.obj = settings


@main.command()
@click.option("--host", "-h", default=None, help="Host to bind to (default: HOST or 0.0.0.0).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: PORT or 10000).")
@click.pass_obj
def serve(settings: RelaySettings, host: str | None, port: int | None) -> None:
    """Run the HTTP API with uvicorn."""
    uvicorn.run(
        "contact_relay.server:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_level=settings.log_level.lower(),
    )


@main.command()
@click.pass_obj
def verify(settings: RelaySettings) -> None:
    """Resolve the mail transport and report which variant was chosen."""
    selector = TransportSelector(settings.smtp, settings.delivery)
    try:
        transport = run_async(selector.resolve())
    except ConfigurationError as exc:
        print_error(str(exc))
        sys.exit(1)

    table = Table(title="Email transport")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Variant", transport.variant.value)
    table.add_row("Host", str(getattr(transport, "host", "-")))
    table.add_row("Port", str(getattr(transport, "port", "-")))
    table.add_row("User", mask_address(settings.smtp.user))
    table.add_row("Verified", "yes" if settings.delivery.verify_transport else "skipped")
    console.print(table)

    if transport.variant is TransportVariant.CONSOLE:
        err_console.print("[yellow]Warning:[/yellow] no SMTP relay available, emails will only be logged")
    else:
        print_success(f"Using {transport.variant.value} SMTP configuration")


@main.command()
@click.option("--to", "to", default=None, help="Recipient (default: TO_EMAIL).")
@click.option("--subject", "-s", required=True, help="Subject line.")
@click.option("--text", default=None, help="Plain text body.")
@click.option("--html", default=None, help="HTML body.")
@click.pass_obj
def send(settings: RelaySettings, to: str | None, subject: str, text: str | None, html: str | None) -> None:
    """Dispatch a single message and print the result."""
    dispatcher = create_dispatcher(settings)
    request = MailRequest(to=to or settings.delivery.to_address, subject=subject, text=text, html=html)

    async def _send():
        result = await dispatcher.dispatch(request)
        await dispatcher.drain(timeout=settings.delivery.send_timeout)
        return result

    result = run_async(_send())
    print_json(result.model_dump(mode="json"))
    if not result.ok:
        print_error(result.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
