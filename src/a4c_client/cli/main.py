"""Main CLI entry point for a4c-client.

Provides commands that drive an Alien4Cloud server and follow the
resulting operations to completion:
    a4c deploy <app> --template <topology-template>
    a4c undeploy <app> [--delete]
    a4c run-workflow <app> <workflow> [--events]
    a4c status <app>
    a4c logs <app> [--execution <id>]
    a4c upload-csar <archive.zip>

Connection options fall back to A4C_* environment variables.
"""

import asyncio
import logging
from typing import Any

import click

from .. import __version__
from ..client import A4CClient
from ..config import ClientConfig
from ..exceptions import A4CError
from ..models import Event, LogEntry
from ..monitor import OperationMonitor, format_event, format_log_entry

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_config() -> ClientConfig:
    """Build the client configuration from global options, config file and environment.

    Raises:
        click.ClickException: If the configuration is invalid
    """
    options: dict[str, Any] = dict(click.get_current_context().find_root().obj or {})
    config_file = options.pop("config_file", None)
    try:
        if config_file:
            return ClientConfig.from_file(config_file, **options)
        return ClientConfig.from_env(**options)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from None


def get_client() -> A4CClient:
    """Create a client for the configured server (log in with ``async with``)."""
    return A4CClient(get_config())


def get_monitor(client: A4CClient) -> OperationMonitor:
    """Create an operation monitor printing logs and events to stdout."""
    return OperationMonitor.from_client(client, log_sink=echo_log, event_sink=echo_event)


def echo_log(entry: LogEntry) -> None:
    click.echo(format_log_entry(entry))


def echo_event(event: Event) -> None:
    click.echo(f"Event received: {format_event(event)}")


def run_async(coro: Any) -> Any:
    """Run an async coroutine synchronously, reporting client errors as CLI errors."""
    try:
        return asyncio.run(coro)
    except A4CError as e:
        raise click.ClickException(str(e)) from None


@click.group()
@click.version_option(version=__version__, prog_name="a4c-client")
@click.option("--url", help="Alien4Cloud URL [env: A4C_URL]")
@click.option("--user", help="User name [env: A4C_USER]")
@click.option("--password", help="Password [env: A4C_PASSWORD]")
@click.option("--ca-file", type=click.Path(dir_okay=False), help="CA bundle for https")
@click.option("--skip-secure", is_flag=True, help="Do not verify the server certificate")
@click.option(
    "--config-file", type=click.Path(exists=True, dir_okay=False), help="YAML configuration"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def cli(
    ctx: click.Context,
    url: str | None,
    user: str | None,
    password: str | None,
    ca_file: str | None,
    skip_secure: bool,
    config_file: str | None,
    log_level: str,
) -> None:
    """a4c - deploy and operate applications on Alien4Cloud.

    \b
    Application lifecycle:
        a4c deploy <app> --template <topology-template>
        a4c status <app>
        a4c logs <app>
        a4c undeploy <app> --delete

    \b
    Workflows and catalog:
        a4c run-workflow <app> <workflow> --events
        a4c upload-csar <archive.zip>
    """
    logging.basicConfig(level=log_level.upper(), format=_LOG_FORMAT)
    ctx.obj = {
        "url": url,
        "user": user,
        "password": password,
        "ca_file": ca_file,
        "skip_secure": True if skip_secure else None,
        "config_file": config_file,
    }


def main() -> None:
    """Main entry point."""
    cli()


# Command modules register themselves on ``cli``
from . import catalog, lifecycle, workflow  # noqa: E402,F401

if __name__ == "__main__":
    main()
