"""FleetMux command line entry point.

Commands:
    - doctor: check connectivity and tmux state for every configured host
    - serve: run the monitor with the read-only web status API
"""

import asyncio
import sys

import click

from fleetmux import config
from fleetmux.doctor import Doctor
from fleetmux.errors import ConfigError
from fleetmux.remote.executor import SshExecutor
from fleetmux.settings import FleetSettings, load_settings
from fleetmux.telemetry import setup_logging

__all__ = ["main"]


def _load(config_path: str | None) -> FleetSettings:
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    if not settings.hosts:
        click.echo(click.style("Error: config has no hosts", fg="red"), err=True)
        sys.exit(1)
    return settings


@click.group()
@click.option("--log-level", help="Log level (default from FLEETMUX_LOG_LEVEL)", type=str)
def main(log_level: str | None) -> None:
    """Monitor tmux panes across a fleet of hosts over ssh."""
    setup_logging(log_level)


@main.command(name="doctor")
@click.option("--config", "config_path", help="Config file path", type=click.Path())
def doctor(config_path: str | None) -> None:
    """Resolve each host and report its tmux windows and panes.

    \b
    Examples:
        fleetmux doctor
        fleetmux doctor --config ./fleet.toml
    """
    settings = _load(config_path)
    ssh = settings.ssh_options()
    results = asyncio.run(Doctor(SshExecutor(ssh)).run(settings.host_configs(), ssh))
    if not all(results.values()):
        sys.exit(1)


@main.command(name="serve")
@click.option("--config", "config_path", help="Config file path", type=click.Path())
@click.option("--host", default=config.WEB_HOST, show_default=True, help="Bind address")
@click.option("--port", default=config.WEB_PORT, show_default=True, type=int, help="Bind port")
def serve(config_path: str | None, host: str, port: int) -> None:
    """Poll the tracked panes and serve their state over HTTP/WebSocket."""
    from fleetmux.web import start_server

    settings = _load(config_path)
    if not settings.tracked:
        click.echo(click.style("Warning: no tracked panes configured", fg="yellow"), err=True)
    try:
        asyncio.run(start_server(settings, host=host, port=port))
    except KeyboardInterrupt:
        click.echo("\nServer stopped")


if __name__ == "__main__":
    main()
