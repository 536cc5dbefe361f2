"""Click-based CLI entry point for monitor-stream.

This module provides the ``main`` Click group with two subcommands:

- ``watch``: stay connected and print every event and every change of the
  active agent, current command, and connection state.
- ``snapshot``: connect, wait for the replayed history, print the current
  state and the latest events, and exit.

Usage examples::

    # Follow the default local monitor server
    monitor-stream watch

    # Follow a remote server with a shorter reconnect interval
    monitor-stream watch --url ws://build-box:4001/stream --reconnect-interval 1

    # One-shot view of the last 20 CommandStart events as JSON
    monitor-stream snapshot --event-type CommandStart --limit 20 --json
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Optional

import click
from pydantic import ValidationError

from monitor_stream.client import MonitorClient
from monitor_stream.config import URL_ENV_VAR, MonitorConfig
from monitor_stream.errors import RECONNECT_EXHAUSTED_MESSAGE, ReconnectExhausted
from monitor_stream.models import (
    CommandStatus,
    EventFilter,
    MonitorEvent,
    StateSnapshot,
    UpdateKind,
)

logger = logging.getLogger(__name__)

# Colour map for event type badges.
_COLORS = {
    "AgentActivated": "cyan",
    "AgentDeactivated": "bright_black",
    "CommandStart": "yellow",
    "CommandComplete": "green",
    "CommandError": "red",
}

_STATUS_COLORS = {
    CommandStatus.RUNNING: "yellow",
    CommandStatus.COMPLETE: "green",
    CommandStatus.ERROR: "red",
}


# ---------------------------------------------------------------------------
# Logging setup helper
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    """Configure root logging level and format.

    Args:
        verbose: If ``True``, set level to DEBUG; otherwise WARNING, so log
            lines do not interleave with the rendered stream.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt=datefmt,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # Quieten noisy third-party loggers unless in verbose mode
    if not verbose:
        logging.getLogger("websockets").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)


def _build_config(**overrides: Any) -> MonitorConfig:
    """Build a config from CLI overrides, exiting with a message when invalid."""
    try:
        return MonitorConfig.from_env(**overrides)
    except ValidationError as exc:
        click.echo(click.style(f"  Error: invalid configuration: {exc}", fg="red"), err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _format_event(event: MonitorEvent) -> str:
    """Render one event as a single coloured line."""
    color = _COLORS.get(event.type, "white")
    badge = click.style(f"[{event.type:<16}]", fg=color)
    ts = click.style(str(event.timestamp), fg="bright_black")
    details = ""
    if event.data:
        details = " " + json.dumps(event.data, sort_keys=True, default=str)[:100]
    return f"  {ts} {badge}{details}"


def _format_status(snapshot: StateSnapshot) -> str:
    """Render connection, agent, and command state as one line."""
    conn = snapshot.connection
    if conn.connected:
        link = click.style("connected", fg="green")
    elif conn.connecting:
        link = click.style("connecting", fg="yellow")
    else:
        link = click.style("disconnected", fg="red")
    if conn.error:
        link += click.style(f" ({conn.error})", fg="red")

    agent = snapshot.active_agent
    agent_str = "-"
    if agent is not None:
        agent_str = agent.name + (f" ({agent.persona})" if agent.persona else "")

    command = snapshot.current_command
    command_str = "-"
    if command is not None:
        command_str = command.name + " " + click.style(
            command.status.value, fg=_STATUS_COLORS[command.status]
        )

    return f"  {link} | agent: {agent_str} | command: {command_str}"


# ---------------------------------------------------------------------------
# Click CLI definition
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="monitor-stream", prog_name="monitor-stream")
def main() -> None:
    """monitor-stream: live view of agent activity from a monitor server.

    Connects over WebSocket, replays the server's recent history, and follows
    live events, reconnecting automatically when the connection drops.
    """


@main.command()
@click.option(
    "--url",
    default=None,
    envvar=URL_ENV_VAR,
    help="Monitor server WebSocket URL.  [default: ws://localhost:4001/stream]",
)
@click.option(
    "--reconnect-interval",
    default=None,
    type=click.FloatRange(min=0.1),
    help="Seconds between reconnect attempts.  [default: 3.0]",
)
@click.option(
    "--max-reconnect-attempts",
    default=None,
    type=click.IntRange(min=0),
    help="Reconnect attempts before giving up.  [default: 10]",
)
@click.option(
    "--heartbeat-interval",
    default=None,
    type=click.FloatRange(min=0.1),
    help="Seconds between heartbeat pings.  [default: 30.0]",
)
@click.option(
    "--max-events",
    default=None,
    type=click.IntRange(min=1),
    help="Capacity of the in-memory event log.  [default: 1000]",
)
@click.option(
    "--quiet-events",
    is_flag=True,
    default=False,
    help="Only print state changes, not individual events.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug logging.",
)
def watch(
    url: Optional[str],
    reconnect_interval: Optional[float],
    max_reconnect_attempts: Optional[int],
    heartbeat_interval: Optional[float],
    max_events: Optional[int],
    quiet_events: bool,
    verbose: bool,
) -> None:
    """Follow the monitor server and print activity until interrupted.

    \b
    Examples:
        monitor-stream watch
        monitor-stream watch --url ws://build-box:4001/stream
        monitor-stream watch --quiet-events --reconnect-interval 1
    """
    _configure_logging(verbose)
    config = _build_config(
        url=url,
        reconnect_interval=reconnect_interval,
        max_reconnect_attempts=max_reconnect_attempts,
        heartbeat_interval=heartbeat_interval,
        max_events=max_events,
    )

    click.echo()
    click.echo(click.style("  monitor-stream", fg="cyan", bold=True) + " - live agent activity")
    click.echo(f"  {'Server:':<12}" + click.style(config.url, fg="white"))
    click.echo(click.style("  Press Ctrl+C to stop.", fg="bright_black"))
    click.echo()

    try:
        asyncio.run(_watch(MonitorClient(config), show_events=not quiet_events))
    except KeyboardInterrupt:
        click.echo(click.style("\n  Interrupted.", fg="yellow"), err=True)
    except ReconnectExhausted as exc:
        click.echo(click.style(f"  {exc}", fg="red", bold=True), err=True)
        sys.exit(1)

    click.echo(click.style("  monitor-stream stopped.", fg="bright_black"), err=True)


async def _watch(client: MonitorClient, show_events: bool) -> None:
    """Print updates from ``client`` until the bus closes or reconnection fails."""
    last_status: Optional[str] = None
    async with client:
        async with client.bus.subscribe() as queue:
            while True:
                update = await queue.get()
                if update is None:
                    break

                if update.kind is UpdateKind.SNAPSHOT:
                    click.echo(
                        click.style(
                            f"  Replayed {update.snapshot.event_count} events",
                            fg="bright_black",
                        )
                    )
                elif update.kind is UpdateKind.EVENT and show_events and update.event:
                    click.echo(_format_event(update.event))

                status = _format_status(update.snapshot)
                if status != last_status:
                    click.echo(status)
                    last_status = status

                if update.snapshot.connection.error == RECONNECT_EXHAUSTED_MESSAGE:
                    raise ReconnectExhausted()


@main.command(name="snapshot")
@click.option(
    "--url",
    default=None,
    envvar=URL_ENV_VAR,
    help="Monitor server WebSocket URL.  [default: ws://localhost:4001/stream]",
)
@click.option(
    "--timeout",
    default=10.0,
    show_default=True,
    type=click.FloatRange(min=0.1),
    help="Seconds to wait for the replayed history.",
)
@click.option(
    "--event-type",
    "-t",
    default=None,
    help="Only list events of this type (e.g. CommandStart).",
)
@click.option(
    "--limit",
    "-n",
    default=20,
    show_default=True,
    type=click.IntRange(1, 1000),
    help="Maximum number of events to list.",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print machine-readable JSON instead of coloured text.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug logging.",
)
def show_snapshot(
    url: Optional[str],
    timeout: float,
    event_type: Optional[str],
    limit: int,
    as_json: bool,
    verbose: bool,
) -> None:
    """Print the current agent, command, and latest events, then exit.

    \b
    Examples:
        monitor-stream snapshot
        monitor-stream snapshot --event-type CommandError --limit 5
        monitor-stream snapshot --json
    """
    _configure_logging(verbose)
    config = _build_config(url=url)
    client = MonitorClient(config)

    try:
        snapshot = asyncio.run(_take_snapshot(client, timeout))
    except asyncio.TimeoutError:
        click.echo(
            click.style(f"No snapshot received from {config.url} within {timeout}s", fg="red"),
            err=True,
        )
        sys.exit(1)
    except ReconnectExhausted as exc:
        click.echo(click.style(str(exc), fg="red"), err=True)
        sys.exit(1)

    store = client.state.store
    total = store.count(EventFilter(event_type=event_type))
    events = store.query(
        EventFilter(event_type=event_type, limit=limit, offset=max(0, total - limit))
    )

    if as_json:
        payload = {
            "state": snapshot.model_dump(mode="json"),
            "events": [e.model_dump(mode="json") for e in events],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo()
    click.echo(_format_status(snapshot))
    click.echo()
    if not events:
        click.echo(click.style("  No events found.", fg="yellow"))
        return
    click.echo(
        click.style(f"  Showing {len(events)} of {total} matching events", fg="bright_black")
    )
    click.echo()
    for evt in events:
        click.echo(_format_event(evt))
    click.echo()


async def _take_snapshot(client: MonitorClient, timeout: float) -> StateSnapshot:
    async with client:
        return await client.wait_for_snapshot(timeout=timeout)


# ---------------------------------------------------------------------------
# Entry point guard
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
