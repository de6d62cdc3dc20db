"""``lhcli monitor`` commands."""

from typing import Callable, List, Sequence

import click
from rich.markup import escape
from rich.text import Text

from lhcli.commands.common import CLIContext, handle_errors, pass_cli
from lhcli.commands.node import node_headers, node_row
from lhcli.commands.volume import volume_headers, volume_row
from lhcli.core.formatter import (
    JSONFormatter,
    TableFormatter,
    console,
    format_age,
    get_formatter,
    is_structured,
    truncate_string,
)
from lhcli.core.models import Event
from lhcli.core.monitor import run_monitor
from lhcli.core.size import parse_duration

EVENT_HEADERS = ["LAST SEEN", "TYPE", "OBJECT", "REASON", "MESSAGE"]
MAX_MESSAGE_LEN = 100


def _interval(ctx: click.Context, param: click.Parameter, value: str) -> float:
    try:
        seconds = parse_duration(value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    if seconds <= 0:
        raise click.BadParameter("interval must be positive")
    return seconds


def interval_options(f: Callable) -> Callable:
    f = click.option(
        "--iterations",
        default=0,
        type=click.IntRange(min=0),
        help="Stop after this many refreshes (0 runs until interrupted)",
        show_default=True,
    )(f)
    f = click.option(
        "--interval",
        default="5s",
        callback=_interval,
        help="Refresh interval, e.g. 5s or 1m",
        show_default=True,
    )(f)
    return f


def _table(headers: Sequence[str], rows: List[List[str]]) -> Text:
    formatter = TableFormatter(headers)
    formatter.add_rows(rows)
    return formatter.render()


def event_row(event: Event) -> List[str]:
    return [
        format_age(event.last_timestamp or event.first_timestamp),
        event.type,
        event.object,
        event.reason,
        truncate_string(event.message, MAX_MESSAGE_LEN),
    ]


@click.group()
def monitor() -> None:
    """Watch Longhorn resources as they change."""
    pass


@monitor.command("volumes")
@interval_options
@pass_cli
def monitor_volumes(cli: CLIContext, interval: float, iterations: int) -> None:
    """Show a live-refreshing volume table."""
    with handle_errors("Failed to monitor volumes"):
        client = cli.client

        def fetch() -> Text:
            volumes = client.list_volumes()
            return _table(volume_headers(cli.wide), [volume_row(v, cli.wide) for v in volumes])

        run_monitor("Volumes", fetch, interval, iterations, console=console)


@monitor.command("nodes")
@interval_options
@pass_cli
def monitor_nodes(cli: CLIContext, interval: float, iterations: int) -> None:
    """Show a live-refreshing node table."""
    with handle_errors("Failed to monitor nodes"):
        client = cli.client

        def fetch() -> Text:
            nodes = client.list_nodes()
            return _table(node_headers(cli.wide), [node_row(n, cli.wide) for n in nodes])

        run_monitor("Nodes", fetch, interval, iterations, console=console)


@monitor.command("events")
@click.option("--follow", "-f", is_flag=True, help="Keep streaming new events")
@click.option(
    "--type",
    "event_type",
    type=click.Choice(["Normal", "Warning"], case_sensitive=False),
    help="Only show events of this type",
)
@click.option("--resource", default=None, help="Only show events about this kind, e.g. volume or node")
@click.option("--name", default=None, help="Only show events about the resource with this name")
@pass_cli
def monitor_events(
    cli: CLIContext,
    follow: bool,
    event_type: str | None,
    resource: str | None,
    name: str | None,
) -> None:
    """Show Kubernetes events about Longhorn resources."""
    structured = is_structured(cli.output_format)
    with handle_errors("Failed to get events"):
        if not follow:
            events = cli.client.list_events(resource=resource, name=name, event_type=event_type)
            if structured:
                get_formatter(cli.output_format).format(events)
            elif not events:
                console.print("No events found")
            else:
                formatter = TableFormatter(EVENT_HEADERS)
                formatter.add_rows(event_row(e) for e in events)
                formatter.format()
            return

        # One line per event so the stream can be piped
        line = JSONFormatter(pretty=False)
        try:
            for event in cli.client.watch_events(resource=resource, name=name, event_type=event_type):
                _print_event(event, structured, line)
        except KeyboardInterrupt:
            pass


def _print_event(event: Event, structured: bool, line: JSONFormatter) -> None:
    if structured:
        console.out(line.render(event), highlight=False)
        return
    age, kind, obj, reason, message = event_row(event)
    color = "yellow" if kind == "Warning" else "green"
    console.print(
        f"{age:<8} [{color}]{kind:<8}[/{color}] {escape(obj)} {escape(reason)}: {escape(message)}",
        soft_wrap=True,
    )
