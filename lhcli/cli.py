"""CLI interface for lhcli, the Longhorn command-line client."""

import logging
import sys

import click

from lhcli import __build_date__, __version__
from lhcli.commands.backup import backup
from lhcli.commands.common import CLIContext, output_choice
from lhcli.commands.config import config
from lhcli.commands.monitor import monitor
from lhcli.commands.node import node
from lhcli.commands.pv import pv
from lhcli.commands.replica import replica
from lhcli.commands.settings import settings as settings_group
from lhcli.commands.snapshot import snapshot
from lhcli.commands.troubleshoot import diagnostics, troubleshoot
from lhcli.commands.volume import volume
from lhcli.core.formatter import console
from lhcli.settings import settings


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr, at debug level when asked for."""
    level = logging.DEBUG if verbose or settings.debug else logging.WARNING
    logging.basicConfig(level=level, format=settings.log_format, stream=sys.stderr, force=True)
    # Keep request logging of the client libraries out of normal runs
    if level > logging.DEBUG:
        for name in ("httpx", "httpcore", "kubernetes", "urllib3"):
            logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="lhcli")
@click.option("--config", "config_path", default=None, help="Config file (default ~/.lhcli/config.yaml)")
@click.option("--context", "context_name", default=None, help="Context to use instead of the current one")
@click.option("--namespace", "-n", default=None, help="Longhorn namespace (default from the context, else longhorn-system)")
@click.option("--output", "-o", type=output_choice(), default=None, help="Output format (default from the config, else table)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only print results, no success messages")
@click.option("--dry-run", is_flag=True, help="Show what would change without changing it")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str | None,
    context_name: str | None,
    namespace: str | None,
    output: str | None,
    verbose: bool,
    quiet: bool,
    dry_run: bool,
) -> None:
    """lhcli - Manage Longhorn volumes, nodes, replicas, snapshots and backups."""
    setup_logging(verbose)
    cli = ctx.ensure_object(CLIContext)
    ctx.call_on_close(cli.close)
    cli.config_path = config_path
    cli.context_name = context_name
    cli.namespace = namespace
    cli.output = output
    cli.verbose = verbose
    cli.quiet = quiet
    cli.dry_run = dry_run


@main.command()
def version() -> None:
    """Print version information."""
    console.print(f"Version: {__version__}", markup=False)
    if __build_date__:
        console.print(f"Build Date: {__build_date__}", markup=False)


main.add_command(volume)
main.add_command(node)
main.add_command(replica)
main.add_command(snapshot)
main.add_command(backup)
main.add_command(settings_group, name="settings")
main.add_command(monitor)
main.add_command(troubleshoot)
main.add_command(diagnostics)
main.add_command(diagnostics, name="diag")
main.add_command(pv)
main.add_command(config)


if __name__ == "__main__":
    main()
