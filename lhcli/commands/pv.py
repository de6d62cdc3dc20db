"""``lhcli pv`` commands."""

from typing import Optional

import click

from lhcli.commands.common import CLIContext, handle_errors, pass_cli, render

PV_HEADERS = ["PV", "VOLUME", "PVC", "NAMESPACE"]


@click.group()
def pv() -> None:
    """Work with Kubernetes PersistentVolumes backed by Longhorn."""
    pass


@pv.command("map")
@click.argument("name", required=False)
@pass_cli
def map_pvs(cli: CLIContext, name: Optional[str]) -> None:
    """Map PersistentVolumes to the Longhorn volumes behind them."""
    with handle_errors("Failed to map persistent volumes"):
        mappings = cli.client.list_pv_mappings(name)
        rows = [[m.pv, m.volume, m.pvc or "", m.namespace or ""] for m in mappings]
        render(cli, mappings, PV_HEADERS, rows)
