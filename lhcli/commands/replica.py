"""``lhcli replica`` commands."""

from typing import List, Optional

import click

from lhcli.commands.common import CLIContext, handle_errors, pass_cli, print_fields, render
from lhcli.core.formatter import format_bool, get_formatter, is_structured, truncate_string
from lhcli.core.models import Replica
from lhcli.core.size import format_size

REPLICA_HEADERS = ["NAME", "VOLUME", "NODE", "DISK PATH", "SIZE", "STATE"]
REPLICA_WIDE_HEADERS = ["NAME", "VOLUME", "NODE", "DISK ID", "DISK PATH", "SIZE", "STATE", "RUNNING", "IP"]

MAX_NAME_LEN = 40
MAX_VOLUME_LEN = 30
MAX_DISK_ID_LEN = 20
MAX_DETAIL_DISK_ID_LEN = 60


def _human_size(size: str) -> str:
    # Sizes arrive as byte counts in strings; anything else is shown as is
    if size and size != "0" and size.isdigit():
        return format_size(int(size))
    return size


def replica_row(replica: Replica, wide: bool = False, full_ids: bool = False) -> List[str]:
    if wide:
        disk_id = replica.disk_id if full_ids else truncate_string(replica.disk_id, MAX_DISK_ID_LEN)
        return [
            replica.name,
            replica.volume_name,
            replica.node_id,
            disk_id,
            replica.disk_path,
            _human_size(replica.size),
            replica.state,
            format_bool(replica.running),
            replica.ip,
        ]
    name, volume = replica.name, replica.volume_name
    if not full_ids:
        name = truncate_string(name, MAX_NAME_LEN)
        volume = truncate_string(volume, MAX_VOLUME_LEN)
    return [name, volume, replica.node_id, replica.disk_path, _human_size(replica.size), replica.state]


def filter_replicas(
    replicas: List[Replica],
    volume: Optional[str] = None,
    node: Optional[str] = None,
) -> List[Replica]:
    """Keep replicas of ``volume`` and/or on ``node``."""
    return [
        r for r in replicas
        if (not volume or r.volume_name == volume) and (not node or r.node_id == node)
    ]


def print_replica_details(replica: Replica, full_ids: bool = False) -> None:
    disk_id = replica.disk_id if full_ids else truncate_string(replica.disk_id, MAX_DETAIL_DISK_ID_LEN)
    fields = [
        ("Name", replica.name),
        ("Volume", replica.volume_name),
        ("Node", replica.node_id),
        ("Disk ID", disk_id),
        ("Disk Path", replica.disk_path),
        ("Data Path", replica.data_path),
        ("State", replica.state),
        ("Running", format_bool(replica.running)),
    ]
    if replica.size and replica.size != "0":
        fields.append(("Size", _human_size(replica.size)))
    if replica.actual_size and replica.actual_size != "0":
        fields.append(("Size (Actual)", _human_size(replica.actual_size)))
    if replica.ip:
        fields += [("IP", replica.ip), ("Port", replica.port)]
    if replica.instance_manager:
        fields.append(("Instance Manager", replica.instance_manager))
    if replica.image:
        fields.append(("Image", replica.image))
    if replica.current_image and replica.current_image != replica.image:
        fields.append(("Current Image", replica.current_image))
    if replica.failed_at:
        fields.append(("Failed At", replica.failed_at))
    if replica.data_engine:
        fields.append(("Data Engine", replica.data_engine))
    print_fields(fields)


@click.group()
def replica() -> None:
    """Inspect and delete volume replicas."""
    pass


@replica.command("list")
@click.option("--volume", default=None, help="Only show replicas of this volume")
@click.option("--node", default=None, help="Only show replicas on this node")
@click.option("--full-ids", is_flag=True, help="Do not abbreviate long names and IDs")
@pass_cli
def list_replicas(cli: CLIContext, volume: str | None, node: str | None, full_ids: bool) -> None:
    """List replicas."""
    with handle_errors("Failed to list replicas"):
        replicas = filter_replicas(cli.client.list_replicas(), volume, node)
        headers = REPLICA_WIDE_HEADERS if cli.wide else REPLICA_HEADERS
        render(cli, replicas, headers, [replica_row(r, cli.wide, full_ids) for r in replicas])


@replica.command("get")
@click.argument("name")
@click.option("--full-ids", is_flag=True, help="Do not abbreviate long IDs")
@pass_cli
def get_replica(cli: CLIContext, name: str, full_ids: bool) -> None:
    """Show a single replica."""
    with handle_errors(f"Failed to get replica {name}"):
        r = cli.client.get_replica(name)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(r)
        else:
            print_replica_details(r, full_ids)


@replica.command("delete")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@pass_cli
def delete_replica(cli: CLIContext, name: str, force: bool) -> None:
    """Delete a replica. Longhorn rebuilds it if the volume is short of replicas."""
    with handle_errors(f"Failed to delete replica {name}"):
        if not cli.confirm(f"Are you sure you want to delete replica {name}?", force):
            return
        r = cli.client.get_replica(name)
        if cli.skip_for_dry_run(f"would delete replica {name} of volume {r.volume_name} on node {r.node_id}"):
            return
        cli.info(f"Deleting replica {name} from volume {r.volume_name} on node {r.node_id}...")
        cli.client.delete_replica(name)
        cli.success(f"Replica {name} deleted successfully")
        cli.info("The volume rebuilds a new replica if numberOfReplicas is higher than the remaining replicas")
