"""``lhcli node`` commands."""

from typing import List

import click

from lhcli.commands.common import (
    CLIContext,
    handle_errors,
    pass_cli,
    print_fields,
    render,
    size_option,
)
from lhcli.core.formatter import (
    console,
    format_age,
    format_bool,
    format_list,
    format_percent,
    get_formatter,
    is_structured,
)
from lhcli.core.models import DiskUpdate, Node
from lhcli.core.size import format_size

NODE_HEADERS = ["NAME", "STATUS", "SCHEDULABLE", "AGE", "REGION", "ZONE"]
NODE_WIDE_HEADERS = ["NAME", "STATUS", "SCHEDULABLE", "DISKS", "REPLICAS", "TAGS", "AGE"]


def node_headers(wide: bool = False) -> List[str]:
    return NODE_WIDE_HEADERS if wide else NODE_HEADERS


def node_row(node: Node, wide: bool = False) -> List[str]:
    if wide:
        return [
            node.name,
            node.status,
            format_bool(node.allow_scheduling),
            str(len(node.disks)),
            str(node.scheduled_replica_count),
            ",".join(node.tags) or "<none>",
            format_age(node.created),
        ]
    return [
        node.name,
        node.status,
        format_bool(node.allow_scheduling),
        format_age(node.created),
        node.region,
        node.zone,
    ]


def print_node_details(node: Node) -> None:
    print_fields([
        ("Name", node.name),
        ("Address", node.address),
        ("Status", node.status),
        ("Schedulable", format_bool(node.allow_scheduling)),
        ("Eviction Requested", format_bool(node.eviction_requested)),
        ("Region", node.region),
        ("Zone", node.zone),
        ("Tags", format_list(node.tags)),
    ])

    console.print("\nConditions:")
    for name, condition in node.conditions.items():
        color = "green" if condition.status == "True" else "red"
        console.print(f"  {name}: [{color}]{condition.status}[/{color}]")
        if condition.message:
            console.print(f"    Message: {condition.message}", markup=False, soft_wrap=True)

    console.print("\nDisks:")
    if not node.disks:
        console.print("  <none>", markup=False)
        return
    for disk_id, disk in node.disks.items():
        console.print(f"  {disk_id}:", markup=False)
        lines = [
            ("Path", disk.path),
            ("Type", disk.disk_type),
            ("Schedulable", format_bool(disk.allow_scheduling)),
            ("Storage Maximum", format_size(disk.storage_maximum)),
            (
                "Storage Available",
                f"{format_size(disk.storage_available)} "
                f"({format_percent(disk.storage_available, disk.storage_maximum)})",
            ),
            ("Storage Reserved", format_size(disk.storage_reserved)),
            ("Storage Scheduled", format_size(disk.storage_scheduled)),
        ]
        if disk.tags:
            lines.append(("Tags", ", ".join(disk.tags)))
        width = max(len(label) for label, _ in lines) + 2
        for label, value in lines:
            console.print(f"    {label + ':':<{width}}{value}", markup=False)


@click.group()
def node() -> None:
    """Manage Longhorn nodes, their scheduling, tags and disks."""
    pass


@node.command("list")
@pass_cli
def list_nodes(cli: CLIContext) -> None:
    """List all nodes."""
    with handle_errors("Failed to list nodes"):
        nodes = cli.client.list_nodes()
        render(cli, nodes, node_headers(cli.wide), [node_row(n, cli.wide) for n in nodes])


@node.command("get")
@click.argument("name")
@pass_cli
def get_node(cli: CLIContext, name: str) -> None:
    """Show a single node with its disks."""
    with handle_errors(f"Failed to get node {name}"):
        n = cli.client.get_node(name)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(n)
        else:
            print_node_details(n)


# Scheduling

@node.group()
def scheduling() -> None:
    """Enable or disable scheduling on a node."""
    pass


@scheduling.command("enable")
@click.argument("name")
@pass_cli
def enable_scheduling(cli: CLIContext, name: str) -> None:
    """Allow new replicas on a node."""
    with handle_errors("Failed to enable scheduling"):
        if cli.skip_for_dry_run(f"would enable scheduling on node {name}"):
            return
        cli.client.enable_node_scheduling(name)
        cli.success(f"Scheduling enabled on node {name}")


@scheduling.command("disable")
@click.argument("name")
@pass_cli
def disable_scheduling(cli: CLIContext, name: str) -> None:
    """Stop scheduling new replicas on a node."""
    with handle_errors("Failed to disable scheduling"):
        if cli.skip_for_dry_run(f"would disable scheduling on node {name}"):
            return
        cli.client.disable_node_scheduling(name)
        cli.success(f"Scheduling disabled on node {name}")


@node.command("evict")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@pass_cli
def evict_node(cli: CLIContext, name: str, force: bool) -> None:
    """Request eviction of every replica on a node."""
    with handle_errors("Failed to evict node"):
        if not cli.confirm(f"Are you sure you want to evict all replicas from node {name}?", force):
            return
        if cli.skip_for_dry_run(f"would request eviction for node {name}"):
            return
        cli.client.evict_node(name)
        cli.success(f"Eviction requested for node {name}")


# Tags

@node.group()
def tag() -> None:
    """Add or remove node tags."""
    pass


@tag.command("add")
@click.argument("name")
@click.argument("tag_name", metavar="TAG")
@pass_cli
def add_tag(cli: CLIContext, name: str, tag_name: str) -> None:
    """Add a tag to a node."""
    with handle_errors("Failed to add tag"):
        if cli.skip_for_dry_run(f"would add tag '{tag_name}' to node {name}"):
            return
        cli.client.add_node_tag(name, tag_name)
        cli.success(f"Tag '{tag_name}' added to node {name}")


@tag.command("remove")
@click.argument("name")
@click.argument("tag_name", metavar="TAG")
@pass_cli
def remove_tag(cli: CLIContext, name: str, tag_name: str) -> None:
    """Remove a tag from a node."""
    with handle_errors("Failed to remove tag"):
        if cli.skip_for_dry_run(f"would remove tag '{tag_name}' from node {name}"):
            return
        cli.client.remove_node_tag(name, tag_name)
        cli.success(f"Tag '{tag_name}' removed from node {name}")


# Disks

@node.group()
def disk() -> None:
    """Add, remove or update the disks of a node."""
    pass


@disk.command("add")
@click.argument("name")
@click.option("--path", required=True, help="Mount path of the disk on the node")
@click.option("--storage-reserved", default="0", help="Space kept free for other use, e.g. 10Gi", show_default=True)
@click.option("--tag", "tags", multiple=True, help="Disk tag (repeatable)")
@pass_cli
def add_disk(cli: CLIContext, name: str, path: str, storage_reserved: str, tags: tuple[str, ...]) -> None:
    """Add a disk to a node."""
    with handle_errors("Failed to add disk"):
        request = DiskUpdate(
            path=path,
            allow_scheduling=True,
            storage_reserved=size_option(storage_reserved, "storage-reserved"),
            tags=list(tags),
        )
        if cli.skip_for_dry_run(f"would add disk {path} to node {name}"):
            return
        disk_id = cli.client.add_disk(name, request)
        cli.success(f"Disk {path} added to node {name} as {disk_id}")


@disk.command("remove")
@click.argument("name")
@click.argument("disk_id")
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@pass_cli
def remove_disk(cli: CLIContext, name: str, disk_id: str, force: bool) -> None:
    """Remove a disk from a node."""
    with handle_errors("Failed to remove disk"):
        if not cli.confirm(f"Are you sure you want to remove disk {disk_id} from node {name}?", force):
            return
        if cli.skip_for_dry_run(f"would remove disk {disk_id} from node {name}"):
            return
        cli.client.remove_disk(name, disk_id)
        cli.success(f"Disk {disk_id} removed from node {name}")


@disk.command("update")
@click.argument("name")
@click.argument("disk_id")
@click.option("--tag", "tags", multiple=True, help="Replace the disk tags (repeatable)")
@click.option(
    "--allow-scheduling/--disallow-scheduling",
    "allow_scheduling",
    default=None,
    help="Allow or stop scheduling replicas on the disk",
)
@click.option("--storage-reserved", default=None, help="New reserved space, e.g. 10Gi")
@pass_cli
def update_disk(
    cli: CLIContext,
    name: str,
    disk_id: str,
    tags: tuple[str, ...],
    allow_scheduling: bool | None,
    storage_reserved: str | None,
) -> None:
    """Update the tags, scheduling or reserved space of a disk."""
    with handle_errors("Failed to update disk"):
        reserved = size_option(storage_reserved, "storage-reserved")
        if not tags and allow_scheduling is None and reserved is None:
            raise click.UsageError(
                "nothing to update; pass at least one of --tag, --allow-scheduling, "
                "--disallow-scheduling, --storage-reserved"
            )
        if cli.skip_for_dry_run(f"would update disk {disk_id} on node {name}"):
            return
        cli.client.update_disk(
            name,
            disk_id,
            tags=list(tags) if tags else None,
            allow_scheduling=allow_scheduling,
            storage_reserved=reserved,
        )
        cli.success(f"Disk {disk_id} updated on node {name}")
