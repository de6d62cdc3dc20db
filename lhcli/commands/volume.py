"""``lhcli volume`` commands."""

from typing import List

import click

from lhcli.commands.common import (
    CLIContext,
    display_size,
    handle_errors,
    pass_cli,
    print_fields,
    render,
)
from lhcli.core.formatter import (
    console,
    format_age,
    format_map,
    format_status,
    format_time,
    get_formatter,
    is_structured,
)
from lhcli.core.models import Volume, VolumeAttachInput, VolumeCreateInput, VolumeUpdateInput
from lhcli.core.validation import (
    parse_labels,
    validate_access_mode,
    validate_data_locality,
    validate_frontend,
    validate_labels,
    validate_replica_count,
    validate_size,
    validate_volume_name,
)

VOLUME_HEADERS = ["NAME", "SIZE", "REPLICAS", "STATE", "ROBUSTNESS", "AGE"]
VOLUME_WIDE_HEADERS = VOLUME_HEADERS + ["FRONTEND", "ACCESS", "CREATED"]


def volume_headers(wide: bool = False) -> List[str]:
    return VOLUME_WIDE_HEADERS if wide else VOLUME_HEADERS


def volume_row(volume: Volume, wide: bool = False) -> List[str]:
    row = [
        volume.name,
        display_size(volume.size),
        str(volume.number_of_replicas),
        volume.display_state,
        volume.robustness or "Unknown",
        format_age(volume.created),
    ]
    if wide:
        row += [volume.frontend, volume.access_mode, volume.created]
    return row


def print_volume_details(volume: Volume, detailed: bool = False) -> None:
    fields = [
        ("Name", volume.name),
        ("Size", display_size(volume.size)),
        ("Number of Replicas", volume.number_of_replicas),
        ("State", volume.display_state),
        ("Robustness", volume.robustness),
        ("Frontend", volume.frontend),
        ("Access Mode", volume.access_mode),
        ("Data Locality", volume.data_locality),
        ("Migratable", str(volume.migratable).lower()),
        ("Encrypted", str(volume.encrypted).lower()),
        ("Created", format_time(volume.created)),
    ]
    if volume.last_backup:
        fields.append(("Last Backup", f"{volume.last_backup} at {volume.last_backup_at}"))
    fields.append(("Labels", format_map(volume.labels)))
    print_fields(fields)

    if volume.conditions:
        console.print("\nConditions:")
        for name, condition in volume.conditions.items():
            color = "green" if condition.status == "True" else "red"
            console.print(f"  {name}: [{color}]{condition.status}[/{color}]")
            if condition.message:
                console.print(f"    Message: {condition.message}", markup=False, soft_wrap=True)

    if detailed and volume.replicas:
        console.print("\nReplicas:")
        for replica in volume.replicas:
            console.print(f"  {replica.name}:", markup=False)
            console.print(f"    Node:   {replica.node_id}", markup=False)
            console.print(f"    State:  {format_status(replica.state)}")
            if replica.disk_id:
                console.print(f"    Disk:   {replica.disk_id}", markup=False)


def _labels(values) -> dict:
    labels = parse_labels(values)
    validate_labels(labels)
    return labels


@click.group()
def volume() -> None:
    """Manage Longhorn volumes."""
    pass


@volume.command("list")
@pass_cli
def list_volumes(cli: CLIContext) -> None:
    """List all volumes."""
    with handle_errors("Failed to list volumes"):
        volumes = cli.client.list_volumes()
        render(cli, volumes, volume_headers(cli.wide), [volume_row(v, cli.wide) for v in volumes])


@volume.command("get")
@click.argument("name")
@click.option("--detailed", is_flag=True, help="Show replicas as well")
@pass_cli
def get_volume(cli: CLIContext, name: str, detailed: bool) -> None:
    """Show a single volume."""
    with handle_errors(f"Failed to get volume {name}"):
        vol = cli.client.get_volume(name)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(vol)
        else:
            print_volume_details(vol, detailed)


@volume.command("create")
@click.argument("name")
@click.option("--size", default="10Gi", help="Volume size", show_default=True)
@click.option("--replicas", default=3, type=int, help="Number of replicas", show_default=True)
@click.option("--frontend", default="blockdev", help="Frontend type (blockdev or iscsi)", show_default=True)
@click.option("--access-mode", default="rwo", help="Access mode (rwo or rwx)", show_default=True)
@click.option("--data-locality", default=None, help="Data locality (disabled, best-effort, strict-local)")
@click.option("--node-selector", multiple=True, help="Node tag the replicas must run on (repeatable)")
@click.option("--disk-selector", multiple=True, help="Disk tag the replicas must use (repeatable)")
@click.option("--label", "labels", multiple=True, help="Label in key=value form (repeatable)")
@click.option("--migratable", is_flag=True, help="Allow live migration (rwx volumes)")
@click.option("--encrypted", is_flag=True, help="Encrypt the volume")
@pass_cli
def create_volume(
    cli: CLIContext,
    name: str,
    size: str,
    replicas: int,
    frontend: str,
    access_mode: str,
    data_locality: str | None,
    node_selector: tuple[str, ...],
    disk_selector: tuple[str, ...],
    labels: tuple[str, ...],
    migratable: bool,
    encrypted: bool,
) -> None:
    """Create a new volume."""
    with handle_errors(f"Failed to create volume {name}"):
        validate_volume_name(name)
        validate_size(size)
        validate_replica_count(replicas)
        validate_frontend(frontend)
        validate_access_mode(access_mode)
        if data_locality:
            validate_data_locality(data_locality)

        request = VolumeCreateInput(
            name=name,
            size=size,
            number_of_replicas=replicas,
            frontend=frontend,
            access_mode=access_mode,
            data_locality=data_locality or "",
            node_selector=list(node_selector),
            disk_selector=list(disk_selector),
            labels=_labels(labels),
            migratable=migratable,
            encrypted=encrypted,
        )
        if cli.skip_for_dry_run(f"would create volume {name} ({size}, {replicas} replicas)"):
            return

        created = cli.client.create_volume(request)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(created)
        else:
            cli.success(f"Volume {created.name} created successfully")


@volume.command("delete")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@pass_cli
def delete_volume(cli: CLIContext, name: str, force: bool) -> None:
    """Delete a volume."""
    with handle_errors(f"Failed to delete volume {name}"):
        if not cli.confirm(f"Are you sure you want to delete volume {name}?", force):
            return
        if cli.skip_for_dry_run(f"would delete volume {name}"):
            return
        cli.client.delete_volume(name)
        cli.success(f"Volume {name} deleted successfully")


@volume.command("update")
@click.argument("name")
@click.option("--replicas", type=int, default=None, help="New number of replicas")
@click.option("--data-locality", default=None, help="New data locality")
@click.option("--access-mode", default=None, help="New access mode")
@click.option("--label", "labels", multiple=True, help="Label to set in key=value form (repeatable)")
@pass_cli
def update_volume(
    cli: CLIContext,
    name: str,
    replicas: int | None,
    data_locality: str | None,
    access_mode: str | None,
    labels: tuple[str, ...],
) -> None:
    """Update a volume's replica count, data locality, access mode or labels."""
    with handle_errors(f"Failed to update volume {name}"):
        if replicas is not None:
            validate_replica_count(replicas)
        if data_locality:
            validate_data_locality(data_locality)
        if access_mode:
            validate_access_mode(access_mode)
        update = VolumeUpdateInput(
            number_of_replicas=replicas,
            data_locality=data_locality,
            access_mode=access_mode,
            labels=_labels(labels) or None,
        )
        if update.model_dump(exclude_none=True) == {}:
            raise click.UsageError("nothing to update; pass at least one of --replicas, --data-locality, --access-mode, --label")
        if cli.skip_for_dry_run(f"would update volume {name}: {update.model_dump(exclude_none=True, by_alias=True)}"):
            return
        updated = cli.client.update_volume(name, update)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(updated)
        else:
            cli.success(f"Volume {name} updated successfully")


@volume.command("attach")
@click.argument("name")
@click.option("--node", required=True, help="Node to attach the volume to")
@click.option("--disable-frontend", is_flag=True, help="Attach without exposing a block device")
@pass_cli
def attach_volume(cli: CLIContext, name: str, node: str, disable_frontend: bool) -> None:
    """Attach a volume to a node."""
    with handle_errors(f"Failed to attach volume {name}"):
        if cli.skip_for_dry_run(f"would attach volume {name} to node {node}"):
            return
        cli.client.attach_volume(name, VolumeAttachInput(host_id=node, disable_frontend=disable_frontend))
        cli.success(f"Volume {name} attached to node {node}")


@volume.command("detach")
@click.argument("name")
@pass_cli
def detach_volume(cli: CLIContext, name: str) -> None:
    """Detach a volume."""
    with handle_errors(f"Failed to detach volume {name}"):
        if cli.skip_for_dry_run(f"would detach volume {name}"):
            return
        cli.client.detach_volume(name)
        cli.success(f"Volume {name} detached successfully")
