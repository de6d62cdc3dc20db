"""``lhcli snapshot`` commands."""

import click

from lhcli.commands.common import CLIContext, display_size, handle_errors, pass_cli, render
from lhcli.core.formatter import format_age, format_bool, format_list, get_formatter, is_structured
from lhcli.core.models import SnapshotCreateInput
from lhcli.core.validation import parse_labels, validate_labels

SNAPSHOT_HEADERS = ["NAME", "CREATED", "SIZE", "USER CREATED", "AGE"]
SNAPSHOT_WIDE_HEADERS = SNAPSHOT_HEADERS + ["PARENT", "CHILDREN", "REMOVED"]


@click.group()
def snapshot() -> None:
    """Manage volume snapshots."""
    pass


@snapshot.command("create")
@click.argument("volume")
@click.option("--name", required=True, help="Snapshot name")
@click.option("--label", "labels", multiple=True, help="Label in key=value form (repeatable)")
@pass_cli
def create_snapshot(cli: CLIContext, volume: str, name: str, labels: tuple[str, ...]) -> None:
    """Create a snapshot of VOLUME."""
    with handle_errors("Failed to create snapshot"):
        label_map = parse_labels(labels)
        validate_labels(label_map)
        if cli.skip_for_dry_run(f"would create snapshot {name} of volume {volume}"):
            return
        created = cli.client.create_snapshot(volume, SnapshotCreateInput(name=name, labels=label_map))
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(created)
        else:
            cli.success(f"Snapshot {created.name or name} created for volume {volume}")


@snapshot.command("list")
@click.argument("volume")
@pass_cli
def list_snapshots(cli: CLIContext, volume: str) -> None:
    """List the snapshots of VOLUME."""
    with handle_errors("Failed to list snapshots"):
        snapshots = cli.client.list_snapshots(volume)
        rows = []
        for s in snapshots:
            row = [s.name, s.created, display_size(s.size), format_bool(s.user_created), format_age(s.created)]
            if cli.wide:
                row += [s.parent, format_list(s.children), format_bool(s.removed)]
            rows.append(row)
        render(cli, snapshots, SNAPSHOT_WIDE_HEADERS if cli.wide else SNAPSHOT_HEADERS, rows)


@snapshot.command("delete")
@click.argument("volume")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@pass_cli
def delete_snapshot(cli: CLIContext, volume: str, name: str, force: bool) -> None:
    """Delete snapshot NAME of VOLUME."""
    with handle_errors("Failed to delete snapshot"):
        if not cli.confirm(f"Are you sure you want to delete snapshot {name} of volume {volume}?", force):
            return
        if cli.skip_for_dry_run(f"would delete snapshot {name} from volume {volume}"):
            return
        cli.client.delete_snapshot(volume, name)
        cli.success(f"Snapshot {name} deleted from volume {volume}")
