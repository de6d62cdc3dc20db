"""``lhcli backup`` commands."""

import click

from lhcli.commands.common import CLIContext, display_size, handle_errors, pass_cli, print_fields, render
from lhcli.core.formatter import format_bool, format_map, get_formatter, is_structured
from lhcli.core.models import Backup, BackupCreateInput, BackupTarget
from lhcli.core.validation import parse_labels, validate_labels

BACKUP_HEADERS = ["NAME", "VOLUME", "SNAPSHOT", "STATE", "SIZE", "CREATED"]
BACKUP_WIDE_HEADERS = BACKUP_HEADERS + ["PROGRESS", "URL"]


def print_backup_details(b: Backup) -> None:
    fields = [
        ("Name", b.name),
        ("Volume", b.volume_name),
        ("Snapshot", b.snapshot_name),
        ("Snapshot Created", b.snapshot_created),
        ("State", b.state),
        ("Progress", f"{b.progress}%"),
        ("Size", display_size(b.size)),
        ("Volume Size", display_size(b.volume_size)),
        ("Created", b.created),
        ("URL", b.url),
        ("Labels", format_map(b.labels)),
    ]
    if b.error:
        fields.append(("Error", b.error))
    print_fields(fields)


def print_backup_target(target: BackupTarget) -> None:
    fields = [
        ("Name", target.name),
        ("URL", target.backup_target_url or "<none>"),
        ("Credential Secret", target.credential_secret or "<none>"),
        ("Available", format_bool(target.available)),
    ]
    if target.message:
        fields.append(("Message", target.message))
    print_fields(fields)


@click.group()
def backup() -> None:
    """Manage volume backups and the backup target."""
    pass


@backup.command("create")
@click.argument("volume")
@click.option("--snapshot", required=True, help="Snapshot to back up")
@click.option("--label", "labels", multiple=True, help="Label in key=value form (repeatable)")
@pass_cli
def create_backup(cli: CLIContext, volume: str, snapshot: str, labels: tuple[str, ...]) -> None:
    """Back up a snapshot of VOLUME to the backup target."""
    with handle_errors("Failed to create backup"):
        label_map = parse_labels(labels)
        validate_labels(label_map)
        if cli.skip_for_dry_run(f"would back up snapshot {snapshot} of volume {volume}"):
            return
        created = cli.client.create_backup(volume, BackupCreateInput(snapshot_name=snapshot, labels=label_map))
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(created)
        else:
            cli.success(f"Backup of volume {volume} from snapshot {snapshot} started")


@backup.command("list")
@click.option("--volume", default=None, help="Only show backups of this volume")
@pass_cli
def list_backups(cli: CLIContext, volume: str | None) -> None:
    """List backups."""
    with handle_errors("Failed to list backups"):
        backups = cli.client.list_backups(volume)
        rows = []
        for b in backups:
            row = [b.name, b.volume_name, b.snapshot_name, b.state, display_size(b.size), b.created]
            if cli.wide:
                row += [f"{b.progress}%", b.url]
            rows.append(row)
        render(cli, backups, BACKUP_WIDE_HEADERS if cli.wide else BACKUP_HEADERS, rows)


@backup.command("get")
@click.argument("name")
@click.option("--volume", default=None, help="Volume the backup belongs to")
@pass_cli
def get_backup(cli: CLIContext, name: str, volume: str | None) -> None:
    """Show a single backup."""
    with handle_errors(f"Failed to get backup {name}"):
        b = cli.client.get_backup(name, volume)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(b)
        else:
            print_backup_details(b)


@backup.command("delete")
@click.argument("name")
@click.option("--volume", default=None, help="Volume the backup belongs to")
@click.option("--force", "-f", is_flag=True, help="Skip the confirmation prompt")
@pass_cli
def delete_backup(cli: CLIContext, name: str, volume: str | None, force: bool) -> None:
    """Delete a backup from the backup target."""
    with handle_errors(f"Failed to delete backup {name}"):
        if not cli.confirm(f"Are you sure you want to delete backup {name}?", force):
            return
        if cli.skip_for_dry_run(f"would delete backup {name}"):
            return
        cli.client.delete_backup(name, volume)
        cli.success(f"Backup {name} deleted successfully")


@backup.group()
def target() -> None:
    """Show or change the backup target."""
    pass


@target.command("get")
@pass_cli
def get_target(cli: CLIContext) -> None:
    """Show the backup target."""
    with handle_errors("Failed to get backup target"):
        t = cli.client.get_backup_target()
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(t)
        else:
            print_backup_target(t)


@target.command("set")
@click.argument("url")
@click.option("--credential-secret", default="", help="Secret holding the backup store credentials")
@pass_cli
def set_target(cli: CLIContext, url: str, credential_secret: str) -> None:
    """Point backups at URL, e.g. s3://bucket@region/ or nfs://host:/path."""
    with handle_errors("Failed to set backup target"):
        if cli.skip_for_dry_run(f"would set backup target to {url}"):
            return
        cli.client.set_backup_target(url, credential_secret)
        cli.success(f"Backup target set to {url}")
