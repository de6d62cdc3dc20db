"""``lhcli settings`` commands."""

import click

from lhcli.commands.common import CLIContext, handle_errors, pass_cli, print_fields, render
from lhcli.core.formatter import format_bool, get_formatter, is_structured, truncate_string

SETTING_HEADERS = ["NAME", "VALUE"]
SETTING_WIDE_HEADERS = ["NAME", "VALUE", "DEFAULT", "TYPE", "READ ONLY"]

MAX_VALUE_LEN = 60


@click.group()
def settings() -> None:
    """View and change Longhorn settings."""
    pass


@settings.command("list")
@pass_cli
def list_settings(cli: CLIContext) -> None:
    """List all settings and their values."""
    with handle_errors("Failed to list settings"):
        items = sorted(cli.client.list_settings().values(), key=lambda s: s.name)
        rows = []
        for s in items:
            if cli.wide:
                rows.append([
                    s.name,
                    s.value,
                    s.definition.default if s.default is None else s.default,
                    s.definition.type,
                    format_bool(s.definition.read_only),
                ])
            else:
                rows.append([s.name, truncate_string(s.value, MAX_VALUE_LEN)])
        render(cli, items, SETTING_WIDE_HEADERS if cli.wide else SETTING_HEADERS, rows)


@settings.command("get")
@click.argument("name")
@pass_cli
def get_setting(cli: CLIContext, name: str) -> None:
    """Show a single setting."""
    with handle_errors(f"Failed to get setting {name}"):
        s = cli.client.get_setting(name)
        if is_structured(cli.output_format):
            get_formatter(cli.output_format).format(s)
            return
        fields = [("Name", s.name), ("Value", s.value)]
        default = s.definition.default if s.default is None else s.default
        if default:
            fields.append(("Default", default))
        if s.definition.type:
            fields.append(("Type", s.definition.type))
        if s.definition.options:
            fields.append(("Options", ", ".join(s.definition.options)))
        if s.definition.description:
            fields.append(("Description", s.definition.description))
        print_fields(fields)


@settings.command("update")
@click.argument("name")
@click.option("--value", required=True, help="New value for the setting")
@pass_cli
def update_setting(cli: CLIContext, name: str, value: str) -> None:
    """Change the value of a setting."""
    with handle_errors(f"Failed to update setting {name}"):
        if cli.skip_for_dry_run(f"would set {name} to {value}"):
            return
        cli.client.update_setting(name, value)
        cli.success(f"Setting {name} updated to {value}")
