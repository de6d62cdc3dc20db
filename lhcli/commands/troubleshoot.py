"""``lhcli troubleshoot`` and ``lhcli diagnostics``."""

import click
from rich.markup import escape

from lhcli.commands.common import CLIContext, handle_errors, pass_cli
from lhcli.core.formatter import console, err_console, get_formatter, is_structured
from lhcli.core.troubleshoot import collect_diagnostics, find_issues


@click.command()
@pass_cli
def troubleshoot(cli: CLIContext) -> None:
    """Look for orphaned replicas, unhealthy nodes and full disks."""
    with handle_errors("Troubleshooting failed"):
        issues = find_issues(cli.client)
    if is_structured(cli.output_format):
        get_formatter(cli.output_format).format({"issues": issues})
        return
    if not issues:
        console.print("[green]No issues detected[/green]")
        return
    console.print("[yellow]Potential issues:[/yellow]")
    for issue in issues:
        console.print(f"- {escape(issue)}", soft_wrap=True)


@click.command()
@pass_cli
def diagnostics(cli: CLIContext) -> None:
    """Show the Longhorn version and engine images."""
    with handle_errors("Diagnostics failed"):
        report = collect_diagnostics(cli.client)

    for warning in report.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

    if is_structured(cli.output_format):
        get_formatter(cli.output_format).format(report.model_dump(mode="json", exclude={"warnings"}))
        return

    console.print("[bold]Longhorn Diagnostics[/bold]")
    if report.version is not None:
        console.print(f"Version: {report.version}", markup=False, soft_wrap=True)
    if report.default_engine_image is not None:
        console.print(f"Default Engine Image: {report.default_engine_image}", markup=False, soft_wrap=True)
    if report.engine_images:
        console.print("\nEngine Images:")
        for image in report.engine_images:
            mark = " (default)" if image.default else ""
            console.print(f"- {image.name}{mark}\t{image.image}", markup=False, soft_wrap=True)
