"""``lhcli config`` commands for the YAML config file."""

from typing import Optional

import click
import yaml

from lhcli.commands.common import CLIContext, handle_errors, pass_cli, render
from lhcli.core.config import (
    AUTH_NONE,
    AUTH_TOKEN,
    DEFAULT_CONTEXT,
    DEFAULT_NAMESPACE,
    Auth,
    Config,
    Context,
    resolve_config_path,
    smart_default_config,
)
from lhcli.core.formatter import console, get_formatter, is_structured

CONTEXT_HEADERS = ["CURRENT", "NAME", "ENDPOINT", "NAMESPACE", "AUTH"]

REDACTED = "********"


def redacted(config: Config) -> dict:
    """Config as a dict with tokens hidden."""
    data = config.model_dump(by_alias=True, exclude_none=True)
    for ctx in data.get("contexts", []):
        if ctx.get("auth", {}).get("token"):
            ctx["auth"]["token"] = REDACTED
    return data


@click.group()
def config() -> None:
    """View and edit the lhcli config file."""
    pass


@config.command("view")
@click.option("--raw", is_flag=True, help="Show tokens instead of hiding them")
@pass_cli
def view(cli: CLIContext, raw: bool) -> None:
    """Print the config file."""
    with handle_errors("Failed to load config"):
        data = cli.config.model_dump(by_alias=True, exclude_none=True) if raw else redacted(cli.config)
    if is_structured(cli.output_format):
        get_formatter(cli.output_format).format(data)
    else:
        console.out(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip("\n"))


@config.command("get-contexts")
@pass_cli
def get_contexts(cli: CLIContext) -> None:
    """List the configured contexts."""
    with handle_errors("Failed to load config"):
        cfg = cli.config
        rows = [
            [
                "*" if ctx.name == cfg.current_context else "",
                ctx.name,
                ctx.endpoint or "",
                ctx.namespace or DEFAULT_NAMESPACE,
                ctx.auth.type or AUTH_NONE,
            ]
            for ctx in cfg.contexts
        ]
        render(cli, redacted(cfg)["contexts"] if cfg.contexts else [], CONTEXT_HEADERS, rows)


@config.command("current-context")
@pass_cli
def current_context(cli: CLIContext) -> None:
    """Print the name of the current context."""
    with handle_errors("Failed to load config"):
        name = cli.config.current_context
    if not name:
        raise click.ClickException("current context is not set")
    console.print(name, markup=False)


@config.command("use-context")
@click.argument("name")
@pass_cli
def use_context(cli: CLIContext, name: str) -> None:
    """Make NAME the current context."""
    with handle_errors(f"Failed to switch to context {name}"):
        cfg = cli.config
        cfg.use_context(name)
        if cli.skip_for_dry_run(f"would switch to context {name}"):
            return
        cfg.save(cli.config_path)
        cli.success(f"Switched to context {name}")


@config.command("init")
@click.option("--endpoint", default=None, help="Longhorn manager URL; omit to use the kubeconfig")
@click.option("--token", default=None, help="Bearer token for the manager API")
@click.option("--context-name", "context_name", default=DEFAULT_CONTEXT, help="Name of the context", show_default=True)
@click.option("--namespace", "init_namespace", default=DEFAULT_NAMESPACE, help="Longhorn namespace", show_default=True)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file")
@pass_cli
def init(
    cli: CLIContext,
    endpoint: Optional[str],
    token: Optional[str],
    context_name: str,
    init_namespace: str,
    force: bool,
) -> None:
    """Write a starter config file."""
    with handle_errors("Failed to write config"):
        target = resolve_config_path(cli.config_path)
        if target.exists() and not force:
            raise click.ClickException(f"config file {target} already exists (use --force to overwrite)")

        if endpoint:
            auth = Auth(type=AUTH_TOKEN, token=token) if token else Auth(type=AUTH_NONE)
            cfg = Config(
                contexts=[Context(name=context_name, endpoint=endpoint, namespace=init_namespace, auth=auth)],
                current_context=context_name,
            )
        else:
            cfg = smart_default_config()
            cfg.contexts[0].name = context_name
            cfg.contexts[0].namespace = init_namespace
            cfg.current_context = context_name

        if cli.skip_for_dry_run(f"would write config file {target}"):
            return
        written = cfg.save(str(target))
        cli.success(f"Config written to {written}")
