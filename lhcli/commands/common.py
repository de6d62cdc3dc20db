"""Shared state and helpers for lhcli commands."""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence

import click
from rich.markup import escape

from lhcli.core.client import LonghornBackend, build_client
from lhcli.core.config import Config, load_config
from lhcli.core.exceptions import LonghornError, ValidationError
from lhcli.core.formatter import (
    OutputFormat,
    TableFormatter,
    console,
    err_console,
    get_formatter,
    is_structured,
    print_info,
    print_success,
)
from lhcli.core.size import parse_size, to_quantity

logger = logging.getLogger(__name__)


class CLIContext:
    """Global options and lazily created clients, shared through ``click`` context."""

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[LonghornBackend] = None,
    ) -> None:
        self.config_path: Optional[str] = None
        self.context_name: Optional[str] = None
        self.namespace: Optional[str] = None
        self.output: Optional[str] = None
        self.verbose = False
        self.quiet = False
        self.dry_run = False
        self._config = config
        self._client = client
        self._owns_client = False

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    @property
    def client(self) -> LonghornBackend:
        if self._client is None:
            self._client = build_client(self.config, self.context_name, self.namespace)
            self._owns_client = True
        return self._client

    def close(self) -> None:
        """Release the connection of a client built for this invocation."""
        close = getattr(self._client, "close", None)
        if self._owns_client and close is not None:
            close()

    @property
    def output_format(self) -> str:
        """The ``--output`` flag, falling back to the config default."""
        if self.output:
            return self.output.lower()
        try:
            return (self.config.defaults.output_format or OutputFormat.TABLE.value).lower()
        except LonghornError:
            return OutputFormat.TABLE.value

    @property
    def wide(self) -> bool:
        return self.output_format == OutputFormat.WIDE.value

    def success(self, message: str) -> None:
        if not self.quiet:
            print_success(message)

    def info(self, message: str) -> None:
        if not self.quiet:
            print_info(message)

    def skip_for_dry_run(self, message: str) -> bool:
        """Announce a mutation instead of running it when ``--dry-run`` is set."""
        if self.dry_run:
            print_info(f"[dry-run] {message}")
            return True
        return False

    def confirm(self, message: str, force: bool = False) -> bool:
        """Ask before a destructive action unless forced or disabled in the config."""
        if force or self.dry_run or not self.config.defaults.confirmation:
            return True
        if click.confirm(message, default=False):
            return True
        console.print("Cancelled")
        return False


pass_cli = click.make_pass_decorator(CLIContext, ensure=True)


@contextmanager
def handle_errors(action: str) -> Iterator[None]:
    """Print errors as ``✗ <action>: <error>`` on stderr and abort."""
    try:
        yield
    except LonghornError as e:
        logger.debug("%s failed", action, exc_info=True)
        err_console.print(f"[bold red]✗[/bold red] {escape(action)}: {escape(str(e))}", soft_wrap=True)
        raise click.Abort()


def render(cli: CLIContext, data: Any, headers: Sequence[str], rows: List[Sequence[Any]]) -> None:
    """Print ``data`` as JSON/YAML, or ``rows`` as a table."""
    fmt = cli.output_format
    if is_structured(fmt):
        get_formatter(fmt).format(data)
        return
    table = TableFormatter(headers)
    table.add_rows(rows)
    table.format()


def print_fields(fields: Sequence[tuple]) -> None:
    """Print ``label: value`` lines aligned on the values."""
    width = max((len(label) for label, _ in fields), default=0) + 2
    for label, value in fields:
        console.print(f"{label + ':':<{width}}{escape(str(value))}", soft_wrap=True)


def display_size(size: Any) -> str:
    """Show a byte count (or size string) as a quantity such as ``10Gi``."""
    if size in (None, ""):
        return ""
    try:
        return to_quantity(parse_size(str(size)))
    except ValueError:
        return str(size)


def size_option(value: Optional[str], flag: str) -> Optional[int]:
    """Parse a size flag into bytes, reporting bad input as a validation error."""
    if value is None:
        return None
    try:
        return parse_size(value)
    except ValueError as e:
        raise ValidationError(f"invalid {flag}: {e}") from e


def output_choice() -> click.Choice:
    return click.Choice(OutputFormat.values(), case_sensitive=False)
