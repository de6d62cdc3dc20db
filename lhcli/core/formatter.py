"""Output rendering for lhcli: tables, JSON and YAML."""

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import yaml
from pydantic import BaseModel
from rich.cells import cell_len
from rich.console import Console
from rich.markup import escape
from rich.text import Text

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)

COLUMN_GAP = 3

Cell = Union[str, Text]


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    WIDE = "wide"
    JSON = "json"
    YAML = "yaml"

    @classmethod
    def values(cls) -> List[str]:
        return [fmt.value for fmt in cls]


def to_plain(data: Any) -> Any:
    """Turn models (and containers of models) into JSON-ready data."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, dict):
        return {key: to_plain(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_plain(item) for item in data]
    return data


def _header_key(name: str) -> str:
    return name.replace(" ", "").replace("_", "").lower()


def _cell_text(cell: Cell) -> Text:
    return cell if isinstance(cell, Text) else Text(str(cell))


def format_value(value: Any) -> str:
    """Render a single value as a table cell."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return format_bool(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) for item in value):
            return ",".join(value)
        return f"[{len(value)} items]"
    if isinstance(value, dict):
        return f"[{len(value)} items]"
    return str(value)


class TableFormatter:
    """Left-aligned, space separated table in the style of ``kubectl get``."""

    def __init__(self, headers: Sequence[str], console: Optional[Console] = None) -> None:
        self.headers = list(headers)
        self.rows: List[List[Cell]] = []
        self._console = console

    @property
    def console(self) -> Console:
        return self._console or console

    def add_row(self, row: Sequence[Cell]) -> None:
        self.rows.append(list(row))

    def add_rows(self, rows: Iterable[Sequence[Cell]]) -> None:
        for row in rows:
            self.add_row(row)

    def format(self, data: Any = None) -> None:
        """Print the table.

        Args:
            data: Optional model, mapping, or list of either. Used to build
                rows by matching headers to field names when no rows were
                added explicitly.

        Raises:
            TypeError: If rows cannot be extracted from ``data``
        """
        if data is not None and not self.rows:
            self._extract_rows(data)
        # soft_wrap keeps rich from wrapping or cropping lines wider than the terminal
        self.console.print(self.render(), soft_wrap=True)

    def column_widths(self) -> List[int]:
        """Width of each column, the widest of its header and cells."""
        widths = [cell_len(h) for h in self.headers]
        for row in self.rows:
            for i, cell in enumerate(row[: len(widths)]):
                widths[i] = max(widths[i], _cell_text(cell).cell_len)
        return widths

    def render(self) -> Text:
        """Render the header and rows as aligned lines of text."""
        widths = self.column_widths()
        lines = [self._render_line(self.headers, widths, style="bold")]
        lines.extend(self._render_line(row, widths) for row in self.rows)
        text = Text("\n").join(lines)
        text.no_wrap = True
        text.overflow = "ignore"
        return text

    @staticmethod
    def _render_line(cells: Sequence[Cell], widths: List[int], style: str = "") -> Text:
        line = Text(style=style)
        last = len(widths) - 1
        for i, width in enumerate(widths):
            text = _cell_text(cells[i] if i < len(cells) else "")
            line.append_text(text)
            if i < last:
                line.append(" " * (width - text.cell_len + COLUMN_GAP))
        return line

    def _extract_rows(self, data: Any) -> None:
        if isinstance(data, (list, tuple)):
            for item in data:
                self.rows.append(self._extract_row(item))
        elif isinstance(data, (BaseModel, dict)):
            self.rows.append(self._extract_row(data))
        else:
            raise TypeError(f"unsupported data type for table formatting: {type(data).__name__}")

    def _extract_row(self, item: Any) -> List[Cell]:
        if isinstance(item, dict):
            lookup = {_header_key(str(k)): v for k, v in item.items()}
            return [format_value(lookup.get(_header_key(h))) for h in self.headers]
        if isinstance(item, BaseModel):
            return [format_value(_model_value(item, h)) for h in self.headers]
        raise TypeError(f"unsupported data type for table formatting: {type(item).__name__}")


def _model_value(item: BaseModel, header: str) -> Any:
    key = _header_key(header)
    for name, field in type(item).model_fields.items():
        if _header_key(name) == key or (field.alias and field.alias.lower() == key):
            return getattr(item, name)
    # Computed properties such as Node.status
    for name in dir(type(item)):
        if not name.startswith("_") and _header_key(name) == key:
            attr = getattr(type(item), name)
            if isinstance(attr, property):
                return getattr(item, name)
    return None


class JSONFormatter:
    """Prints data as JSON."""

    def __init__(self, pretty: bool = True, console: Optional[Console] = None) -> None:
        self.pretty = pretty
        self._console = console

    def render(self, data: Any) -> str:
        return json.dumps(to_plain(data), indent=2 if self.pretty else None, ensure_ascii=False)

    def format(self, data: Any) -> None:
        (self._console or console).out(self.render(data), highlight=False)


class YAMLFormatter:
    """Prints data as block-style YAML, keeping key order."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console

    def render(self, data: Any) -> str:
        return yaml.safe_dump(
            to_plain(data),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            indent=2,
        )

    def format(self, data: Any) -> None:
        (self._console or console).out(self.render(data).rstrip("\n"), highlight=False)


Formatter = Union[TableFormatter, JSONFormatter, YAMLFormatter]


def get_formatter(
    fmt: str,
    headers: Optional[Sequence[str]] = None,
    console: Optional[Console] = None,
) -> Formatter:
    """Return the formatter for an output format.

    Raises:
        ValueError: If the format is unknown, or a table is requested
            without headers
    """
    fmt = (fmt or "").lower()
    if fmt == OutputFormat.JSON.value:
        return JSONFormatter(pretty=True, console=console)
    if fmt == OutputFormat.YAML.value:
        return YAMLFormatter(console=console)
    if fmt in (OutputFormat.TABLE.value, OutputFormat.WIDE.value):
        if not headers:
            raise ValueError("table formatter requires headers to be specified")
        return TableFormatter(headers, console=console)
    raise ValueError(f"unsupported format: {fmt}")


def is_structured(fmt: str) -> bool:
    """True for JSON and YAML output."""
    return (fmt or "").lower() in (OutputFormat.JSON.value, OutputFormat.YAML.value)


# Helpers

def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_time(value: Union[str, datetime, None]) -> str:
    ts = parse_timestamp(value)
    if ts is None:
        return "n/a"
    return ts.isoformat().replace("+00:00", "Z")


def format_duration(duration: Union[timedelta, float, int]) -> str:
    """Format a duration like ``1d1h`` or ``1m30s``."""
    if isinstance(duration, timedelta):
        total = int(duration.total_seconds())
    else:
        total = int(duration)
    if total <= 0:
        return "0s"

    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return "".join(parts)


def format_age(value: Union[str, datetime, None], now: Optional[datetime] = None) -> str:
    """Time elapsed since ``value``, or ``n/a`` if it is missing or invalid."""
    ts = parse_timestamp(value)
    if ts is None:
        return "n/a"
    now = now or datetime.now(timezone.utc)
    return format_duration(now - ts)


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def format_list(items: Optional[Iterable[str]]) -> str:
    items = list(items or [])
    if not items:
        return "<none>"
    return ", ".join(items)


def format_map(mapping: Optional[Dict[str, str]]) -> str:
    if not mapping:
        return "<none>"
    return ", ".join(f"{k}={v}" for k, v in mapping.items())


def truncate_string(s: str, max_len: int) -> str:
    """Shorten ``s`` to ``max_len`` characters with a ``...`` suffix."""
    if len(s) <= max_len:
        return s
    if max_len <= 3:
        return s[:max_len]
    return s[: max_len - 3] + "..."


def format_percent(value: float, total: float) -> str:
    if total == 0:
        return "0%"
    return f"{value / total * 100:.1f}%"


_STATUS_COLORS = [
    (("ready", "running", "active", "healthy"), "green"),
    (("error", "failed", "unhealthy"), "red"),
    (("pending", "creating", "updating"), "yellow"),
    (("unknown", "terminating"), "dim"),
]


def format_status(status: str, use_color: bool = True) -> str:
    """Wrap a status in rich markup colouring it by keyword."""
    if not use_color:
        return status
    lowered = status.lower()
    # "unhealthy" must not be caught by "healthy"
    if "unhealthy" in lowered or "notready" in lowered:
        return f"[red]{status}[/red]"
    for keywords, color in _STATUS_COLORS:
        if any(keyword in lowered for keyword in keywords):
            return f"[{color}]{status}[/{color}]"
    return status


# Console messages

def print_success(message: str) -> None:
    console.print(f"[bold green]✓[/bold green] {escape(message)}", highlight=False, soft_wrap=True)


def print_info(message: str) -> None:
    console.print(f"[cyan]ℹ[/cyan] {escape(message)}", highlight=False, soft_wrap=True)
