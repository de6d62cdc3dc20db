"""Tests for the table, JSON and YAML formatters."""

import json
from datetime import datetime, timedelta, timezone
from io import StringIO

import pytest
import yaml
from rich.console import Console

from lhcli.core.formatter import (
    JSONFormatter,
    TableFormatter,
    YAMLFormatter,
    format_age,
    format_duration,
    format_list,
    format_map,
    format_percent,
    format_status,
    format_time,
    format_value,
    get_formatter,
    is_structured,
    truncate_string,
)
from lhcli.core.models import Condition, Disk, Node, Replica, Setting, SettingDefinition, Volume


def capture() -> Console:
    return Console(file=StringIO(), width=40, highlight=False)


def output(console: Console) -> str:
    return console.file.getvalue()


def test_table_columns_align_beyond_console_width() -> None:
    """Test that every cell starts under its header and long rows are not wrapped."""
    console = capture()
    table = TableFormatter(["NAME", "SIZE", "STATE"], console=console)
    table.add_row(["a-rather-long-volume-name-that-is-wide", "10Gi", "attached"])
    table.add_row(["short", "1Gi", "detached"])
    table.format()

    lines = output(console).splitlines()
    assert len(lines) == 3
    size_at = lines[0].index("SIZE")
    state_at = lines[0].index("STATE")
    assert lines[1][size_at:].startswith("10Gi")
    assert lines[2][size_at:].startswith("1Gi")
    assert lines[2][state_at:].startswith("detached")
    assert size_at == len("a-rather-long-volume-name-that-is-wide") + 3


def test_table_from_models_and_dicts() -> None:
    """Test that rows are extracted by matching headers to fields."""
    console = capture()
    volume = Volume(name="pvc-data", number_of_replicas=3, state="attached")
    TableFormatter(["NAME", "NUMBER OF REPLICAS", "STATE"], console=console).format([volume])
    assert output(console).splitlines()[1].split() == ["pvc-data", "3", "attached"]

    console = capture()
    node = Node(name="worker-1", conditions={"Ready": Condition(type="Ready", status="True")})
    TableFormatter(["NAME", "STATUS"], console=console).format(node)
    assert output(console).splitlines()[1].split() == ["worker-1", "Ready"]

    console = capture()
    TableFormatter(["NAME", "VALUE"], console=console).format({"name": "x", "value": True})
    assert output(console).splitlines()[1].split() == ["x", "true"]


def test_table_rejects_unsupported_data() -> None:
    with pytest.raises(TypeError):
        TableFormatter(["NAME"], console=capture()).format(42)


def test_json_formatter_uses_api_names() -> None:
    """Test that JSON output uses camelCase aliases."""
    console = capture()
    JSONFormatter(console=console).format([Volume(name="pvc-data", number_of_replicas=2)])
    data = json.loads(output(console))
    assert data[0]["name"] == "pvc-data"
    assert data[0]["numberOfReplicas"] == 2
    assert "number_of_replicas" not in data[0]


def test_compact_json_is_one_line() -> None:
    assert "\n" not in JSONFormatter(pretty=False).render({"a": [1, 2], "b": {"c": "d"}})


def test_yaml_keeps_key_order() -> None:
    """Test that YAML is block style and in field order."""
    console = capture()
    YAMLFormatter(console=console).format({"zeta": 1, "alpha": {"nested": ["x"]}})
    text = output(console)
    assert text.index("zeta") < text.index("alpha")
    assert yaml.safe_load(text) == {"zeta": 1, "alpha": {"nested": ["x"]}}
    assert "{" not in text


def sample_models():
    volume = Volume(
        name="pvc-data",
        size="10737418240",
        number_of_replicas=3,
        state="attached",
        created="2024-01-01T00:00:00Z",
        conditions={"Scheduled": Condition(type="Scheduled", status="True", message="ok")},
        replicas=[Replica(name="pvc-data-r-1", volume_name="pvc-data", node_id="worker-1", running=True, port=10000)],
        labels={"app": "db", "enabled": "true"},
    )
    node = Node(
        name="worker-1",
        conditions={"Ready": Condition(type="Ready", status="True")},
        tags=["ssd"],
        disks={
            "disk-1": Disk(
                path="/var/lib/longhorn",
                storage_maximum=100 * 1024 ** 3,
                scheduled_replica={"pvc-data-r-1": 10 * 1024 ** 3},
            )
        },
    )
    setting = Setting(
        name="backup-target",
        value="s3://b@r/",
        definition=SettingDefinition(type="string", read_only=False, options=["a", "b"]),
    )
    return [volume, node, setting]


@pytest.mark.parametrize("model", sample_models(), ids=["volume", "node", "setting"])
def test_structured_output_decodes_to_same_model(model) -> None:
    """Test that JSON and YAML output load back into an equal model."""
    cls = type(model)
    assert cls.model_validate(json.loads(JSONFormatter().render(model))) == model
    assert cls.model_validate(yaml.safe_load(YAMLFormatter().render(model))) == model


def test_get_formatter() -> None:
    """Test format selection."""
    assert isinstance(get_formatter("JSON"), JSONFormatter)
    assert isinstance(get_formatter("yaml"), YAMLFormatter)
    assert isinstance(get_formatter("wide", headers=["NAME"]), TableFormatter)
    with pytest.raises(ValueError, match="requires headers"):
        get_formatter("table")
    with pytest.raises(ValueError, match="unsupported format"):
        get_formatter("xml")
    assert is_structured("json") and is_structured("YAML")
    assert not is_structured("wide")


def test_format_value() -> None:
    assert format_value(None) == ""
    assert format_value(False) == "false"
    assert format_value(3) == "3"
    assert format_value(0.5) == "0.50"
    assert format_value(["a", "b"]) == "a,b"
    assert format_value([{"a": 1}]) == "[1 items]"
    assert format_value({"a": 1, "b": 2}) == "[2 items]"


def test_format_duration_and_age() -> None:
    """Test compact durations and ages."""
    assert format_duration(0) == "0s"
    assert format_duration(90) == "1m30s"
    assert format_duration(timedelta(days=1, hours=1)) == "1d1h"
    now = datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert format_age("2024-01-01T00:00:00Z", now=now) == "1d"
    assert format_age("", now=now) == "n/a"
    assert format_age("yesterday", now=now) == "n/a"


def test_format_time() -> None:
    assert format_time("2024-01-01T00:00:00Z") == "2024-01-01T00:00:00Z"
    assert format_time(None) == "n/a"


def test_small_helpers() -> None:
    assert format_list([]) == "<none>"
    assert format_list(["a", "b"]) == "a, b"
    assert format_map({"k": "v"}) == "k=v"
    assert format_map(None) == "<none>"
    assert truncate_string("abcdef", 5) == "ab..."
    assert truncate_string("abc", 5) == "abc"
    assert truncate_string("abcdef", 2) == "ab"
    assert format_percent(1, 4) == "25.0%"
    assert format_percent(1, 0) == "0%"


def test_format_status() -> None:
    """Test that unhealthy is not coloured as healthy."""
    assert format_status("healthy") == "[green]healthy[/green]"
    assert format_status("unhealthy") == "[red]unhealthy[/red]"
    assert format_status("NotReady") == "[red]NotReady[/red]"
    assert format_status("pending", use_color=False) == "pending"
    assert format_status("weird") == "weird"
