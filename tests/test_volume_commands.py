"""Tests for the volume commands."""

import json

import yaml

from lhcli.core.exceptions import APIError

GiB = 1024 ** 3


def test_volume_list_table(invoke) -> None:
    """Test that volumes are listed with sizes as quantities."""
    result = invoke("volume", "list")
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].split() == ["NAME", "SIZE", "REPLICAS", "STATE", "ROBUSTNESS", "AGE"]
    data = lines[1].split()
    assert data[:5] == ["pvc-data", "10Gi", "3", "attached", "healthy"]
    logs = lines[2].split()
    assert logs[:5] == ["pvc-logs", "2Gi", "2", "detached", "Unknown"]
    assert logs[5] == "n/a"


def test_volume_list_columns_align(invoke) -> None:
    """Test that every column starts at the same offset on every line."""
    lines = invoke("volume", "list").output.splitlines()
    offset = lines[0].index("SIZE")
    assert lines[1][offset:].startswith("10Gi")
    assert lines[2][offset:].startswith("2Gi")


def test_volume_list_wide(invoke) -> None:
    """Test that wide output adds frontend, access mode and creation time."""
    result = invoke("-o", "wide", "volume", "list")
    assert result.exit_code == 0
    header = result.output.splitlines()[0].split()
    assert header[-3:] == ["FRONTEND", "ACCESS", "CREATED"]
    assert "2024-01-01T00:00:00Z" in result.output
    assert "rwx" in result.output


def test_volume_list_json(invoke) -> None:
    """Test that JSON output uses API field names."""
    result = invoke("-o", "json", "volume", "list")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert [v["name"] for v in data] == ["pvc-data", "pvc-logs"]
    assert data[0]["numberOfReplicas"] == 3
    assert data[0]["labels"] == {"app": "db"}


def test_volume_list_yaml(invoke) -> None:
    """Test that YAML output parses back to the same data as JSON."""
    as_yaml = yaml.safe_load(invoke("-o", "yaml", "volume", "list").output)
    as_json = json.loads(invoke("-o", "json", "volume", "list").output)
    assert as_yaml == as_json


def test_volume_list_uses_config_default_format(invoke, config) -> None:
    """Test that the config file's output format applies without -o."""
    config.defaults.output_format = "json"
    result = invoke("volume", "list")
    assert json.loads(result.output)[0]["name"] == "pvc-data"


def test_volume_list_error(invoke, backend) -> None:
    """Test that backend errors go to the user and exit non-zero."""
    backend.fail["list_volumes"] = APIError("failed to list volumes: unexpected status code: 500", 500)
    result = invoke("volume", "list")
    assert result.exit_code == 1
    assert "Failed to list volumes" in result.output
    assert "unexpected status code: 500" in result.output


def test_volume_get_details(invoke) -> None:
    """Test the labelled detail view of a volume."""
    result = invoke("volume", "get", "pvc-data")
    assert result.exit_code == 0
    assert "Name:" in result.output
    assert "Number of Replicas:" in result.output
    assert "app=db" in result.output
    assert "Replicas:" not in result.output.splitlines()


def test_volume_get_detailed_shows_replicas(invoke, backend) -> None:
    """Test that --detailed lists the replicas of the volume."""
    backend.volumes["pvc-data"].replicas = [backend.replicas["pvc-data-r-1"]]
    result = invoke("volume", "get", "pvc-data", "--detailed")
    assert result.exit_code == 0
    assert "Replicas:" in result.output.splitlines()
    assert "pvc-data-r-1" in result.output
    assert "worker-1" in result.output


def test_volume_get_not_found(invoke) -> None:
    """Test that a missing volume is reported."""
    result = invoke("volume", "get", "missing")
    assert result.exit_code == 1
    assert "volume missing not found" in result.output


def test_volume_create(invoke, backend) -> None:
    """Test that create passes validated input to the backend."""
    result = invoke(
        "volume", "create", "pvc-new",
        "--size", "5Gi", "--replicas", "2", "--access-mode", "rwx",
        "--label", "team=storage", "--node-selector", "ssd",
    )
    assert result.exit_code == 0, result.output
    assert "Volume pvc-new created successfully" in result.output
    op, request = backend.calls[-1]
    assert op == "create_volume"
    assert request.size == "5Gi"
    assert request.number_of_replicas == 2
    assert request.access_mode == "rwx"
    assert request.labels == {"team": "storage"}
    assert request.node_selector == ["ssd"]


def test_volume_create_rejects_invalid_input(invoke, backend) -> None:
    """Test that invalid names, sizes and replica counts never reach the backend."""
    for args in (
        ["Bad_Name"],
        ["pvc-new", "--size", "ten"],
        ["pvc-new", "--replicas", "11"],
        ["pvc-new", "--frontend", "nvme"],
        ["pvc-new", "--label", "novalue"],
    ):
        result = invoke("volume", "create", *args)
        assert result.exit_code == 1, args
        assert "Failed to create volume" in result.output
    assert not [c for c in backend.calls if c[0] == "create_volume"]


def test_volume_create_dry_run(invoke, backend) -> None:
    """Test that --dry-run announces the volume but does not create it."""
    result = invoke("--dry-run", "volume", "create", "pvc-new")
    assert result.exit_code == 0
    assert "[dry-run] would create volume pvc-new" in result.output
    assert "pvc-new" not in backend.volumes


def test_volume_delete_asks_for_confirmation(invoke, backend) -> None:
    """Test that declining the prompt keeps the volume."""
    result = invoke("volume", "delete", "pvc-data", input="n\n")
    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert "pvc-data" in backend.volumes


def test_volume_delete_confirmed(invoke, backend) -> None:
    """Test that accepting the prompt deletes the volume."""
    result = invoke("volume", "delete", "pvc-data", input="y\n")
    assert result.exit_code == 0
    assert "Volume pvc-data deleted successfully" in result.output
    assert "pvc-data" not in backend.volumes


def test_volume_delete_force_skips_prompt(invoke, backend) -> None:
    """Test that --force deletes without asking."""
    result = invoke("volume", "delete", "pvc-data", "--force")
    assert result.exit_code == 0
    assert "Are you sure" not in result.output
    assert ("delete_volume", "pvc-data") in backend.calls


def test_volume_delete_without_confirmation_setting(invoke, backend, config) -> None:
    """Test that confirmation: false in the config skips the prompt."""
    config.defaults.confirmation = False
    result = invoke("volume", "delete", "pvc-logs")
    assert result.exit_code == 0
    assert "pvc-logs" not in backend.volumes


def test_volume_update(invoke, backend) -> None:
    """Test that only the given fields are updated."""
    result = invoke("volume", "update", "pvc-data", "--replicas", "2")
    assert result.exit_code == 0
    op, name, update = backend.calls[-2]
    assert (op, name) == ("update_volume", "pvc-data")
    assert update.number_of_replicas == 2
    assert update.data_locality is None
    assert update.labels is None


def test_volume_update_requires_a_change(invoke) -> None:
    """Test that update without options is a usage error."""
    result = invoke("volume", "update", "pvc-data")
    assert result.exit_code == 2
    assert "nothing to update" in result.output


def test_volume_attach_and_detach(invoke, backend) -> None:
    """Test attaching to a node and detaching again."""
    result = invoke("volume", "attach", "pvc-logs", "--node", "worker-1", "--disable-frontend")
    assert result.exit_code == 0
    assert "Volume pvc-logs attached to node worker-1" in result.output
    attach = [c for c in backend.calls if c[0] == "attach_volume"][0][2]
    assert attach.host_id == "worker-1"
    assert attach.disable_frontend is True

    result = invoke("volume", "detach", "pvc-logs")
    assert result.exit_code == 0
    assert ("detach_volume", "pvc-logs") in backend.calls


def test_volume_attach_requires_node(invoke) -> None:
    """Test that --node is required."""
    assert invoke("volume", "attach", "pvc-logs").exit_code == 2
