"""Tests for the config file and backend selection."""

import pytest

from lhcli.core.client import build_client, resolve_namespace
from lhcli.core.config import (
    AUTH_KUBECONFIG,
    Auth,
    Config,
    Context,
    load_config,
    smart_default_config,
)
from lhcli.core.exceptions import ConfigError
from lhcli.core.http_client import LonghornHTTPClient

CONFIG_YAML = """\
current-context: production
contexts:
  - name: production
    endpoint: https://longhorn.example.com
    namespace: storage
    auth:
      type: token
      token: secret
  - name: lab
    auth:
      type: kubeconfig
      path: ~/.kube/lab
defaults:
  output-format: wide
  confirmation: false
  timeout: 10s
  page-size: 20
"""


def test_load_config(tmp_path) -> None:
    """Test parsing a full config file."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    cfg = load_config(str(path))

    assert cfg.current_context == "production"
    assert cfg.context_names() == ["production", "lab"]
    assert cfg.get_context().endpoint == "https://longhorn.example.com"
    assert cfg.get_context("lab").auth.type == AUTH_KUBECONFIG
    assert cfg.defaults.output_format == "wide"
    assert cfg.defaults.confirmation is False
    assert cfg.defaults.timeout_seconds() == 10
    assert cfg.defaults.page_size == 20


def test_missing_file_uses_kubeconfig_default(tmp_path, monkeypatch) -> None:
    """Test that no config file means the local kubeconfig."""
    monkeypatch.setenv("KUBECONFIG", "/tmp/kube.yaml")
    cfg = load_config(str(tmp_path / "absent.yaml"))
    ctx = cfg.get_context()
    assert ctx.name == "default"
    assert ctx.namespace == "longhorn-system"
    assert ctx.auth.type == AUTH_KUBECONFIG
    assert ctx.auth.path == "/tmp/kube.yaml"


def test_empty_file_is_plain_default(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("")
    cfg = load_config(str(path))
    assert cfg.contexts == []
    assert cfg.defaults.output_format == "table"


@pytest.mark.parametrize("content", ["- just\n- a list\n", "contexts: {bad\n", "contexts: [{endpoint: x}]\n"])
def test_invalid_files(tmp_path, content) -> None:
    """Test that malformed files are config errors."""
    path = tmp_path / "config.yaml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_save_round_trip(tmp_path) -> None:
    """Test that a saved config loads back with the same contexts."""
    cfg = smart_default_config()
    cfg.contexts.append(Context(name="prod", endpoint="http://lh", auth=Auth(type="token", token="t")))
    cfg.use_context("prod")
    written = cfg.save(str(tmp_path / "nested" / "config.yaml"))

    text = written.read_text()
    assert "current-context: prod" in text
    assert "output-format: table" in text
    assert load_config(str(written)) == cfg


def test_unknown_context(tmp_path) -> None:
    cfg = Config(contexts=[Context(name="a")], current_context="a")
    with pytest.raises(ConfigError, match="context b not found"):
        cfg.use_context("b")
    assert cfg.current_context == "a"


def test_invalid_timeout() -> None:
    cfg = Config.model_validate({"defaults": {"timeout": "soon"}})
    with pytest.raises(ConfigError, match="invalid timeout"):
        cfg.defaults.timeout_seconds()


def test_resolve_namespace() -> None:
    """Test that the flag wins over the context, which wins over the default."""
    ctx = Context(name="a", namespace="storage")
    assert resolve_namespace(ctx, "other") == "other"
    assert resolve_namespace(ctx) == "storage"
    assert resolve_namespace(Context(name="b")) == "longhorn-system"


def test_build_client_rest() -> None:
    """Test that token and none auth produce the REST backend."""
    cfg = Config(
        contexts=[
            Context(name="prod", endpoint="http://lh:9500", namespace="storage", auth=Auth(type="token", token="t")),
            Context(name="open", endpoint="http://lh:9500"),
        ],
        current_context="prod",
    )
    client = build_client(cfg)
    assert isinstance(client, LonghornHTTPClient)
    assert client.namespace == "storage"
    assert client.base_url == "http://lh:9500/v1"

    assert build_client(cfg, "open", namespace="other").namespace == "other"


@pytest.mark.parametrize(
    "context, message",
    [
        (Context(name="c", endpoint="http://lh", auth=Auth(type="token")), "has no token"),
        (Context(name="c", auth=Auth(type="token", token="t")), "endpoint is required"),
        (Context(name="c", auth=Auth(type="oidc")), "unsupported auth type"),
    ],
)
def test_build_client_errors(context, message) -> None:
    cfg = Config(contexts=[context], current_context="c")
    with pytest.raises(ConfigError, match=message):
        build_client(cfg)


def test_build_client_with_unreadable_kubeconfig(tmp_path) -> None:
    """Test that a missing kubeconfig is reported as a config error."""
    cfg = Config(
        contexts=[Context(name="k", auth=Auth(type="kubeconfig", path=str(tmp_path / "missing")))],
        current_context="k",
    )
    with pytest.raises(ConfigError, match="failed to load kubeconfig"):
        build_client(cfg)
