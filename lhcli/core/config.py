"""Configuration file handling for lhcli.

The config file is YAML with named contexts, in the style of kubeconfig::

    current-context: production
    contexts:
      - name: production
        endpoint: https://longhorn.example.com
        namespace: longhorn-system
        auth:
          type: token
          token: secret
    defaults:
      output-format: table
      confirmation: true
      timeout: 30s
      page-size: 50
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lhcli.core.exceptions import ConfigError
from lhcli.core.size import parse_duration
from lhcli.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "longhorn-system"
DEFAULT_CONTEXT = "default"

AUTH_NONE = "none"
AUTH_TOKEN = "token"
AUTH_KUBECONFIG = "kubeconfig"


class Auth(BaseModel):
    """How a context authenticates."""

    type: str = Field(default=AUTH_NONE, description="none, token or kubeconfig")
    token: Optional[str] = Field(default=None, description="Bearer token for the REST API")
    path: Optional[str] = Field(default=None, description="Path to the kubeconfig file")
    context: Optional[str] = Field(default=None, description="Context inside the kubeconfig")


class Context(BaseModel):
    """A named connection to a Longhorn installation."""

    name: str
    endpoint: Optional[str] = Field(default=None, description="Longhorn manager URL")
    namespace: Optional[str] = Field(default=None, description="Longhorn namespace")
    auth: Auth = Field(default_factory=Auth)
    insecure: bool = Field(default=False, description="Skip TLS verification")


class Defaults(BaseModel):
    """Default behaviour for every command."""

    model_config = ConfigDict(populate_by_name=True)

    output_format: str = Field(default="table", alias="output-format")
    confirmation: bool = True
    timeout: str = "30s"
    page_size: int = Field(default=50, alias="page-size")

    def timeout_seconds(self) -> float:
        """Return the request timeout in seconds.

        Raises:
            ConfigError: If the timeout is not a valid duration
        """
        try:
            return parse_duration(self.timeout)
        except ValueError as e:
            raise ConfigError(f"invalid timeout: {e}")


class Config(BaseModel):
    """The whole config file."""

    model_config = ConfigDict(populate_by_name=True)

    contexts: List[Context] = Field(default_factory=list)
    current_context: str = Field(default="", alias="current-context")
    defaults: Defaults = Field(default_factory=Defaults)

    def get_context(self, name: Optional[str] = None) -> Context:
        """Find a context by name, or the current context when no name is given.

        Raises:
            ConfigError: If the context does not exist
        """
        name = name or self.current_context
        for ctx in self.contexts:
            if ctx.name == name:
                return ctx
        raise ConfigError(f"context {name} not found")

    def use_context(self, name: str) -> None:
        """Switch the current context.

        Raises:
            ConfigError: If the context does not exist
        """
        self.get_context(name)
        self.current_context = name

    def context_names(self) -> List[str]:
        return [ctx.name for ctx in self.contexts]

    def save(self, path: Optional[str] = None) -> Path:
        """Write the config file, creating its directory if needed.

        Args:
            path: Target file (defaults to the configured config path)

        Returns:
            Path of the written file
        """
        target = resolve_config_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(by_alias=True, exclude_none=True)
        try:
            with open(target, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"failed to write config file {target}: {e}")
        logger.debug("Wrote config to %s", target)
        return target


def resolve_config_path(path: Optional[str]) -> Path:
    return Path(os.path.expanduser(path or settings.config_path))


def get_kubeconfig_path() -> str:
    """Return ``$KUBECONFIG`` if set, else ``~/.kube/config``."""
    env_path = os.getenv("KUBECONFIG")
    if env_path:
        return env_path
    return os.path.join(os.path.expanduser("~"), ".kube", "config")


def default_config() -> Config:
    """A config with no contexts and default settings."""
    return Config()


def smart_default_config() -> Config:
    """A config that talks to Longhorn through the local kubeconfig."""
    return Config(
        contexts=[
            Context(
                name=DEFAULT_CONTEXT,
                namespace=DEFAULT_NAMESPACE,
                auth=Auth(type=AUTH_KUBECONFIG, path=get_kubeconfig_path()),
            )
        ],
        current_context=DEFAULT_CONTEXT,
    )


def load_config(path: Optional[str] = None) -> Config:
    """Load the config file.

    A missing file yields the kubeconfig based default, an empty one the
    plain default.

    Args:
        path: Config file (defaults to the configured config path)

    Returns:
        Parsed config

    Raises:
        ConfigError: If the file cannot be read or is not a valid config
    """
    target = resolve_config_path(path)
    if not target.exists():
        logger.debug("No config file at %s, using kubeconfig defaults", target)
        return smart_default_config()

    try:
        with open(target) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config file {target}: {e}")

    if data is None:
        return default_config()
    if not isinstance(data, dict):
        raise ConfigError(f"invalid config file {target}: expected a mapping")

    try:
        return Config.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(f"invalid config file {target}: {e}")
