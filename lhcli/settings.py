"""Process-level settings for lhcli."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings read from the environment.

    Every field can be overridden with an ``LHCLI_`` prefixed variable,
    e.g. ``LHCLI_DEBUG=1`` or ``LHCLI_CONFIG_PATH=/etc/lhcli.yaml``.
    """

    # Logging
    debug: bool = False
    log_format: str = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

    # Config file
    config_path: str = "~/.lhcli/config.yaml"

    # HTTP settings
    request_timeout: float = 30.0

    class Config:
        """Pydantic config."""

        env_prefix = "LHCLI_"
        case_sensitive = False


# Global settings instance
settings = Settings()
