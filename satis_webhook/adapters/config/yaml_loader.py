"""YAML configuration loader.

Implements ConfigLoaderPort by reading config.yml with PyYAML and
validating the mapping with pydantic before handing the core an
immutable RebuildConfig. Keys missing from the file keep their defaults.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from satis_webhook.core.errors import ConfigurationInvalid, ConfigurationMissing
from satis_webhook.core.models import RebuildConfig
from satis_webhook.core.ports import ConfigLoaderPort

logger = logging.getLogger(__name__)


class RebuildConfigFile(BaseModel):
    """Schema of config.yml.

    Field names differ from the file keys where a key would shadow a
    BaseModel attribute (``json``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    bin_path: str = Field(default="bin/satis", alias="bin")
    json_path: str = Field(default="satis.json", alias="json")
    webroot: str = Field(default="web/")
    user: str | None = None
    secret: str | None = None
    authorized_ips: str | list[str] | None = None
    timeout: float | None = Field(default=600.0)
    gitlab_url: str = Field(default="https://gitlab.com")

    @field_validator("authorized_ips", mode="before")
    @classmethod
    def coerce_patterns(cls, v: object) -> object:
        """Accept a single pattern or a list; empty lists mean no allow-list."""
        if isinstance(v, (list, tuple)):
            return [str(pattern) for pattern in v] or None
        return v

    @field_validator("user", "secret", mode="before")
    @classmethod
    def coerce_scalar(cls, v: object) -> object:
        """YAML may type numeric secrets or user names as numbers."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        """Ensure the build timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v

    def to_config(self) -> RebuildConfig:
        """Convert to the core's immutable configuration."""
        authorized_ips = self.authorized_ips
        if isinstance(authorized_ips, list):
            authorized_ips = tuple(authorized_ips)
        return RebuildConfig(
            bin=self.bin_path,
            json=self.json_path,
            webroot=self.webroot,
            user=self.user,
            secret=self.secret,
            authorized_ips=authorized_ips,
            timeout=self.timeout,
            gitlab_url=self.gitlab_url,
        )


class YamlConfigLoader(ConfigLoaderPort):
    """Reads config.yml fresh on every call."""

    def load(self, config_file: str) -> RebuildConfig:
        """Load config_file and merge it over the defaults.

        Raises:
            ConfigurationMissing: If config_file does not exist.
            ConfigurationInvalid: If it is not a YAML mapping or fails validation.
        """
        path = Path(config_file)
        if not path.is_file():
            logger.error(f"Configuration file not found: {config_file}")
            raise ConfigurationMissing(config_file)

        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to read {config_file}: {e}", exc_info=True)
            raise ConfigurationInvalid(config_file, str(e)) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationInvalid(
                config_file, f"expected a mapping, got {type(data).__name__}"
            )

        try:
            return RebuildConfigFile.model_validate(data).to_config()
        except ValidationError as e:
            logger.error(f"Invalid configuration in {config_file}: {e}")
            raise ConfigurationInvalid(config_file, str(e)) from e
