"""Configuration management for Reelshelf."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import (
    CLIOptions,
    CrawlerSettings,
    LibrarySettings,
    LoggingSettings,
    MetadataSettings,
    ReelshelfConfig,
    TranslationSettings,
    WatchSettings,
)
from .resolver import assign_dotted, flatten_for_env, parse_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.reelshelf/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # Reelshelf configuration file
    # Generated automatically; change values with `reelshelf config set KEY --value VALUE`.
    """
)


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> ReelshelfConfig:
        """Load configuration data from disk, applying precedence rules.

        Args:
            cli_overrides: Dotted-key overrides from the command line.
            include_env: Whether ``REELSHELF__`` variables participate.
            ensure_file: Whether to create the file with defaults first.
            env_overrides: Environment mapping to use instead of ``os.environ``.

        Returns:
            ReelshelfConfig: Effective configuration.

        Raises:
            ConfigError: If any source is malformed.
        """
        if ensure_file:
            self.ensure_exists()

        env_data: Mapping[str, str] | None = None
        if include_env:
            env_data = env_overrides if env_overrides is not None else self._env

        return resolve_with_precedence(
            defaults=ReelshelfConfig(),
            file_overrides=self._read_file(),
            env_overrides=parse_env(env_data) if env_data else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def save(self, config: ReelshelfConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, ReelshelfConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def set_value(self, key: str, value: Any) -> ReelshelfConfig:
        """Persist a single dotted ``key`` after validating the result.

        Args:
            key: Dotted path such as ``crawler.headless``.
            value: Parsed value to store.

        Returns:
            ReelshelfConfig: Configuration as resolved from the updated file.

        Raises:
            ConfigError: If the key is empty or the new value is invalid.
        """
        segments = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError("KEY must specify a dotted path such as 'crawler.headless'.")

        self.ensure_exists()
        file_data = self._read_file()
        assign_dotted(file_data, segments, value)
        resolved = resolve_with_precedence(defaults=ReelshelfConfig(), file_overrides=file_data)
        self.save(file_data)
        return resolved

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(ReelshelfConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = yaml.safe_dump(dict(data), sort_keys=False)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{serialized}", encoding="utf-8"
        )


__all__ = [
    "CLIOptions",
    "ConfigError",
    "ConfigManager",
    "CrawlerSettings",
    "DEFAULT_CONFIG_PATH",
    "LibrarySettings",
    "LoggingSettings",
    "MetadataSettings",
    "ReelshelfConfig",
    "TranslationSettings",
    "WatchSettings",
    "flatten_for_env",
    "resolve_with_precedence",
]
