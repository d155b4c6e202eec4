"""Configuration management for previewkit.

Handles loading .previewkit.yaml files with directory traversal,
environment variable overrides, and default values.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".previewkit.yaml"
ENV_ENABLE_PREVIEWS = "PREVIEWKIT_ENABLE_PREVIEWS"
ENV_LIBREOFFICE_PATH = "PREVIEWKIT_LIBREOFFICE_PATH"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


@dataclass
class ProviderEntry:
    """A provider contributed through the ``providers:`` config section."""

    mime_type_regex: str
    provider: str  # "package.module:ClassName"


@dataclass
class PreviewConfig:
    """Complete previewkit configuration."""

    enable_previews: bool = True
    enabled_preview_providers: list[str] | None = None  # None = built-in default set
    preview_libreoffice_path: str | None = None
    preview_max_filesize_image: int = 50  # MiB, -1 = unlimited
    allow_command_execution: bool = True
    providers: list[ProviderEntry] = field(default_factory=list)
    config_path: Path | None = None  # Path where config was loaded from

    def get_system_value(self, key: str, default: Any = None) -> Any:
        """Read-only key lookup used by the registry.

        Unknown keys and unset values return ``default``.
        """
        if key not in {f.name for f in fields(self)}:
            return default
        value = getattr(self, key)
        return default if value is None else value

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not isinstance(self.enable_previews, bool):
            raise ConfigError(
                f"enable_previews must be a boolean, got {self.enable_previews!r}"
            )

        if self.enabled_preview_providers is not None:
            if not isinstance(self.enabled_preview_providers, list) or not all(
                isinstance(p, str) and p for p in self.enabled_preview_providers
            ):
                raise ConfigError(
                    "enabled_preview_providers must be a list of provider names"
                )

        if self.preview_libreoffice_path is not None and not isinstance(
            self.preview_libreoffice_path, str
        ):
            raise ConfigError("preview_libreoffice_path must be a string")

        if not isinstance(self.allow_command_execution, bool):
            raise ConfigError(
                "allow_command_execution must be a boolean, "
                f"got {self.allow_command_execution!r}"
            )

        if (
            not isinstance(self.preview_max_filesize_image, int)
            or isinstance(self.preview_max_filesize_image, bool)
            or self.preview_max_filesize_image < -1
        ):
            raise ConfigError(
                "preview_max_filesize_image must be an integer >= -1 "
                f"(got {self.preview_max_filesize_image!r})"
            )

        for entry in self.providers:
            if not (
                isinstance(entry.mime_type_regex, str)
                and entry.mime_type_regex
                and isinstance(entry.provider, str)
                and entry.provider
            ):
                raise ConfigError(
                    "Each providers entry needs 'mime_type_regex' and 'provider'"
                )


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find .previewkit.yaml by traversing up from start_path.

    Args:
        start_path: Directory to start searching from. Defaults to cwd.

    Returns:
        Path to config file if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    if start_path.is_file():
        start_path = start_path.parent

    current = start_path
    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    config_path: Path | None = None,
    start_path: Path | None = None,
) -> PreviewConfig:
    """Load configuration from file, environment, and defaults.

    Priority (highest to lowest):
    1. Environment variables (PREVIEWKIT_ENABLE_PREVIEWS, PREVIEWKIT_LIBREOFFICE_PATH)
    2. Config file (.previewkit.yaml)
    3. Defaults

    Args:
        config_path: Explicit path to config file. If None, searches.
        start_path: Directory to start config file search from.

    Returns:
        Loaded and validated configuration.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    config = PreviewConfig()

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(start_path)

    if config_path is not None:
        config = _load_config_file(config_path)

    env_enable = os.environ.get(ENV_ENABLE_PREVIEWS)
    if env_enable:
        config.enable_previews = _parse_bool(env_enable, ENV_ENABLE_PREVIEWS)

    env_office = os.environ.get(ENV_LIBREOFFICE_PATH)
    if env_office:
        config.preview_libreoffice_path = env_office

    config.validate()
    return config


def _parse_bool(value: str, source: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ConfigError(f"Invalid boolean for {source}: {value!r}")


def _load_config_file(config_path: Path) -> PreviewConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to .previewkit.yaml file.

    Returns:
        Configuration loaded from file (not yet validated).

    Raises:
        ConfigError: If file cannot be read or parsed.
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    config = PreviewConfig(config_path=config_path)

    if "enable_previews" in data:
        config.enable_previews = data["enable_previews"]

    if "enabled_preview_providers" in data:
        config.enabled_preview_providers = data["enabled_preview_providers"]

    if data.get("preview_libreoffice_path") is not None:
        config.preview_libreoffice_path = data["preview_libreoffice_path"]

    if "preview_max_filesize_image" in data:
        config.preview_max_filesize_image = data["preview_max_filesize_image"]

    if "allow_command_execution" in data:
        config.allow_command_execution = data["allow_command_execution"]

    # Load plugin-contributed providers
    if "providers" in data:
        raw_providers = data["providers"]
        if not isinstance(raw_providers, list):
            raise ConfigError("'providers' must be a list")
        for item in raw_providers:
            if not isinstance(item, dict):
                raise ConfigError(f"Invalid providers entry: {item!r}")
            mime_type_regex = item.get("mime_type_regex")
            provider = item.get("provider")
            if not (isinstance(mime_type_regex, str) and mime_type_regex):
                raise ConfigError(f"Invalid mime_type_regex in providers entry: {item!r}")
            if not (isinstance(provider, str) and provider):
                raise ConfigError(f"Invalid provider in providers entry: {item!r}")
            config.providers.append(
                ProviderEntry(mime_type_regex=mime_type_regex, provider=provider)
            )

    return config


def create_default_config(path: Path | None = None) -> Path:
    """Create a default .previewkit.yaml config file.

    Args:
        path: Directory to create config in. Defaults to cwd.

    Returns:
        Path to created config file.

    Raises:
        ConfigError: If file already exists or cannot be written.
    """
    if path is None:
        path = Path.cwd()
    else:
        path = Path(path)

    config_path = path / CONFIG_FILENAME

    if config_path.exists():
        raise ConfigError(f"Config file already exists: {config_path}")

    config_content = """# previewkit configuration

# Master switch for preview generation (or PREVIEWKIT_ENABLE_PREVIEWS env var)
enable_previews: true

# Built-in providers to register (omit for the default set).
# "Image" expands to all bitmap providers.
# enabled_preview_providers:
#   - TXT
#   - MarkDown
#   - Image
#   - Movie
#   - PDF

# LibreOffice binary used by the office document providers
# preview_libreoffice_path: /usr/bin/libreoffice

# Largest image (in MiB) the bitmap providers will open, -1 = no limit
preview_max_filesize_image: 50

# Allow shelling out to ImageMagick, ffmpeg and LibreOffice
allow_command_execution: true

# Additional providers (uncomment to enable)
# providers:
#   - mime_type_regex: "application/x-custom"
#     provider: "mypackage.previews:CustomProvider"
"""

    try:
        config_path.write_text(config_content)
    except OSError as e:
        raise ConfigError(f"Cannot write config file: {e}") from e

    return config_path


def config_to_dict(config: PreviewConfig) -> dict[str, Any]:
    """Convert config to dictionary for display."""
    return {
        "enable_previews": config.enable_previews,
        "enabled_preview_providers": config.enabled_preview_providers,
        "preview_libreoffice_path": config.preview_libreoffice_path,
        "preview_max_filesize_image": config.preview_max_filesize_image,
        "allow_command_execution": config.allow_command_execution,
        "providers": [
            {"mime_type_regex": p.mime_type_regex, "provider": p.provider}
            for p in config.providers
        ]
        or None,
        "config_path": str(config.config_path) if config.config_path else None,
    }
