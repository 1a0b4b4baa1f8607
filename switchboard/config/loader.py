"""TOML configuration loading.

Layers, lowest precedence first:

    config/default.toml
    config/{SWITCHBOARD_ENV}.toml
    legacy environment variables (see LEGACY_ENV)

``SWITCHBOARD_*`` variables are applied on top by pydantic-settings.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

# Variables read by earlier deployments, mapped to their settings path
LEGACY_ENV: dict[str, tuple[str, ...]] = {
    "BACKEND_API_URL": ("backend", "base_url"),
}


def get_config_dir() -> Path:
    """Locate the config directory.

    ``SWITCHBOARD_CONFIG_DIR`` wins when set and must exist. Otherwise
    ``config/`` is searched for in the working directory and up to four
    parents.
    """
    override = os.environ.get("SWITCHBOARD_CONFIG_DIR")
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {override}")
        return path

    here = Path.cwd()
    for candidate in [here, *here.parents][:5]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return Path("config")


def get_environment() -> str:
    """Deployment environment from SWITCHBOARD_ENV (default "development")."""
    return os.environ.get("SWITCHBOARD_ENV", "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Read one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested tables merge recursively."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def config_files(config_dir: Path | None = None) -> list[Path]:
    """TOML files that apply to the current environment, in merge order."""
    config_dir = config_dir or get_config_dir()
    candidates = [config_dir / "default.toml", config_dir / f"{get_environment()}.toml"]
    return [path for path in candidates if path.exists()]


def legacy_env_overrides() -> dict[str, Any]:
    """Nested config built from any LEGACY_ENV variables that are set."""
    overrides: dict[str, Any] = {}
    for name, path in LEGACY_ENV.items():
        value = os.environ.get(name)
        if not value:
            continue
        table = overrides
        for key in path[:-1]:
            table = table.setdefault(key, {})
        table[path[-1]] = value
    return overrides


def load_config() -> dict[str, Any]:
    """Merge every TOML layer and legacy variable into one dictionary.

    Missing files are skipped; model defaults cover anything left unset.
    """
    config: dict[str, Any] = {}
    for path in config_files():
        config = deep_merge(config, load_toml(path))
    return deep_merge(config, legacy_env_overrides())
