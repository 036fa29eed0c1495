"""TOML-based configuration for proxygen.

Usage:
    from proxygen.toml_config import load_toml_config, find_config_file

    config_path = find_config_file(Path.cwd())
    if config_path:
        set_config(load_toml_config(config_path))

Example proxygen.toml:
    prefix = "Traced"
    resolution = "most_specific"
    single_flight = true
    raise_on_instantiation_error = true
    dump_source_dir = "build/proxies"
    default_strategy = "trace"

    [logging]
    level = "DEBUG"
    format = "json"
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from proxygen.config import ProxyConfig
from proxygen.errors import ConfigError

# Config file names to search for (in order of preference)
CONFIG_FILE_NAMES = ["proxygen.toml", ".proxygenrc.toml", "pyproject.toml"]

_SCALAR_KEYS = (
    "prefix",
    "resolution",
    "single_flight",
    "raise_on_instantiation_error",
    "default_strategy",
)


def find_config_file(
    start_dir: Path,
    config_names: list[str] | None = None,
) -> Path | None:
    """Find a config file by searching up the directory hierarchy.

    Args:
        start_dir: Directory to start searching from
        config_names: File names to look for (default: CONFIG_FILE_NAMES)

    Returns:
        Path to the config file, or None if not found
    """
    config_names = config_names or CONFIG_FILE_NAMES
    current = start_dir.resolve()

    while True:
        for name in config_names:
            config_path = current / name
            if config_path.exists():
                # pyproject.toml only counts with a [tool.proxygen] table
                if name == "pyproject.toml":
                    if _has_proxygen_section(config_path):
                        return config_path
                else:
                    return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _has_proxygen_section(pyproject_path: Path) -> bool:
    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return False
    return "proxygen" in data.get("tool", {})


def load_toml_config(path: Path) -> ProxyConfig:
    """Load a ProxyConfig from a TOML file.

    Supports proxygen.toml (whole file) and pyproject.toml ([tool.proxygen]).
    Relative ``dump_source_dir`` values are resolved against the file's
    directory.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file has no proxygen settings or invalid values
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    if path.name == "pyproject.toml":
        if "proxygen" not in data.get("tool", {}):
            raise ConfigError(f"No [tool.proxygen] section in {path}")
        data = data["tool"]["proxygen"]

    return _build_config_from_dict(data, path.parent)


def _build_config_from_dict(data: dict[str, Any], base_dir: Path) -> ProxyConfig:
    kwargs: dict[str, Any] = {key: data[key] for key in _SCALAR_KEYS if key in data}

    if "dump_source_dir" in data:
        kwargs["dump_source_dir"] = base_dir / data["dump_source_dir"]

    if "logging" in data:
        log = data["logging"]
        if "level" in log:
            kwargs["log_level"] = str(log["level"]).upper()
        if "format" in log:
            kwargs["log_format"] = str(log["format"]).lower()

    unknown = set(data) - set(_SCALAR_KEYS) - {"dump_source_dir", "logging"}
    if unknown:
        raise ConfigError(f"Unknown proxygen settings: {sorted(unknown)}")

    return ProxyConfig(**kwargs)


def config_to_toml(config: ProxyConfig) -> str:
    """Convert a ProxyConfig to TOML format."""
    lines = [
        f'prefix = "{config.prefix}"',
        f'resolution = "{config.resolution.value}"',
        f"single_flight = {str(config.single_flight).lower()}",
        f"raise_on_instantiation_error = {str(config.raise_on_instantiation_error).lower()}",
        f'default_strategy = "{config.default_strategy}"',
    ]
    if config.dump_source_dir is not None:
        lines.append(f'dump_source_dir = "{config.dump_source_dir.as_posix()}"')
    lines.append("")
    lines.append("[logging]")
    lines.append(f'level = "{config.log_level}"')
    lines.append(f'format = "{config.log_format}"')
    lines.append("")
    return "\n".join(lines)


def load_project_config(start_dir: Path | None = None) -> ProxyConfig:
    """Load the nearest config file above ``start_dir``, or the defaults.

    Args:
        start_dir: Directory to start searching from (default: cwd)
    """
    config_path = find_config_file(start_dir or Path.cwd())
    if config_path is None:
        return ProxyConfig()
    return load_toml_config(config_path)
