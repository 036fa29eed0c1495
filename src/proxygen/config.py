"""Configuration for proxy synthesis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from proxygen.errors import ConfigError
from proxygen.logging import configure_logging


class ResolutionPolicy(Enum):
    """Tie-break used when several initializers accept the arguments."""

    FIRST = "first"  # First assignable match in declaration order
    MOST_SPECIFIC = "most_specific"  # Narrowest parameter types win


@dataclass
class ProxyConfig:
    """Settings shared by every ProxyFactory that does not get its own.

    Attributes:
        prefix: Default prefix of generated class names
        resolution: Initializer tie-break policy
        single_flight: Compile each proxy name at most once, even when
            several threads request it at the same time
        raise_on_instantiation_error: Raise InstantiationError when the
            initializer fails; when False, log and return None instead
        dump_source_dir: Directory that receives every generated source
        default_strategy: Name of the strategy used when none is given
        log_level: Level passed to configure_logging
        log_format: "text" or "json"
    """

    prefix: str = ""
    resolution: ResolutionPolicy = ResolutionPolicy.FIRST
    single_flight: bool = True
    raise_on_instantiation_error: bool = True
    dump_source_dir: Path | None = None
    default_strategy: str = "delegate"
    log_level: str = "WARNING"
    log_format: str = "text"

    def __post_init__(self) -> None:
        if isinstance(self.resolution, str):
            try:
                self.resolution = ResolutionPolicy(self.resolution)
            except ValueError as e:
                choices = [p.value for p in ResolutionPolicy]
                raise ConfigError(
                    f"Unknown resolution policy: {self.resolution!r}",
                    context={"choices": choices},
                ) from e
        if isinstance(self.dump_source_dir, str):
            self.dump_source_dir = Path(self.dump_source_dir)
        if self.prefix and not self.prefix.isidentifier():
            raise ConfigError(f"Proxy prefix must be an identifier: {self.prefix!r}")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in logging.getLevelNamesMapping():
            raise ConfigError(
                f"Unknown log level: {self.log_level!r}",
                context={"choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
            )
        if self.log_format not in ("text", "json"):
            raise ConfigError(
                f"Unknown log format: {self.log_format!r}", context={"choices": ["text", "json"]}
            )


_config: ProxyConfig | None = None


def get_config() -> ProxyConfig:
    """Get the process-wide default configuration."""
    global _config
    if _config is None:
        _config = ProxyConfig()
    return _config


def set_config(config: ProxyConfig) -> None:
    """Replace the process-wide default configuration."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the process-wide configuration so defaults apply again."""
    global _config
    _config = None


def apply_config(config: ProxyConfig) -> None:
    """Install ``config`` as the process default and configure logging from it."""
    set_config(config)
    configure_logging(config.log_level, config.log_format)
