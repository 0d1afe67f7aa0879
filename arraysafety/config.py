"""Configuration for the array-safety analysis.

Settings come from an ``arraysafety.toml`` file (top-level keys or a
``[tool.arraysafety]`` table) or from the ``[tool.arraysafety]`` table of a
``pyproject.toml``.  Command-line arguments override file values.
"""
from __future__ import annotations

import dataclasses
import math
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from arraysafety.errors import ConfigError

CONFIG_FILES = [
    "arraysafety.toml",
    ".arraysafety.toml",
    "pyproject.toml",
]

DEFAULT_LOWER_BOUND = -100
DEFAULT_UPPER_BOUND = 100


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Run-wide analysis settings.

    ``lower_bound``/``upper_bound`` form the interval window: bounds outside
    it are widened to infinity, which is what keeps loops terminating.
    """
    lower_bound: int = DEFAULT_LOWER_BOUND
    upper_bound: int = DEFAULT_UPPER_BOUND
    record_trace: bool = False
    output_dir: Path | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in ("lower_bound", "upper_bound"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or value != int(value):
                raise ConfigError(f"{name} must be a finite integer, got {value!r}")
        if self.lower_bound > self.upper_bound:
            raise ConfigError(
                f"lower_bound ({self.lower_bound}) exceeds upper_bound ({self.upper_bound})"
            )

    def with_overrides(self, **overrides: Any) -> "AnalysisConfig":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "record_trace": self.record_trace,
            "output_dir": None if self.output_dir is None else str(self.output_dir),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")
        values = dict(data)
        if values.get("output_dir") is not None:
            values["output_dir"] = Path(values["output_dir"])
        return cls(**values)

    @classmethod
    def from_toml(cls, path: Path) -> "AnalysisConfig":
        """Load settings from ``path``; missing keys keep their defaults."""
        path = Path(path)
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid TOML in {path}: {e}") from e

        if path.name == "pyproject.toml":
            section = data.get("tool", {}).get("arraysafety", {})
        else:
            section = data.get("tool", {}).get("arraysafety", data)
        logger.debug("loaded configuration from {}", path)
        return cls.from_dict(section)


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by walking up from ``start_dir``."""
    if start_dir is None:
        start_dir = Path.cwd()
    current = start_dir.resolve()
    while True:
        for config_name in CONFIG_FILES:
            config_path = current / config_name
            if config_path.exists():
                return config_path
        if current == current.parent:
            return None
        current = current.parent


def load_config(
    config_path: Path | None = None,
    start_dir: Path | None = None,
) -> AnalysisConfig:
    """Load configuration from an explicit file, a discovered file, or defaults."""
    if config_path is None:
        config_path = find_config_file(start_dir)
        if config_path is None:
            return AnalysisConfig()
    elif not Path(config_path).exists():
        raise ConfigError(f"config file not found: {config_path}")
    return AnalysisConfig.from_toml(config_path)
