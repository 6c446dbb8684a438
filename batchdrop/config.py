"""
Engine configuration.

Defaults can be overridden from the ``[engine]`` table of a TOML file:

    [engine]
    batch_size = 5
    batch_delay = 2.0
    confirm_timeout = 60.0
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from .batch import DEFAULT_BATCH_DELAY, DEFAULT_BATCH_SIZE
from .errors import ConfigurationError
from .submitter import DEFAULT_CONFIRM_TIMEOUT


@dataclass(frozen=True)
class EngineConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay: float = DEFAULT_BATCH_DELAY  # seconds between batches
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT  # seconds per batch

    def __post_init__(self):
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ConfigurationError(
                f"batch_size must be an integer >= 1, got {self.batch_size!r}"
            )
        if self.batch_delay < 0:
            raise ConfigurationError(
                f"batch_delay must be >= 0, got {self.batch_delay!r}"
            )
        if self.confirm_timeout <= 0:
            raise ConfigurationError(
                f"confirm_timeout must be > 0, got {self.confirm_timeout!r}"
            )

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def load_config(path: Optional[str | Path] = None) -> EngineConfig:
    """Load EngineConfig from a TOML file, or defaults when path is None."""
    if path is None:
        return EngineConfig()

    path = Path(path)
    try:
        data = tomllib.loads(path.read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}")

    section = data.get("engine", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[engine] in {path} must be a table")

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown [engine] keys in {path}: {', '.join(unknown)}"
        )

    return EngineConfig(**section)
