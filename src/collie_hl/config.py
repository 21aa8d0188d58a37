"""Harness configuration: defaults, an optional ``collie-hl.toml`` and CLI overrides.

    [harness]
    grammar_path = "highlight/syntaxes/collie.tmLanguage.json"
    fixture_dir = "highlight/tests/syntax"
    scope_name = "source.collie"
    fixture_pattern = "*.test.collie"
    strict_assertions = false
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .types import ConfigError

DEFAULT_CONFIG_NAME = "collie-hl.toml"
CONFIG_SECTION = "harness"

_PATH_FIELDS = ("grammar_path", "fixture_dir")


@dataclass(frozen=True)
class HarnessConfig:
    grammar_path: Path = Path("highlight/syntaxes/collie.tmLanguage.json")
    fixture_dir: Path = Path("highlight/tests/syntax")
    scope_name: str = "source.collie"
    fixture_pattern: str = "*.test.collie"
    strict_assertions: bool = False
    # None: colour only when stdout is a terminal
    color: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "HarnessConfig":
        """Build a config from a mapping; unknown keys are ignored.

        Relative paths resolve against `base_dir` when given.
        """
        known = {f.name: f for f in fields(cls)}
        values: dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                continue
            if key in _PATH_FIELDS:
                if not isinstance(value, (str, Path)):
                    raise ConfigError(f"{key} must be a path string, got {type(value).__name__}")
                path = Path(value)
                if base_dir is not None and not path.is_absolute():
                    path = base_dir / path
                values[key] = path
            elif key in ("scope_name", "fixture_pattern"):
                if not isinstance(value, str) or not value:
                    raise ConfigError(f"{key} must be a non-empty string")
                values[key] = value
            elif key == "strict_assertions":
                if not isinstance(value, bool):
                    raise ConfigError(f"{key} must be true or false")
                values[key] = value
            elif key == "color":
                if value is not None and not isinstance(value, bool):
                    raise ConfigError(f"{key} must be true or false")
                values[key] = value

        return cls(**values)

    def merged(self, **overrides: Any) -> "HarnessConfig":
        """Copy with every override that is not None applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        for key in _PATH_FIELDS:
            if key in changes:
                changes[key] = Path(changes[key])
        return replace(self, **changes)


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc.strerror or exc}") from exc
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid config {path}: {exc}") from exc


def load_config(config_path: Optional[Path] = None, root: Optional[Path] = None) -> HarnessConfig:
    """Read `config_path`, or ``collie-hl.toml`` under `root` (cwd) if present.

    An explicit `config_path` must exist; the implicit one is optional.
    """
    if config_path is None:
        base = root if root is not None else Path.cwd()
        candidate = base / DEFAULT_CONFIG_NAME
        if not candidate.is_file():
            return HarnessConfig()
        config_path = candidate

    data = _load_toml(config_path)
    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{CONFIG_SECTION}] in {config_path} must be a table")
    return HarnessConfig.from_dict(section, base_dir=config_path.parent)
