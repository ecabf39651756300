"""Configuration loader for quizplay sessions."""

from __future__ import annotations

import copy
import os
import tomllib
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from .core import workspace as workspace_mod
from .engine.scheduling import DoublingSchedulingPolicy

__all__ = [
    "CONFIG_FILENAME",
    "CONFIG_ENV",
    "CONFIG_TEMPLATE",
    "ConfigOverrides",
    "LoadResult",
    "QuizplayConfig",
    "QuizplayConfigError",
    "load_config",
    "write_config_template",
]

CONFIG_FILENAME = "quizplay.toml"
CONFIG_ENV = "QUIZPLAY_CONFIG"
ENV_PREFIX = "QUIZPLAY_"

CONFIG_TEMPLATE = """\
# quizplay configuration

[session]
# Force (true) or disable (false) flash card mode; unset follows each quiz
# flashcard = true
# Fixed shuffle seed; leave unset for a fresh shuffle every session
# seed = 42

[scheduling]
# First review interval; doubles with every consecutive correct answer
base_interval_hours = 24
# Cap on the number of doublings
max_exponent = 5

[logging]
level = "INFO"
"""

_DEFAULTS: Mapping[str, Mapping[str, Any]] = {
    "session": {"flashcard": None, "seed": None},
    "scheduling": {"base_interval_hours": 24.0, "max_exponent": 5},
    "logging": {"level": "INFO"},
}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class QuizplayConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class QuizplayConfig:
    """Fully resolved configuration for a session run."""

    flashcard: bool | None
    seed: int | None
    base_interval_hours: float
    max_exponent: int
    log_level: str

    def scheduling_policy(self) -> DoublingSchedulingPolicy:
        return DoublingSchedulingPolicy(
            base_interval=timedelta(hours=self.base_interval_hours),
            max_exponent=self.max_exponent,
        )


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of file/env options."""

    flashcard: Optional[bool] = None
    seed: Optional[int] = None
    log_level: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    config: QuizplayConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML > defaults."""

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env
    try:
        layout = workspace_mod.ensure_workspace(
            env=env_map, path=workspace_path
        )
    except workspace_mod.WorkspaceError as exc:
        raise QuizplayConfigError(str(exc)) from exc

    requested = _resolve_config_path(
        config_path, env_map, layout.path_for("config") / CONFIG_FILENAME
    )
    table = copy.deepcopy(_DEFAULTS)
    loaded_path: Optional[Path] = None
    if requested.exists():
        _merge_table(table, _read_toml(requested))
        loaded_path = requested
    elif config_path is not None or env_map.get(CONFIG_ENV, "").strip():
        raise QuizplayConfigError(f"Config file not found: {requested}")

    session = table["session"]
    scheduling = table["scheduling"]

    flashcard = _pick_first(
        overrides.flashcard,
        _env_bool(env_map, "FLASHCARD"),
        session["flashcard"],
    )
    seed = _pick_first(overrides.seed, session["seed"])
    base_hours = _pick_first(
        _env_float(env_map, "BASE_INTERVAL_HOURS"),
        scheduling["base_interval_hours"],
    )
    log_level = _pick_first(
        overrides.log_level,
        (env_map.get(f"{ENV_PREFIX}LOG_LEVEL") or "").strip() or None,
        table["logging"]["level"],
    )

    config = QuizplayConfig(
        flashcard=_optional_bool(flashcard, "session.flashcard"),
        seed=_optional_int(seed, "session.seed"),
        base_interval_hours=_positive_float(
            base_hours, "scheduling.base_interval_hours"
        ),
        max_exponent=_non_negative_int(
            scheduling["max_exponent"], "scheduling.max_exponent"
        ),
        log_level=str(log_level).upper(),
    )
    return LoadResult(config=config, layout=layout, config_path=loaded_path)


def write_config_template(path: Path, *, overwrite: bool = False) -> Path:
    """Write the commented default config to ``path`` (owner-only)."""

    if path.exists() and not overwrite:
        raise QuizplayConfigError(
            f"Config already exists: {path}. Use --force to overwrite."
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


def _read_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise QuizplayConfigError(
            f"Failed to parse config TOML {path}: {exc}"
        ) from exc


def _merge_table(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    prefix: str = "",
) -> None:
    """Overlay file values onto the defaults; unknown keys are errors."""

    for key, value in override.items():
        dotted = f"{prefix}{key}"
        if key not in base:
            raise QuizplayConfigError(
                f"Unknown configuration key '{dotted}'."
            )
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise QuizplayConfigError(
                    f"'{dotted}' must be a table, found "
                    f"{type(value).__name__}."
                )
            _merge_table(base[key], value, prefix=f"{dotted}.")
            continue
        base[key] = value


def _resolve_config_path(
    explicit: Optional[Path], env_map: Mapping[str, str], default: Path
) -> Path:
    if explicit is not None:
        return explicit.expanduser()
    candidate = (env_map.get(CONFIG_ENV) or "").strip()
    if candidate:
        return Path(candidate).expanduser()
    return default


def _pick_first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _env_bool(env_map: Mapping[str, str], name: str) -> Optional[bool]:
    raw = (env_map.get(f"{ENV_PREFIX}{name}") or "").strip().lower()
    if not raw:
        return None
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise QuizplayConfigError(
        f"Environment variable {ENV_PREFIX}{name} must be a boolean."
    )


def _env_float(env_map: Mapping[str, str], name: str) -> Optional[float]:
    raw = (env_map.get(f"{ENV_PREFIX}{name}") or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise QuizplayConfigError(
            f"Environment variable {ENV_PREFIX}{name} must be a number."
        ) from exc


def _optional_bool(value: Any, key: str) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise QuizplayConfigError(f"'{key}' must be true or false.")
    return value


def _optional_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise QuizplayConfigError(f"'{key}' must be an integer.")
    return value


def _positive_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QuizplayConfigError(f"'{key}' must be a number.")
    if value <= 0:
        raise QuizplayConfigError(f"'{key}' must be greater than zero.")
    return float(value)


def _non_negative_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise QuizplayConfigError(f"'{key}' must be a non-negative integer.")
    return value
