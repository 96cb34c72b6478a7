"""Global settings for the package.

The functions exposed here provide a cheap settings *singleton* with sensible
fallbacks for development environments. The implementation only uses the
standard library but mimics Pydantic's ``BaseSettings`` experience, including
``.env`` files and automatic parsing of primitive types.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping

from .constants import BACKENDS, DEFAULT_BACKEND, DEFAULT_MAX_EXCLUDED_FRACTION

__all__ = [
    "ENV_PREFIX",
    "Settings",
    "get_settings",
    "load_env_file",
    "reset_settings_cache",
]


ENV_PREFIX = "MEDFIT_"
"""Prefix used by every environment variable of the project."""

_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off"}
_NONE = {"", "none", "null"}


def _coerce_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _BOOL_TRUE:
        return True
    if lowered in _BOOL_FALSE:
        return False
    raise ValueError(f"Cannot interpret '{value}' as boolean")


def _parse_value(value: str, *, target: type) -> Any:
    if target is bool:
        return _coerce_bool(value)
    if target is int:
        return int(value)
    if target is float:
        return float(value)
    return value


def _parse_optional_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in _NONE:
        return None
    return int(value)


def _expand_path(path_str: str, *, base: Path) -> Path:
    candidate = Path(path_str).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    return candidate


def _default_workers() -> int:
    return max(1, (os.cpu_count() or 1) - 1)


def load_env_file(path: Path) -> Mapping[str, str]:
    """Parse a ``.env`` style file returning a mapping of key/values.

    Blank lines and comments starting with ``#`` are ignored. Only the first
    ``=`` in each line is treated as the separator.
    """

    entries: MutableMapping[str, str] = {}
    if not path.exists():
        return entries

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        entries[key.strip()] = value.strip()
    return entries


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


@dataclass(slots=True, frozen=True)
class Settings:
    """Immutable set of global settings.

    Holds the paths used by the CLI (configs, logs), execution flags and the
    defaults applied to bootstrap runs when a configuration leaves them open
    (worker count, parallel backend, exclusion budget). Every key can be
    overridden through environment variables prefixed with :data:`ENV_PREFIX`
    or through explicit overrides.
    """

    project_root: Path
    configs_dir: Path
    logs_dir: Path
    random_seed: int | None
    structured_logging: bool
    default_workers: int
    default_backend: str
    max_excluded_fraction: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_root": str(self.project_root),
            "configs_dir": str(self.configs_dir),
            "logs_dir": str(self.logs_dir),
            "random_seed": self.random_seed,
            "structured_logging": self.structured_logging,
            "default_workers": self.default_workers,
            "default_backend": self.default_backend,
            "max_excluded_fraction": self.max_excluded_fraction,
        }

    @classmethod
    def from_env(
        cls,
        *,
        overrides: Mapping[str, Any] | None = None,
        env_file: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Create :class:`Settings` merging defaults, env file, env vars and overrides."""

        overrides = dict(overrides or {})

        env_mapping: MutableMapping[str, str] = {}
        if env_file is not None:
            explicit_env_path = Path(env_file).expanduser()
            env_mapping.update(load_env_file(explicit_env_path))

        system_environ = dict(os.environ if environ is None else environ)

        project_root_value = overrides.pop("project_root", None)
        if project_root_value is None:
            project_root_value = env_mapping.get(f"{ENV_PREFIX}PROJECT_ROOT")
        if project_root_value is None:
            project_root_value = system_environ.get(f"{ENV_PREFIX}PROJECT_ROOT")

        if project_root_value is None:
            project_root = _project_root()
        else:
            project_root = Path(str(project_root_value)).expanduser().resolve()

        default_env_path = project_root / ".env"
        if env_file is None and default_env_path.exists():
            env_mapping.update(load_env_file(default_env_path))

        # System environment has the highest precedence.
        env_mapping.update(system_environ)

        def pull(name: str, *, default: Any, target: type) -> Any:
            key = f"{ENV_PREFIX}{name}"
            if name in overrides:
                value = overrides.pop(name)
                if target is Path:
                    return _expand_path(str(value), base=project_root)
                if isinstance(value, str) and target is bool:
                    return _coerce_bool(value)
                if isinstance(value, str) and target in {int, float}:
                    return _parse_value(value, target=target)
                return value
            if key in env_mapping:
                raw = env_mapping[key]
                if target is Path:
                    return _expand_path(raw, base=project_root)
                return _parse_value(raw, target=target)
            if target is Path:
                return _expand_path(str(default), base=project_root)
            return default

        configs_dir = pull("CONFIGS_DIR", default="configs", target=Path)
        logs_dir = pull("LOGS_DIR", default="logs", target=Path)

        random_seed = _parse_optional_int(pull("RANDOM_SEED", default=None, target=str))
        structured_logging = pull("STRUCTURED_LOGGING", default=False, target=bool)
        default_workers = pull("WORKERS", default=_default_workers(), target=int)
        default_backend = pull("BACKEND", default=DEFAULT_BACKEND, target=str)
        max_excluded_fraction = pull(
            "MAX_EXCLUDED_FRACTION", default=DEFAULT_MAX_EXCLUDED_FRACTION, target=float
        )

        if overrides:
            unknown = ", ".join(sorted(overrides))
            raise KeyError(f"Unknown override(s): {unknown}")

        if int(default_workers) < 1:
            raise ValueError("WORKERS must be at least 1")
        if str(default_backend) not in BACKENDS:
            raise ValueError(
                f"BACKEND must be one of {', '.join(BACKENDS)}; got '{default_backend}'"
            )

        return cls(
            project_root=project_root,
            configs_dir=configs_dir,
            logs_dir=logs_dir,
            random_seed=random_seed,
            structured_logging=bool(structured_logging),
            default_workers=int(default_workers),
            default_backend=str(default_backend),
            max_excluded_fraction=float(max_excluded_fraction),
        )


_SETTINGS_CACHE: Settings | None = None


def get_settings(**kwargs: Any) -> Settings:
    """Return cached settings, building them on the first call.

    When keyword arguments are provided the cache is bypassed and freshly
    computed settings are returned. The cache itself can be cleared with
    :func:`reset_settings_cache`.
    """

    global _SETTINGS_CACHE
    if kwargs:
        return Settings.from_env(**kwargs)
    if _SETTINGS_CACHE is None:
        _SETTINGS_CACHE = Settings.from_env()
    return _SETTINGS_CACHE


def reset_settings_cache() -> None:
    """Clear the singleton cache (useful for tests)."""

    global _SETTINGS_CACHE
    _SETTINGS_CACHE = None
