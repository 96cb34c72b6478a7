"""Configuration loading and validation utilities.

This module loads YAML configuration files and validates them against
Pydantic schemas. It handles file resolution, parsing, and error reporting.

Example
-------
>>> from medfit.config.loader import load_config
>>> from medfit.config.schemas import BootstrapConfig
>>>
>>> config = load_config("configs/bootstrap.yaml", BootstrapConfig)  # doctest: +SKIP
>>> print(config.n_boot)  # doctest: +SKIP
5000
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, ValidationError

from ..errors import ConfigurationError

__all__ = ["load_config", "save_config", "ConfigurationError"]

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _resolve_config_path(file_path: Union[str, Path], project_root: Optional[Path] = None) -> Path:
    """Resolve configuration file path.

    Parameters
    ----------
    file_path : str or Path
        Path to configuration file (absolute or relative)
    project_root : Path, optional
        Project root directory. If None, auto-detect from this file's location.

    Returns
    -------
    Path
        Resolved absolute path

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(file_path)

    if path.is_absolute() and path.exists():
        return path

    if project_root is None:
        project_root = Path(__file__).resolve().parents[3]

    resolved = project_root / path
    if resolved.exists():
        return resolved

    if path.exists():
        return path.resolve()

    raise FileNotFoundError(f"Config file not found: {file_path}")


def load_config(
    file_path: Union[str, Path],
    schema: Type[T],
    *,
    project_root: Optional[Path] = None,
) -> T:
    """Load and validate a YAML configuration file.

    Parameters
    ----------
    file_path : str or Path
        Path to YAML configuration file
    schema : Type[BaseModel]
        Pydantic model class to validate against
    project_root : Path, optional
        Project root directory for path resolution

    Returns
    -------
    BaseModel
        Validated configuration object

    Raises
    ------
    ConfigurationError
        If the file cannot be found, parsed, or validated
    """
    try:
        resolved_path = _resolve_config_path(file_path, project_root)
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e

    logger.debug("Loading config from: %s", resolved_path)
    try:
        with open(resolved_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e

    if data is None:
        raise ConfigurationError(f"Empty configuration file: {file_path}")
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping, got {type(data).__name__}: {file_path}"
        )

    try:
        config = schema.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed for {file_path}:\n{e}") from e

    logger.info("Successfully loaded config: %s", resolved_path.name)
    return config


def save_config(config: BaseModel, file_path: Union[str, Path]) -> Path:
    """Write ``config`` to ``file_path`` as YAML and return the path written."""

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    logger.info("Saved config to: %s", path)
    return path
