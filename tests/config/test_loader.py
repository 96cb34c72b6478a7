"""Tests for configuration loading and validation module."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from medfit.config.loader import (
    ConfigurationError,
    _resolve_config_path,
    load_config,
    save_config,
)
from medfit.config.schemas import BootstrapConfig, BootstrapMethod


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary YAML config file."""
    config_file = tmp_path / "bootstrap.yaml"
    data = {"method": "nonparametric", "n_boot": 500, "seed": 42, "ci_level": 0.9}
    with open(config_file, "w") as f:
        yaml.dump(data, f)
    return config_file


@pytest.fixture
def invalid_yaml_file(tmp_path: Path) -> Path:
    """Create a file with invalid YAML syntax."""
    invalid_file = tmp_path / "invalid.yaml"
    with open(invalid_file, "w") as f:
        f.write("method: parametric\nn_boot: [unclosed list\n")
    return invalid_file


# Tests for _resolve_config_path


def test_resolve_absolute_existing_path(temp_config_file: Path):
    resolved = _resolve_config_path(temp_config_file)
    assert resolved == temp_config_file
    assert resolved.is_absolute()


def test_resolve_relative_to_project_root(tmp_path: Path):
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    config_file = config_dir / "boot.yaml"
    config_file.write_text("n_boot: 10")

    resolved = _resolve_config_path("configs/boot.yaml", project_root=tmp_path)
    assert resolved == config_file


def test_resolve_relative_to_cwd(tmp_path: Path, monkeypatch):
    config_file = tmp_path / "local.yaml"
    config_file.write_text("n_boot: 10")

    monkeypatch.chdir(tmp_path)
    resolved = _resolve_config_path("local.yaml")
    assert resolved.name == "local.yaml"
    assert resolved.exists()


def test_resolve_nonexistent_file_raises():
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        _resolve_config_path("nonexistent.yaml")


# Tests for load_config


def test_load_config_valid_yaml(temp_config_file: Path):
    config = load_config(temp_config_file, BootstrapConfig)

    assert isinstance(config, BootstrapConfig)
    assert config.method is BootstrapMethod.NONPARAMETRIC
    assert config.n_boot == 500
    assert config.seed == 42
    assert config.ci_level == pytest.approx(0.9)


def test_load_config_with_defaults(tmp_path: Path):
    config_file = tmp_path / "minimal.yaml"
    config_file.write_text("seed: 7")

    config = load_config(config_file, BootstrapConfig)
    assert config.method is BootstrapMethod.PARAMETRIC
    assert config.n_boot == 1000
    assert config.ci_level == pytest.approx(0.95)


def test_load_config_invalid_yaml(invalid_yaml_file: Path):
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_config(invalid_yaml_file, BootstrapConfig)


def test_load_config_empty_file_raises(tmp_path: Path):
    empty_file = tmp_path / "empty.yaml"
    empty_file.touch()

    with pytest.raises(ConfigurationError, match="Empty configuration file"):
        load_config(empty_file, BootstrapConfig)


def test_load_config_non_mapping_root(tmp_path: Path):
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- 1\n- 2\n")

    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(config_file, BootstrapConfig)


def test_load_config_missing_file():
    with pytest.raises(ConfigurationError, match="Config file not found"):
        load_config("nonexistent.yaml", BootstrapConfig)


def test_load_config_validation_error(tmp_path: Path):
    config_file = tmp_path / "invalid_values.yaml"
    config_file.write_text("n_boot: 100\nci_level: 1.5\n")

    with pytest.raises(ConfigurationError, match="Configuration validation failed"):
        load_config(config_file, BootstrapConfig)


# Tests for save_config


def test_save_config_round_trips(tmp_path: Path):
    config = BootstrapConfig(method="nonparametric", n_boot=250, seed=3, parallel=True)
    output_file = tmp_path / "nested" / "output.yaml"

    saved_path = save_config(config, output_file)

    assert saved_path == output_file
    with open(saved_path, "r") as f:
        data = yaml.safe_load(f)
    assert data["method"] == "nonparametric"
    assert data["n_boot"] == 250
    assert load_config(saved_path, BootstrapConfig) == config
