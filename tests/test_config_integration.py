"""Tests for configuration loading and the shipped YAML files."""

import logging
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from mesh_deviation.utils.config import load_config, AppConfig, AlignmentICPConfig, PreprocessingConfig
from mesh_deviation.utils.logging import configure_from_config, setup_logger


def test_model_defaults():
    """Test that AppConfig() carries the documented defaults."""
    cfg = AppConfig()

    assert cfg.alignment.max_iterations == 50
    assert cfg.alignment.tolerance == 1e-6
    assert cfg.alignment.correspondence_threshold == 1.0
    assert cfg.alignment.early_exit_epsilon == 0.0
    assert cfg.deviation.matching_threshold == 0.01
    assert cfg.deviation.cells_per_diagonal == 50
    assert cfg.heatmap.scheme == "binary"
    assert cfg.quality.excellent == 0.1
    assert cfg.quality.good == 0.3
    assert cfg.preprocessing.normalize is False
    assert cfg.parallel.enabled is True
    assert cfg.parallel.n_workers is None
    assert cfg.logging.level == "INFO"


def test_default_yaml_matches_model_defaults():
    """Test that default.yaml does not drift from the model defaults."""
    cfg = load_config(None)  # Load default.yaml

    assert cfg == AppConfig()


def test_dental_scan_profile():
    """Test that the dental scan profile tightens the search and enables normalization."""
    cfg = load_config("config/profiles/dental_scan.yaml")

    assert cfg.alignment.max_iterations == 100
    assert cfg.alignment.tolerance == 1e-8
    assert cfg.alignment.correspondence_threshold == 0.5
    assert cfg.deviation.cells_per_diagonal == 64
    assert cfg.heatmap.scheme == "five_band"
    assert cfg.preprocessing.normalize is True
    assert cfg.preprocessing.sampling_density == 0.5
    assert cfg.parallel.n_workers == 4
    assert cfg.parallel.chunk_size == 8192
    assert cfg.logging.level == "DEBUG"
    # Unset sections keep their defaults
    assert cfg.quality.excellent == 0.1


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "does_not_exist.yaml")
    assert cfg == AppConfig()


def test_missing_file_raises_when_required(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "does_not_exist.yaml", allow_missing=False)


def test_invalid_values_raise_value_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("alignment:\n  max_iterations: 0\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid configuration"):
        load_config(path)


def test_unknown_scheme_rejected(tmp_path):
    path = tmp_path / "bad_scheme.yaml"
    path.write_text("heatmap:\n  scheme: rainbow\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(path)


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == AppConfig()


@pytest.mark.parametrize(
    "model, kwargs",
    [
        (AlignmentICPConfig, {"tolerance": 0.0}),
        (AlignmentICPConfig, {"correspondence_threshold": -1.0}),
        (PreprocessingConfig, {"sampling_density": 1.5}),
        (PreprocessingConfig, {"sampling_density": 0.0}),
    ],
)
def test_field_constraints(model, kwargs):
    with pytest.raises(ValueError):
        model(**kwargs)


def test_configure_from_config_sets_package_levels(tmp_path):
    logger = setup_logger("mesh_deviation.test_config_logging")
    log_file = tmp_path / "logs" / "run.log"
    cfg = AppConfig.model_validate({"logging": {"level": "DEBUG", "file": str(log_file)}})

    try:
        configure_from_config(cfg.logging)

        assert logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in logger.handlers)
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert log_file.parent.exists()

        # Applying the same config again does not duplicate the file handler
        configure_from_config(cfg.logging)
        assert len([h for h in logger.handlers if isinstance(h, logging.FileHandler)]) == 1
    finally:
        for name in list(logging.Logger.manager.loggerDict):
            if not name.startswith("mesh_deviation"):
                continue
            pkg_logger = logging.getLogger(name)
            for h in list(pkg_logger.handlers):
                if isinstance(h, logging.FileHandler):
                    pkg_logger.removeHandler(h)
                    h.close()
        configure_from_config(AppConfig().logging)
