"""Tests of the timing decorator and the package level configuration."""

import os

import numpy as np
import pytest

import porevel as pv
from porevel.utils import logging as pv_logging


@pv.time_logger(sections=["numerics"])
def _add(a, b=1):
    """Add two numbers."""
    return a + b


def test_time_logger_is_transparent():
    assert _add(1) == 2
    assert _add(1, b=3) == 4
    assert _add.__name__ == "_add"
    assert _add.__doc__ == "Add two numbers."


def test_time_logger_active(monkeypatch, caplog):
    monkeypatch.setattr(pv_logging, "logger_is_active", True)
    monkeypatch.setattr(pv_logging, "active_sections", ["numerics"])
    with caplog.at_level("INFO", logger="Timer"):
        assert _add(2) == 3
    assert "Calling _add" in caplog.text
    assert "Elapsed time" in caplog.text


def test_time_logger_inactive_section(monkeypatch, caplog):
    monkeypatch.setattr(pv_logging, "logger_is_active", True)
    monkeypatch.setattr(pv_logging, "active_sections", ["grids"])
    monkeypatch.setattr(pv_logging, "always_log", False)
    with caplog.at_level("INFO", logger="Timer"):
        assert _add(2) == 3
    assert "Calling _add" not in caplog.text


def test_config_is_dictionary():
    assert isinstance(pv.config, dict)


def test_configuration_error():
    with pytest.raises(pv.ConfigurationError):
        raise pv.ConfigurationError("Unknown element kind")
    assert issubclass(pv.ConfigurationError, Exception)


def test_time_logger_file_names(monkeypatch, caplog):
    monkeypatch.setattr(pv_logging, "logger_is_active", True)
    monkeypatch.setattr(pv_logging, "active_sections", ["grids"])
    monkeypatch.setattr(pv_logging, "always_log", False)
    g = pv.CartGrid(np.array([2, 2]))
    with caplog.at_level("INFO", logger="Timer"):
        pv.perturb_nodes(g, rate=0.1, dx=1, seed=0)
    # Paths are relative to the directory holding the package.
    assert os.path.join("porevel", "grids", "grid_utils.py") in caplog.text
    assert "perturb_nodes" in caplog.text
    assert "compute_geometry" in caplog.text
