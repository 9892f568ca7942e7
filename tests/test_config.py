"""Tests for config.py: environment settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from knowmap.config import DEFAULT_OUTPUT_DIR, load_settings


def test_defaults():
    settings = load_settings({})
    assert settings.output_dir == DEFAULT_OUTPUT_DIR
    assert settings.port == 8766
    assert settings.log_level == "INFO"
    assert settings.max_depth == 1000
    assert settings.render_scale == 2.0


def test_environment_overrides(tmp_path):
    settings = load_settings({
        "KNOWMAP_OUTPUT_DIR": str(tmp_path / "out"),
        "KNOWMAP_HOST": "127.0.0.1",
        "KNOWMAP_PORT": "9000",
        "KNOWMAP_LOG_LEVEL": "debug",
        "KNOWMAP_MAX_DEPTH": "50",
        "KNOWMAP_RENDER_SCALE": "1.5",
    })
    assert settings.output_dir == Path(tmp_path / "out")
    assert settings.host == "127.0.0.1"
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"
    assert settings.max_depth == 50
    assert settings.render_scale == 1.5

    assert settings.ensure_output_dir().is_dir()


def test_empty_values_use_defaults():
    assert load_settings({"KNOWMAP_PORT": ""}).port == 8766


def test_invalid_number_names_the_variable():
    with pytest.raises(ValueError, match="KNOWMAP_PORT"):
        load_settings({"KNOWMAP_PORT": "eighty"})
    with pytest.raises(ValueError, match="KNOWMAP_RENDER_SCALE"):
        load_settings({"KNOWMAP_RENDER_SCALE": "big"})
