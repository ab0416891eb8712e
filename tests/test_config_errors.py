# ABOUTME: Validates engine configuration loading and the outward error messages.
# ABOUTME: Ensures YAML defaults, unknown-key rejection, and range checks behave as documented.

from pathlib import Path

import pytest

from src.common.config import EngineConfig, engine_config_from_mapping, load_engine_config
from src.common.errors import (
    LOAD_FAILED_MESSAGE,
    SUBMIT_FAILED_MESSAGE,
    AlreadyResolved,
    GenerationFailed,
    InvalidSubmission,
    StorageConflict,
    TrainingFailed,
    public_message,
)

REPO_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "engine.yaml"


def test_repo_config_loads():
    config = load_engine_config(REPO_CONFIG)
    assert config.min_sample_size == 5
    assert config.rebuild_mode == "inline"
    assert config.topics["truth-table"] == "truth-table"


def test_missing_keys_take_defaults(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("engine:\n  seed: 7\n  rebuild_mode: background\n")
    config = load_engine_config(path)
    assert config.seed == 7
    assert config.rebuild_mode == "background"
    assert config.min_training_examples == 10
    assert len(config.topics) == 6


def test_top_level_mapping_without_section(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("max_write_retries: 5\n")
    assert load_engine_config(path).max_write_retries == 5


def test_unknown_key_is_rejected():
    with pytest.raises(ValueError, match="unknown_knob"):
        engine_config_from_mapping({"unknown_knob": 1})


@pytest.mark.parametrize(
    "overrides",
    [
        {"min_level": 3, "max_level": 3},
        {"holdout_fraction": 0.0},
        {"holdout_fraction": 1.0},
        {"rebuild_mode": "nightly"},
        {"min_sample_size": 0},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        EngineConfig(**overrides)


def test_public_message_collapses_taxonomy():
    assert public_message(GenerationFailed("no family")) == LOAD_FAILED_MESSAGE
    assert public_message(AlreadyResolved("x")) == SUBMIT_FAILED_MESSAGE
    assert public_message(TrainingFailed("flat")) == SUBMIT_FAILED_MESSAGE
    assert public_message(StorageConflict(("s", "t"), 1, 2)) == SUBMIT_FAILED_MESSAGE
    assert isinstance(AlreadyResolved("x"), InvalidSubmission)
