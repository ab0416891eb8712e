# ABOUTME: Loads engine configuration from YAML into a frozen dataclass.
# ABOUTME: Holds leveling thresholds, classifier settings, and the topic-to-family map.

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

REBUILD_MODES = ("inline", "background")

DEFAULT_TOPICS = {
    "carried-addition": "carried-addition",
    "borrow-subtraction": "borrow-subtraction",
    "truth-table": "truth-table",
    "notable-points": "notable-points",
    "incenter-angle": "incenter-angle",
    "fraction-addition": "fraction-addition",
}


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for leveling, classifier training, and topic routing."""

    min_sample_size: int = 5
    min_training_examples: int = 10
    holdout_fraction: float = 0.2
    promote_streak: int = 3
    demote_streak: int = 3
    min_level: int = 1
    max_level: int = 3
    max_write_retries: int = 3
    rebuild_mode: str = "inline"
    classifier_max_depth: int = 5
    recent_signature_window: int = 8
    seed: Optional[int] = None
    topics: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_TOPICS))

    def __post_init__(self) -> None:
        if self.min_level >= self.max_level:
            raise ValueError(f"min_level ({self.min_level}) must be below max_level ({self.max_level}).")
        if not 0.0 < self.holdout_fraction < 1.0:
            raise ValueError(f"holdout_fraction must be in (0, 1), got {self.holdout_fraction}.")
        if self.rebuild_mode not in REBUILD_MODES:
            raise ValueError(f"Unsupported rebuild_mode '{self.rebuild_mode}'. Expected one of: {', '.join(REBUILD_MODES)}.")
        if self.min_sample_size < 1 or self.max_write_retries < 0:
            raise ValueError("min_sample_size must be >= 1 and max_write_retries >= 0.")


def engine_config_from_mapping(raw: Optional[Mapping[str, Any]]) -> EngineConfig:
    raw = dict(raw or {})
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown engine config keys: {', '.join(unknown)}.")
    if "topics" in raw:
        raw["topics"] = {str(k): str(v) for k, v in (raw["topics"] or {}).items()}
    return EngineConfig(**raw)


def load_engine_config(config_path: Path) -> EngineConfig:
    """Read an engine YAML file; the optional ``engine`` section holds the settings."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}
    return engine_config_from_mapping(cfg.get("engine", cfg))
