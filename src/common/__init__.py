# ABOUTME: Makes the shared common package importable across the engine and leveling code.
# ABOUTME: Re-exports schema types, configuration, and evaluation helpers for convenience.

from .config import EngineConfig, load_engine_config
from .evaluation import evaluate_outcome_predictions
from .random_source import RandomSource
from .schemas import Instance, LedgerSnapshot, Option, Solution, TraceStep, TrainingExample

__all__ = [
    "EngineConfig",
    "Instance",
    "LedgerSnapshot",
    "Option",
    "RandomSource",
    "Solution",
    "TraceStep",
    "TrainingExample",
    "evaluate_outcome_predictions",
    "load_engine_config",
]
