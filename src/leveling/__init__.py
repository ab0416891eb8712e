# ABOUTME: Makes the leveling loop importable as one package.
# ABOUTME: Re-exports the ledger store, classifier service, and level state machine.

from .classifier import ClassifierService, ClassifierSnapshot, fallback_outcome, train_snapshot
from .state_machine import LevelStateMachine, Transition, clamp_outcome
from .storage import InMemoryStorage, Storage
from .training_store import TrainingStore

__all__ = [
    "ClassifierService",
    "ClassifierSnapshot",
    "InMemoryStorage",
    "LevelStateMachine",
    "Storage",
    "TrainingStore",
    "Transition",
    "clamp_outcome",
    "fallback_outcome",
    "train_snapshot",
]
