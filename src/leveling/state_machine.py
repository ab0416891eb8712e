# ABOUTME: Applies a leveling decision to a ledger snapshot and labels the training example.
# ABOUTME: Clamps moves to the level range while keeping the intended label for training.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.common.config import EngineConfig
from src.common.schemas import DEMOTE, HOLD, PROMOTE, LedgerSnapshot, TrainingExample

from .classifier import ClassifierService
from .ledger import move_to_level, record_attempt

SOURCE_WARMUP = "warmup"


@dataclass(frozen=True)
class Transition:
    """
    Result of one graded attempt on the ledger.

    ``intended`` is what the classifier or the fallback rules asked for;
    ``applied`` is what actually happened to the level after clamping.
    ``example`` is None while the level is still collecting its first samples.
    """

    recorded: LedgerSnapshot
    after: LedgerSnapshot
    intended: str
    applied: str
    source: str
    example: Optional[TrainingExample]


def clamp_outcome(outcome: str, level: int, min_level: int, max_level: int) -> str:
    if outcome == PROMOTE and level >= max_level:
        return HOLD
    if outcome == DEMOTE and level <= min_level:
        return HOLD
    return outcome


def next_level(level: int, applied: str) -> int:
    if applied == PROMOTE:
        return level + 1
    if applied == DEMOTE:
        return level - 1
    return level


class LevelStateMachine:
    def __init__(self, classifier: ClassifierService, config: Optional[EngineConfig] = None):
        self.classifier = classifier
        self.config = config or classifier.config

    def step(self, snapshot: LedgerSnapshot, correct: bool) -> Transition:
        """Count the attempt, decide, and return the new snapshot without writing it anywhere."""
        recorded = record_attempt(snapshot, correct)
        if recorded.total_attempts_at_level < self.config.min_sample_size:
            return Transition(recorded, recorded, HOLD, HOLD, SOURCE_WARMUP, None)

        intended, source = self.classifier.decide(recorded.topic_id, recorded)
        applied = clamp_outcome(intended, recorded.level, self.config.min_level, self.config.max_level)
        after = recorded if applied == HOLD else move_to_level(recorded, next_level(recorded.level, applied))
        example = TrainingExample(
            level=recorded.level,
            correct_count=recorded.consecutive_correct,
            incorrect_count=recorded.consecutive_incorrect,
            total_responses=recorded.total_attempts_at_level,
            outcome=intended,
        )
        return Transition(recorded, after, intended, applied, source, example)

    def commit(self, transition: Transition) -> None:
        """Append the labeled example once the ledger write has landed."""
        if transition.example is not None:
            self.classifier.record_example(transition.recorded.topic_id, transition.example)
