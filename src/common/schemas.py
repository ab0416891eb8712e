# ABOUTME: Defines canonical data structures shared by the generators and the leveling loop.
# ABOUTME: Centralizes instance, trace, option, ledger, and training-example definitions.

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

PROMOTE = "promote"
HOLD = "hold"
DEMOTE = "demote"
OUTCOMES = (PROMOTE, HOLD, DEMOTE)

STATUS_IDLE = "idle"
STATUS_ANSWERED = "answered"
STATUS_REVEALED = "revealed"

FEATURE_COLUMNS = ["level", "correct_count", "incorrect_count", "total_responses"]


@dataclass(frozen=True)
class TraceStep:
    """One derivation step: a readable operation plus the value it produced."""

    operation: str
    value: Any
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Solution:
    """Correct answer for an instance together with its derivation."""

    answer: Any
    trace: Tuple[TraceStep, ...]


@dataclass(frozen=True)
class Instance:
    """Immutable problem instance produced by a ProblemFamily."""

    instance_id: str
    family_id: str
    level: int
    params: Any
    display_payload: Mapping[str, Any]
    is_fallback: bool = False


@dataclass(frozen=True)
class Option:
    value: Any
    is_correct: bool


@dataclass(frozen=True)
class LedgerSnapshot:
    """Performance counters for one (student, topic) pair at one level."""

    student_id: str
    topic_id: str
    level: int = 1
    consecutive_correct: int = 0
    consecutive_incorrect: int = 0
    total_attempts_at_level: int = 0
    version: int = 0

    def features(self) -> Tuple[int, int, int, int]:
        return (
            self.level,
            self.consecutive_correct,
            self.consecutive_incorrect,
            self.total_attempts_at_level,
        )


@dataclass(frozen=True)
class TrainingExample:
    """Labeled ledger shape: which transition followed which counters."""

    level: int
    correct_count: int
    incorrect_count: int
    total_responses: int
    outcome: str

    def as_row(self) -> Mapping[str, Any]:
        return {
            "level": self.level,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "total_responses": self.total_responses,
            "outcome": self.outcome,
        }


@dataclass(frozen=True)
class ResponseRecord:
    """Graded attempt as stored in the response log."""

    student_id: str
    topic_id: str
    instance_id: str
    family_id: str
    level: int
    correct: bool
    elapsed_seconds: float
    elapsed_category: str
    selected_value: Optional[Any] = None
