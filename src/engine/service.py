# ABOUTME: Exposes the exercise engine as a start/submit request-response surface.
# ABOUTME: Wires families, option sets, attempt grading, and the leveling loop together.

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional, Tuple

from src.common.config import EngineConfig
from src.common.errors import AlreadyResolved, GenerationFailed, MalformedValue, StorageConflict, UnknownInstance
from src.common.random_source import RandomSource
from src.common.schemas import HOLD, Instance, Option, ResponseRecord, Solution, TraceStep
from src.families import FAMILIES, ProblemFamily
from src.leveling.classifier import ClassifierService
from src.leveling.state_machine import LevelStateMachine
from src.leveling.storage import InMemoryStorage, Storage

from .attempts import AttemptEngine
from .options import OptionSetBuilder

logger = logging.getLogger(__name__)

FAST_SECONDS = 20
MODERATE_SECONDS = 40

# resolved instance ids that still answer AlreadyResolved after eviction
RESOLVED_MEMORY = 1024


def elapsed_category(seconds: float) -> str:
    if seconds <= FAST_SECONDS:
        return "fast"
    if seconds <= MODERATE_SECONDS:
        return "moderate"
    return "slow"


@dataclass(frozen=True)
class StartResult:
    instance: Instance
    options: Tuple[Option, ...]


@dataclass(frozen=True)
class SubmitResult:
    is_correct: bool
    attempts_remaining: int
    new_level: int
    trace: Optional[Tuple[TraceStep, ...]] = None


@dataclass
class _ActiveInstance:
    student_id: str
    topic_id: str
    solution: Solution
    engine: AttemptEngine


class ExerciseService:
    """
    Request/response facade over the adaptive exercise engine.

    ``start_instance`` reads the student's level and generates at it;
    ``submit`` grades, logs the response, and runs the leveling step with a
    compare-and-set ledger write. A write that keeps conflicting after
    ``max_write_retries`` retries drops the level change, never the grade.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[Storage] = None,
        classifier: Optional[ClassifierService] = None,
        rng: Optional[RandomSource] = None,
    ):
        self.config = config or EngineConfig()
        unknown = sorted({family for family in self.config.topics.values() if family not in FAMILIES})
        if unknown:
            raise ValueError(f"Topics map to unknown families: {', '.join(unknown)}.")
        self.storage = storage or InMemoryStorage()
        self.classifier = classifier or ClassifierService(self.storage, self.config)
        self.state_machine = LevelStateMachine(self.classifier, self.config)
        self.rng = rng or RandomSource(self.config.seed)
        self._lock = threading.Lock()
        self._active: Dict[str, _ActiveInstance] = {}
        self._resolved: "OrderedDict[str, None]" = OrderedDict()
        self._recent: Dict[Tuple[str, str], Deque[str]] = {}

    def family_for(self, topic_id: str) -> ProblemFamily:
        family_id = self.config.topics.get(topic_id)
        if family_id is None:
            raise GenerationFailed(f"Unknown topic '{topic_id}'.")
        return FAMILIES[family_id]

    def start_instance(self, topic_id: str, student_id: str) -> StartResult:
        family = self.family_for(topic_id)
        ledger = self.storage.get_ledger(student_id, topic_id, default_level=self.config.min_level)
        key = (student_id, topic_id)
        with self._lock:
            rng = self.rng.spawn()
            recent = tuple(self._recent.get(key, ()))

        try:
            instance = family.generate(rng, ledger.level, exclude=recent)
            solution = family.solve(instance)
            distractors = family.distractors(instance, solution.answer, rng)
            options = OptionSetBuilder(family).build(solution.answer, distractors, rng)
        except GenerationFailed:
            raise
        except (ValueError, TypeError, KeyError) as exc:
            raise GenerationFailed(f"{family.family_id}: {exc}") from exc

        engine = AttemptEngine(instance, family, solution.answer, options)
        with self._lock:
            self._active[instance.instance_id] = _ActiveInstance(student_id, topic_id, solution, engine)
            window = self._recent.setdefault(key, deque(maxlen=self.config.recent_signature_window))
            window.append(family.signature(instance.params))
        return StartResult(instance=instance, options=options)

    def submit(self, instance_id: str, selected_value: Any, elapsed_seconds: float) -> SubmitResult:
        with self._lock:
            active = self._active.get(instance_id)
            resolved = instance_id in self._resolved
        if active is None:
            if resolved:
                raise AlreadyResolved(instance_id)
            raise UnknownInstance(instance_id)
        if (
            isinstance(elapsed_seconds, bool)
            or not isinstance(elapsed_seconds, (int, float))
            or not math.isfinite(elapsed_seconds)
            or elapsed_seconds < 0
        ):
            raise MalformedValue(f"elapsed_seconds must be a finite non-negative number, got {elapsed_seconds!r}.")

        result = active.engine.submit(selected_value)
        if result.terminal:
            self._retire(instance_id)
        instance = active.engine.instance
        self.storage.append_response(
            ResponseRecord(
                student_id=active.student_id,
                topic_id=active.topic_id,
                instance_id=instance_id,
                family_id=instance.family_id,
                level=instance.level,
                correct=result.is_correct,
                elapsed_seconds=float(elapsed_seconds),
                elapsed_category=elapsed_category(elapsed_seconds),
                selected_value=result.selected.value,
            )
        )

        new_level = self._update_level(active.student_id, active.topic_id, result.is_correct)
        trace = active.solution.trace if (not result.is_correct or result.terminal) else None
        return SubmitResult(
            is_correct=result.is_correct,
            attempts_remaining=result.attempts_remaining,
            new_level=new_level,
            trace=trace,
        )

    def _update_level(self, student_id: str, topic_id: str, correct: bool) -> int:
        snapshot = None
        for attempt in range(self.config.max_write_retries + 1):
            snapshot = self.storage.get_ledger(student_id, topic_id, default_level=self.config.min_level)
            transition = self.state_machine.step(snapshot, correct)
            try:
                written = self.storage.put_ledger(transition.after, expected_version=snapshot.version)
            except StorageConflict as exc:
                logger.debug("Ledger write retry %d for %s/%s: %s", attempt + 1, student_id, topic_id, exc)
                continue
            self.state_machine.commit(transition)
            if transition.applied != HOLD:
                logger.info(
                    "Student %s topic %s: %s from level %d to %d (%s)",
                    student_id,
                    topic_id,
                    transition.applied,
                    transition.recorded.level,
                    written.level,
                    transition.source,
                )
            return written.level

        logger.error(
            "Dropped level update for %s/%s after %d conflicting writes",
            student_id,
            topic_id,
            self.config.max_write_retries + 1,
        )
        return snapshot.level

    def _retire(self, instance_id: str) -> None:
        with self._lock:
            self._active.pop(instance_id, None)
            self._resolved[instance_id] = None
            while len(self._resolved) > RESOLVED_MEMORY:
                self._resolved.popitem(last=False)

    def get_classifier_accuracy(self, topic_id: str) -> Optional[float]:
        return self.classifier.get_accuracy(topic_id)

    def close(self) -> None:
        self.classifier.close()
