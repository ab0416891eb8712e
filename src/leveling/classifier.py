# ABOUTME: Trains the leveling decision tree from a topic's training examples and serves predictions.
# ABOUTME: Falls back to fixed streak thresholds when data is short or training fails.

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Set, Tuple

import pandas as pd
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeClassifier

from src.common.config import EngineConfig
from src.common.errors import TrainingFailed
from src.common.evaluation import evaluate_outcome_predictions
from src.common.schemas import DEMOTE, FEATURE_COLUMNS, HOLD, OUTCOMES, PROMOTE, LedgerSnapshot, TrainingExample

from .storage import Storage
from .training_store import TrainingStore, examples_to_frame

logger = logging.getLogger(__name__)

SOURCE_CLASSIFIER = "classifier"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class ClassifierSnapshot:
    """Decision tree built from one exact set of examples. Rebuilt, never patched."""

    model: DecisionTreeClassifier
    example_count: int
    accuracy: Optional[float]
    feature_importances: Mapping[str, float] = field(default_factory=dict)

    def predict(self, snapshot: LedgerSnapshot) -> str:
        row = pd.DataFrame([snapshot.features()], columns=FEATURE_COLUMNS)
        return str(self.model.predict(row)[0])


def fallback_outcome(snapshot: LedgerSnapshot, config: EngineConfig) -> str:
    if snapshot.consecutive_correct >= config.promote_streak and snapshot.level < config.max_level:
        return PROMOTE
    if snapshot.consecutive_incorrect >= config.demote_streak and snapshot.level > config.min_level:
        return DEMOTE
    return HOLD


def train_snapshot(examples: Sequence[TrainingExample], config: EngineConfig) -> ClassifierSnapshot:
    """
    Fit a decision tree on the examples minus a random holdout.

    Raises
    ------
    TrainingFailed
        When the training split is empty, carries a single outcome, or the
        estimator itself rejects the data.
    """

    frame = examples_to_frame(examples)
    unknown = set(frame["outcome"]) - set(OUTCOMES)
    if unknown:
        raise TrainingFailed(f"Unknown outcome labels: {sorted(unknown)}.")
    if len(frame) < 2:
        raise TrainingFailed(f"Need at least 2 examples, got {len(frame)}.")

    try:
        train_df, holdout_df = train_test_split(
            frame,
            test_size=config.holdout_fraction,
            random_state=config.seed,
            shuffle=True,
        )
    except ValueError as exc:
        raise TrainingFailed(f"Holdout split failed: {exc}") from exc
    if train_df.empty:
        raise TrainingFailed("Training split is empty.")
    if train_df["outcome"].nunique() < 2:
        raise TrainingFailed(f"Training split holds a single outcome '{train_df['outcome'].iloc[0]}'.")

    model = DecisionTreeClassifier(max_depth=config.classifier_max_depth, random_state=config.seed)
    try:
        model.fit(train_df[FEATURE_COLUMNS], train_df["outcome"])
    except ValueError as exc:
        raise TrainingFailed(str(exc)) from exc

    accuracy = None
    if not holdout_df.empty:
        predictions = pd.DataFrame(
            {"y_true": holdout_df["outcome"].to_numpy(), "y_pred": model.predict(holdout_df[FEATURE_COLUMNS])}
        )
        accuracy = evaluate_outcome_predictions(predictions, ["accuracy"])["accuracy"]

    importances = {name: float(value) for name, value in zip(FEATURE_COLUMNS, model.feature_importances_)}
    return ClassifierSnapshot(
        model=model,
        example_count=len(frame),
        accuracy=accuracy,
        feature_importances=importances,
    )


class ClassifierService:
    """
    Owns one ClassifierSnapshot per topic and rebuilds it after every appended example.

    In ``inline`` mode the rebuild runs inside ``record_example``. In
    ``background`` mode it is queued on a single worker and ``decide`` keeps
    serving the last good snapshot, or the fallback rules, until it lands.
    """

    def __init__(self, storage: Storage, config: Optional[EngineConfig] = None):
        self.storage = storage
        self.config = config or EngineConfig()
        self._lock = threading.Lock()
        self._topic_locks: Dict[str, threading.Lock] = {}
        self._snapshots: Dict[str, ClassifierSnapshot] = {}
        self._failed: Set[str] = set()
        self._queued: Set[str] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.config.rebuild_mode == "background":
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="classifier-rebuild")

    def training_store(self, topic_id: str) -> TrainingStore:
        return TrainingStore(self.storage, topic_id)

    def snapshot(self, topic_id: str) -> Optional[ClassifierSnapshot]:
        with self._lock:
            return self._snapshots.get(topic_id)

    def decide(self, topic_id: str, ledger: LedgerSnapshot) -> Tuple[str, str]:
        """Return ``(outcome, source)`` for a ledger snapshot."""
        current = self.snapshot(topic_id)
        if current is None:
            return fallback_outcome(ledger, self.config), SOURCE_FALLBACK
        return current.predict(ledger), SOURCE_CLASSIFIER

    def record_example(self, topic_id: str, example: TrainingExample) -> None:
        self.training_store(topic_id).append(example)
        if self._executor is None:
            self.rebuild(topic_id)
            return
        with self._lock:
            if topic_id in self._queued:
                return
            self._queued.add(topic_id)
        self._executor.submit(self._run_queued, topic_id)

    def _run_queued(self, topic_id: str) -> None:
        with self._lock:
            self._queued.discard(topic_id)
        try:
            self.rebuild(topic_id)
        except Exception:
            logger.warning("Background rebuild for topic %s crashed", topic_id, exc_info=True)

    def _topic_lock(self, topic_id: str) -> threading.Lock:
        with self._lock:
            return self._topic_locks.setdefault(topic_id, threading.Lock())

    def rebuild(self, topic_id: str) -> Optional[ClassifierSnapshot]:
        """Retrain from the full example set; below the minimum size the topic has no snapshot."""
        with self._topic_lock(topic_id):
            examples = self.storage.list_examples(topic_id)
            if len(examples) < self.config.min_training_examples:
                self._install(topic_id, None, failed=False)
                return None
            try:
                built = train_snapshot(examples, self.config)
            except TrainingFailed as exc:
                logger.warning("Training for topic %s failed on %d examples: %s", topic_id, len(examples), exc)
                self._install(topic_id, None, failed=True)
                return None
            except Exception:
                logger.warning("Training for topic %s crashed on %d examples", topic_id, len(examples), exc_info=True)
                self._install(topic_id, None, failed=True)
                return None
            self._install(topic_id, built, failed=False)
            logger.debug("Topic %s classifier rebuilt on %d examples (accuracy=%s)", topic_id, len(examples), built.accuracy)
            return built

    def _install(self, topic_id: str, built: Optional[ClassifierSnapshot], failed: bool) -> None:
        with self._lock:
            if built is None:
                self._snapshots.pop(topic_id, None)
            else:
                self._snapshots[topic_id] = built
            if failed:
                self._failed.add(topic_id)
            else:
                self._failed.discard(topic_id)

    def get_accuracy(self, topic_id: str) -> Optional[float]:
        with self._lock:
            if topic_id in self._failed:
                return None
            current = self._snapshots.get(topic_id)
        return None if current is None else current.accuracy

    def drain(self) -> None:
        """Block until every queued background rebuild has finished."""
        if self._executor is not None:
            self._executor.submit(lambda: None).result()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
