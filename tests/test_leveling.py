# ABOUTME: Tests the ledger, level state machine, storage versioning, and classifier service.
# ABOUTME: Covers fallback promotion, clamping with intended labels, and retraining from scratch.

import logging
from itertools import product

import pytest

from src.common.config import EngineConfig
from src.common.errors import StorageConflict, TrainingFailed
from src.common.schemas import DEMOTE, FEATURE_COLUMNS, HOLD, OUTCOMES, PROMOTE, LedgerSnapshot, TrainingExample
from src.leveling.classifier import ClassifierService, fallback_outcome, train_snapshot
from src.leveling.ledger import record_attempt
from src.leveling.state_machine import LevelStateMachine, clamp_outcome, next_level
from src.leveling.storage import InMemoryStorage
from src.leveling.training_store import TrainingStore


class FixedClassifier:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    def decide(self, topic_id, ledger):
        self.calls += 1
        return self.outcome, "classifier"


def _ledger(level=1, correct=0, incorrect=0, total=0):
    return LedgerSnapshot("s1", "carried-addition", level, correct, incorrect, total)


def _rule_examples(config):
    examples = []
    for level, streak, total in product((1, 2, 3), range(7), (5, 6, 7, 8)):
        for correct, incorrect in ((streak, 0), (0, streak)):
            ledger = _ledger(level, correct, incorrect, total)
            examples.append(TrainingExample(level, correct, incorrect, total, fallback_outcome(ledger, config)))
    return examples


@pytest.fixture
def config():
    return EngineConfig(seed=0)


@pytest.fixture
def service(config):
    return ClassifierService(InMemoryStorage(), config)


def test_record_attempt_updates_streaks():
    after = record_attempt(record_attempt(_ledger(), True), True)
    assert (after.consecutive_correct, after.consecutive_incorrect, after.total_attempts_at_level) == (2, 0, 2)
    after = record_attempt(after, False)
    assert (after.consecutive_correct, after.consecutive_incorrect, after.total_attempts_at_level) == (0, 1, 3)


def test_fallback_promotes_after_three_correct_with_five_samples(service):
    machine = LevelStateMachine(service)
    transition = machine.step(_ledger(level=1, correct=2, total=4), correct=True)

    assert transition.intended == PROMOTE
    assert transition.source == "fallback"
    assert transition.after.level == 2
    assert transition.after.features() == (2, 0, 0, 0)
    assert transition.example == TrainingExample(1, 3, 0, 5, PROMOTE)


def test_fallback_demotes_after_three_incorrect(service):
    transition = LevelStateMachine(service).step(_ledger(level=2, incorrect=2, total=6), correct=False)
    assert transition.applied == DEMOTE
    assert transition.after.level == 1


def test_below_sample_size_always_holds_without_asking_classifier(config):
    classifier = FixedClassifier(PROMOTE)
    machine = LevelStateMachine(classifier, config)
    transition = machine.step(_ledger(level=1, correct=3, total=3), correct=True)
    assert transition.applied == HOLD
    assert transition.example is None
    assert classifier.calls == 0


def test_clamp_keeps_intended_label_for_training(config):
    machine = LevelStateMachine(FixedClassifier(PROMOTE), config)
    transition = machine.step(_ledger(level=3, correct=4, total=7), correct=True)
    assert transition.applied == HOLD
    assert transition.after.level == 3
    assert transition.after.total_attempts_at_level == 8
    assert transition.example.outcome == PROMOTE


def test_level_never_leaves_range():
    for level, outcome in product((1, 2, 3), OUTCOMES):
        applied = clamp_outcome(outcome, level, 1, 3)
        assert 1 <= next_level(level, applied) <= 3


def test_sample_count_increases_until_transition(service):
    machine = LevelStateMachine(service)
    ledger = _ledger()
    previous = ledger.total_attempts_at_level
    for correct in (True, False, True, True, True, True):
        transition = machine.step(ledger, correct)
        ledger = transition.after
        if transition.applied == HOLD:
            assert ledger.total_attempts_at_level == previous + 1
        else:
            assert ledger.total_attempts_at_level == 0
        previous = ledger.total_attempts_at_level
    assert ledger.level == 2


def test_storage_compare_and_set():
    storage = InMemoryStorage()
    fresh = storage.get_ledger("s1", "t1")
    assert fresh.version == 0 and fresh.level == 1
    written = storage.put_ledger(fresh, expected_version=0)
    assert written.version == 1
    with pytest.raises(StorageConflict):
        storage.put_ledger(fresh, expected_version=0)
    assert storage.get_ledger("s1", "t1").version == 1


def test_training_store_frame(config):
    store = TrainingStore(InMemoryStorage(), "t1")
    assert list(store.to_frame().columns) == FEATURE_COLUMNS + ["outcome"]
    store.append(TrainingExample(1, 3, 0, 5, PROMOTE))
    frame = store.to_frame()
    assert len(store) == 1
    assert frame.iloc[0]["outcome"] == PROMOTE


def test_train_snapshot_learns_rule_shaped_data(config):
    snapshot = train_snapshot(_rule_examples(config), config)
    assert snapshot.accuracy is not None and 0.0 <= snapshot.accuracy <= 1.0
    assert set(snapshot.feature_importances) == set(FEATURE_COLUMNS)
    assert snapshot.predict(_ledger(level=1, correct=6, total=8)) == PROMOTE
    assert snapshot.predict(_ledger(level=3, incorrect=6, total=8)) == DEMOTE
    assert snapshot.predict(_ledger(level=2, total=5)) == HOLD


def test_single_outcome_training_fails(config):
    examples = [TrainingExample(1, 1, 0, 5, HOLD)] * 12
    with pytest.raises(TrainingFailed):
        train_snapshot(examples, config)


def test_service_falls_back_when_training_fails(service, caplog):
    for _ in range(12):
        service.record_example("t1", TrainingExample(1, 1, 0, 5, HOLD))
    with caplog.at_level(logging.WARNING):
        service.rebuild("t1")
    assert "failed" in caplog.text
    assert service.get_accuracy("t1") is None
    assert service.decide("t1", _ledger(level=1, correct=3, total=5)) == (PROMOTE, "fallback")


def test_service_rebuilds_from_full_set(service, config):
    assert service.get_accuracy("t1") is None
    for example in _rule_examples(config):
        service.record_example("t1", example)
    snapshot = service.snapshot("t1")
    assert snapshot is not None
    assert snapshot.example_count == len(_rule_examples(config))
    assert service.get_accuracy("t1") == snapshot.accuracy
    outcome, source = service.decide("t1", _ledger(level=1, correct=6, total=8))
    assert (outcome, source) == (PROMOTE, "classifier")


def test_background_rebuild_serves_snapshot_after_drain():
    config = EngineConfig(seed=0, rebuild_mode="background")
    service = ClassifierService(InMemoryStorage(), config)
    try:
        for example in _rule_examples(config):
            service.record_example("t1", example)
        service.drain()
        assert service.snapshot("t1") is not None
        assert service.snapshot("t1").example_count == len(_rule_examples(config))
    finally:
        service.close()


def test_holdout_that_empties_training_split_fails_cleanly():
    config = EngineConfig(seed=0, min_training_examples=2, holdout_fraction=0.9)
    examples = [TrainingExample(1, 3, 0, 5, PROMOTE), TrainingExample(1, 0, 1, 5, HOLD)]
    with pytest.raises(TrainingFailed):
        train_snapshot(examples, config)


def test_unexpected_training_error_falls_back(service, monkeypatch, caplog):
    def crash(examples, config):
        raise RuntimeError("estimator exploded")

    monkeypatch.setattr("src.leveling.classifier.train_snapshot", crash)
    with caplog.at_level(logging.WARNING):
        for example in _rule_examples(service.config)[:12]:
            service.record_example("t1", example)
    assert "crashed" in caplog.text
    assert service.snapshot("t1") is None
    assert service.get_accuracy("t1") is None
    assert service.decide("t1", _ledger(level=1, correct=3, total=5)) == (PROMOTE, "fallback")
