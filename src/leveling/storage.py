# ABOUTME: Declares the storage interface the leveling loop consumes and an in-memory store.
# ABOUTME: Ledger writes are compare-and-set on a version; examples and responses are append-only.

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from src.common.errors import StorageConflict
from src.common.schemas import LedgerSnapshot, ResponseRecord, TrainingExample

from .ledger import new_ledger

LedgerKey = Tuple[str, str]


class Storage:
    """
    Record store behind the leveling loop.

    ``put_ledger`` must fail with ``StorageConflict`` when the stored version
    differs from ``expected_version``; that check is what serializes
    concurrent read-decide-write sequences for one (student, topic).
    """

    def get_ledger(self, student_id: str, topic_id: str, default_level: int = 1) -> LedgerSnapshot:
        raise NotImplementedError

    def put_ledger(self, snapshot: LedgerSnapshot, expected_version: int) -> LedgerSnapshot:
        raise NotImplementedError

    def append_example(self, topic_id: str, example: TrainingExample) -> int:
        raise NotImplementedError

    def list_examples(self, topic_id: str) -> Tuple[TrainingExample, ...]:
        raise NotImplementedError

    def append_response(self, record: ResponseRecord) -> None:
        raise NotImplementedError

    def list_responses(self, student_id: Optional[str] = None, topic_id: Optional[str] = None) -> List[ResponseRecord]:
        raise NotImplementedError


class InMemoryStorage(Storage):
    """Process-local store; a missing ledger reads as a fresh level-1 snapshot at version 0."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ledgers: Dict[LedgerKey, LedgerSnapshot] = {}
        self._examples: Dict[str, List[TrainingExample]] = defaultdict(list)
        self._responses: List[ResponseRecord] = []

    def get_ledger(self, student_id: str, topic_id: str, default_level: int = 1) -> LedgerSnapshot:
        with self._lock:
            stored = self._ledgers.get((student_id, topic_id))
        if stored is None:
            return new_ledger(student_id, topic_id, level=default_level)
        return stored

    def put_ledger(self, snapshot: LedgerSnapshot, expected_version: int) -> LedgerSnapshot:
        key = (snapshot.student_id, snapshot.topic_id)
        with self._lock:
            current = self._ledgers.get(key)
            actual = current.version if current is not None else 0
            if actual != expected_version:
                raise StorageConflict(key, expected_version, actual)
            written = replace(snapshot, version=actual + 1)
            self._ledgers[key] = written
            return written

    def append_example(self, topic_id: str, example: TrainingExample) -> int:
        with self._lock:
            self._examples[topic_id].append(example)
            return len(self._examples[topic_id])

    def list_examples(self, topic_id: str) -> Tuple[TrainingExample, ...]:
        with self._lock:
            return tuple(self._examples.get(topic_id, ()))

    def append_response(self, record: ResponseRecord) -> None:
        with self._lock:
            self._responses.append(record)

    def list_responses(self, student_id: Optional[str] = None, topic_id: Optional[str] = None) -> List[ResponseRecord]:
        with self._lock:
            records = list(self._responses)
        if student_id is not None:
            records = [r for r in records if r.student_id == student_id]
        if topic_id is not None:
            records = [r for r in records if r.topic_id == topic_id]
        return records
