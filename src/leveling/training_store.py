# ABOUTME: Wraps the append-only training examples of one topic.
# ABOUTME: Exposes the collection as a pandas frame for training and export.

from typing import Iterable, Tuple

import pandas as pd

from src.common.schemas import FEATURE_COLUMNS, TrainingExample

from .storage import Storage

FRAME_COLUMNS = FEATURE_COLUMNS + ["outcome"]


def examples_to_frame(examples: Iterable[TrainingExample]) -> pd.DataFrame:
    rows = [example.as_row() for example in examples]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


class TrainingStore:
    """Examples for one topic, shared by every student practising it. Never edited, never trimmed."""

    def __init__(self, storage: Storage, topic_id: str):
        self.storage = storage
        self.topic_id = topic_id

    def append(self, example: TrainingExample) -> int:
        return self.storage.append_example(self.topic_id, example)

    def examples(self) -> Tuple[TrainingExample, ...]:
        return self.storage.list_examples(self.topic_id)

    def __len__(self) -> int:
        return len(self.examples())

    def to_frame(self) -> pd.DataFrame:
        return examples_to_frame(self.examples())
