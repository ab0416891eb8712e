# ABOUTME: Updates the per-student, per-topic performance ledger after a graded attempt.
# ABOUTME: Streak counters and the sample count are pure functions of the previous snapshot.

from dataclasses import replace

from src.common.schemas import LedgerSnapshot


def new_ledger(student_id: str, topic_id: str, level: int = 1) -> LedgerSnapshot:
    return LedgerSnapshot(student_id=student_id, topic_id=topic_id, level=level)


def record_attempt(snapshot: LedgerSnapshot, correct: bool) -> LedgerSnapshot:
    """Count one graded attempt at the current level; the version is left to storage."""
    if correct:
        return replace(
            snapshot,
            consecutive_correct=snapshot.consecutive_correct + 1,
            consecutive_incorrect=0,
            total_attempts_at_level=snapshot.total_attempts_at_level + 1,
        )
    return replace(
        snapshot,
        consecutive_correct=0,
        consecutive_incorrect=snapshot.consecutive_incorrect + 1,
        total_attempts_at_level=snapshot.total_attempts_at_level + 1,
    )


def move_to_level(snapshot: LedgerSnapshot, level: int) -> LedgerSnapshot:
    """Enter ``level`` with fresh counters."""
    return replace(
        snapshot,
        level=level,
        consecutive_correct=0,
        consecutive_incorrect=0,
        total_attempts_at_level=0,
    )
