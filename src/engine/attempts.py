# ABOUTME: Tracks attempts on a single instance and grades each submission.
# ABOUTME: Walks idle -> answered -> revealed and rejects input once revealed.

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Tuple

from src.common.errors import AlreadyResolved, MalformedValue
from src.common.schemas import STATUS_ANSWERED, STATUS_IDLE, STATUS_REVEALED, Instance, Option
from src.families.base import ProblemFamily


@dataclass
class AttemptState:
    instance_id: str
    max_attempts: int
    attempts_used: int = 0
    status: str = STATUS_IDLE

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts_used)


@dataclass(frozen=True)
class AttemptResult:
    is_correct: bool
    attempts_remaining: int
    terminal: bool
    selected: Option


class AttemptEngine:
    """
    Per-instance grading state machine.

    A submission moves the state to ``answered``; a correct answer or the last
    allowed attempt moves it on to ``revealed``, which is terminal. With
    ``max_attempts == 1`` the two coincide.
    """

    def __init__(self, instance: Instance, family: ProblemFamily, answer: Any, options: Tuple[Option, ...]):
        if family.max_attempts < 1:
            raise ValueError(f"{family.family_id}: max_attempts must be >= 1.")
        self.instance = instance
        self.family = family
        self.answer = answer
        self.options = options
        self.state = AttemptState(instance_id=instance.instance_id, max_attempts=family.max_attempts)
        self._lock = threading.Lock()

    @property
    def revealed(self) -> bool:
        return self.state.status == STATUS_REVEALED

    def match_option(self, selected_value: Any) -> Option:
        for option in self.options:
            if self.family.same_value(option.value, selected_value):
                return option
        raise MalformedValue(f"{selected_value!r} is not an option of instance '{self.instance.instance_id}'.")

    def submit(self, selected_value: Any) -> AttemptResult:
        with self._lock:
            if self.revealed:
                raise AlreadyResolved(self.instance.instance_id)
            option = self.match_option(selected_value)

            self.state.attempts_used += 1
            is_correct = self.family.same_value(selected_value, self.answer)
            terminal = is_correct or self.state.attempts_used >= self.state.max_attempts
            self.state.status = STATUS_REVEALED if terminal else STATUS_ANSWERED
            return AttemptResult(
                is_correct=is_correct,
                attempts_remaining=self.state.attempts_remaining,
                terminal=terminal,
                selected=option,
            )
