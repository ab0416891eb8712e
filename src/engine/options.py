# ABOUTME: Builds the frozen option set shown for one problem instance.
# ABOUTME: Merges the correct answer with distractors and shuffles them once.

from __future__ import annotations

from typing import Any, Sequence, Tuple

from src.common.random_source import RandomSource
from src.common.schemas import Option
from src.families.base import ProblemFamily


class OptionSetBuilder:
    """
    Produce ``k + 1`` options with exactly one marked correct.

    The order is decided here, at instance creation, and the returned tuple is
    what every later render of the same instance must reuse.
    """

    def __init__(self, family: ProblemFamily):
        self.family = family

    def build(self, answer: Any, distractors: Sequence[Any], rng: RandomSource) -> Tuple[Option, ...]:
        expected = self.family.option_count
        if len(distractors) != expected:
            raise ValueError(f"{self.family.family_id}: expected {expected} distractors, got {len(distractors)}.")

        values = [answer]
        for value in distractors:
            if any(self.family.same_value(value, seen) for seen in values):
                raise ValueError(f"{self.family.family_id}: duplicate option value {value!r}.")
            values.append(value)

        options = [Option(value=answer, is_correct=True)]
        options.extend(Option(value=value, is_correct=False) for value in distractors)
        return tuple(rng.shuffled(options))


def correct_option(options: Sequence[Option]) -> Option:
    matches = [option for option in options if option.is_correct]
    if len(matches) != 1:
        raise ValueError(f"Option set must hold exactly one correct option, found {len(matches)}.")
    return matches[0]
