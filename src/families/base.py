# ABOUTME: Declares the contract every problem family implements.
# ABOUTME: Owns bounded rejection sampling, the fallback path, and distractor de-duplication.

from __future__ import annotations

import logging
from typing import Any, Collection, Iterable, List, Mapping, Optional, Tuple, Type

from src.common.errors import GenerationFailed
from src.common.random_source import RandomSource
from src.common.schemas import Instance, Solution, TraceStep

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 3
MAX_JITTER_DRAWS = 200


class ProblemFamily:
    """
    Generator/verifier pair for one exercise type.

    Subclasses supply the family-specific pieces (drawing candidate params,
    the quality filter, the fallback params, the derivation, the error model);
    this base class runs the shared control flow around them.

    Contract:
    - ``generate`` never raises on exhaustion: after ``max_tries`` rejected
      draws it returns the hand-verified fallback for the level.
    - ``solve`` re-derives the answer from ``instance.params`` alone.
    - ``replay`` recomputes the answer from the trace's intermediate steps.
    - ``distractors`` returns ``option_count`` values, none equal to the
      answer and all pairwise distinct under ``same_value``.
    """

    family_id: str = ""
    title: str = ""
    params_type: Type = object
    option_count: int = 3
    max_tries: int = 300
    max_attempts: int = 1

    # ------------------------------------------------------------------ #
    # Hooks implemented by each family
    # ------------------------------------------------------------------ #

    def draw(self, rng: RandomSource, level: int, attempt: int) -> Any:
        raise NotImplementedError

    def accepts(self, params: Any, level: int) -> bool:
        """Quality filter: False for trivial, degenerate, or off-band params."""
        raise NotImplementedError

    def fallback(self, level: int) -> Any:
        raise NotImplementedError

    def display(self, params: Any, level: int) -> Mapping[str, Any]:
        raise NotImplementedError

    def derive(self, params: Any) -> Solution:
        raise NotImplementedError

    def replay(self, trace: Iterable[TraceStep]) -> Any:
        raise NotImplementedError

    def error_model(self, params: Any, answer: Any, rng: RandomSource) -> Iterable[Any]:
        raise NotImplementedError

    def jitter(self, answer: Any, magnitude: int, rng: RandomSource) -> Optional[Any]:
        return None

    def signature(self, params: Any) -> str:
        return repr(params)

    def same_value(self, left: Any, right: Any) -> bool:
        return left == right

    def is_valid_value(self, value: Any) -> bool:
        return value is not None

    # ------------------------------------------------------------------ #
    # Shared contract
    # ------------------------------------------------------------------ #

    def generate(
        self,
        rng: RandomSource,
        level: int,
        exclude: Collection[str] = (),
    ) -> Instance:
        level = clamp_level(level)
        for attempt in range(self.max_tries):
            params = self.draw(rng, level, attempt)
            if not self.accepts(params, level):
                continue
            # Recent signatures are a soft preference for the first half of the budget.
            if exclude and attempt < self.max_tries // 2 and self.signature(params) in exclude:
                continue
            return self._instance(rng, params, level, is_fallback=False)

        logger.warning("%s: no instance accepted after %d draws at level %d; using fallback", self.family_id, self.max_tries, level)
        return self._instance(rng, self.fallback(level), level, is_fallback=True)

    def solve(self, instance: Instance) -> Solution:
        return self.derive(self.expect_params(instance))

    def distractors(self, instance: Instance, answer: Any, rng: RandomSource) -> Tuple[Any, ...]:
        params = self.expect_params(instance)
        chosen: List[Any] = []

        def consider(candidate: Any) -> bool:
            if candidate is None or not self.is_valid_value(candidate):
                return False
            if self.same_value(candidate, answer):
                return False
            if any(self.same_value(candidate, existing) for existing in chosen):
                return False
            chosen.append(candidate)
            return True

        for candidate in self.error_model(params, answer, rng):
            consider(candidate)
            if len(chosen) >= self.option_count:
                return tuple(chosen)

        magnitude = 1
        for _ in range(MAX_JITTER_DRAWS):
            if len(chosen) >= self.option_count:
                break
            if not consider(self.jitter(answer, magnitude, rng)):
                magnitude += 1

        if len(chosen) < self.option_count:
            raise GenerationFailed(f"{self.family_id}: only {len(chosen)} distinct distractors for {answer!r}.")
        return tuple(chosen)

    def expect_params(self, instance: Instance) -> Any:
        if instance.family_id != self.family_id or not isinstance(instance.params, self.params_type):
            raise TypeError(f"{self.family_id} cannot handle instance of family '{instance.family_id}'.")
        return instance.params

    def _instance(self, rng: RandomSource, params: Any, level: int, is_fallback: bool) -> Instance:
        return Instance(
            instance_id=f"{self.family_id}-{rng.token()}",
            family_id=self.family_id,
            level=level,
            params=params,
            display_payload=self.display(params, level),
            is_fallback=is_fallback,
        )


def clamp_level(level: int, low: int = MIN_LEVEL, high: int = MAX_LEVEL) -> int:
    return max(low, min(high, int(level)))
