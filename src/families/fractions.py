# ABOUTME: Implements the fraction-addition family with level-tiered denominators.
# ABOUTME: Answers are reduced fractions; distractors are compared by rational value.

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from math import gcd
from typing import Iterable, Mapping, Optional

from src.common.random_source import RandomSource
from src.common.schemas import Solution, TraceStep

from .base import ProblemFamily

MAX_ANSWER = Fraction(3)


@dataclass(frozen=True)
class FractionParams:
    n1: int
    d1: int
    n2: int
    d2: int


def lcm(a: int, b: int) -> int:
    return abs(a * b) // gcd(a, b)


def format_fraction(value: Fraction) -> str:
    if value.denominator == 1:
        return str(value.numerator)
    return f"{value.numerator}/{value.denominator}"


def parse_fraction(value) -> Optional[Fraction]:
    try:
        return Fraction(str(value))
    except (ValueError, ZeroDivisionError):
        return None


def _ceil_scaled(d: int, ratio: Fraction) -> int:
    return -(-d * ratio.numerator // ratio.denominator)


class FractionAdditionFamily(ProblemFamily):
    family_id = "fraction-addition"
    title = "Adding fractions"
    params_type = FractionParams

    FALLBACKS = {
        1: FractionParams(1, 4, 3, 8),
        2: FractionParams(5, 6, 3, 10),
        3: FractionParams(9, 14, 11, 21),
    }

    def draw(self, rng: RandomSource, level: int, attempt: int) -> FractionParams:
        if level == 1:
            d1 = rng.randint(2, 6)
            d2 = d1 * rng.choice([1, 1, 2, 3])
            return FractionParams(rng.randint(1, d1 - 1), d1, rng.randint(1, d2 - 1), d2)
        if level == 2:
            d1, d2 = rng.randint(3, 10), rng.randint(3, 10)
            return FractionParams(rng.randint(1, d1), d1, rng.randint(1, d2), d2)
        d1, d2 = rng.randint(10, 25), rng.randint(10, 25)
        return FractionParams(
            rng.randint(_ceil_scaled(d1, Fraction(1, 2)), _ceil_scaled(d1, Fraction(6, 5))),
            d1,
            rng.randint(_ceil_scaled(d2, Fraction(1, 2)), _ceil_scaled(d2, Fraction(6, 5))),
            d2,
        )

    def accepts(self, params: FractionParams, level: int) -> bool:
        n1, d1, n2, d2 = params.n1, params.d1, params.n2, params.d2
        if gcd(n1, d1) != 1 or gcd(n2, d2) != 1:
            return False
        if Fraction(n1, d1) == Fraction(n2, d2):
            return False
        common = lcm(d1, d2)
        if level == 1 and (d2 > 12 or common > 20):
            return False
        if level == 2 and (d1 == d2 or gcd(d1, d2) == 1 or common > 36):
            return False
        if level == 3 and (d1 == d2 or common > 300):
            return False
        raw = n1 * (common // d1) + n2 * (common // d2)
        # beyond level 1 the sum must need a reduction step
        if level > 1 and gcd(raw, common) == 1:
            return False
        return Fraction(raw, common) < MAX_ANSWER

    def fallback(self, level: int) -> FractionParams:
        return self.FALLBACKS[level]

    def display(self, params: FractionParams, level: int) -> Mapping[str, object]:
        return {
            "prompt": f"{params.n1}/{params.d1} + {params.n2}/{params.d2} = ?",
            "fractions": [[params.n1, params.d1], [params.n2, params.d2]],
            "operator": "+",
        }

    def derive(self, params: FractionParams) -> Solution:
        common = lcm(params.d1, params.d2)
        f1, f2 = common // params.d1, common // params.d2
        s1, s2 = params.n1 * f1, params.n2 * f2
        total = s1 + s2
        g = gcd(total, common)
        answer = format_fraction(Fraction(total, common))
        steps = (
            TraceStep(f"common denominator: lcm({params.d1}, {params.d2}) = {common}", common, {"kind": "lcm"}),
            TraceStep(
                f"{params.n1}/{params.d1} = {params.n1}·{f1}/{common} = {s1}/{common}",
                s1,
                {"kind": "scale", "numerator": params.n1, "factor": f1},
            ),
            TraceStep(
                f"{params.n2}/{params.d2} = {params.n2}·{f2}/{common} = {s2}/{common}",
                s2,
                {"kind": "scale", "numerator": params.n2, "factor": f2},
            ),
            TraceStep(f"add numerators: {s1} + {s2} = {total}", total, {"kind": "add"}),
            TraceStep(f"reduce by gcd({total}, {common}) = {g}: {answer}", answer, {"kind": "reduce", "gcd": g}),
        )
        return Solution(answer=answer, trace=steps)

    def replay(self, trace: Iterable[TraceStep]) -> str:
        steps = list(trace)
        common = next(s.value for s in steps if s.details.get("kind") == "lcm")
        total = sum(s.details["numerator"] * s.details["factor"] for s in steps if s.details.get("kind") == "scale")
        return format_fraction(Fraction(total, common))

    def error_model(self, params: FractionParams, answer: str, rng: RandomSource) -> Iterable[str]:
        common = lcm(params.d1, params.d2)
        f1, f2 = common // params.d1, common // params.d2
        # add across numerators and denominators
        yield format_fraction(Fraction(params.n1 + params.n2, params.d1 + params.d2))
        # scale only one numerator
        yield format_fraction(Fraction(params.n1 * f1 + params.n2, common))
        yield format_fraction(Fraction(params.n1 + params.n2 * f2, common))
        # multiply denominators, keep numerators
        yield format_fraction(Fraction(params.n1 + params.n2, params.d1 * params.d2))

    def jitter(self, answer: str, magnitude: int, rng: RandomSource) -> Optional[str]:
        value = Fraction(answer)
        offset = magnitude if rng.coin() else -magnitude
        return format_fraction(Fraction(value.numerator + offset, value.denominator))

    def same_value(self, left, right) -> bool:
        return parse_fraction(left) == parse_fraction(right)

    def is_valid_value(self, value) -> bool:
        parsed = parse_fraction(value)
        return parsed is not None and parsed > 0

    def signature(self, params: FractionParams) -> str:
        return f"{params.n1}/{params.d1}+{params.n2}/{params.d2}"
