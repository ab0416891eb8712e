# ABOUTME: Implements column arithmetic families: carried addition and borrow subtraction.
# ABOUTME: Derivations walk the columns right to left, recording carries and borrows.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Tuple

from src.common.random_source import RandomSource
from src.common.schemas import Solution, TraceStep

from .base import ProblemFamily

COLUMN_NAMES = ("units", "tens", "hundreds", "thousands", "ten-thousands")

# level -> (operand width, inclusive band on carry/borrow count)
ADDITION_BANDS = {1: (2, (1, 1)), 2: (3, (1, 2)), 3: (3, (2, 3))}
SUBTRACTION_BANDS = {1: (2, (1, 1)), 2: (3, (1, 1)), 3: (3, (2, 2))}


@dataclass(frozen=True)
class AdditionParams:
    a: int
    b: int


@dataclass(frozen=True)
class SubtractionParams:
    minuend: int
    subtrahend: int


@dataclass(frozen=True)
class Column:
    place: int
    top: int
    bottom: int
    carry_in: int
    total: int
    digit: int
    carry_out: int


def split_digits(n: int, width: int) -> List[int]:
    """Digits of ``n`` least-significant first, zero-padded to ``width``."""
    return [(n // 10 ** i) % 10 for i in range(width)]


def width_of(*numbers: int) -> int:
    return max(len(str(abs(n))) for n in numbers)


def addition_columns(a: int, b: int) -> List[Column]:
    width = width_of(a, b)
    columns = []
    carry = 0
    for i, (da, db) in enumerate(zip(split_digits(a, width), split_digits(b, width))):
        total = da + db + carry
        columns.append(Column(10 ** i, da, db, carry, total, total % 10, total // 10))
        carry = total // 10
    return columns


def subtraction_columns(minuend: int, subtrahend: int) -> List[Column]:
    """Columns of a borrow subtraction; ``carry_in`` is the borrow lent to the column on the right."""
    width = width_of(minuend, subtrahend)
    columns = []
    lent = 0
    for i, (dt, db) in enumerate(zip(split_digits(minuend, width), split_digits(subtrahend, width))):
        available = dt - lent
        borrow = 1 if available < db else 0
        total = available + 10 * borrow
        columns.append(Column(10 ** i, dt, db, lent, total, total - db, borrow))
        lent = borrow
    return columns


def _band(bands: Mapping[int, Tuple[int, Tuple[int, int]]], level: int) -> Tuple[int, Tuple[int, int]]:
    return bands[level]


def _operand_range(width: int) -> Tuple[int, int]:
    # Keep the leading digit above 1 so the operand reads as full-width.
    return 12 * 10 ** (width - 2), 10 ** width - 1 - 12


def _signed_offset(answer: int, magnitude: int, rng: RandomSource) -> int:
    step = magnitude + rng.randint(0, 2)
    return answer + step if rng.coin() else answer - step


class CarriedAdditionFamily(ProblemFamily):
    family_id = "carried-addition"
    title = "Addition with carries"
    params_type = AdditionParams

    FALLBACKS = {1: AdditionParams(47, 38), 2: AdditionParams(358, 267), 3: AdditionParams(586, 479)}

    def draw(self, rng: RandomSource, level: int, attempt: int) -> AdditionParams:
        width, _ = _band(ADDITION_BANDS, level)
        low, high = _operand_range(width)
        return AdditionParams(rng.randint(low, high), rng.randint(low, high))

    def accepts(self, params: AdditionParams, level: int) -> bool:
        width, (low, high) = _band(ADDITION_BANDS, level)
        if width_of(params.a, params.b) != width:
            return False
        carries = sum(c.carry_out for c in addition_columns(params.a, params.b))
        if not low <= carries <= high:
            return False
        return params.a + params.b >= 3 * 10 ** (width - 1)

    def fallback(self, level: int) -> AdditionParams:
        return self.FALLBACKS[level]

    def display(self, params: AdditionParams, level: int) -> Mapping[str, object]:
        return {
            "prompt": f"{params.a} + {params.b} = ?",
            "operands": [params.a, params.b],
            "operator": "+",
        }

    def derive(self, params: AdditionParams) -> Solution:
        columns = addition_columns(params.a, params.b)
        steps = []
        for i, col in enumerate(columns):
            terms = [str(col.top), str(col.bottom)] + ([str(col.carry_in)] if col.carry_in else [])
            operation = f"{COLUMN_NAMES[i]}: {' + '.join(terms)} = {col.total}, write {col.digit}"
            if col.carry_out:
                operation += f", carry {col.carry_out}"
            steps.append(
                TraceStep(operation, col.total, {"place": col.place, "digit": col.digit, "carry": col.carry_out})
            )
        last = columns[-1]
        if last.carry_out:
            place = last.place * 10
            steps.append(
                TraceStep(
                    f"{COLUMN_NAMES[len(columns)]}: carried {last.carry_out} becomes the leading digit",
                    last.carry_out,
                    {"place": place, "digit": last.carry_out, "carry": 0},
                )
            )
        answer = sum(step.details["digit"] * step.details["place"] for step in steps)
        steps.append(TraceStep(f"result: {params.a} + {params.b} = {answer}", answer, {"kind": "result"}))
        return Solution(answer=answer, trace=tuple(steps))

    def replay(self, trace: Iterable[TraceStep]) -> int:
        return sum(step.details["digit"] * step.details["place"] for step in trace if "place" in step.details)

    def error_model(self, params: AdditionParams, answer: int, rng: RandomSource) -> Iterable[int]:
        columns = addition_columns(params.a, params.b)
        # ignore every carry: each column keeps only its own digit sum
        yield sum(((c.top + c.bottom) % 10) * c.place for c in columns)
        for col in columns:
            if col.carry_out:
                # drop this single carry
                yield answer - col.place * 10
        if any(c.carry_out for c in columns):
            # carry added twice
            yield answer + 10
        yield _signed_offset(answer, 1, rng)

    def jitter(self, answer: int, magnitude: int, rng: RandomSource) -> Optional[int]:
        return _signed_offset(answer, magnitude, rng)

    def is_valid_value(self, value) -> bool:
        return isinstance(value, int) and value > 0

    def signature(self, params: AdditionParams) -> str:
        return f"{params.a}+{params.b}"


class BorrowSubtractionFamily(ProblemFamily):
    family_id = "borrow-subtraction"
    title = "Subtraction with borrowing"
    params_type = SubtractionParams
    max_tries = 400

    FALLBACKS = {1: SubtractionParams(52, 27), 2: SubtractionParams(463, 128), 3: SubtractionParams(502, 287)}

    def draw(self, rng: RandomSource, level: int, attempt: int) -> SubtractionParams:
        width, _ = _band(SUBTRACTION_BANDS, level)
        low, high = _operand_range(width)
        minuend = rng.randint(low + 10 ** (width - 1), high)
        return SubtractionParams(minuend, rng.randint(low, minuend - 1))

    def accepts(self, params: SubtractionParams, level: int) -> bool:
        width, (low, high) = _band(SUBTRACTION_BANDS, level)
        if params.minuend <= params.subtrahend:
            return False
        if width_of(params.minuend, params.subtrahend) != width or len(str(params.subtrahend)) != width:
            return False
        borrows = sum(c.carry_out for c in subtraction_columns(params.minuend, params.subtrahend))
        if not low <= borrows <= high:
            return False
        return params.minuend - params.subtrahend >= 10 ** (width - 1)

    def fallback(self, level: int) -> SubtractionParams:
        return self.FALLBACKS[level]

    def display(self, params: SubtractionParams, level: int) -> Mapping[str, object]:
        return {
            "prompt": f"{params.minuend} - {params.subtrahend} = ?",
            "operands": [params.minuend, params.subtrahend],
            "operator": "-",
        }

    def derive(self, params: SubtractionParams) -> Solution:
        columns = subtraction_columns(params.minuend, params.subtrahend)
        steps = []
        for i, col in enumerate(columns):
            top = col.top - col.carry_in
            parts = [f"{COLUMN_NAMES[i]}:"]
            if col.carry_in:
                parts.append(f"{col.top} - 1 (lent to the {COLUMN_NAMES[i - 1]}) = {top};")
            if col.carry_out:
                parts.append(f"{top} < {col.bottom}, borrow 1 from the {COLUMN_NAMES[i + 1]}:")
            parts.append(f"{col.total} - {col.bottom} = {col.digit}")
            steps.append(
                TraceStep(" ".join(parts), col.digit, {"place": col.place, "digit": col.digit, "borrow": col.carry_out})
            )
        answer = sum(step.details["digit"] * step.details["place"] for step in steps)
        steps.append(
            TraceStep(f"result: {params.minuend} - {params.subtrahend} = {answer}", answer, {"kind": "result"})
        )
        return Solution(answer=answer, trace=tuple(steps))

    def replay(self, trace: Iterable[TraceStep]) -> int:
        return sum(step.details["digit"] * step.details["place"] for step in trace if "place" in step.details)

    def error_model(self, params: SubtractionParams, answer: int, rng: RandomSource) -> Iterable[int]:
        columns = subtraction_columns(params.minuend, params.subtrahend)
        # subtract the smaller digit from the larger in every column
        yield sum(abs(c.top - c.bottom) * c.place for c in columns)
        for col in columns:
            if col.carry_out:
                # borrowed but never reduced the lending column
                yield answer + col.place * 10
        yield _signed_offset(answer, 1, rng)
        yield answer - 10

    def jitter(self, answer: int, magnitude: int, rng: RandomSource) -> Optional[int]:
        return _signed_offset(answer, magnitude, rng)

    def is_valid_value(self, value) -> bool:
        return isinstance(value, int) and value > 0

    def signature(self, params: SubtractionParams) -> str:
        return f"{params.minuend}-{params.subtrahend}"
