# ABOUTME: Implements the propositional truth-table family over variables p and q.
# ABOUTME: Evaluates expression trees exactly and derives the table subexpression by subexpression.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from src.common.random_source import RandomSource
from src.common.schemas import Solution, TraceStep

from .base import ProblemFamily

TRUE_MARK = "V"
FALSE_MARK = "F"
VARIABLES = ("p", "q")
BINARY_OPS = ("and", "or", "imp")
OP_SYMBOLS = {"and": "∧", "or": "∨", "imp": "→"}

# Row order of every truth table: (p, q) = TT, TF, FT, FF.
COMBINATIONS = ((True, True), (True, False), (False, True), (False, False))

# level -> (max generation depth, inclusive node-count band)
LEVEL_SHAPES = {1: (2, (3, 5)), 2: (3, (5, 8)), 3: (4, (8, 11))}


@dataclass(frozen=True)
class Var:
    name: str


@dataclass(frozen=True)
class Not:
    operand: "Expr"


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Expr"
    right: "Expr"


Expr = Union[Var, Not, Binary]


@dataclass(frozen=True)
class TruthTableParams:
    expression: Expr


def apply_op(op: str, left: bool, right: bool) -> bool:
    if op == "and":
        return left and right
    if op == "or":
        return left or right
    if op == "imp":
        # A → B is false only when A holds and B does not.
        return (not left) or right
    raise ValueError(f"Unknown operator '{op}'.")


def evaluate(expr: Expr, p: bool, q: bool) -> bool:
    if isinstance(expr, Var):
        return p if expr.name == "p" else q
    if isinstance(expr, Not):
        return not evaluate(expr.operand, p, q)
    if isinstance(expr, Binary):
        return apply_op(expr.op, evaluate(expr.left, p, q), evaluate(expr.right, p, q))
    raise TypeError(f"Not an expression: {expr!r}")


def to_marks(values: Sequence[bool]) -> str:
    return "".join(TRUE_MARK if v else FALSE_MARK for v in values)


def truth_bits(expr: Expr) -> str:
    return to_marks([evaluate(expr, p, q) for p, q in COMBINATIONS])


def node_count(expr: Expr) -> int:
    if isinstance(expr, Var):
        return 1
    if isinstance(expr, Not):
        return 1 + node_count(expr.operand)
    return 1 + node_count(expr.left) + node_count(expr.right)


def uses_var(expr: Expr, name: str) -> bool:
    if isinstance(expr, Var):
        return expr.name == name
    if isinstance(expr, Not):
        return uses_var(expr.operand, name)
    return uses_var(expr.left, name) or uses_var(expr.right, name)


def simplify(expr: Expr) -> Expr:
    """Remove double negations (~~X => X) throughout the tree."""
    if isinstance(expr, Not):
        if isinstance(expr.operand, Not):
            return simplify(expr.operand.operand)
        return Not(simplify(expr.operand))
    if isinstance(expr, Binary):
        return Binary(expr.op, simplify(expr.left), simplify(expr.right))
    return expr


def pretty(expr: Expr) -> str:
    if isinstance(expr, Var):
        return expr.name
    if isinstance(expr, Not):
        return f"~{pretty(expr.operand)}"
    return f"({pretty(expr.left)} {OP_SYMBOLS[expr.op]} {pretty(expr.right)})"


def is_tautology(bits: str) -> bool:
    return bits == TRUE_MARK * len(bits)


def is_contradiction(bits: str) -> bool:
    return bits == FALSE_MARK * len(bits)


def is_bare_variable(bits: str) -> bool:
    # p: VVFF, q: VFVF, ~p: FFVV, ~q: FVFV
    return bits in {"VVFF", "VFVF", "FFVV", "FVFV"}


def flip_bits(bits: str, positions: Iterable[int]) -> str:
    marks = list(bits)
    for i in set(positions):
        marks[i] = FALSE_MARK if marks[i] == TRUE_MARK else TRUE_MARK
    return "".join(marks)


def random_expression(rng: RandomSource, depth: int, max_depth: int) -> Expr:
    if depth >= max_depth:
        return Var(rng.choice(VARIABLES))
    r = rng.random()
    if r < 0.35 and depth > 0:
        return Var(rng.choice(VARIABLES))
    if r < 0.55:
        return Not(random_expression(rng, depth + 1, max_depth))
    op = rng.choice(BINARY_OPS)
    return Binary(op, random_expression(rng, depth + 1, max_depth), random_expression(rng, depth + 1, max_depth))


def swap_variables(expr: Expr) -> Expr:
    if isinstance(expr, Var):
        return Var("q" if expr.name == "p" else "p")
    if isinstance(expr, Not):
        return Not(swap_variables(expr.operand))
    return Binary(expr.op, swap_variables(expr.left), swap_variables(expr.right))


def change_main_operator(expr: Expr, rng: RandomSource) -> Expr:
    if isinstance(expr, Binary):
        return Binary(rng.choice([op for op in BINARY_OPS if op != expr.op]), expr.left, expr.right)
    if isinstance(expr, Not):
        return Not(change_main_operator(expr.operand, rng))
    return expr


class TruthTableFamily(ProblemFamily):
    family_id = "truth-table"
    title = "Propositional truth tables"
    params_type = TruthTableParams
    max_tries = 200

    FALLBACKS = {
        1: TruthTableParams(Binary("imp", Var("p"), Var("q"))),
        2: TruthTableParams(Binary("and", Binary("imp", Var("p"), Var("q")), Not(Var("q")))),
        3: TruthTableParams(
            Binary(
                "and",
                Binary("imp", Var("p"), Var("q")),
                Binary("imp", Not(Var("q")), Not(Var("p"))),
            )
        ),
    }

    def draw(self, rng: RandomSource, level: int, attempt: int) -> TruthTableParams:
        max_depth, _ = LEVEL_SHAPES[level]
        return TruthTableParams(simplify(random_expression(rng, 0, max_depth)))

    def accepts(self, params: TruthTableParams, level: int) -> bool:
        expr = params.expression
        if not all(uses_var(expr, name) for name in VARIABLES):
            return False
        bits = truth_bits(expr)
        if is_tautology(bits) or is_contradiction(bits) or is_bare_variable(bits):
            return False
        _, (low, high) = LEVEL_SHAPES[level]
        return low <= node_count(expr) <= high

    def fallback(self, level: int) -> TruthTableParams:
        return self.FALLBACKS[level]

    def display(self, params: TruthTableParams, level: int) -> Mapping[str, object]:
        text = pretty(params.expression)
        return {
            "prompt": f"Complete the truth table of {text}",
            "expression": text,
            "rows": [to_marks(row) for row in COMBINATIONS],
        }

    def derive(self, params: TruthTableParams) -> Solution:
        steps: List[TraceStep] = []
        seen: Dict[str, int] = {}

        def visit(expr: Expr) -> int:
            label = pretty(expr)
            if label in seen:
                return seen[label]
            if isinstance(expr, Var):
                details = {"op": "var", "var": expr.name, "args": []}
                operation = f"column {label}"
            elif isinstance(expr, Not):
                arg = visit(expr.operand)
                details = {"op": "not", "args": [arg]}
                operation = f"{label}: negate {pretty(expr.operand)}"
            else:
                left, right = visit(expr.left), visit(expr.right)
                details = {"op": expr.op, "args": [left, right]}
                operation = f"{label}: {OP_SYMBOLS[expr.op]} row by row"
            steps.append(TraceStep(operation, truth_bits(expr), details))
            seen[label] = len(steps) - 1
            return seen[label]

        visit(params.expression)
        return Solution(answer=steps[-1].value, trace=tuple(steps))

    def replay(self, trace: Iterable[TraceStep]) -> str:
        columns: List[List[bool]] = []
        for step in trace:
            op, args = step.details["op"], step.details["args"]
            if op == "var":
                index = VARIABLES.index(step.details["var"])
                column = [row[index] for row in COMBINATIONS]
            elif op == "not":
                column = [not v for v in columns[args[0]]]
            else:
                column = [apply_op(op, a, b) for a, b in zip(columns[args[0]], columns[args[1]])]
            columns.append(column)
        return to_marks(columns[-1])

    def error_model(self, params: TruthTableParams, answer: str, rng: RandomSource) -> Iterable[str]:
        rows = len(COMBINATIONS)
        # one wrong row, twice
        yield flip_bits(answer, [rng.randint(0, rows - 1)])
        yield flip_bits(answer, [rng.randint(0, rows - 1)])
        expr = params.expression
        for mutated in (Not(expr), swap_variables(expr), change_main_operator(expr, rng)):
            bits = truth_bits(simplify(mutated))
            if not is_tautology(bits) and not is_contradiction(bits):
                yield bits
        yield flip_bits(answer, rng.sample(range(rows), 2))

    def jitter(self, answer: str, magnitude: int, rng: RandomSource) -> Optional[str]:
        flips = 1 + (magnitude - 1) % len(answer)
        return flip_bits(answer, rng.sample(range(len(answer)), flips))

    def signature(self, params: TruthTableParams) -> str:
        return pretty(params.expression)
