# ABOUTME: Worked examples for the column-arithmetic and truth-table families.
# ABOUTME: Pins carry/borrow traces and truth-table codes against hand-computed values.

import unittest

from src.common.random_source import RandomSource
from src.common.schemas import Instance
from src.families.arithmetic import (
    AdditionParams,
    BorrowSubtractionFamily,
    CarriedAdditionFamily,
    SubtractionParams,
    addition_columns,
    subtraction_columns,
)
from src.families.logic import (
    Binary,
    Not,
    TruthTableFamily,
    TruthTableParams,
    Var,
    is_bare_variable,
    is_contradiction,
    is_tautology,
    pretty,
    simplify,
    truth_bits,
)


def _instance(family, params, level=1):
    return Instance("fixed", family.family_id, level, params, family.display(params, level))


class TestCarriedAddition(unittest.TestCase):
    def setUp(self):
        self.family = CarriedAdditionFamily()

    def test_586_plus_479_trace(self):
        solution = self.family.solve(_instance(self.family, AdditionParams(586, 479), level=3))
        self.assertEqual(solution.answer, 1065)
        ops = [step.operation for step in solution.trace]
        self.assertEqual(ops[0], "units: 6 + 9 = 15, write 5, carry 1")
        self.assertEqual(ops[1], "tens: 8 + 7 + 1 = 16, write 6, carry 1")
        self.assertEqual(ops[2], "hundreds: 5 + 4 + 1 = 10, write 0, carry 1")
        self.assertIn("thousands", ops[3])
        self.assertEqual(solution.trace[3].details["digit"], 1)
        self.assertEqual(self.family.replay(solution.trace), 1065)

    def test_column_sums_recorded_in_trace_rebuild_answer(self):
        solution = self.family.derive(AdditionParams(358, 267))
        column_steps = [s for s in solution.trace if "place" in s.details]
        self.assertEqual(sum(s.details["digit"] * s.details["place"] for s in column_steps), 625)

    def test_error_model_ignores_and_drops_carries(self):
        instance = _instance(self.family, AdditionParams(586, 479), level=3)
        distractors = self.family.distractors(instance, 1065, RandomSource(0))
        self.assertEqual(set(distractors), {955, 1055, 965})

    def test_quality_filter_rejects_no_carry_sums(self):
        self.assertFalse(self.family.accepts(AdditionParams(23, 41), 1))
        self.assertTrue(self.family.accepts(AdditionParams(47, 38), 1))

    def test_carry_count_matches_columns(self):
        self.assertEqual(sum(c.carry_out for c in addition_columns(586, 479)), 3)


class TestBorrowSubtraction(unittest.TestCase):
    def setUp(self):
        self.family = BorrowSubtractionFamily()

    def test_borrow_across_zero(self):
        solution = self.family.derive(SubtractionParams(502, 287))
        self.assertEqual(solution.answer, 215)
        borrows = [s.details["borrow"] for s in solution.trace if "place" in s.details]
        self.assertEqual(borrows, [1, 1, 0])
        self.assertEqual(self.family.replay(solution.trace), 215)

    def test_columns_record_lent_digits(self):
        columns = subtraction_columns(463, 128)
        self.assertEqual([c.digit for c in columns], [5, 3, 3])
        self.assertEqual([c.carry_in for c in columns], [0, 1, 0])

    def test_smaller_from_larger_distractor(self):
        instance = _instance(self.family, SubtractionParams(52, 27))
        distractors = self.family.distractors(instance, 25, RandomSource(0))
        self.assertIn(35, distractors)
        self.assertNotIn(25, distractors)

    def test_quality_filter_rejects_no_borrow(self):
        self.assertFalse(self.family.accepts(SubtractionParams(58, 23), 1))


class TestTruthTable(unittest.TestCase):
    def setUp(self):
        self.family = TruthTableFamily()
        self.implication = TruthTableParams(Binary("imp", Var("p"), Var("q")))

    def test_implication_code(self):
        solution = self.family.derive(self.implication)
        self.assertEqual(solution.answer, "VFVV")
        self.assertEqual(self.family.replay(solution.trace), "VFVV")

    def test_single_flip_distractors_differ_from_answer(self):
        instance = _instance(self.family, self.implication)
        for seed in range(10):
            distractors = self.family.distractors(instance, "VFVV", RandomSource(seed))
            self.assertEqual(len(distractors), 3)
            for value in distractors:
                self.assertEqual(len(value), 4)
                self.assertNotEqual(value, "VFVV")

    def test_trivial_expressions_are_rejected(self):
        tautology = TruthTableParams(Binary("or", Var("p"), Not(Var("p"))))
        bare = TruthTableParams(Binary("and", Var("p"), Binary("or", Var("p"), Var("q"))))
        self.assertTrue(is_tautology(truth_bits(tautology.expression)))
        self.assertFalse(self.family.accepts(tautology, 1))
        self.assertTrue(is_bare_variable(truth_bits(bare.expression)))
        self.assertFalse(self.family.accepts(bare, 1))
        self.assertTrue(is_contradiction("FFFF"))

    def test_simplify_and_pretty(self):
        expr = Not(Not(Binary("and", Var("p"), Not(Var("q")))))
        self.assertEqual(pretty(simplify(expr)), "(p ∧ ~q)")

    def test_shared_subexpressions_appear_once_in_trace(self):
        expr = Binary("and", Binary("imp", Var("p"), Var("q")), Binary("or", Var("p"), Var("q")))
        solution = self.family.derive(TruthTableParams(expr))
        labels = [step.operation.split(":")[0] for step in solution.trace]
        self.assertEqual(labels.count("column p"), 1)
        self.assertEqual(solution.answer, truth_bits(expr))


if __name__ == "__main__":
    unittest.main()
