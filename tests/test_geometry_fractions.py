# ABOUTME: Tests exact triangle constructions, the incenter-angle family, and fraction addition.
# ABOUTME: Uses triangles and fractions whose notable points and sums are known in closed form.

from fractions import Fraction

import pytest

from src.common.random_source import RandomSource
from src.common.schemas import Instance
from src.families.fractions import FractionAdditionFamily, FractionParams, format_fraction, parse_fraction
from src.families.geometry import (
    CENTROID,
    INCENTER,
    IncenterAngleFamily,
    IncenterAngleParams,
    NotablePointFamily,
    TriangleParams,
    Vec2,
    centroid,
    circumcenter,
    classify_triangle,
    incenter,
    line_intersection,
    orthocenter,
)

A, B, C = Vec2.of(-5, 0), Vec2.of(9, 0), Vec2.of(0, 12)


def test_vector_products():
    u, v = Vec2.of(1, 2), Vec2.of(3, -1)
    assert u.dot(v) == 1
    assert u.cross(v) == -7
    assert u.perp().dot(u) == 0


def test_line_intersection_and_parallel_lines():
    hit = line_intersection(Vec2.of(0, 0), Vec2.of(1, 1), Vec2.of(0, 2), Vec2.of(1, -1))
    assert hit == Vec2.of(1, 1)
    assert line_intersection(Vec2.of(0, 0), Vec2.of(1, 0), Vec2.of(0, 1), Vec2.of(2, 0)) is None


def test_notable_points_of_13_14_15_triangle():
    assert centroid(A, B, C) == Vec2(Fraction(4, 3), Fraction(4))
    assert incenter(A, B, C) == Vec2.of(1, 4)
    assert orthocenter(A, B, C) == Vec2(Fraction(0), Fraction(15, 4))
    assert circumcenter(A, B, C) == Vec2(Fraction(2), Fraction(33, 8))


def test_classify_triangle():
    assert classify_triangle(A, B, C) == "acute"
    assert classify_triangle(Vec2.of(5, 0), Vec2.of(16, 0), Vec2.of(0, 12)) == "obtuse"
    assert classify_triangle(Vec2.of(0, 0), Vec2.of(4, 0), Vec2.of(0, 3)) == "right"
    assert classify_triangle(Vec2.of(0, 0), Vec2.of(1, 1), Vec2.of(2, 2)) == "degenerate"


def test_notable_point_fallback_identifies_incenter():
    family = NotablePointFamily()
    params = family.fallback(2)
    solution = family.derive(params)
    assert solution.answer == INCENTER
    assert family.replay(solution.trace) == INCENTER
    assert CENTROID in family.error_model(params, INCENTER, RandomSource(0))


def test_notable_point_level_three_is_obtuse():
    family = NotablePointFamily()
    for seed in range(10):
        instance = family.generate(RandomSource(seed), 3)
        vertices = [Vec2.of(x, y) for x, y in instance.params.vertices]
        assert classify_triangle(*vertices) == "obtuse"


def test_level_one_shows_construction():
    family = NotablePointFamily()
    instance = family.generate(RandomSource(4), 1)
    assert "construction" in instance.display_payload


def test_incenter_angle_rule():
    family = IncenterAngleFamily()
    params = IncenterAngleParams(50, 60, 70, "AKB")
    solution = family.derive(params)
    assert solution.answer == 125
    assert family.replay(solution.trace) == 125
    instance = Instance("fixed", family.family_id, 1, params, family.display(params, 1))
    distractors = family.distractors(instance, 125, RandomSource(0))
    # 90 - 35 and 90 + 70 come from the error model
    assert 55 in distractors
    assert 160 in distractors
    assert all(0 < d < 180 for d in distractors)


def test_fraction_addition_reduces():
    family = FractionAdditionFamily()
    solution = family.derive(FractionParams(5, 6, 3, 10))
    assert solution.answer == "17/15"
    assert solution.trace[0].value == 30
    assert family.replay(solution.trace) == "17/15"


def test_fraction_distractors_compare_by_value():
    family = FractionAdditionFamily()
    assert family.same_value("2/4", "1/2")
    assert not family.same_value("1/3", "1/2")
    params = FractionParams(1, 4, 3, 8)
    instance = Instance("fixed", family.family_id, 1, params, family.display(params, 1))
    distractors = family.distractors(instance, "5/8", RandomSource(0))
    assert set(distractors) == {"1/3", "1/2", "1/8"}
    assert all(parse_fraction(d) != Fraction(5, 8) for d in distractors)


@pytest.mark.parametrize(
    "params",
    [
        FractionParams(2, 4, 1, 3),
        FractionParams(1, 2, 2, 4),
        FractionParams(1, 6, 1, 4),
    ],
)
def test_fraction_quality_filter_rejects(params):
    family = FractionAdditionFamily()
    assert not family.accepts(params, 2)


def test_format_whole_fraction():
    assert format_fraction(Fraction(6, 3)) == "2"


def test_level_three_generation_never_raises():
    family = NotablePointFamily()
    for seed in range(300):
        instance = family.generate(RandomSource(seed), 3)
        assert family.accepts(instance.params, 3)


def test_degenerate_draw_is_rejected_not_built():
    family = NotablePointFamily()
    params = TriangleParams(vertices=((4, 0), (4, 0), (0, 12)), point=None)
    assert not family.accepts(params, 3)
