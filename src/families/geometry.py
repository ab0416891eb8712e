# ABOUTME: Implements triangle families: notable-point identification and incenter angles.
# ABOUTME: Builds centroid, incenter, orthocenter, and circumcenter with exact rational vectors.

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from math import isqrt
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from src.common.random_source import RandomSource
from src.common.schemas import Solution, TraceStep

from .base import ProblemFamily

CENTROID = "centroid"
INCENTER = "incenter"
ORTHOCENTER = "orthocenter"
CIRCUMCENTER = "circumcenter"
NOTABLE_POINTS = (CENTROID, INCENTER, ORTHOCENTER, CIRCUMCENTER)

CONSTRUCTIONS = {
    CENTROID: "medians",
    INCENTER: "angle bisectors",
    ORTHOCENTER: "altitudes",
    CIRCUMCENTER: "perpendicular bisectors",
}

# Most frequent mix-ups first.
CONFUSIONS = {
    INCENTER: (CENTROID, CIRCUMCENTER, ORTHOCENTER),
    CENTROID: (INCENTER, ORTHOCENTER, CIRCUMCENTER),
    ORTHOCENTER: (CIRCUMCENTER, CENTROID, INCENTER),
    CIRCUMCENTER: (ORTHOCENTER, INCENTER, CENTROID),
}

# Heights with several integer legs x such that x^2 + h^2 is a perfect square.
TRIANGLE_HEIGHTS = (12, 15, 16, 20, 24)
MAX_LEG = 60
MAX_COORDINATE = 120


@dataclass(frozen=True)
class Vec2:
    x: Fraction
    y: Fraction

    @classmethod
    def of(cls, x, y) -> "Vec2":
        return cls(Fraction(x), Fraction(y))

    def __add__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def scale(self, k) -> "Vec2":
        return Vec2(self.x * k, self.y * k)

    def dot(self, other: "Vec2") -> Fraction:
        return self.x * other.x + self.y * other.y

    def cross(self, other: "Vec2") -> Fraction:
        return self.x * other.y - self.y * other.x

    def perp(self) -> "Vec2":
        return Vec2(-self.y, self.x)

    def as_text(self) -> Tuple[str, str]:
        return str(self.x), str(self.y)


def line_intersection(p: Vec2, r: Vec2, q: Vec2, s: Vec2) -> Optional[Vec2]:
    """Intersection of the lines p + t*r and q + u*s, or None when parallel."""
    denom = r.cross(s)
    if denom == 0:
        return None
    t = (q - p).cross(s) / denom
    return p + r.scale(t)


def exact_sqrt(value: Fraction) -> Fraction:
    value = Fraction(value)
    num, den = isqrt(value.numerator), isqrt(value.denominator)
    if num * num != value.numerator or den * den != value.denominator:
        raise ValueError(f"{value} is not a rational square.")
    return Fraction(num, den)


def side_lengths(a: Vec2, b: Vec2, c: Vec2) -> Tuple[Fraction, Fraction, Fraction]:
    """Lengths opposite each vertex: |BC|, |CA|, |AB|."""
    return (
        exact_sqrt((c - b).dot(c - b)),
        exact_sqrt((a - c).dot(a - c)),
        exact_sqrt((b - a).dot(b - a)),
    )


def centroid(a: Vec2, b: Vec2, c: Vec2) -> Vec2:
    return (a + b + c).scale(Fraction(1, 3))


def incenter(a: Vec2, b: Vec2, c: Vec2) -> Vec2:
    la, lb, lc = side_lengths(a, b, c)
    return (a.scale(la) + b.scale(lb) + c.scale(lc)).scale(1 / (la + lb + lc))


def orthocenter(a: Vec2, b: Vec2, c: Vec2) -> Vec2:
    # altitude from A is perpendicular to BC, altitude from B perpendicular to CA
    point = line_intersection(a, (c - b).perp(), b, (a - c).perp())
    if point is None:
        raise ValueError("Degenerate triangle has no orthocenter.")
    return point


def circumcenter(a: Vec2, b: Vec2, c: Vec2) -> Vec2:
    mid_ab = (a + b).scale(Fraction(1, 2))
    mid_bc = (b + c).scale(Fraction(1, 2))
    point = line_intersection(mid_ab, (b - a).perp(), mid_bc, (c - b).perp())
    if point is None:
        raise ValueError("Degenerate triangle has no circumcenter.")
    return point


POINT_BUILDERS = {
    CENTROID: centroid,
    INCENTER: incenter,
    ORTHOCENTER: orthocenter,
    CIRCUMCENTER: circumcenter,
}


def classify_triangle(a: Vec2, b: Vec2, c: Vec2) -> str:
    """'degenerate', 'right', 'obtuse', or 'acute' from exact dot products."""
    if (b - a).cross(c - a) == 0:
        return "degenerate"
    dots = [(q - p).dot(r - p) for p, q, r in ((a, b, c), (b, c, a), (c, a, b))]
    if any(d == 0 for d in dots):
        return "right"
    if any(d < 0 for d in dots):
        return "obtuse"
    return "acute"


def pythagorean_legs(height: int, limit: int = MAX_LEG) -> List[int]:
    return [x for x in range(1, limit + 1) if isqrt(x * x + height * height) ** 2 == x * x + height * height]


@dataclass(frozen=True)
class TriangleParams:
    vertices: Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]
    point: Optional[Tuple[Fraction, Fraction]]
    show_construction: bool = False
    construction: Optional[str] = None


@dataclass(frozen=True)
class IncenterAngleParams:
    angle_a: int
    angle_b: int
    angle_c: int
    asked: str


def _vertices(params: TriangleParams) -> Tuple[Vec2, Vec2, Vec2]:
    a, b, c = (Vec2.of(x, y) for x, y in params.vertices)
    return a, b, c


def notable_points(a: Vec2, b: Vec2, c: Vec2) -> Dict[str, Vec2]:
    return {label: build(a, b, c) for label, build in POINT_BUILDERS.items()}


class NotablePointFamily(ProblemFamily):
    family_id = "notable-points"
    title = "Notable points of a triangle"
    params_type = TriangleParams

    def draw(self, rng: RandomSource, level: int, attempt: int) -> TriangleParams:
        height = rng.choice(TRIANGLE_HEIGHTS)
        legs = pythagorean_legs(height)
        if level == 3 and rng.coin():
            # both feet on the same side of the apex: obtuse at the nearer base vertex
            left, right = sorted(rng.sample(legs, 2))
            base = ((left, 0), (right, 0))
        else:
            left, right = rng.choice(legs), rng.choice(legs)
            base = ((-left, 0), (right, 0))
        dx, dy = rng.randint(-6, 6), rng.randint(-6, 6)
        mirror = -1 if rng.coin() else 1
        points = [(mirror * x + dx, y + dy) for x, y in (base[0], base[1], (0, height))]
        vertices = tuple(rng.shuffled(points))
        target = rng.choice(NOTABLE_POINTS)
        corners = [Vec2.of(x, y) for x, y in vertices]
        point = None
        if classify_triangle(*corners) != "degenerate":
            built = POINT_BUILDERS[target](*corners)
            point = (built.x, built.y)
        return TriangleParams(
            vertices=vertices,
            point=point,
            show_construction=level == 1,
            construction=CONSTRUCTIONS[target] if level == 1 else None,
        )

    def accepts(self, params: TriangleParams, level: int) -> bool:
        if params.point is None:
            return False
        a, b, c = _vertices(params)
        kind = classify_triangle(a, b, c)
        if kind in ("degenerate", "right"):
            return False
        if (level == 3) != (kind == "obtuse"):
            return False
        if any(abs(v) > MAX_COORDINATE for xy in params.vertices for v in xy):
            return False
        points = list(notable_points(a, b, c).values())
        if len(set(points)) != len(points):
            return False
        return sum(1 for p in points if (p.x, p.y) == tuple(params.point)) == 1

    def fallback(self, level: int) -> TriangleParams:
        if level == 3:
            vertices = ((5, 0), (16, 0), (0, 12))
        else:
            vertices = ((-5, 0), (9, 0), (0, 12))
        point = incenter(*(Vec2.of(x, y) for x, y in vertices))
        return TriangleParams(
            vertices=vertices,
            point=(point.x, point.y),
            show_construction=level == 1,
            construction=CONSTRUCTIONS[INCENTER] if level == 1 else None,
        )

    def display(self, params: TriangleParams, level: int) -> Mapping[str, object]:
        payload = {
            "prompt": "Which notable point of triangle ABC is K?",
            "vertices": {name: list(xy) for name, xy in zip("ABC", params.vertices)},
            "point": [str(v) for v in params.point],
        }
        if params.show_construction:
            payload["construction"] = params.construction
        return payload

    def derive(self, params: TriangleParams) -> Solution:
        a, b, c = _vertices(params)
        la, lb, lc = side_lengths(a, b, c)
        steps = [
            TraceStep(
                f"side lengths: |BC| = {la}, |CA| = {lb}, |AB| = {lc}",
                (la, lb, lc),
                {"kind": "sides"},
            )
        ]
        formulas = {
            CENTROID: "(A + B + C) / 3",
            INCENTER: "(|BC|·A + |CA|·B + |AB|·C) / perimeter",
            ORTHOCENTER: "altitude from A ∩ altitude from B",
            CIRCUMCENTER: "bisector of AB ∩ bisector of BC",
        }
        for label, point in notable_points(a, b, c).items():
            x, y = point.as_text()
            steps.append(
                TraceStep(f"{label} = {formulas[label]} = ({x}, {y})", point, {"kind": "point", "label": label})
            )
        k = Vec2(*params.point)
        answer = next(step.details["label"] for step in steps[1:] if step.value == k)
        x, y = k.as_text()
        steps.append(TraceStep(f"K = ({x}, {y}) coincides with the {answer}", answer, {"kind": "match", "point": k}))
        return Solution(answer=answer, trace=tuple(steps))

    def replay(self, trace: Iterable[TraceStep]) -> str:
        steps = list(trace)
        k = next(step.details["point"] for step in steps if step.details.get("kind") == "match")
        matches = [step.details["label"] for step in steps if step.details.get("kind") == "point" and step.value == k]
        if len(matches) != 1:
            raise ValueError(f"Trace matches {len(matches)} notable points.")
        return matches[0]

    def error_model(self, params: TriangleParams, answer: str, rng: RandomSource) -> Iterable[str]:
        return CONFUSIONS[answer]

    def signature(self, params: TriangleParams) -> str:
        return f"{sorted(params.vertices)}@{params.point}"


INCENTER_OPPOSITE = {"AKB": "C", "BKC": "A", "CKA": "B"}

# level -> (angle step, inclusive range for the drawn angles A and C, askable angles)
INCENTER_SHAPES = {
    1: (10, (40, 80), ("AKB",)),
    2: (5, (35, 75), ("AKB", "BKC", "CKA")),
    3: (2, (30, 90), ("AKB", "BKC", "CKA")),
}


def _angles(params: IncenterAngleParams) -> Dict[str, int]:
    return {"A": params.angle_a, "B": params.angle_b, "C": params.angle_c}


class IncenterAngleFamily(ProblemFamily):
    family_id = "incenter-angle"
    title = "Angles at the incenter"
    params_type = IncenterAngleParams

    FALLBACKS = {
        1: IncenterAngleParams(50, 60, 70, "AKB"),
        2: IncenterAngleParams(45, 80, 55, "CKA"),
        3: IncenterAngleParams(64, 48, 68, "BKC"),
    }

    def draw(self, rng: RandomSource, level: int, attempt: int) -> IncenterAngleParams:
        step, (low, high), askable = INCENTER_SHAPES[level]
        choices = list(range(low, high + 1, step))
        angle_a, angle_c = rng.choice(choices), rng.choice(choices)
        return IncenterAngleParams(angle_a, 180 - angle_a - angle_c, angle_c, rng.choice(askable))

    def accepts(self, params: IncenterAngleParams, level: int) -> bool:
        if not 30 <= params.angle_b <= 100:
            return False
        opposite = _angles(params)[INCENTER_OPPOSITE[params.asked]]
        if opposite % 2:
            return False
        # at level 3 the triangle should not be isosceles
        if level == 3 and len({params.angle_a, params.angle_b, params.angle_c}) < 3:
            return False
        return params.angle_a + params.angle_b + params.angle_c == 180

    def fallback(self, level: int) -> IncenterAngleParams:
        return self.FALLBACKS[level]

    def display(self, params: IncenterAngleParams, level: int) -> Mapping[str, object]:
        return {
            "prompt": f"K is the incenter of triangle ABC. Find x = ∠{params.asked}.",
            "angles": _angles(params),
            "asked": params.asked,
        }

    def derive(self, params: IncenterAngleParams) -> Solution:
        name = INCENTER_OPPOSITE[params.asked]
        opposite = _angles(params)[name]
        half = Fraction(opposite, 2)
        answer = 90 + half
        steps = (
            TraceStep(
                f"bisectors at the other two vertices meet at K: ∠{params.asked} = 90° + ∠{name}/2",
                name,
                {"kind": "rule", "angle": opposite},
            ),
            TraceStep(f"∠{name}/2 = {opposite}/2 = {half}", half, {"kind": "half", "angle": opposite}),
            TraceStep(f"x = 90 + {half} = {answer}", int(answer), {"kind": "sum", "base": 90}),
        )
        return Solution(answer=int(answer), trace=steps)

    def replay(self, trace: Iterable[TraceStep]) -> int:
        steps = list(trace)
        half = next(Fraction(s.details["angle"], 2) for s in steps if s.details.get("kind") == "half")
        base = next(s.details["base"] for s in steps if s.details.get("kind") == "sum")
        total = base + half
        if total.denominator != 1:
            raise ValueError(f"Replayed angle {total} is not whole.")
        return int(total)

    def error_model(self, params: IncenterAngleParams, answer: int, rng: RandomSource) -> Iterable[int]:
        angles = _angles(params)
        opposite_name = INCENTER_OPPOSITE[params.asked]
        half = angles[opposite_name] // 2
        # subtract instead of add
        yield 90 - half
        # forget to halve
        yield 90 + angles[opposite_name]
        for name in "ABC":
            if name != opposite_name and angles[name] % 2 == 0:
                # half of the wrong angle
                yield 90 + angles[name] // 2
        yield answer + rng.choice([-20, -10, 10, 20])

    def jitter(self, answer: int, magnitude: int, rng: RandomSource) -> Optional[int]:
        step = 5 * magnitude
        return answer + step if rng.coin() else answer - step

    def is_valid_value(self, value) -> bool:
        return isinstance(value, int) and 0 < value < 180

    def signature(self, params: IncenterAngleParams) -> str:
        return f"A{params.angle_a}-B{params.angle_b}-C{params.angle_c}-{params.asked}"
