# ABOUTME: Registers every problem family under its family id.
# ABOUTME: Re-exports the family contract and the lookup helpers used by the engine.

from typing import Dict

from .arithmetic import BorrowSubtractionFamily, CarriedAdditionFamily
from .base import ProblemFamily, clamp_level
from .fractions import FractionAdditionFamily
from .geometry import IncenterAngleFamily, NotablePointFamily
from .logic import TruthTableFamily

FAMILIES: Dict[str, ProblemFamily] = {
    family.family_id: family
    for family in (
        CarriedAdditionFamily(),
        BorrowSubtractionFamily(),
        TruthTableFamily(),
        NotablePointFamily(),
        IncenterAngleFamily(),
        FractionAdditionFamily(),
    )
}


def get_family(family_id: str) -> ProblemFamily:
    try:
        return FAMILIES[family_id]
    except KeyError:
        raise KeyError(f"Unknown problem family '{family_id}'. Expected one of: {', '.join(sorted(FAMILIES))}.") from None


__all__ = [
    "FAMILIES",
    "ProblemFamily",
    "clamp_level",
    "get_family",
]
