# ABOUTME: Makes the exercise engine importable as one package.
# ABOUTME: Re-exports the option builder, attempt grading, and the service facade.

from .attempts import AttemptEngine, AttemptResult, AttemptState
from .options import OptionSetBuilder, correct_option
from .service import ExerciseService, StartResult, SubmitResult, elapsed_category

__all__ = [
    "AttemptEngine",
    "AttemptResult",
    "AttemptState",
    "ExerciseService",
    "OptionSetBuilder",
    "StartResult",
    "SubmitResult",
    "correct_option",
    "elapsed_category",
]
