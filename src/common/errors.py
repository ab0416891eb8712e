# ABOUTME: Declares the engine error taxonomy and its mapping to outward messages.
# ABOUTME: Callers see only "could not load" or "could not submit"; internals keep detail.


class EngineError(Exception):
    """Base class for engine-level failures."""


class InvalidSubmission(EngineError):
    """Submission that cannot be graded; the caller should fetch a fresh instance."""


class UnknownInstance(InvalidSubmission):
    def __init__(self, instance_id: str):
        super().__init__(f"Unknown instance '{instance_id}'.")
        self.instance_id = instance_id


class AlreadyResolved(InvalidSubmission):
    def __init__(self, instance_id: str):
        super().__init__(f"Instance '{instance_id}' is already resolved.")
        self.instance_id = instance_id


class MalformedValue(InvalidSubmission):
    """Selected value is not one of the presented options."""


class GenerationFailed(EngineError):
    """No instance could be produced (unknown topic or a broken family)."""


class TrainingFailed(EngineError):
    """Batch training of the leveling classifier could not produce a model."""


class StorageConflict(EngineError):
    """Compare-and-set on a ledger version lost a race."""

    def __init__(self, key, expected: int, actual: int):
        super().__init__(f"Ledger {key} version conflict: expected {expected}, found {actual}.")
        self.key = key
        self.expected = expected
        self.actual = actual


LOAD_FAILED_MESSAGE = "could not load a new problem"
SUBMIT_FAILED_MESSAGE = "could not submit answer, please retry"


def public_message(exc: Exception) -> str:
    """Collapse any engine failure into one of the two student-facing messages."""

    if isinstance(exc, GenerationFailed):
        return LOAD_FAILED_MESSAGE
    return SUBMIT_FAILED_MESSAGE
