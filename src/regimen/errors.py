"""
Engine error taxonomy.

Only InvalidProfile aborts a request. The other errors are raised by
individual components and degraded by the planner into plan flags.
"""

from typing import List, Sequence


class RegimenError(Exception):
    """Base class for all engine errors."""


class InvalidProfile(RegimenError):
    """Profile is missing required fields or has out-of-range values."""

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        super().__init__("Invalid profile: " + "; ".join(self.errors))


class InsufficientExercisePool(RegimenError):
    """Too few exercises survived the safety filter."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Only {available} exercises passed the safety filter (need {required})"
        )


class NoApplicableSplit(RegimenError):
    """No split in the registry supports the requested frequency."""

    def __init__(self, frequency: int):
        self.frequency = frequency
        super().__init__(f"No split supports {frequency} sessions per week")


class MediaResolutionFailure(RegimenError):
    """A media provider failed or timed out for an exercise."""

    def __init__(self, provider: str, exercise_id: str, reason: str = ''):
        self.provider = provider
        self.exercise_id = exercise_id
        self.reason = reason
        message = f"Provider '{provider}' could not resolve media for {exercise_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConfigError(RegimenError):
    """Configuration file is missing or malformed."""
