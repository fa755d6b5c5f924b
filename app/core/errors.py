"""Recoverable failure types shared by the generation flow and mentor call."""
from enum import Enum


class CallErrorKind(str, Enum):
    """Kinds of failures a mentor call recovers from."""

    PERMISSION_DENIED = "permission_denied"
    GENERATION_FAILURE = "generation_failure"
    DRIVER_FAILURE = "driver_failure"

    def __str__(self) -> str:
        return self.value


class CareerCompassError(Exception):
    """Base class for recoverable application failures."""

    kind: CallErrorKind


class PermissionDenied(CareerCompassError):
    """Microphone access was refused or could not be obtained."""

    kind = CallErrorKind.PERMISSION_DENIED


class GenerationFailure(CareerCompassError):
    """The AI provider failed or returned a malformed payload."""

    kind = CallErrorKind.GENERATION_FAILURE


class DriverFailure(CareerCompassError):
    """A speech driver reported an internal error."""

    kind = CallErrorKind.DRIVER_FAILURE
