"""Mentor call phase enumeration."""
from enum import Enum


class CallPhase(str, Enum):
    """Phases of a mentor call."""

    CONNECTING = "connecting"  # Fetching greeting and requesting the microphone
    SPEAKING = "speaking"  # Mentor greeting is playing
    LISTENING = "listening"  # Waiting on the user, recognition runs if the mic allows
    IDLE = "idle"  # Call ended
    ERRORED = "errored"

    def __str__(self) -> str:
        """Return the string value of the phase."""
        return self.value
