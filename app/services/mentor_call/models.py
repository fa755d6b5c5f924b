"""Mentor call session models."""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from app.core.errors import CallErrorKind
from app.services.mentor_call.phases import CallPhase


class TranscriptFragment(BaseModel):
    """One chunk of recognized speech."""

    model_config = ConfigDict(frozen=True)

    text: str
    is_final: bool = True


class CallSession(BaseModel):
    """State of a single mentor call."""

    call_id: str
    career_path: str
    greeting_text: str = ""
    state: CallPhase = CallPhase.CONNECTING
    is_muted: bool = False
    mic_granted: bool = False
    mic_error: Optional[str] = None
    greeting_failed: bool = False
    errors: List[CallErrorKind] = []

    @property
    def mic_usable(self) -> bool:
        """Whether speech recognition may run at all."""
        return self.mic_granted and self.mic_error is None

    def record_error(self, kind: CallErrorKind) -> None:
        """Record a recovered failure."""
        self.errors.append(kind)
