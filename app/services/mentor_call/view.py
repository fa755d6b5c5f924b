"""Call view model pushed to the browser."""
from typing import Optional
from pydantic import BaseModel

from app.services.mentor_call.models import CallSession
from app.services.mentor_call.phases import CallPhase
from app.services.mentor_call.transcript import TranscriptBuffer

STATUS_TEXT = {
    CallPhase.CONNECTING: "Connecting to your mentor...",
    CallPhase.SPEAKING: "AI is speaking...",
    CallPhase.LISTENING: "AI is listening...",
    CallPhase.IDLE: "Call ended",
    CallPhase.ERRORED: "Something went wrong",
}


class CallViewModel(BaseModel):
    """Everything the call screen needs to render."""

    call_id: str
    career_path: str
    phase: CallPhase
    status_text: str
    greeting_text: str
    is_muted: bool
    mute_disabled: bool
    mic_notice: Optional[str] = None
    show_spinner: bool
    listening_indicator: bool
    transcript: str = ""


def render_call_view(
    session: CallSession, transcript: Optional[TranscriptBuffer] = None
) -> CallViewModel:
    """Build the view model for the current session state."""
    # The mic notice replaces the status line once permission has failed
    status_text = session.mic_error or STATUS_TEXT[session.state]
    if session.state == CallPhase.IDLE:
        status_text = STATUS_TEXT[CallPhase.IDLE]

    return CallViewModel(
        call_id=session.call_id,
        career_path=session.career_path,
        phase=session.state,
        status_text=status_text,
        greeting_text=session.greeting_text,
        is_muted=session.is_muted or session.mic_error is not None,
        mute_disabled=session.mic_error is not None,
        mic_notice=session.mic_error,
        show_spinner=session.state == CallPhase.CONNECTING,
        listening_indicator=(
            session.state == CallPhase.LISTENING
            and session.mic_usable
            and not session.is_muted
        ),
        transcript=transcript.get_text() if transcript is not None else "",
    )
