"""Mentor call state machine."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.core.errors import CallErrorKind
from app.services.mentor_call.drivers import (
    MicrophoneProvider,
    MicrophoneStream,
    SpeechInputDriver,
    SpeechOutputDriver,
)
from app.services.mentor_call.models import CallSession, TranscriptFragment
from app.services.mentor_call.phases import CallPhase
from app.services.mentor_call.transcript import TranscriptBuffer

logger = logging.getLogger(__name__)

FALLBACK_GREETING = "Hello! I'm ready to discuss your path. Let's begin."
MIC_PERMISSION_NOTICE = (
    "Microphone access is needed for the full experience. "
    "You can still listen to your mentor."
)

GreetingSource = Callable[[str], Awaitable[str]]


class MentorCallController:
    """Drives one mentor call: fetch greeting, speak, listen, end.

    All callbacks run on the event loop; transitions happen synchronously
    inside driver events.
    """

    def __init__(
        self,
        session: CallSession,
        speech_output: SpeechOutputDriver,
        speech_input: SpeechInputDriver,
        microphone: MicrophoneProvider,
        greeting_source: GreetingSource,
        on_end: Callable[[], None],
        on_change: Optional[Callable[[CallSession], None]] = None,
    ):
        self.session = session
        self.transcript = TranscriptBuffer()
        self.speech_output = speech_output
        self.speech_input = speech_input
        self.microphone = microphone
        self.greeting_source = greeting_source
        self._on_end = on_end
        self._on_change = on_change
        self._stream: Optional[MicrophoneStream] = None
        self._permission: Optional[asyncio.Task] = None
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    async def connect(self) -> None:
        """Request the microphone, fetch the greeting, then start speaking.

        The permission answer does not gate speaking; a grant that arrives
        later starts listening if the call is already in that phase.
        """
        logger.info(
            f"[MENTOR CALL] Connecting - CallId: {self.session.call_id}, "
            f"Career path: '{self.session.career_path}'"
        )
        self._permission = asyncio.get_running_loop().create_task(self._request_microphone())
        greeting = await self._fetch_greeting()

        if self._ended:
            logger.info(f"[MENTOR CALL] Call ended while connecting - CallId: {self.session.call_id}")
            return

        self.session.greeting_text = greeting
        self._set_phase(CallPhase.SPEAKING)
        self.speech_output.speak(
            greeting,
            on_complete=self._on_greeting_complete,
            on_failure=self._on_greeting_failed,
        )

    async def _fetch_greeting(self) -> str:
        try:
            greeting = (await self.greeting_source(self.session.career_path)).strip()
            if not greeting:
                raise ValueError("greeting was empty")
            return greeting
        except Exception as e:
            logger.error(
                f"[MENTOR CALL] Greeting generation failed, using fallback - "
                f"CallId: {self.session.call_id}, Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            self.session.greeting_failed = True
            self.session.record_error(CallErrorKind.GENERATION_FAILURE)
            return FALLBACK_GREETING

    async def _request_microphone(self) -> None:
        try:
            stream = await self.microphone.acquire()
        except Exception as e:
            logger.warning(
                f"[MENTOR CALL] Microphone permission denied - "
                f"CallId: {self.session.call_id}, Error: {type(e).__name__}: {str(e)}"
            )
            self.session.mic_granted = False
            self.session.mic_error = MIC_PERMISSION_NOTICE
            self.session.record_error(CallErrorKind.PERMISSION_DENIED)
            self._notify()
            return

        if self._ended:
            # Granted after the call was already torn down
            self._release_stream(stream)
            return

        self._stream = stream
        self.session.mic_granted = True
        logger.info(f"[MENTOR CALL] Microphone granted - CallId: {self.session.call_id}")
        self._sync_input()
        self._notify()

    def _on_greeting_complete(self) -> None:
        if self.session.state != CallPhase.SPEAKING:
            return
        self._enter_listening()

    def _on_greeting_failed(self, error: Exception) -> None:
        logger.error(
            f"[MENTOR CALL] Speech output failed, continuing to listen - "
            f"CallId: {self.session.call_id}, Error: {type(error).__name__}: {str(error)}"
        )
        self.session.record_error(CallErrorKind.DRIVER_FAILURE)
        if self.session.state != CallPhase.SPEAKING:
            return
        self._enter_listening()

    def _enter_listening(self) -> None:
        self._set_phase(CallPhase.LISTENING)
        self._sync_input()

    def _sync_input(self) -> None:
        should_listen = (
            self.session.state == CallPhase.LISTENING
            and self.session.mic_usable
            and not self.session.is_muted
        )
        if should_listen:
            self.speech_input.start(self._on_fragment, self._on_input_error)
        else:
            self.speech_input.stop()

    def _on_fragment(self, fragment: TranscriptFragment) -> None:
        if self._ended:
            return
        if self.transcript.append(fragment):
            logger.debug(f"[MENTOR CALL] Heard: '{fragment.text}' - CallId: {self.session.call_id}")
            self._notify()

    def _on_input_error(self, error: Exception) -> None:
        logger.error(
            f"[MENTOR CALL] Speech input failed - CallId: {self.session.call_id}, "
            f"Error: {type(error).__name__}: {str(error)}"
        )
        self.session.record_error(CallErrorKind.DRIVER_FAILURE)
        self._notify()

    def toggle_mute(self) -> None:
        """Flip the mute state."""
        self.set_muted(not self.session.is_muted)

    def set_muted(self, muted: bool) -> None:
        """Mute or unmute. Ignored when the microphone is unavailable."""
        if self._ended:
            return
        if self.session.mic_error is not None:
            logger.debug(f"[MENTOR CALL] Mute ignored, microphone unavailable - CallId: {self.session.call_id}")
            return
        if self.session.is_muted == muted:
            return
        self.session.is_muted = muted
        logger.info(f"[MENTOR CALL] Muted: {muted} - CallId: {self.session.call_id}")
        self._sync_input()
        self._notify()

    def end_call(self) -> None:
        """End the call from any phase, releasing every resource once."""
        if self._ended:
            return
        self._ended = True
        logger.info(
            f"[MENTOR CALL] Ending call - CallId: {self.session.call_id}, "
            f"Phase: {self.session.state.value}"
        )

        self.speech_output.cancel()
        self.speech_input.stop()
        stream, self._stream = self._stream, None
        if stream is not None:
            self._release_stream(stream)

        self._set_phase(CallPhase.IDLE)
        self._on_end()

    def _release_stream(self, stream: MicrophoneStream) -> None:
        try:
            stream.release()
        except Exception as e:
            logger.error(
                f"[MENTOR CALL] Failed to release microphone - CallId: {self.session.call_id}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )

    def _set_phase(self, phase: CallPhase) -> None:
        old_phase = self.session.state
        self.session.state = phase
        if old_phase != phase:
            logger.info(
                f"[MENTOR CALL] Phase changed: {old_phase.value} -> {phase.value} - "
                f"CallId: {self.session.call_id}"
            )
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.session)
