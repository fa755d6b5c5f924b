"""Speech driver and microphone interfaces."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Optional

from app.services.mentor_call.models import TranscriptFragment

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[], None]
FailureCallback = Callable[[Exception], None]
FragmentCallback = Callable[[TranscriptFragment], None]


class SpeechOutputDriver(ABC):
    """Plays one utterance at a time and reports how it ended.

    Exactly one of on_complete/on_failure fires per utterance unless the
    utterance is canceled, in which case neither does.
    """

    def __init__(self):
        self._utterance: Optional[asyncio.Task] = None

    @property
    def is_speaking(self) -> bool:
        return self._utterance is not None and not self._utterance.done()

    def speak(
        self,
        text: str,
        on_complete: CompletionCallback,
        on_failure: FailureCallback,
    ) -> None:
        """Start playing text, canceling any utterance still in flight."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._utterance = loop.create_task(self._run(text, on_complete, on_failure))

    def cancel(self) -> None:
        """Stop playback immediately and suppress its callbacks."""
        utterance, self._utterance = self._utterance, None
        if utterance is not None and not utterance.done():
            utterance.cancel()
            self._stop_playback()

    async def _run(
        self,
        text: str,
        on_complete: CompletionCallback,
        on_failure: FailureCallback,
    ) -> None:
        try:
            await self._play(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._utterance is not asyncio.current_task():
                return
            self._utterance = None
            logger.error(
                f"[SPEECH OUTPUT] Playback failed - Error: {type(e).__name__}: {str(e)}"
            )
            on_failure(e)
            return

        if self._utterance is not asyncio.current_task():
            return
        self._utterance = None
        on_complete()

    @abstractmethod
    async def _play(self, text: str) -> None:
        """Play text and return once playback has finished."""
        pass

    def _stop_playback(self) -> None:
        """Silence the audio channel after a cancel."""
        pass


class SpeechInputDriver(ABC):
    """Continuous speech recognition that can be started and stopped."""

    def __init__(self):
        self._session: Optional[asyncio.Task] = None
        self._winding_down: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._session is not None and not self._session.done()

    def start(
        self,
        on_fragment: FragmentCallback,
        on_error: Optional[FailureCallback] = None,
    ) -> None:
        """Begin listening. A no-op if already listening."""
        if self.is_active:
            logger.warning("[SPEECH INPUT] start() called while already listening - ignoring")
            return

        previous, self._winding_down = self._winding_down, None
        loop = asyncio.get_running_loop()
        self._session = loop.create_task(self._pump(on_fragment, on_error, previous))

    def stop(self) -> None:
        """Stop listening. Safe to call when not listening."""
        session, self._session = self._session, None
        if session is not None and not session.done():
            session.cancel()
            self._winding_down = session

    async def _pump(
        self,
        on_fragment: FragmentCallback,
        on_error: Optional[FailureCallback],
        previous: Optional[asyncio.Task],
    ) -> None:
        # A restarted driver waits for the previous listening loop to release capture
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        try:
            async for fragment in self.listen():
                on_fragment(fragment)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"[SPEECH INPUT] Recognition failed - Error: {type(e).__name__}: {str(e)}"
            )
            if self._session is asyncio.current_task():
                self._session = None
            if on_error is not None:
                on_error(e)

    @abstractmethod
    def listen(self) -> AsyncIterator[TranscriptFragment]:
        """Yield fragments for as long as listening continues."""
        pass


class MicrophoneStream(ABC):
    """Handle on an acquired microphone capture stream."""

    @abstractmethod
    def release(self) -> None:
        """Stop capture and give the device back."""
        pass


class MicrophoneProvider(ABC):
    """Requests microphone access."""

    @abstractmethod
    async def acquire(self) -> MicrophoneStream:
        """
        Request access to the microphone.

        Raises:
            PermissionDenied: if access is refused
        """
        pass
