"""Drivers backed by the browser over a CallChannel."""
import base64
import logging
import uuid
from typing import AsyncIterator, Optional

from app.core.errors import DriverFailure, PermissionDenied
from app.services.mentor_call.channel import CallChannel
from app.services.mentor_call.drivers import (
    MicrophoneProvider,
    MicrophoneStream,
    SpeechInputDriver,
    SpeechOutputDriver,
)
from app.services.mentor_call.models import TranscriptFragment
from app.services.speech.stt import SpeechToTextService
from app.services.speech.tts import TextToSpeechService

logger = logging.getLogger(__name__)


class RemoteSpeechOutputDriver(SpeechOutputDriver):
    """Plays utterances in the browser.

    Without a TTS service the browser synthesizes the text itself; with one,
    the server ships MP3 audio. Either way the utterance ends on the
    browser's playback acknowledgement.
    """

    def __init__(
        self,
        channel: CallChannel,
        tts_service: Optional[TextToSpeechService] = None,
    ):
        super().__init__()
        self.channel = channel
        self.tts_service = tts_service

    async def _play(self, text: str) -> None:
        utterance_id = uuid.uuid4().hex
        message = {"type": "speak", "utterance_id": utterance_id, "text": text, "audio": None}
        if self.tts_service is not None:
            audio = await self.tts_service.synthesize_speech(text)
            message["audio"] = base64.b64encode(audio).decode("ascii")

        playback = self.channel.expect_playback(utterance_id)
        self.channel.post(message)
        try:
            await playback
        finally:
            self.channel.forget_playback(utterance_id)

    def _stop_playback(self) -> None:
        self.channel.post({"type": "cancel_speech"})


class RemoteSpeechInputDriver(SpeechInputDriver):
    """Relays fragments recognized by the browser."""

    def __init__(self, channel: CallChannel):
        super().__init__()
        self.channel = channel

    async def listen(self) -> AsyncIterator[TranscriptFragment]:
        self.channel.drain_transcripts()
        self.channel.listening = True
        self.channel.post({"type": "start_listening", "mode": "recognition"})
        try:
            while True:
                yield await self.channel.transcripts.get()
        finally:
            self.channel.listening = False
            self.channel.post({"type": "stop_listening"})


class WhisperSpeechInputDriver(SpeechInputDriver):
    """Transcribes audio chunks captured by the browser on the server."""

    def __init__(self, channel: CallChannel, stt_service: SpeechToTextService):
        super().__init__()
        self.channel = channel
        self.stt_service = stt_service

    async def listen(self) -> AsyncIterator[TranscriptFragment]:
        self.channel.drain_audio()
        self.channel.listening = True
        self.channel.post({"type": "start_listening", "mode": "audio"})
        try:
            while True:
                chunk = await self.channel.audio_chunks.get()
                try:
                    text = await self.stt_service.transcribe_audio(chunk)
                except DriverFailure as e:
                    logger.warning(f"[SPEECH INPUT] Skipping audio chunk - Error: {str(e)}")
                    continue
                if text.strip():
                    yield TranscriptFragment(text=text.strip(), is_final=True)
        finally:
            self.channel.listening = False
            self.channel.post({"type": "stop_listening"})


class RemoteMicrophoneStream(MicrophoneStream):
    """The browser's capture stream, released by message."""

    def __init__(self, channel: CallChannel):
        self.channel = channel

    def release(self) -> None:
        self.channel.post({"type": "release_microphone"})


class RemoteMicrophone(MicrophoneProvider):
    """Asks the browser for microphone permission."""

    def __init__(self, channel: CallChannel):
        self.channel = channel

    async def acquire(self) -> MicrophoneStream:
        response = self.channel.expect_microphone()
        self.channel.post({"type": "request_microphone"})
        granted, error = await response
        if not granted:
            raise PermissionDenied(error or "Microphone access denied")
        return RemoteMicrophoneStream(self.channel)
