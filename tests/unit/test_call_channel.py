"""Unit tests for the WebSocket call channel and browser-backed drivers."""
import asyncio
import base64
import json
import pytest
from unittest.mock import AsyncMock, Mock
from fastapi import WebSocketDisconnect

from app.core.errors import DriverFailure, PermissionDenied
from app.services.mentor_call.channel import CallChannel
from app.services.mentor_call.models import TranscriptFragment
from app.services.mentor_call.remote import (
    RemoteMicrophone,
    RemoteSpeechInputDriver,
    RemoteSpeechOutputDriver,
    WhisperSpeechInputDriver,
)


class FakeWebSocket:
    """Records sent messages and replays queued browser messages."""

    def __init__(self):
        self.sent = []
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def send_json(self, message):
        self.sent.append(message)

    async def receive_text(self):
        item = await self.incoming.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item


@pytest.fixture
async def channel_setup():
    """Channel over a fake socket with its send loop running."""
    websocket = FakeWebSocket()
    channel = CallChannel(websocket)
    sender = asyncio.create_task(channel.send_loop())
    yield channel, websocket
    channel.close()
    await sender


def sent_types(websocket):
    return [message["type"] for message in websocket.sent]


class TestCallChannel:
    """Test message routing."""

    @pytest.mark.asyncio
    async def test_post_is_delivered(self, channel_setup, settle_loop):
        channel, websocket = channel_setup

        channel.post({"type": "view"})
        await settle_loop()

        assert websocket.sent == [{"type": "view"}]

    @pytest.mark.asyncio
    async def test_post_after_close_is_dropped(self, settle_loop):
        websocket = FakeWebSocket()
        channel = CallChannel(websocket)
        sender = asyncio.create_task(channel.send_loop())

        channel.post({"type": "ended"})
        channel.close()
        channel.post({"type": "view"})
        await sender

        assert sent_types(websocket) == ["ended"]

    @pytest.mark.asyncio
    async def test_receive_loop_routes_and_stops_on_disconnect(self, channel_setup):
        channel, websocket = channel_setup
        controls = []
        channel.control_handler = controls.append
        channel.listening = True

        websocket.incoming.put_nowait("not json")
        websocket.incoming.put_nowait(json.dumps({"type": "transcript", "text": "hi", "is_final": True}))
        websocket.incoming.put_nowait(json.dumps({"type": "mute"}))
        websocket.incoming.put_nowait(json.dumps({"type": "end"}))
        websocket.incoming.put_nowait(None)

        await channel.receive_loop()

        assert channel.transcripts.get_nowait() == TranscriptFragment(text="hi", is_final=True)
        assert [message["type"] for message in controls] == ["mute", "end"]

    @pytest.mark.asyncio
    async def test_playback_acknowledgements(self, channel_setup):
        channel, _ = channel_setup
        ended = channel.expect_playback("u1")
        failed = channel.expect_playback("u2")

        channel.dispatch({"type": "playback_ended", "utterance_id": "u1"})
        channel.dispatch({"type": "playback_failed", "utterance_id": "u2", "error": "interrupted"})
        channel.dispatch({"type": "playback_ended", "utterance_id": "unknown"})

        assert ended.result() is None
        with pytest.raises(DriverFailure):
            failed.result()

    @pytest.mark.asyncio
    async def test_invalid_audio_is_ignored(self, channel_setup):
        channel, _ = channel_setup
        channel.listening = True

        channel.dispatch({"type": "audio", "data": "%%%not-base64%%%"})
        channel.dispatch({"type": "audio", "data": base64.b64encode(b"chunk").decode()})

        assert channel.audio_chunks.qsize() == 1
        assert channel.audio_chunks.get_nowait() == b"chunk"

    @pytest.mark.asyncio
    async def test_speech_dropped_while_not_listening(self, channel_setup):
        channel, _ = channel_setup

        for _ in range(100):
            channel.dispatch({"type": "transcript", "text": "muted chatter", "is_final": True})
            channel.dispatch({"type": "audio", "data": base64.b64encode(b"chunk").decode()})

        assert channel.transcripts.qsize() == 0
        assert channel.audio_chunks.qsize() == 0

    @pytest.mark.asyncio
    async def test_close_abandons_unanswered_requests(self, channel_setup):
        channel, _ = channel_setup
        playback = channel.expect_playback("u1")
        microphone = channel.expect_microphone()

        channel.close()

        assert playback.cancelled()
        assert microphone.cancelled()


class TestRemoteDrivers:
    """Test drivers that talk to the browser."""

    @pytest.mark.asyncio
    async def test_output_waits_for_browser_playback(self, channel_setup, settle_loop):
        channel, websocket = channel_setup
        driver = RemoteSpeechOutputDriver(channel)
        completed = []

        driver.speak("Welcome.", lambda: completed.append(True), lambda e: None)
        await settle_loop()

        speak = websocket.sent[-1]
        assert speak["type"] == "speak"
        assert speak["text"] == "Welcome."
        assert speak["audio"] is None
        assert completed == []

        channel.dispatch({"type": "playback_ended", "utterance_id": speak["utterance_id"]})
        await settle_loop()

        assert completed == [True]

    @pytest.mark.asyncio
    async def test_output_ships_synthesized_audio(self, channel_setup, settle_loop):
        channel, websocket = channel_setup
        tts_service = Mock()
        tts_service.synthesize_speech = AsyncMock(return_value=b"mp3-bytes")
        driver = RemoteSpeechOutputDriver(channel, tts_service)

        driver.speak("Welcome.", lambda: None, lambda e: None)
        await settle_loop()

        speak = websocket.sent[-1]
        assert base64.b64decode(speak["audio"]) == b"mp3-bytes"
        tts_service.synthesize_speech.assert_awaited_once_with("Welcome.")
        driver.cancel()

    @pytest.mark.asyncio
    async def test_output_cancel_tells_browser(self, channel_setup, settle_loop):
        channel, websocket = channel_setup
        driver = RemoteSpeechOutputDriver(channel)

        driver.speak("Welcome.", lambda: None, lambda e: None)
        await settle_loop()
        driver.cancel()
        await settle_loop()

        assert sent_types(websocket) == ["speak", "cancel_speech"]

    @pytest.mark.asyncio
    async def test_microphone_granted_and_released(self, channel_setup, settle_loop):
        channel, websocket = channel_setup
        microphone = RemoteMicrophone(channel)

        acquiring = asyncio.create_task(microphone.acquire())
        await settle_loop()
        assert sent_types(websocket) == ["request_microphone"]

        channel.dispatch({"type": "microphone", "granted": True})
        stream = await acquiring
        stream.release()
        await settle_loop()

        assert sent_types(websocket) == ["request_microphone", "release_microphone"]

    @pytest.mark.asyncio
    async def test_microphone_denied(self, channel_setup, settle_loop):
        channel, _ = channel_setup
        microphone = RemoteMicrophone(channel)

        acquiring = asyncio.create_task(microphone.acquire())
        await settle_loop()
        channel.dispatch({"type": "microphone", "granted": False, "error": "NotAllowedError"})

        with pytest.raises(PermissionDenied):
            await acquiring

    @pytest.mark.asyncio
    async def test_input_relays_browser_transcripts(self, channel_setup, settle_loop):
        channel, websocket = channel_setup
        driver = RemoteSpeechInputDriver(channel)
        fragments = []

        channel.dispatch({"type": "transcript", "text": "stale", "is_final": True})
        driver.start(fragments.append)
        await settle_loop()
        channel.dispatch({"type": "transcript", "text": "I like math", "is_final": True})
        await settle_loop()
        driver.stop()
        await settle_loop()

        assert [f.text for f in fragments] == ["I like math"]
        assert sent_types(websocket) == ["start_listening", "stop_listening"]
        assert channel.listening is False
        channel.dispatch({"type": "transcript", "text": "after stop", "is_final": True})
        assert channel.transcripts.qsize() == 0

    @pytest.mark.asyncio
    async def test_whisper_input_transcribes_audio(self, channel_setup, settle_loop):
        channel, websocket = channel_setup
        stt_service = Mock()
        stt_service.transcribe_audio = AsyncMock(
            side_effect=[DriverFailure("bad chunk"), "  ", " I like biology "]
        )
        driver = WhisperSpeechInputDriver(channel, stt_service)
        fragments = []

        driver.start(fragments.append)
        await settle_loop()
        for chunk in (b"one", b"two", b"three"):
            channel.dispatch({"type": "audio", "data": base64.b64encode(chunk).decode()})
        await settle_loop(30)

        assert [f.text for f in fragments] == ["I like biology"]
        assert websocket.sent[0] == {"type": "start_listening", "mode": "audio"}
        driver.stop()
        await settle_loop()
