"""WebSocket channel between a mentor call and the browser."""
import asyncio
import base64
import binascii
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple
from fastapi import WebSocket, WebSocketDisconnect

from app.core.errors import DriverFailure
from app.services.mentor_call.models import TranscriptFragment

logger = logging.getLogger(__name__)

MicrophoneResponse = Tuple[bool, Optional[str]]

CONTROL_MESSAGES = {"mute", "end"}


class CallChannel:
    """Routes browser messages to the drivers and queues outgoing messages.

    Outgoing messages are posted synchronously and written by send_loop(),
    so state machine callbacks never await the socket.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.transcripts: "asyncio.Queue[TranscriptFragment]" = asyncio.Queue()
        self.audio_chunks: "asyncio.Queue[bytes]" = asyncio.Queue()
        self.control_handler: Optional[Callable[[Dict[str, Any]], None]] = None
        self._outbox: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()
        self._playback: Dict[str, asyncio.Future] = {}
        self._microphone: Optional[asyncio.Future] = None
        self._closed = False
        # Set by the input drivers while a listening loop runs
        self.listening = False

    def post(self, message: Dict[str, Any]) -> None:
        """Queue a message for the browser."""
        if self._closed:
            return
        self._outbox.put_nowait(message)

    def close(self) -> None:
        """Stop accepting messages and abandon unanswered requests.

        send_loop exits after flushing.
        """
        if self._closed:
            return
        self._closed = True
        self._outbox.put_nowait(None)

        pending = list(self._playback.values())
        if self._microphone is not None:
            pending.append(self._microphone)
        self._playback.clear()
        self._microphone = None
        for future in pending:
            future.cancel()

    async def send_loop(self) -> None:
        """Write queued messages until the channel is closed."""
        while True:
            message = await self._outbox.get()
            if message is None:
                return
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.info(
                    f"[CALL CHANNEL] Send failed, dropping outgoing messages - "
                    f"Error: {type(e).__name__}: {str(e)}"
                )
                self._closed = True
                return

    async def receive_loop(self) -> None:
        """Read browser messages until the socket disconnects."""
        while True:
            try:
                raw = await self.websocket.receive_text()
            except WebSocketDisconnect:
                logger.info("[CALL CHANNEL] Browser disconnected")
                return
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"[CALL CHANNEL] Ignoring non-JSON message: '{raw[:100]}'")
                continue
            if not isinstance(message, dict):
                logger.warning("[CALL CHANNEL] Ignoring message that is not an object")
                continue
            self.dispatch(message)

    def dispatch(self, message: Dict[str, Any]) -> None:
        """Route one browser message."""
        kind = message.get("type")

        if kind == "playback_ended":
            future = self._playback.pop(str(message.get("utterance_id")), None)
            if future is not None and not future.done():
                future.set_result(None)
        elif kind == "playback_failed":
            future = self._playback.pop(str(message.get("utterance_id")), None)
            if future is not None and not future.done():
                future.set_exception(
                    DriverFailure(message.get("error") or "Speech playback failed")
                )
        elif kind == "microphone":
            future, self._microphone = self._microphone, None
            if future is not None and not future.done():
                future.set_result((bool(message.get("granted")), message.get("error")))
        elif kind == "transcript":
            text = message.get("text")
            if not self.listening:
                logger.debug("[CALL CHANNEL] Dropping transcript received while not listening")
            elif isinstance(text, str):
                self.transcripts.put_nowait(
                    TranscriptFragment(text=text, is_final=bool(message.get("is_final", True)))
                )
        elif kind == "audio":
            if not self.listening:
                logger.debug("[CALL CHANNEL] Dropping audio received while not listening")
                return
            try:
                self.audio_chunks.put_nowait(base64.b64decode(message.get("data") or "", validate=True))
            except (binascii.Error, TypeError, ValueError):
                logger.warning("[CALL CHANNEL] Ignoring audio chunk that is not valid base64")
        elif kind in CONTROL_MESSAGES:
            if self.control_handler is not None:
                self.control_handler(message)
        else:
            logger.warning(f"[CALL CHANNEL] Unknown message type: {kind}")

    def expect_playback(self, utterance_id: str) -> asyncio.Future:
        """Future resolved when the browser finishes playing an utterance."""
        future = asyncio.get_running_loop().create_future()
        self._playback[utterance_id] = future
        return future

    def forget_playback(self, utterance_id: str) -> None:
        self._playback.pop(utterance_id, None)

    def expect_microphone(self) -> asyncio.Future:
        """Future resolved with the browser's microphone permission answer."""
        future = asyncio.get_running_loop().create_future()
        self._microphone = future
        return future

    def drain_transcripts(self) -> None:
        """Drop fragments recognized while nobody was listening."""
        while not self.transcripts.empty():
            self.transcripts.get_nowait()

    def drain_audio(self) -> None:
        while not self.audio_chunks.empty():
            self.audio_chunks.get_nowait()
