"""Mentor greeting, call history and the mentor call WebSocket."""
import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, WebSocket
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.websockets import WebSocketState

from app.api.auth import SESSION_COOKIE, require_auth, verify_session
from app.core.dependencies import get_career_service, get_stt_service, get_tts_service
from app.core.errors import GenerationFailure
from app.db.database import get_db
from app.services.career.service import CareerGenerationService
from app.services.mentor_call.channel import CallChannel
from app.services.mentor_call.controller import FALLBACK_GREETING, MentorCallController
from app.services.mentor_call.models import CallSession
from app.services.mentor_call.remote import (
    RemoteMicrophone,
    RemoteSpeechInputDriver,
    RemoteSpeechOutputDriver,
    WhisperSpeechInputDriver,
)
from app.services.mentor_call.view import render_call_view
from app.services.persistence.calls import CallPersistenceService
from app.services.speech.stt import SpeechToTextService
from app.services.speech.tts import TextToSpeechService

router = APIRouter()
logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401


class MentorIntroRequest(BaseModel):
    """Mentor greeting request."""
    career_path: str = Field(min_length=1)


class MentorIntroResponse(BaseModel):
    """Mentor greeting text."""
    text: str
    fallback: bool = False


class MentorCallResponse(BaseModel):
    """Persisted mentor call."""
    call_id: str
    career_path: str
    status: str
    greeting_text: Optional[str] = None
    greeting_failed: bool
    mic_granted: bool
    started_at: str
    ended_at: Optional[str] = None
    transcript: Optional[str] = None


@router.post("/api/mentor/intro", response_model=MentorIntroResponse)
async def mentor_intro(
    body: MentorIntroRequest,
    session: dict = Depends(require_auth),
    career_service: CareerGenerationService = Depends(get_career_service),
):
    """Generate the mentor's greeting, falling back to a fixed line."""
    try:
        text = await career_service.generate_mentor_intro(body.career_path)
    except GenerationFailure as e:
        logger.error(
            f"[MENTOR INTRO] Greeting generation failed, using fallback - "
            f"UserId: {session['user_id']}, Error: {str(e)}"
        )
        return MentorIntroResponse(text=FALLBACK_GREETING, fallback=True)
    return MentorIntroResponse(text=text)


@router.get("/api/mentor/calls", response_model=List[MentorCallResponse])
async def list_mentor_calls(
    request: Request,
    limit: int = 50,
    session: dict = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Get the current user's mentor calls, newest first."""
    calls = await CallPersistenceService(db).list_calls_for_user(session["user_id"], limit)
    logger.info(f"[MENTOR CALLS] Found {len(calls)} calls - UserId: {session['user_id']}")
    return [
        MentorCallResponse(
            call_id=call.call_id,
            career_path=call.career_path,
            status=call.status,
            greeting_text=call.greeting_text,
            greeting_failed=call.greeting_failed,
            mic_granted=call.mic_granted,
            started_at=call.started_at.isoformat() if call.started_at else "",
            ended_at=call.ended_at.isoformat() if call.ended_at else None,
            transcript=call.transcript,
        )
        for call in calls
    ]


def apply_control(controller: MentorCallController, message: Dict[str, Any]) -> None:
    """Apply a mute/end control message from the call screen."""
    kind = message.get("type")
    if kind == "mute":
        if "muted" in message:
            controller.set_muted(bool(message["muted"]))
        else:
            controller.toggle_mute()
    elif kind == "end":
        controller.end_call()


@router.websocket("/ws/mentor-call")
async def mentor_call(
    websocket: WebSocket,
    career_path: str = Query(..., min_length=1),
    career_service: CareerGenerationService = Depends(get_career_service),
    tts_service: Optional[TextToSpeechService] = Depends(get_tts_service),
    stt_service: Optional[SpeechToTextService] = Depends(get_stt_service),
    db: AsyncSession = Depends(get_db),
):
    """Run one mentor call for the lifetime of the socket."""
    auth_session = verify_session(websocket.cookies.get(SESSION_COOKIE))
    if auth_session is None:
        logger.info("[MENTOR CALL] Rejecting unauthenticated call")
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    await websocket.accept()

    channel = CallChannel(websocket)
    session = CallSession(call_id=uuid.uuid4().hex, career_path=career_path)
    ended = asyncio.Event()

    def push_view(current: CallSession) -> None:
        view = render_call_view(current, controller.transcript)
        channel.post({"type": "view", "view": view.model_dump(mode="json")})

    if stt_service is not None:
        speech_input = WhisperSpeechInputDriver(channel, stt_service)
    else:
        speech_input = RemoteSpeechInputDriver(channel)

    controller = MentorCallController(
        session,
        speech_output=RemoteSpeechOutputDriver(channel, tts_service),
        speech_input=speech_input,
        microphone=RemoteMicrophone(channel),
        greeting_source=career_service.generate_mentor_intro,
        on_end=ended.set,
        on_change=push_view,
    )
    channel.control_handler = lambda message: apply_control(controller, message)

    calls = CallPersistenceService(db)
    await calls.create_call(session.call_id, auth_session["user_id"], career_path)
    logger.info(
        f"[MENTOR CALL] Call started - CallId: {session.call_id}, "
        f"UserId: {auth_session['user_id']}"
    )

    def on_connect_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"[MENTOR CALL] Connect failed unexpectedly - CallId: {session.call_id}, "
                f"Error: {type(error).__name__}: {str(error)}",
                exc_info=error,
            )
            controller.end_call()

    push_view(session)
    sender = asyncio.create_task(channel.send_loop())
    receiver = asyncio.create_task(channel.receive_loop())
    end_wait = asyncio.create_task(ended.wait())
    connecting = asyncio.create_task(controller.connect())
    connecting.add_done_callback(on_connect_done)

    try:
        await asyncio.wait({receiver, end_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # A disconnect is the view going away: tear the call down
        controller.end_call()
        for task in (connecting, receiver, end_wait):
            task.cancel()
        channel.post({"type": "ended", "call_id": session.call_id})
        channel.close()
        await sender

        await calls.complete_call(
            session.call_id,
            greeting_text=session.greeting_text,
            greeting_failed=session.greeting_failed,
            mic_granted=session.mic_granted,
            transcript=controller.transcript.get_text(),
        )
        logger.info(
            f"[MENTOR CALL] Call finished - CallId: {session.call_id}, "
            f"Fragments: {len(controller.transcript)}, Errors: {[str(e) for e in session.errors]}"
        )

        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
