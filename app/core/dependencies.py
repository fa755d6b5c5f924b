"""FastAPI dependencies."""
from typing import Optional
from fastapi import Depends
from openai import AsyncOpenAI
from starlette.requests import HTTPConnection

from app.core.config import settings
from app.services.career.service import CareerGenerationService
from app.services.generation.client import GenerationClient
from app.services.speech.stt import SpeechToTextService
from app.services.speech.tts import TextToSpeechService


def get_openai_client(connection: HTTPConnection) -> AsyncOpenAI:
    """Get the OpenAI client created at startup."""
    return connection.app.state.openai_client


def get_generation_client(connection: HTTPConnection) -> GenerationClient:
    """Get the generation client created at startup."""
    return connection.app.state.generation_client


def get_career_service(
    generation_client: GenerationClient = Depends(get_generation_client),
) -> CareerGenerationService:
    """Get career generation service instance."""
    return CareerGenerationService(generation_client)


def get_tts_service(
    client: AsyncOpenAI = Depends(get_openai_client),
) -> Optional[TextToSpeechService]:
    """Server-side speech synthesis, if enabled."""
    if settings.speech_synthesis != "openai":
        return None
    return TextToSpeechService(client, voice=settings.tts_voice, model=settings.tts_model)


def get_stt_service(
    client: AsyncOpenAI = Depends(get_openai_client),
) -> Optional[SpeechToTextService]:
    """Server-side speech recognition, if enabled."""
    if settings.speech_recognition != "whisper":
        return None
    return SpeechToTextService(client)
