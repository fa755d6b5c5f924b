"""Text-to-speech service."""
from openai import AsyncOpenAI

from app.core.errors import DriverFailure


class TextToSpeechService:
    """Service for converting text to speech."""

    def __init__(self, client: AsyncOpenAI, voice: str = "alloy", model: str = "tts-1"):
        self.client = client
        self.voice = voice
        self.model = model

    async def synthesize_speech(self, text: str) -> bytes:
        """
        Synthesize speech from text using OpenAI TTS.

        Args:
            text: Text to convert to speech

        Returns:
            Audio bytes (MP3 format)
        """
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
            )
            return response.content
        except Exception as e:
            raise DriverFailure(f"TTS synthesis failed: {str(e)}") from e
