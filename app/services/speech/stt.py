"""Speech-to-text service."""
from openai import AsyncOpenAI

from app.core.errors import DriverFailure


class SpeechToTextService:
    """Service for converting speech to text."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1"):
        self.client = client
        self.model = model

    async def transcribe_audio(
        self, audio_data: bytes, format: str = "webm"
    ) -> str:
        """
        Transcribe audio to text using OpenAI Whisper.

        Args:
            audio_data: Raw audio bytes
            format: Audio container format (webm, wav, ...)

        Returns:
            Transcribed text
        """
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(f"audio.{format}", audio_data, f"audio/{format}"),
            )
            return transcript.text
        except Exception as e:
            raise DriverFailure(f"Transcription failed: {str(e)}") from e
