"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7

    # Database
    database_url: str = "sqlite+aiosqlite:///./career_compass.db"

    # Questionnaire
    questionnaire_total_questions: int = 4

    # Mentor call speech back ends: "browser" keeps synthesis/recognition in
    # the browser, "openai"/"whisper" move them to the server
    speech_synthesis: str = "browser"
    speech_recognition: str = "browser"
    tts_voice: str = "alloy"
    tts_model: str = "tts-1"

    # Sessions
    session_ttl_hours: int = 24

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
