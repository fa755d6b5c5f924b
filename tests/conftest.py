"""Shared test fixtures and configuration."""
import asyncio
import pytest
import os
from typing import List, Optional
from unittest.mock import AsyncMock, Mock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from app.main import app
from app.db.database import Base, get_db
from app.core.config import Settings
from app.core.dependencies import get_generation_client, get_openai_client
from app.core.errors import PermissionDenied
from app.services.generation.client import GenerationClient
from app.services.mentor_call.controller import MentorCallController
from app.services.mentor_call.drivers import (
    MicrophoneProvider,
    MicrophoneStream,
    SpeechInputDriver,
    SpeechOutputDriver,
)
from app.services.mentor_call.models import CallSession


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings():
    """Override settings for testing."""
    return Settings(
        openai_api_key="test-key",
        database_url=TEST_DATABASE_URL,
        questionnaire_total_questions=4,
        speech_synthesis="browser",
        speech_recognition="browser",
        session_ttl_hours=24,
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def override_get_db():
    """Override get_db with an in-memory database living on the app's event loop."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _override_get_db():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as session:
            yield session

    return _override_get_db


@pytest.fixture
def fake_generation_client():
    """Generation client double; tests set the AsyncMock return values."""
    client = Mock(spec=GenerationClient)
    client.generate_json = AsyncMock()
    client.generate_text = AsyncMock(return_value="Welcome.")
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client."""
    mock_client = Mock()
    mock_completion = Mock()
    mock_completion.choices = [
        Mock(
            message=Mock(
                content='{"question": "What energizes you?", "options": ["A", "B", "C", "D"]}'
            )
        )
    ]
    mock_client.chat.completions.create = AsyncMock(return_value=mock_completion)
    mock_client.close = AsyncMock()
    return mock_client


@pytest.fixture
def test_client(override_get_db, fake_generation_client, mock_openai, test_settings, monkeypatch):
    """Create FastAPI test client with overrides."""
    # Override dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generation_client] = lambda: fake_generation_client
    app.dependency_overrides[get_openai_client] = lambda: mock_openai

    # Override settings in modules that use it
    monkeypatch.setattr("app.core.config.settings", test_settings)
    monkeypatch.setattr("app.core.dependencies.settings", test_settings)
    monkeypatch.setattr("app.api.auth.settings", test_settings)
    monkeypatch.setattr("app.api.career.settings", test_settings)

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(test_client):
    """Create test client with valid session cookie."""
    response = test_client.post(
        "/api/signup",
        json={"email": "student@example.com", "password": "secret123"}
    )
    assert response.status_code == 200

    # Session cookie is automatically stored in test_client
    return test_client


@pytest.fixture(autouse=True)
def clean_auth_sessions():
    """Clean up authentication sessions before and after tests."""
    from app.api import auth
    auth._sessions.clear()
    yield
    auth._sessions.clear()


async def settle(rounds: int = 10) -> None:
    """Let scheduled driver tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeSpeechOutput(SpeechOutputDriver):
    """Output driver whose playback the test finishes or fails by hand."""

    def __init__(self):
        super().__init__()
        self.spoken: List[str] = []
        self.playback: Optional[asyncio.Future] = None
        self.stop_count = 0

    async def _play(self, text: str) -> None:
        self.spoken.append(text)
        self.playback = asyncio.get_running_loop().create_future()
        await self.playback

    def finish(self) -> None:
        self.playback.set_result(None)

    def fail(self, error: Exception) -> None:
        self.playback.set_exception(error)

    def _stop_playback(self) -> None:
        self.stop_count += 1


class FakeSpeechInput(SpeechInputDriver):
    """Input driver fed from a queue; tracks concurrent listening loops."""

    def __init__(self):
        super().__init__()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.start_calls = 0
        self.listen_count = 0
        self.listening = 0
        self.max_listening = 0

    def start(self, on_fragment, on_error=None) -> None:
        self.start_calls += 1
        super().start(on_fragment, on_error)

    async def listen(self):
        self.listen_count += 1
        self.listening += 1
        self.max_listening = max(self.max_listening, self.listening)
        try:
            while True:
                item = await self.queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.listening -= 1


class FakeMicrophoneStream(MicrophoneStream):
    def __init__(self):
        self.release_count = 0

    def release(self) -> None:
        self.release_count += 1


class FakeMicrophone(MicrophoneProvider):
    """Grants, denies, or holds the permission prompt open until answered."""

    def __init__(self, deny: bool = False, hold: bool = False):
        self.stream = FakeMicrophoneStream()
        self.deny = deny
        self.hold = hold
        self.prompt: Optional[asyncio.Future] = None

    async def acquire(self) -> MicrophoneStream:
        if self.hold:
            self.prompt = asyncio.get_running_loop().create_future()
            await self.prompt
        if self.deny:
            raise PermissionDenied("NotAllowedError: Permission denied")
        return self.stream


class CallHarness:
    """A controller wired to fake drivers, recording what it does."""

    def __init__(
        self,
        greeting="Welcome.",
        greeting_error=None,
        deny_mic=False,
        hold_mic=False,
        hold_greeting=False,
    ):
        self.output = FakeSpeechOutput()
        self.input = FakeSpeechInput()
        self.microphone = FakeMicrophone(deny=deny_mic, hold=hold_mic)
        self.greeting_request: Optional[asyncio.Future] = None
        if hold_greeting:
            self.greeting_source = AsyncMock(side_effect=self._held_greeting)
        else:
            self.greeting_source = AsyncMock(return_value=greeting, side_effect=greeting_error)
        self.end_count = 0
        self.session = CallSession(call_id="call-1", career_path="Data Scientist")
        self.phases = [self.session.state]
        self.controller = MentorCallController(
            self.session,
            speech_output=self.output,
            speech_input=self.input,
            microphone=self.microphone,
            greeting_source=self.greeting_source,
            on_end=self._on_end,
            on_change=self._on_change,
        )

    async def _held_greeting(self, career_path: str) -> str:
        self.greeting_request = asyncio.get_running_loop().create_future()
        return await self.greeting_request

    def _on_end(self) -> None:
        self.end_count += 1

    def _on_change(self, session: CallSession) -> None:
        if not self.phases or self.phases[-1] != session.state:
            self.phases.append(session.state)

    async def reach_listening(self) -> None:
        await self.controller.connect()
        await settle()
        self.output.finish()
        await settle()


@pytest.fixture
def call_harness():
    """Factory for mentor call harnesses."""
    return CallHarness


@pytest.fixture
def speech_output():
    return FakeSpeechOutput()


@pytest.fixture
def speech_input():
    return FakeSpeechInput()


@pytest.fixture
def settle_loop():
    """Coroutine function that lets pending driver tasks run."""
    return settle


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test"
    )
