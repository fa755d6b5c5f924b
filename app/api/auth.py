"""Authentication endpoints and utilities."""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.database import get_db
from app.services.persistence.users import UserPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_token"
PBKDF2_ITERATIONS = 120_000

# In-memory session storage (use Redis in production)
_sessions: dict[str, dict] = {}


class CredentialsRequest(BaseModel):
    """Signup/login request model."""
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value


class UserResponse(BaseModel):
    """Current user response."""
    id: int
    email: str


def create_session_token() -> str:
    """Generate a secure session token."""
    return secrets.token_urlsafe(32)


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash a password as salt$hex-digest using PBKDF2-SHA256."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS
    ).hex()
    return f"{salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash."""
    salt, _, expected = password_hash.partition("$")
    if not salt or not expected:
        return False
    return hmac.compare_digest(hash_password(password, salt), password_hash)


def create_session(response: Response, user_id: int, email: str) -> str:
    """Create a new session and set cookie."""
    session_token = create_session_token()
    expires_at = datetime.utcnow() + timedelta(hours=settings.session_ttl_hours)

    _sessions[session_token] = {
        "user_id": user_id,
        "email": email,
        "expires_at": expires_at,
        "created_at": datetime.utcnow(),
    }

    # Set HTTP-only cookie
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        httponly=True,
        max_age=settings.session_ttl_hours * 3600,
        samesite="lax",
    )

    return session_token


def get_session_token(request: Request) -> Optional[str]:
    """Extract session token from cookie."""
    return request.cookies.get(SESSION_COOKIE)


def verify_session(session_token: Optional[str]) -> Optional[dict]:
    """Return the session if the token is valid and not expired."""
    if not session_token:
        return None

    session = _sessions.get(session_token)
    if not session:
        return None

    # Check expiration
    if datetime.utcnow() > session["expires_at"]:
        del _sessions[session_token]
        return None

    return session


async def require_auth(request: Request) -> dict:
    """Dependency to require authentication."""
    session = verify_session(get_session_token(request))
    if session is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return session


@router.post("/api/signup", response_model=UserResponse)
async def signup(
    credentials: CredentialsRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create an account and log it in."""
    users = UserPersistenceService(db)
    if await users.get_user_by_email(credentials.email):
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = await users.create_user(credentials.email, hash_password(credentials.password))
    create_session(response, user.id, user.email)
    logger.info(f"[AUTH] User signed up - UserId: {user.id}")
    return UserResponse(id=user.id, email=user.email)


@router.post("/api/login", response_model=UserResponse)
async def login(
    credentials: CredentialsRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Login endpoint."""
    user = await UserPersistenceService(db).get_user_by_email(credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.info("[AUTH] Failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    create_session(response, user.id, user.email)
    return UserResponse(id=user.id, email=user.email)


@router.post("/api/logout")
async def logout(request: Request, response: Response):
    """Logout endpoint."""
    session_token = get_session_token(request)
    if session_token and session_token in _sessions:
        del _sessions[session_token]

    # Clear cookie
    response.delete_cookie(SESSION_COOKIE)

    return {"success": True, "message": "Logged out"}


@router.get("/api/me", response_model=UserResponse)
async def get_current_user(session: dict = Depends(require_auth)):
    """Get the logged-in user."""
    return UserResponse(id=session["user_id"], email=session["email"])
