"""Database models."""
from datetime import datetime
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class User(Base):
    """Registered user model."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    mentor_calls = relationship("MentorCallRecord", back_populates="user")


class MentorCallRecord(Base):
    """Mentor call metadata model."""

    __tablename__ = "mentor_calls"

    id = Column(Integer, primary_key=True, index=True)
    call_id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    career_path = Column(String, nullable=False)
    greeting_text = Column(Text, nullable=True)
    greeting_failed = Column(Boolean, default=False, nullable=False)
    mic_granted = Column(Boolean, default=False, nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    status = Column(String, default="in_progress", nullable=False)  # in_progress, completed
    transcript = Column(Text, nullable=True)

    # Relationships
    user = relationship("User", back_populates="mentor_calls")
