"""ORM models backing the authoritative progress store."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin

JSONType = JSON


class UserProfileModel(TimestampMixin, Base):
    __tablename__ = "user_profiles"
    __table_args__ = (UniqueConstraint("username", name="uq_user_profiles_username"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    topic_knowledge: Mapped[dict[str, dict]] = mapped_column(JSONType, default=dict, nullable=False)

    history: Mapped[list["QuizHistoryModel"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class QuizHistoryModel(Base):
    __tablename__ = "quiz_history"
    __table_args__ = (
        UniqueConstraint("user_id", "question", name="uq_quiz_history_user_question"),
        Index("ix_quiz_history_user_topic", "user_id", "topic"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    topic: Mapped[str] = mapped_column(String(256), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    correct_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    user: Mapped[UserProfileModel] = relationship(back_populates="history")


__all__ = ["QuizHistoryModel", "UserProfileModel"]
