from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


class Base(DeclarativeBase):
  pass


class ActivityRow(Base):
  __tablename__ = "backlog_activities"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
  # insertion sequence; board sections list activities in this order
  seq: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
  workspace_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  sink_channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
  sink_message_id: Mapped[str | None] = mapped_column(String, nullable=True)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  acceptance_criteria: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
  steps: Mapped[str] = mapped_column(Text, nullable=False, default="")
  expected_vs_actual: Mapped[str] = mapped_column(Text, nullable=False, default="")
  context: Mapped[str] = mapped_column(Text, nullable=False, default="")
  status: Mapped[str] = mapped_column(String, nullable=False)
  author_id: Mapped[str] = mapped_column(String, nullable=False)
  author_label: Mapped[str] = mapped_column(String, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class BoardRow(Base):
  __tablename__ = "backlog_boards"

  workspace_id: Mapped[str] = mapped_column(String, primary_key=True)
  channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
  channel_message_id: Mapped[str | None] = mapped_column(String, nullable=True)
  webhook_message_id: Mapped[str | None] = mapped_column(String, nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
