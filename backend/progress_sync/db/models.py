"""ORM models backing the remote progress store."""

from __future__ import annotations

import uuid

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin

JSONType = JSON


class RemoteProgressModel(TimestampMixin, Base):
    __tablename__ = "remote_progress"
    __table_args__ = (Index("ix_remote_progress_username", "username", unique=True),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String(20), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)


__all__ = ["RemoteProgressModel"]
