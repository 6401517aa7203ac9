"""Database-backed repository for remote progress records."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import RemoteProgressModel
from ..models import CurriculumProgress, create_empty_progress


def _normalize_username(username: str) -> str:
    normalized = username.strip().lower()
    if not normalized:
        raise ValueError("Username cannot be empty.")
    return normalized


class ProgressRecordRepository:
    """Whole-record reads and writes keyed by normalized username."""

    def _model(self, session: Session, username: str) -> Optional[RemoteProgressModel]:
        stmt = select(RemoteProgressModel).where(RemoteProgressModel.username == _normalize_username(username))
        return session.execute(stmt).scalar_one_or_none()

    def exists(self, session: Session, username: str) -> bool:
        return self._model(session, username) is not None

    def get_payload(self, session: Session, username: str) -> Optional[Dict[str, Any]]:
        model = self._model(session, username)
        if model is None:
            return None
        return dict(model.payload)

    def put(self, session: Session, username: str, progress: CurriculumProgress) -> None:
        normalized = _normalize_username(username)
        model = self._model(session, normalized)
        payload = progress.to_payload()
        if model is None:
            session.add(RemoteProgressModel(username=normalized, payload=payload))
        else:
            model.payload = payload
        session.flush()

    def create_empty(self, session: Session, username: str) -> CurriculumProgress:
        progress = create_empty_progress()
        self.put(session, username, progress)
        return progress


progress_records = ProgressRecordRepository()

__all__ = ["ProgressRecordRepository", "progress_records"]
