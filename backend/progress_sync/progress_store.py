"""Validated local persistence for the learner's progress record."""

from __future__ import annotations

import json
import logging

from .models import CurriculumProgress, create_empty_progress, parse_progress
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "kidsLearnProgress"


class ProgressStore:
    """Load/save the single progress record kept under ``STORAGE_KEY``.

    ``load`` never reports "no data": missing, corrupt or malformed bytes are
    replaced by a fresh empty record that is persisted straight away. ``save``
    is best-effort and never raises into the learning session.
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = STORAGE_KEY) -> None:
        self._storage = storage
        self._key = key

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    def load(self) -> CurriculumProgress:
        try:
            raw = self._storage.get_item(self._key)
        except OSError:
            logger.exception("Failed to read progress from local storage")
            raw = None
        if not raw:
            return self._substitute_empty("missing")
        try:
            decoded = json.loads(raw)
        except ValueError:
            return self._substitute_empty("corrupt")
        progress = parse_progress(decoded)
        if progress is None:
            return self._substitute_empty("malformed")
        return progress

    def save(self, progress: CurriculumProgress) -> bool:
        try:
            payload = json.dumps(progress.to_payload())
            self._storage.set_item(self._key, payload)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save progress to local storage")
            return False
        return True

    def reset(self) -> CurriculumProgress:
        fresh = create_empty_progress()
        self.save(fresh)
        return fresh

    def _substitute_empty(self, reason: str) -> CurriculumProgress:
        if reason != "missing":
            logger.warning("Stored progress was %s; starting from an empty record", reason)
        fresh = create_empty_progress()
        self.save(fresh)
        return fresh


__all__ = ["STORAGE_KEY", "ProgressStore"]
