"""One-time import of essays saved by the standalone topic apps."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .models import CurriculumProgress, TopicProgress
from .progress_store import ProgressStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)

LEGACY_ESSAY_KEYS: Dict[str, str] = {
    "egyptResponses": "ancient-egypt",
    "romeResponses": "ancient-rome",
}


def _extract_essay_text(raw: str) -> Optional[str]:
    decoded: Any = json.loads(raw)
    if isinstance(decoded, str):
        return decoded
    if isinstance(decoded, dict):
        for field in ("response", "text"):
            value = decoded.get(field)
            if isinstance(value, str) and value:
                return value
    return None


def _import_essay(progress: CurriculumProgress, topic_id: str, text: str) -> bool:
    topic = progress.topics.get(topic_id)
    if topic is None:
        progress.topics[topic_id] = TopicProgress(
            essay_submitted=True,
            essay_char_count=len(text),
            essay_text=text,
        )
        return True
    if topic.essay_submitted:
        return False
    topic.essay_submitted = True
    topic.essay_char_count = len(text)
    topic.essay_text = text
    return True


class LegacyMigrator:
    """Imports legacy essay records at most once per process.

    The guard is an in-memory flag, so a new process runs the import again; by
    then the legacy keys are gone and the run is a no-op.
    """

    def __init__(self, store: ProgressStore, legacy_keys: Optional[Dict[str, str]] = None) -> None:
        self._store = store
        self._legacy_keys = dict(legacy_keys or LEGACY_ESSAY_KEYS)
        self._has_run = False

    @property
    def has_run(self) -> bool:
        return self._has_run

    def migrate(self, progress: Optional[CurriculumProgress] = None) -> CurriculumProgress:
        current = progress if progress is not None else self._store.load()
        if self._has_run:
            return current
        self._has_run = True

        storage = self._store.storage
        imported: list[str] = []
        for legacy_key, topic_id in self._legacy_keys.items():
            raw = storage.get_item(legacy_key)
            if not raw:
                continue
            try:
                text = _extract_essay_text(raw)
            except ValueError:
                logger.debug("Skipping unreadable legacy record %s", legacy_key)
                text = None
            if text and _import_essay(current, topic_id, text):
                imported.append(topic_id)
            storage.remove_item(legacy_key)

        if imported:
            self._store.save(current)
            emit_event("legacy_migration", topics=imported)
        return current


__all__ = ["LEGACY_ESSAY_KEYS", "LegacyMigrator"]
