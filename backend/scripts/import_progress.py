from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Optional

from progress_sync.db.session import ensure_schema, session_scope
from progress_sync.merge import merge
from progress_sync.models import CurriculumProgress, parse_progress
from progress_sync.progress_store import STORAGE_KEY
from progress_sync.repositories.progress_records import progress_records


logger = logging.getLogger("import_progress")


def _extract_progress(payload: Any) -> Optional[CurriculumProgress]:
    """Accept either a bare progress record or a local storage file holding one."""
    if isinstance(payload, dict) and STORAGE_KEY in payload:
        raw = payload[STORAGE_KEY]
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return None
        return parse_progress(raw)
    return parse_progress(payload, strict=False)


def import_progress(username: str, path: Path) -> Optional[CurriculumProgress]:
    if not path.exists():
        logger.info("No progress file found at %s", path)
        return None
    with path.open(encoding="utf-8") as handle:
        payload = json.load(handle)
    local = _extract_progress(payload)
    if local is None:
        logger.warning("Skipping %s; not a valid progress record", path)
        return None

    with session_scope() as session:
        existing = progress_records.get_payload(session, username)
        remote = parse_progress(existing, strict=False) if existing is not None else None
        merged = merge(local, remote) if remote is not None else local
        progress_records.put(session, username, merged)
    logger.info("Imported progress for %s (xp=%d, topics=%d)", username, merged.xp, len(merged.topics))
    return merged


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Merge a local progress file into the remote store.")
    parser.add_argument("username")
    parser.add_argument("path", type=Path)
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = parse_args()
    ensure_schema()
    import_progress(args.username, args.path)


if __name__ == "__main__":
    main()
