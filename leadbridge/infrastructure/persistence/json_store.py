"""JSON file documents with atomic replacement.

Every persisted artifact of the reporting server (snapshot, pull state, access
cursor) and of the board jobs (``last_processed.json``, ``sync_state.json``) is
a small JSON document read fully and written whole. Writes go to a sibling
temp file first and are moved into place with :func:`os.replace`, so readers
never observe a half-written file.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from leadbridge.infrastructure.observability import get_logger

logger = get_logger(__name__)


class JsonDocument:
    """A single JSON file with a default value for when it does not exist."""

    def __init__(self, path: str | Path, default: Any = None) -> None:
        self.path = Path(path)
        self._default = default

    def exists(self) -> bool:
        return self.path.exists()

    def size_bytes(self) -> int:
        """Size of the file on disk, 0 when it is missing."""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0

    def load(self) -> Any:
        """Return the parsed document, or a copy of the default when missing."""
        if not self.path.exists():
            return _copy_default(self._default)
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, payload: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _copy_default(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.loads(json.dumps(value))
    return value


def append_error_log(path: str | Path, message: str) -> None:
    """Append one timestamped line to the persistent error log."""
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    try:
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"[{stamp}] {message}\n")
    except OSError as exc:
        logger.error("Could not write to error log %s: %s", log_path, exc)


__all__ = ["JsonDocument", "append_error_log"]
