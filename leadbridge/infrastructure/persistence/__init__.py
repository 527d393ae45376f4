"""File-backed persistence for snapshots, cursors and job state."""

from .json_store import JsonDocument, append_error_log

__all__ = ["JsonDocument", "append_error_log"]
