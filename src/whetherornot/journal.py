"""JSONL lookup journal: one line per lookup event, plus optional forecast dumps."""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .exceptions import JournalError
from .redaction import sanitize_for_logging, sanitize_text

_UNSAFE_FILE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")


def _json_default(value: Any) -> Any:
    """Encode datetimes as UTC ISO-8601, paths as strings and models as sanitized dicts."""
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseModel):
        return sanitize_for_logging(value.model_dump(mode="json"))
    # Unknown objects only pass if they define their own __str__ (e.g. AnyHttpUrl).
    if type(value).__str__ is not object.__str__:
        return sanitize_text(str(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JournalWriter:
    """Appends lookup events to ``<journal_dir>/<YYYYMMDD>.jsonl`` for one CLI session."""

    def __init__(
        self,
        journal_dir: Path,
        raw_payload_dir: Path,
        session_id: str,
        *,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.journal_dir = Path(journal_dir)
        self.raw_payload_dir = Path(raw_payload_dir)
        self.session_id = session_id
        self._now = now_provider or (lambda: datetime.now(UTC))
        for directory in (self.journal_dir, self.raw_payload_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise JournalError(f"Cannot create journal directory {directory}: {exc}") from exc
        self.events_path = self.journal_dir / f"{self._now():%Y%m%d}.jsonl"

    def write_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        line = self._encode(
            {
                "ts": self._now().isoformat(),
                "session_id": self.session_id,
                "event_type": event_type,
                "payload": payload,
                "metadata": metadata or {},
            }
        )
        try:
            with self.events_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            raise JournalError(f"Cannot append to {self.events_path}: {exc}") from exc

    def write_raw_snapshot(self, name: str, payload: Any) -> Path:
        """Dump ``payload`` as pretty JSON next to the journal and return its path."""
        stem = _UNSAFE_FILE_CHARS_RE.sub("_", name)
        filename = f"{self._now():%Y%m%dT%H%M%SZ}_{self.session_id}_{stem}.json"
        path = self.raw_payload_dir / filename
        body = self._encode(payload, indent=2)
        try:
            path.write_text(body + "\n", encoding="utf-8")
        except OSError as exc:
            raise JournalError(f"Cannot write forecast dump {path}: {exc}") from exc
        return path

    @staticmethod
    def _encode(value: Any, *, indent: int | None = None) -> str:
        try:
            return json.dumps(
                sanitize_for_logging(value),
                default=_json_default,
                ensure_ascii=False,
                indent=indent,
            )
        except (TypeError, ValueError) as exc:
            raise JournalError(f"Journal record is not serializable: {exc}") from exc
