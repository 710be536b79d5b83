from __future__ import annotations

import json
import sys
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RequestLogger:
    """
    JSONL event logger for thread resolution.

    Each line is one JSON object tagged with a request id, so interleaved lines from
    concurrent requests sharing one sink can be told apart. Writes to a file path or an
    already-open text stream (stderr by default).
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        stream: TextIO | None = None,
        overwrite: bool = False,
        request_id: str | None = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._stream = stream
        self._overwrite = bool(overwrite)
        self._request_id = (request_id or "").strip() or uuid.uuid4().hex
        self._fp: TextIO | None = None
        self._owns_fp = False
        self._lock = Lock()

    @classmethod
    def open(
        cls,
        path: str | Path | None = None,
        *,
        stream: TextIO | None = None,
        overwrite: bool = False,
        request_id: str | None = None,
    ) -> "RequestLogger":
        logger = cls(path, stream=stream, overwrite=overwrite, request_id=request_id)
        logger._ensure_open()
        return logger

    @property
    def request_id(self) -> str:
        return self._request_id

    def child(self, request_id: str | None = None) -> "RequestLogger":
        """A logger writing to the same sink under a fresh request id."""
        self._ensure_open()
        other = RequestLogger(request_id=request_id)
        other._fp = self._fp
        other._lock = self._lock
        return other

    def close(self) -> None:
        with self._lock:
            if self._fp is not None and self._owns_fp:
                try:
                    self._fp.flush()
                finally:
                    self._fp.close()
            self._fp = None
            self._owns_fp = False

    def __enter__(self) -> "RequestLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("WARN", event, url=url, **data)

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, url=url, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, url=url, error=err, **data)

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        ev = (event or "").strip() or "event"

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": lvl,
            "event": ev,
            "request_id": self._request_id,
        }

        u = (url or "").strip()
        if u:
            record["url"] = u

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._fp is not None:
            return

        with self._lock:
            if self._fp is not None:
                return

            if self._path is None:
                self._fp = self._stream if self._stream is not None else sys.stderr
                self._owns_fp = False
                return

            self._path.parent.mkdir(parents=True, exist_ok=True)
            mode = "w" if self._overwrite else "a"
            self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
            self._owns_fp = True

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()
