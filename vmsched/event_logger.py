from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol


class EventLogger(Protocol):
    def log(self, event_type: str, **payload: object) -> None:
        ...


class NoopLogger:
    def log(self, event_type: str, **payload: object) -> None:
        del event_type, payload


class JsonlEventLogger:
    """Writes one JSON object per engine event. Owned by a single run."""

    def __init__(self, path: str, **context: Any):
        log_path = Path(path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self.path = log_path
        self._context = context
        self._fp = log_path.open("w", encoding="utf-8")

    def log(self, event_type: str, **payload: Any) -> None:
        record = {"event": event_type, **self._context, **payload}
        self._fp.write(json.dumps(record, sort_keys=True) + "\n")

    def close(self) -> None:
        if not self._fp.closed:
            self._fp.flush()
            self._fp.close()

    def __enter__(self) -> "JsonlEventLogger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
