from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

DEFAULT_EVENT_LOG = ".tripmaker/auth-events.jsonl"

_event_log_path: Optional[Path] = None


def configure(path: Optional[str | Path]) -> None:
    """Set where events are appended; ``None`` restores the default lookup."""
    global _event_log_path
    _event_log_path = Path(path) if path else None


def event_log_path() -> Path:
    if _event_log_path is not None:
        return _event_log_path
    return Path(os.environ.get("EVENT_LOG_PATH", DEFAULT_EVENT_LOG))


def log_event(event_type: str, **details: Any) -> None:
    try:
        file_path = event_log_path()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            **details,
        }
        with file_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=True) + "\n")
    except OSError:
        pass
