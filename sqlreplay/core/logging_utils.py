"""Lightweight structured logging for runner and planner events."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, TextIO


def log_event(event: str, payload: Dict[str, Any] | None = None, *, stream: TextIO | None = None) -> None:
    """Emit a structured JSON log line.

    Lines go to stderr by default; stdout is reserved for planner output.

    Args:
        event (str): Event name, e.g. ``script.execute``.
        payload (Dict[str, Any] | None): Extra fields merged into the line.
        stream (TextIO | None): Override the destination stream.
    """
    data = {
        "event": event,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
    if payload:
        data.update(payload)
    print(json.dumps(data, ensure_ascii=False, default=str), file=stream or sys.stderr, flush=True)
