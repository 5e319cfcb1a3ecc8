"""
Debug Log Utility

Provides optional, safe file-based debug logging for tracing reference line
requests (dropped stale results). Logs are
written only when enabled via environment variable; failures are swallowed so
the application never crashes due to logging.

Inputs:
    - debug_log(location, message, data) calls from application code
    - Environment: MPRCROSSREF_DEBUG_LOG (set to 1, true, or yes to enable)

Outputs:
    - When enabled: appends JSON lines to <project_root>/.debug/debug.log
    - When disabled or on error: no side effects

Requirements:
    - Standard library only: pathlib, os, json, time
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Dict

# Project root: this file is src/utils/debug_log.py
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_DEBUG_ENV = os.getenv("MPRCROSSREF_DEBUG_LOG", "0").strip().lower()
DEBUG_LOG_ENABLED = _DEBUG_ENV in ("1", "true", "yes")


def get_debug_log_path() -> Path:
    """Get the file debug lines are appended to."""
    return _PROJECT_ROOT / ".debug" / "debug.log"


def debug_log(location: str, message: str, data: Dict[str, Any]) -> None:
    """
    Append one JSON log line when debug logging is enabled.

    Failures (missing dir, permission, disk full, etc.) are caught and ignored
    so the application remains stable.

    Args:
        location: Call site identifier (e.g. "cross_reference_controller.py:_finish").
        message: Short description of the event.
        data: Arbitrary dict of context (must be JSON-serializable).
    """
    if not DEBUG_LOG_ENABLED:
        return
    try:
        log_path = get_debug_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "location": location,
            "message": message,
            "data": data,
            "timestamp": int(time.time() * 1000),
        }
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload) + "\n")
    except Exception:
        pass
