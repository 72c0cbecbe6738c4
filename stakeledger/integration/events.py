from __future__ import annotations

import json
import logging
from typing import Any, Dict


Json = Dict[str, Any]


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit a single JSON log line for a state change.

    The payload carries no wall-clock time; ticks are passed explicitly by callers.
    """
    if not logger.isEnabledFor(logging.INFO):
        return
    payload: Json = {"event": str(event)}
    payload.update(fields)
    try:
        logger.info(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    except (TypeError, ValueError):
        parts = [f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())]
        logger.info(" ".join(parts))
