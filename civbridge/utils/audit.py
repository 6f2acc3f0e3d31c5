import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def session_file_base(session_id: str) -> str:
    """Return the '<timestamp>_<session_id>' file base, taken once when a session starts."""
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{ts}_{session_id}"


def audit_write(base_dir: Optional[str], file_base: str, session_id: str, record: Dict[str, Any]) -> None:
    """Append a structured JSON line to the per-session audit log.

    The file is `<base_dir>/<file_base>.log`. A None base_dir disables
    auditing. Failures are logged and never raised.
    """
    if not base_dir:
        return
    record = dict(record)
    record.setdefault("ts", datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"))
    record.setdefault("session_id", session_id)
    try:
        os.makedirs(base_dir, exist_ok=True)
        log_path = os.path.join(base_dir, f"{file_base}.log")
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except OSError as e:
        logger.warning("audit write failed for session %s: %s", session_id, e)
