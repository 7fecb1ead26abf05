import logging
import os
import sys
import uuid
from typing import List, Optional

# Marks handlers installed by setup_session_logging; the value is the session id.
_SESSION_ATTR = "deepthink_session_id"


class SessionFilter(logging.Filter):
    """Stamps each record with the session id so formatters can use %(session_id)s."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.session_id = self.session_id
        return True


def new_session_id() -> str:
    return uuid.uuid4().hex[:8]


def session_dump_dir(dump_dir: Optional[str], session_id: str) -> Optional[str]:
    """Per-session subdirectory for gateway call dumps, so sessions never overwrite each other."""
    if not dump_dir:
        return None
    return os.path.join(dump_dir, f"session_{session_id}")


def session_handlers(logger: Optional[logging.Logger] = None) -> List[logging.Handler]:
    logger = logger or logging.getLogger()
    return [h for h in logger.handlers if getattr(h, _SESSION_ATTR, None) is not None]


def setup_session_logging(
    output_path: str,
    session_id: Optional[str] = None,
    *,
    level: int = logging.INFO,
    log_subdir: str = "logs",
    stream: Optional[object] = None,
    console: bool = True,
) -> str:
    """
    Route root logging to one DeepThink session:
    - file: {output_path}/{log_subdir}/session_{session_id}.log
    - console stream (stdout by default) when `console` is set

    A process hosts one session at a time: handlers from an earlier call are
    closed and replaced. Returns the absolute log file path.
    """
    session_id = session_id or new_session_id()
    log_dir = os.path.join(output_path, log_subdir)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.abspath(os.path.join(log_dir, f"session_{session_id}.log"))

    root = logging.getLogger()
    root.setLevel(level)
    for h in session_handlers(root):
        root.removeHandler(h)
        h.close()

    handlers: List[logging.Handler] = [logging.FileHandler(log_file, mode="a", encoding="utf-8")]
    if console:
        handlers.append(logging.StreamHandler(stream=stream or sys.stdout))

    fmt = logging.Formatter("%(asctime)s | %(levelname)s | S%(session_id)s | %(name)s | %(message)s")
    session_filter = SessionFilter(session_id)
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(fmt)
        h.addFilter(session_filter)
        setattr(h, _SESSION_ATTR, session_id)
        root.addHandler(h)

    # Common noisy libs
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
