from __future__ import annotations

import logging
import os
import sqlite3
import sys
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("dhp")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Journal file used by log_event; "" keeps the journal off.
_db_path = ""


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class _BelowError(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def configure_logging(level: str = "INFO", stderr_only: bool = False) -> None:
    """Progress lines go to stdout, errors to stderr.

    With ``stderr_only`` every line goes to stderr, leaving stdout to command output.
    """
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    err = logging.StreamHandler(sys.stderr)
    err.setFormatter(fmt)

    if stderr_only:
        logger.handlers = [err]
    else:
        out = logging.StreamHandler(sys.stdout)
        out.setFormatter(fmt)
        out.addFilter(_BelowError())
        err.setLevel(logging.ERROR)
        logger.handlers = [out, err]
    logger.setLevel(_LEVELS.get(level.strip().upper(), logging.INFO))
    logger.propagate = False


def _resolve_db_path(path: str, create: bool = True) -> str:
    """Return a file path usable by sqlite.

    A directory (e.g. a mounted volume) gets the journal file placed inside it.
    """
    p = os.path.abspath(path)

    if os.path.isdir(p):
        p = os.path.join(p, "dhp.db")

    parent = os.path.dirname(p)
    if create and parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect(path: str | None = None) -> sqlite3.Connection:
    target = path or _db_path
    if not target:
        raise RuntimeError("Event journal is not configured (set DHP_DB_PATH).")
    conn = sqlite3.connect(_resolve_db_path(target), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path: str) -> None:
    """Enable the journal at ``path`` and create its table."""
    global _db_path
    _db_path = path
    if not path:
        return
    with connect(path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              namespace TEXT,
              pod TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


def log_event(level: str, message: str, namespace: str | None = None, pod: str | None = None) -> None:
    global _db_path
    level = level.upper()
    line = f"[{pod}] {message}" if pod else message
    logger.log(_LEVELS.get(level, logging.INFO), line)

    if not _db_path:
        return
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, namespace, pod, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level, namespace, pod, message),
            )
    except sqlite3.Error as e:
        # Stop journaling rather than failing reconciliation over a local file.
        logger.warning("Event journal disabled after write failure: %s", e)
        _db_path = ""


def latest_events(limit: int = 100, path: str | None = None) -> list[dict[str, Any]]:
    """Newest rows first. Raises FileNotFoundError when no journal exists at the path."""
    target = path or _db_path
    if target and not os.path.isfile(_resolve_db_path(target, create=False)):
        raise FileNotFoundError(f"No event journal at {target}")
    with connect(path) as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
