from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from typing import Any

log = logging.getLogger("vdr.events")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(db_path: str) -> str:
    """Return a file path usable by sqlite.

    If a bind-mounted *file* path does not exist, Docker creates a
    *directory* there. When the configured path is a directory we place
    the DB file inside it.
    """
    p = os.path.abspath(db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "vdr-events.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


class EventLog:
    """Persistent reconciliation event history, mirrored to `logging`.

    Writing an event never raises: a broken event database must not
    interfere with reconciliation.
    """

    def __init__(self, db_path: str):
        self.db_path = _resolve_db_path(db_path)
        self.init_db()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        with closing(self.connect()) as conn, conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts TEXT NOT NULL,
                  level TEXT NOT NULL,
                  container TEXT,
                  version TEXT,
                  message TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
                CREATE INDEX IF NOT EXISTS idx_events_container ON events(container);
                """
            )

    def log_event(self, level: str, message: str, container: str | None = None, version: Any = None) -> None:
        level = level.upper()
        prefix = f"[{container}] " if container else ""
        log.log(_LEVELS.get(level, logging.INFO), "%s%s", prefix, message)
        if level == "DEBUG":
            return
        try:
            with closing(self.connect()) as conn, conn:
                conn.execute(
                    "INSERT INTO events (ts, level, container, version, message) VALUES (?, ?, ?, ?, ?)",
                    (utc_now(), level, container, None if version is None else str(version), message),
                )
        except sqlite3.Error as e:
            log.error("Could not record event in %s: %s", self.db_path, e)

    def latest(self, limit: int = 100, container: str | None = None) -> list[dict[str, Any]]:
        with closing(self.connect()) as conn, conn:
            if container:
                rows = conn.execute(
                    "SELECT * FROM events WHERE container=? ORDER BY id DESC LIMIT ?", (container, limit)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
