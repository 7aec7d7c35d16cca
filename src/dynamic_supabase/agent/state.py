# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Durable per-session state.

Each session actor owns one ``SessionStateStore``: a record in an embedded
SQLite database keyed by session id. ``read`` returns a frozen snapshot and
``update`` is the only way to change the record; it merges, validates and
persists in one transaction, so concurrent callers observe either the state
before or after an update, never a partial merge.

The record outlives the actor object. Only the host (``ActorNamespace``)
deletes it, when a session is evicted.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.logging import REDACTED

logger = logging.getLogger(__name__)


class SessionState(BaseModel):
    """Configuration state of one session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_configured: bool = Field(default=False, alias="isConfigured")
    endpoint_url: str | None = Field(default=None, alias="endpointUrl")
    anon_key: str | None = Field(default=None, alias="anonKey")
    service_key: str | None = Field(default=None, alias="serviceKey")

    @model_validator(mode="after")
    def _configured_requires_credentials(self) -> SessionState:
        if self.is_configured and not (self.endpoint_url and self.anon_key):
            raise ValueError("a configured session requires a non-empty endpointUrl and anonKey")
        return self

    @property
    def has_credentials(self) -> bool:
        """True when the session may be used to build a client."""
        return bool(self.is_configured and self.endpoint_url and self.anon_key)

    def to_record(self) -> dict[str, Any]:
        """Serialise for storage (camelCase keys)."""
        return self.model_dump(by_alias=True)

    def redacted(self) -> dict[str, Any]:
        """Record with keys masked, for logging."""
        record = self.to_record()
        for name in ("anonKey", "serviceKey"):
            if record.get(name):
                record[name] = REDACTED
        return record


StateListener = Callable[[SessionState, SessionState], None]


class StateDatabase:
    """Embedded SQLite database holding one state record per session."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path != ":memory:":
            db_dir = os.path.dirname(db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        self._conn: sqlite3.Connection | None = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.execute("PRAGMA synchronous=FULL")
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()

    def __repr__(self) -> str:
        return f"StateDatabase(db_path={self.db_path!r})"

    def _init_db(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session_state (
                    session_id TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run a block atomically: holds the lock, commits or rolls back."""
        with self._lock:
            if self._conn is None:
                raise RuntimeError(f"{self!r} is closed")
            try:
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise

    def ping(self) -> bool:
        """Check the database answers a trivial query."""
        with self.transaction() as conn:
            conn.execute("SELECT 1").fetchone()
        return True

    def close(self) -> None:
        """Close the connection for clean shutdown."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


class SessionStateStore:
    """Read/update interface over one session's durable record."""

    def __init__(
        self,
        db: StateDatabase,
        session_id: str,
        initial_state: SessionState | None = None,
        on_update: StateListener | None = None,
    ):
        self.db = db
        self.session_id = session_id
        self._initial_state = initial_state or SessionState()
        self._on_update = on_update

    def _load(self, conn: sqlite3.Connection) -> SessionState:
        row = conn.execute(
            "SELECT state FROM session_state WHERE session_id = ?",
            (self.session_id,),
        ).fetchone()
        if row is None:
            now = time.time()
            conn.execute(
                "INSERT INTO session_state (session_id, state, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (self.session_id, json.dumps(self._initial_state.to_record()), now, now),
            )
            return self._initial_state
        return SessionState.model_validate(json.loads(row["state"]))

    def read(self) -> SessionState:
        """Return the current persisted snapshot."""
        with self.db.transaction() as conn:
            return self._load(conn)

    def update(self, **fields: Any) -> SessionState:
        """Merge ``fields`` into the persisted state.

        Fields not named keep their current value; pass ``None`` explicitly to
        clear one.

        Raises:
            ValueError: On unknown fields, or when the merged state would break
                the configured-requires-credentials invariant (a pydantic
                ``ValidationError``).
        """
        unknown = set(fields) - set(SessionState.model_fields)
        if unknown:
            raise ValueError(f"Unknown session state fields: {', '.join(sorted(unknown))}")

        with self.db.transaction() as conn:
            old = self._load(conn)
            new = SessionState.model_validate({**old.model_dump(), **fields})
            conn.execute(
                "UPDATE session_state SET state = ?, updated_at = ? WHERE session_id = ?",
                (json.dumps(new.to_record()), time.time(), self.session_id),
            )

        if self._on_update is not None:
            self._on_update(new, old)
        return new

    def delete(self) -> bool:
        """Delete the record. Returns True if one existed."""
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM session_state WHERE session_id = ?", (self.session_id,))
            return cur.rowcount > 0
