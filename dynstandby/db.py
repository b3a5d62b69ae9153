from __future__ import annotations

import os
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from .errors import AlreadyExists, Conflict, NotFound, StoreUnavailable
from .models import FleetKey, FleetState, utc_now
from .settings import settings


def _resolve_db_path(path: str) -> str:
    """Return a file path usable by sqlite.

    A bind-mounted file path that did not exist is often created as a
    directory by Docker; in that case the DB file goes inside it.
    """
    p = os.path.abspath(path)
    if os.path.isdir(p):
        p = os.path.join(p, "dynstandby.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


SCHEMA = """
CREATE TABLE IF NOT EXISTS fleets (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  namespace TEXT NOT NULL,
  name TEXT NOT NULL,
  uid TEXT NOT NULL UNIQUE,
  build_id TEXT NOT NULL,
  target_standby INTEGER NOT NULL CHECK (target_standby >= 0),
  current_active INTEGER NOT NULL DEFAULT 0 CHECK (current_active >= 0),
  current_standby INTEGER NOT NULL DEFAULT 0 CHECK (current_standby >= 0),
  revision INTEGER NOT NULL DEFAULT 1,
  created_at TEXT NOT NULL,
  UNIQUE(namespace, name)
);

-- A floor record is owned by its fleet (by uid) and goes away with it.
CREATE TABLE IF NOT EXISTS floors (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  namespace TEXT NOT NULL,
  name TEXT NOT NULL,
  owner_uid TEXT NOT NULL,
  created_at TEXT NOT NULL,
  UNIQUE(namespace, name),
  FOREIGN KEY(owner_uid) REFERENCES fleets(uid) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS floor_data (
  floor_id INTEGER NOT NULL,
  key TEXT NOT NULL,
  value TEXT NOT NULL,
  PRIMARY KEY(floor_id, key),
  FOREIGN KEY(floor_id) REFERENCES floors(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  level TEXT NOT NULL,
  namespace TEXT,
  name TEXT,
  reason TEXT NOT NULL DEFAULT '',
  message TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
CREATE INDEX IF NOT EXISTS idx_floors_owner_uid ON floors(owner_uid);
"""


def _row_to_fleet(row: sqlite3.Row) -> FleetState:
    return FleetState(
        key=FleetKey(row["namespace"], row["name"]),
        build_id=row["build_id"],
        active=row["current_active"],
        standby=row["current_standby"],
        target_standby=row["target_standby"],
        uid=row["uid"],
        revision=str(row["revision"]),
    )


class SqliteStore:
    """Local fleet/floor store backed by sqlite.

    Mirrors what the orchestrator gives us: per-object optimistic concurrency
    (an integer revision), create-if-absent floor records, and cascade
    deletion of a floor record with its owning fleet.
    """

    def __init__(self, path: str | None = None, timeout_s: float = 5.0) -> None:
        self.path = _resolve_db_path(path or settings.db_path)
        self.timeout_s = timeout_s
        self.init_db()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=self.timeout_s, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        """One transaction on a fresh connection; committed on success, rolled back otherwise."""
        try:
            conn = self.connect()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"sqlite unavailable: {e}") from e
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError:
            # Constraint violations carry meaning for the caller (see create_floor_data).
            raise
        except sqlite3.Error as e:
            raise StoreUnavailable(f"sqlite error: {type(e).__name__}: {e}") from e
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        with self._tx() as conn:
            conn.executescript(SCHEMA)

    # -- fleets ------------------------------------------------------------

    def get_fleet(self, key: FleetKey, timeout_s: float | None = None) -> FleetState:
        with self._tx() as conn:
            row = conn.execute(
                "SELECT * FROM fleets WHERE namespace=? AND name=?", (key.namespace, key.name)
            ).fetchone()
        if not row:
            raise NotFound(f"fleet {key} not found")
        return _row_to_fleet(row)

    def list_fleets(self) -> list[FleetKey]:
        with self._tx() as conn:
            rows = conn.execute("SELECT namespace, name FROM fleets ORDER BY namespace, name").fetchall()
        return [FleetKey(r["namespace"], r["name"]) for r in rows]

    def upsert_fleet(
        self,
        key: FleetKey,
        build_id: str,
        target_standby: int,
        active: int = 0,
        standby: int = 0,
    ) -> FleetState:
        """Create a fleet or overwrite its spec and status (bumps the revision)."""
        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO fleets (namespace, name, uid, build_id, target_standby, current_active, current_standby, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(namespace, name) DO UPDATE SET
                  build_id=excluded.build_id,
                  target_standby=excluded.target_standby,
                  current_active=excluded.current_active,
                  current_standby=excluded.current_standby,
                  revision=revision+1
                """,
                (key.namespace, key.name, uuid.uuid4().hex, build_id, target_standby, active, standby, utc_now()),
            )
            row = conn.execute(
                "SELECT * FROM fleets WHERE namespace=? AND name=?", (key.namespace, key.name)
            ).fetchone()
        return _row_to_fleet(row)

    def set_status(self, key: FleetKey, active: int, standby: int) -> FleetState:
        """Record observed worker counts. Status writes also bump the revision."""
        with self._tx() as conn:
            cur = conn.execute(
                """
                UPDATE fleets
                SET current_active=?, current_standby=?, revision=revision+1
                WHERE namespace=? AND name=?
                """,
                (active, standby, key.namespace, key.name),
            )
            if cur.rowcount == 0:
                raise NotFound(f"fleet {key} not found")
            row = conn.execute(
                "SELECT * FROM fleets WHERE namespace=? AND name=?", (key.namespace, key.name)
            ).fetchone()
        return _row_to_fleet(row)

    def update_target_standby(self, fleet: FleetState, target_standby: int, timeout_s: float | None = None) -> FleetState:
        if target_standby < 0:
            raise ValueError("target_standby must be >= 0")
        key = fleet.key
        with self._tx() as conn:
            cur = conn.execute(
                """
                UPDATE fleets
                SET target_standby=?, revision=revision+1
                WHERE namespace=? AND name=? AND revision=?
                """,
                (target_standby, key.namespace, key.name, int(fleet.revision or 0)),
            )
            row = conn.execute(
                "SELECT * FROM fleets WHERE namespace=? AND name=?", (key.namespace, key.name)
            ).fetchone()
        if not row:
            raise NotFound(f"fleet {key} not found")
        if cur.rowcount == 0:
            raise Conflict(f"fleet {key} changed (revision {fleet.revision} -> {row['revision']})")
        return _row_to_fleet(row)

    def delete_fleet(self, key: FleetKey) -> None:
        with self._tx() as conn:
            conn.execute("DELETE FROM fleets WHERE namespace=? AND name=?", (key.namespace, key.name))

    # -- floor records -------------------------------------------------------

    def get_floor_data(self, key: FleetKey, timeout_s: float | None = None) -> dict[str, str]:
        with self._tx() as conn:
            floor = conn.execute(
                "SELECT id FROM floors WHERE namespace=? AND name=?", (key.namespace, key.name)
            ).fetchone()
            if not floor:
                raise NotFound(f"floor record {key} not found")
            rows = conn.execute("SELECT key, value FROM floor_data WHERE floor_id=?", (floor["id"],)).fetchall()
        return {r["key"]: r["value"] for r in rows}

    def create_floor_data(self, fleet: FleetState, data: dict[str, str], timeout_s: float | None = None) -> dict[str, str]:
        key = fleet.key
        try:
            with self._tx() as conn:
                cur = conn.execute(
                    "INSERT INTO floors (namespace, name, owner_uid, created_at) VALUES (?, ?, ?, ?)",
                    (key.namespace, key.name, fleet.uid, utc_now()),
                )
                conn.executemany(
                    "INSERT INTO floor_data (floor_id, key, value) VALUES (?, ?, ?)",
                    [(cur.lastrowid, k, str(v)) for k, v in data.items()],
                )
        except sqlite3.IntegrityError as e:
            if "FOREIGN KEY" in str(e):
                raise NotFound(f"owner fleet {key} (uid {fleet.uid}) not found") from e
            raise AlreadyExists(f"floor record {key} already exists") from e
        return dict(data)

    # -- events ----------------------------------------------------------------

    def log_event(self, level: str, message: str, key: FleetKey | None = None, reason: str = "") -> bool:
        try:
            with self._tx() as conn:
                conn.execute(
                    "INSERT INTO events (ts, level, namespace, name, reason, message) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        utc_now(),
                        level.upper(),
                        key.namespace if key else None,
                        key.name if key else None,
                        reason,
                        message,
                    ),
                )
            return True
        except StoreUnavailable:
            return False

    def latest_events(self, limit: int = 100) -> list[dict[str, Any]]:
        with self._tx() as conn:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
