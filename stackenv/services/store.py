"""Structured store for stack environment variables."""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from stackenv.models import MASK_PLACEHOLDER, Variable

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS stack_env_vars (
    stack_name TEXT NOT NULL,
    environment_id INTEGER,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    is_secret INTEGER NOT NULL DEFAULT 0,
    position INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS stack_env_vars_scope ON stack_env_vars(stack_name, environment_id);
"""


class VariableStore(Protocol):
    def read(self, stack_name: str, env_id: int | None, *, mask_secrets: bool) -> list[Variable]:
        ...

    def replace(self, stack_name: str, env_id: int | None, variables: list[Variable]) -> None:
        ...


class SqliteVariableStore:
    """SQLite-backed variable store. ``replace`` swaps a whole scope atomically."""

    def __init__(self, db_path: Path | str):
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._con = sqlite3.connect(str(db_path), check_same_thread=False)
        self._con.row_factory = sqlite3.Row
        self._con.executescript(_SCHEMA)
        self._con.commit()

    def close(self) -> None:
        self._con.close()

    def read(self, stack_name: str, env_id: int | None, *, mask_secrets: bool) -> list[Variable]:
        """Return the scope's variables in stored order, optionally masking secrets."""
        with self._lock:
            rows = self._con.execute(
                "SELECT key, value, is_secret FROM stack_env_vars "
                "WHERE stack_name=? AND environment_id IS ? ORDER BY position",
                (stack_name, env_id),
            ).fetchall()
        result = []
        for row in rows:
            is_secret = bool(row["is_secret"])
            value = MASK_PLACEHOLDER if is_secret and mask_secrets else row["value"]
            result.append(Variable(row["key"], value, is_secret=is_secret))
        return result

    def replace(self, stack_name: str, env_id: int | None, variables: list[Variable]) -> None:
        """Replace the full variable set for the scope. A repeated key keeps its last value."""
        latest = {v.key: v for v in variables}
        with self._lock, self._con:
            self._con.execute(
                "DELETE FROM stack_env_vars WHERE stack_name=? AND environment_id IS ?",
                (stack_name, env_id),
            )
            self._con.executemany(
                "INSERT INTO stack_env_vars(stack_name, environment_id, key, value, is_secret, position) "
                "VALUES(?,?,?,?,?,?)",
                [
                    (stack_name, env_id, v.key, v.value, int(v.is_secret), i)
                    for i, v in enumerate(latest.values())
                ],
            )
        logger.debug("Stored %d variables for %s (env=%s)", len(latest), stack_name, env_id)
