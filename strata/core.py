"""
Strata Core — connection setup, SQL execution, operation log.

Infrastructure plumbing. Schema and query compilation never touch the
connection; everything that does goes through here.

Functions:
- open_database()    -> sqlite3 connection with pragmas applied
- run_sql()          -> execute SQL, return list[dict]
- ensure_ops_table() -> _ops table for DDL/write history
- log_op()           -> append one _ops row
- diag()             -> [strata] diagnostics on stderr

Driver:
- Driver protocol    run / get / all / exec, the four entry points CRUD needs
- SQLiteDriver       Driver over a sqlite3 connection
"""

import json
import sqlite3
import sys
from typing import Optional, Protocol, runtime_checkable

from strata.config import DatabaseOptions


def open_database(location: str = ':memory:',
                  options: Optional[DatabaseOptions] = None) -> sqlite3.Connection:
    """Open a database with the configured pragmas.

    Autocommit mode: every statement commits on its own.
    """
    options = options or DatabaseOptions()
    db = sqlite3.connect(location, check_same_thread=False,
                         timeout=options.busy_timeout / 1000,
                         isolation_level=None)
    db.row_factory = sqlite3.Row
    db.execute(f"PRAGMA busy_timeout={int(options.busy_timeout)}")
    db.execute(f"PRAGMA journal_mode={options.journal_mode}")
    db.execute(f"PRAGMA foreign_keys={'ON' if options.foreign_keys else 'OFF'}")
    return db


def run_sql(db: sqlite3.Connection, query: str,
            params: tuple = ()) -> list[dict]:
    """Execute SQL, return list of dicts."""
    rows = db.execute(query, tuple(params)).fetchall()
    return [dict(r) for r in rows]


def diag(message: str, verbose: bool = True):
    """Diagnostic line on stderr, only when verbose."""
    if verbose:
        print(f"[strata] {message}", file=sys.stderr)


def ensure_ops_table(db: sqlite3.Connection):
    """Create _ops table if it doesn't exist. Idempotent."""
    db.execute("""CREATE TABLE IF NOT EXISTS _ops (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp INTEGER DEFAULT (strftime('%s','now')),
        operation TEXT,
        target TEXT,
        sql TEXT,
        params TEXT,
        rows_affected INTEGER,
        source TEXT
    )""")


def log_op(db: sqlite3.Connection, operation: str, target: str,
           params=None, rows_affected: int = None,
           source: str = None, sql: str = None):
    """Log a schema change or write to _ops. Callers capture their own params."""
    ensure_ops_table(db)
    db.execute(
        "INSERT INTO _ops (operation, target, sql, params, rows_affected, source) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (operation, target, sql,
         json.dumps(params, default=str) if params else None,
         rows_affected, source))


# ═══════════════════════════════════════════════════════════════════════════════
# DRIVER
# ═══════════════════════════════════════════════════════════════════════════════

@runtime_checkable
class Driver(Protocol):
    """Prepare-and-execute collaborator. One SQL string, positional params."""

    last_row_id: Optional[int]

    def run(self, sql: str, params: list = ()) -> int:
        """Execute, return rows affected."""
        ...

    def get(self, sql: str, params: list = ()) -> Optional[dict]:
        """Execute, return the first row or None."""
        ...

    def all(self, sql: str, params: list = ()) -> list[dict]:
        """Execute, return every row."""
        ...

    def exec(self, sql: str) -> None:
        """Execute one parameterless statement (DDL)."""
        ...

    def close(self) -> None:
        ...


class SQLiteDriver:
    """Driver over a sqlite3 connection. sqlite3 errors pass through."""

    def __init__(self, db: sqlite3.Connection):
        self.db = db
        self.last_row_id: Optional[int] = None

    @classmethod
    def open(cls, location: str = ':memory:',
             options: Optional[DatabaseOptions] = None) -> "SQLiteDriver":
        return cls(open_database(location, options))

    def run(self, sql: str, params: list = ()) -> int:
        cur = self.db.execute(sql, tuple(params))
        self.last_row_id = cur.lastrowid
        return cur.rowcount

    def get(self, sql: str, params: list = ()) -> Optional[dict]:
        row = self.db.execute(sql, tuple(params)).fetchone()
        return dict(row) if row is not None else None

    def all(self, sql: str, params: list = ()) -> list[dict]:
        return run_sql(self.db, sql, params)

    def exec(self, sql: str) -> None:
        self.db.execute(sql)

    def close(self):
        self.db.close()

    def __repr__(self):
        return f"SQLiteDriver({self.db!r})"
