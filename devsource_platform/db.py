from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from devsource_platform.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # Allow sqlite:///path style, but default is file path.
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single/double-quoted string literals and doubles literal '%'
    so psycopg2 does not treat it as a placeholder. Not a full SQL parser, but
    sufficient for the statements in this codebase.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if ch == "'" and not in_double:
            out.append(ch)
            if in_single:
                # Escaped single quote: ''
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                in_single = False
            else:
                in_single = True
            i += 1
            continue

        if ch == '"' and not in_single:
            out.append(ch)
            in_double = not in_double
            i += 1
            continue

        if ch == "%":
            out.append("%%")
            i += 1
            continue

        if ch == "?" and not in_single and not in_double:
            out.append("%s")
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def close(self) -> None:
        self._cur.close()


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _casefold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


def _sqlite_path(dsn: str) -> str:
    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        return dsn[len("sqlite:///") :]
    return dsn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open one connection per unit of work; commit on success, roll back on error.

    - SQLite: uses WAL + NORMAL sync, foreign keys on, rows as sqlite3.Row.
      Registers `py_casefold(text)` since SQLite's LOWER() only folds ASCII.
    - Postgres: uses psycopg2 (RealDictCursor) so rows behave like dicts.
    """
    dsn = (db_dsn or "").strip()

    if detect_dialect(dsn) == "postgres":
        import psycopg2
        import psycopg2.extras

        raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
        conn = PGConnection(raw)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return

    path = _sqlite_path(dsn)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    sconn = sqlite3.connect(path, timeout=30, check_same_thread=False)
    sconn.row_factory = sqlite3.Row
    sconn.create_function("py_casefold", 1, _casefold, deterministic=True)
    sconn.execute("PRAGMA journal_mode=WAL;")
    sconn.execute("PRAGMA synchronous=NORMAL;")
    sconn.execute("PRAGMA busy_timeout=5000;")  # 5s
    try:
        sconn.execute("PRAGMA foreign_keys = ON;")
        yield sconn
        sconn.commit()
    except Exception:
        sconn.rollback()
        raise
    finally:
        sconn.close()


def init_db(db_dsn: str) -> None:
    """Create all tables (idempotent)."""
    dialect = detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    with connect(db_dsn) as conn:
        ddl = get_schema_sql(dialect)
        if dialect == "postgres":
            # Naive split is OK for our schema (no ';' inside statements or comments).
            for stmt in [s.strip() for s in ddl.split(";") if s.strip()]:
                conn.execute(stmt)
            return
        conn.executescript(ddl)


def is_unique_violation(exc: BaseException) -> bool:
    """True if `exc` is a UNIQUE/PRIMARY KEY constraint failure on either engine."""
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE" in str(exc).upper()
    # psycopg2.errors.UniqueViolation carries SQLSTATE 23505.
    return getattr(exc, "pgcode", None) == "23505"


def insert_returning(conn: Any, sql: str, params: Sequence[Any]) -> Any:
    """Run an `INSERT ... RETURNING *` and return the inserted row.

    The cursor is drained so SQLite finishes the statement before commit.
    """
    rows = conn.execute(sql, params).fetchall()
    return rows[0]
