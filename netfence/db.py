"""SQLite connection, schema migrations and database bootstrap."""

from __future__ import annotations

import os
import sqlite3
from contextlib import closing

_BUSY_TIMEOUT_SECONDS = 5.0

_MIGRATIONS: tuple[tuple[str, str], ...] = (
    (
        "001_init.sql",
        """
CREATE TABLE IF NOT EXISTS defaults(
    id INTEGER PRIMARY KEY,
    input_policy TEXT,
    forward_policy TEXT,
    output_policy TEXT,
    log_prefix TEXT
);
INSERT OR IGNORE INTO defaults(id, input_policy, forward_policy, output_policy, log_prefix)
    VALUES(1, 'drop', 'drop', 'accept', '');
CREATE TABLE IF NOT EXISTS rules(
    id INTEGER PRIMARY KEY,
    chain TEXT,
    proto TEXT,
    action TEXT,
    in_if TEXT,
    out_if TEXT,
    comment TEXT,
    enabled INT
);
CREATE TABLE IF NOT EXISTS rule_port(
    rule_id INT REFERENCES rules(id) ON DELETE CASCADE,
    port INT
);
CREATE TABLE IF NOT EXISTS rule_src_cidr(
    rule_id INT REFERENCES rules(id) ON DELETE CASCADE,
    cidr TEXT
);
CREATE TABLE IF NOT EXISTS rule_dst_cidr(
    rule_id INT REFERENCES rules(id) ON DELETE CASCADE,
    cidr TEXT
);
CREATE TABLE IF NOT EXISTS rule_icmp_type(
    rule_id INT REFERENCES rules(id) ON DELETE CASCADE,
    itype INT
);
CREATE TABLE IF NOT EXISTS audit_log(
    id INTEGER PRIMARY KEY,
    ts TEXT DEFAULT CURRENT_TIMESTAMP,
    actor TEXT,
    action TEXT,
    object TEXT,
    details TEXT
);
CREATE TABLE IF NOT EXISTS users(name TEXT PRIMARY KEY, role TEXT);
""",
    ),
)


class MigrationError(Exception):
    """Raised when a schema migration cannot be applied."""


def connect(path: str) -> sqlite3.Connection:
    """Open the database at a file path, ':memory:' or a 'file:' URI."""
    conn = sqlite3.connect(path, timeout=_BUSY_TIMEOUT_SECONDS, uri=path.startswith("file:"))
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version, or 0."""
    conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations(version INTEGER PRIMARY KEY)")
    conn.commit()
    (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations").fetchone()
    return int(version or 0)


def _version_of(filename: str) -> int:
    prefix = filename.split("_", 1)[0]
    try:
        return int(prefix)
    except ValueError:
        raise MigrationError(f"bad migration filename {filename}") from None


def apply_all(conn: sqlite3.Connection) -> None:
    """Apply every migration newer than the current version, in name order."""
    current = current_version(conn)
    for name, sql in sorted(m for m in _MIGRATIONS if m[0].endswith(".sql") and len(m[0]) > 4):
        version = _version_of(name)
        if version <= current:
            continue
        script = f"BEGIN;\n{sql}\nINSERT INTO schema_migrations(version) VALUES({version});\nCOMMIT;\n"
        try:
            conn.executescript(script)
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.rollback()
            raise MigrationError(f"apply {name}: {exc}") from exc


def _bootstrap_users(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute("CREATE TABLE IF NOT EXISTS users(name TEXT PRIMARY KEY, role TEXT)")
        conn.execute("INSERT OR IGNORE INTO users(name, role) VALUES('root','admin'),('operator','operator')")


def ensure_db(path: str) -> None:
    """Create the database file and its directories if needed, migrate it and seed users."""
    if path != ":memory:" and not path.startswith("file:"):
        try:
            os.stat(path)
        except FileNotFoundError:
            os.makedirs(os.path.dirname(path) or ".", mode=0o755, exist_ok=True)
            os.close(os.open(path, os.O_RDWR | os.O_CREAT, 0o600))
    with closing(connect(path)) as conn:
        apply_all(conn)
        _bootstrap_users(conn)