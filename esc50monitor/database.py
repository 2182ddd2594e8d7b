# database.py
import sqlite3
from contextlib import contextmanager
from datetime import datetime

import psycopg2
import psycopg2.extras
from flask import current_app, g

from .errors import StorageUnavailable
from .taxonomy import seed_taxonomy

POSTGRES_SCHEMES = ("postgresql://", "postgres://")

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS categories (
      id          SERIAL PRIMARY KEY,
      name        TEXT UNIQUE NOT NULL,
      description TEXT,
      created_at  TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS labels (
      id          SERIAL PRIMARY KEY,
      name        TEXT UNIQUE NOT NULL,
      category_id INTEGER NOT NULL REFERENCES categories(id),
      description TEXT,
      created_at  TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS predictions (
      id              SERIAL PRIMARY KEY,
      audio_file      TEXT NOT NULL,
      label_id        INTEGER NOT NULL REFERENCES labels(id),
      confidence      DOUBLE PRECISION NOT NULL,
      processing_time DOUBLE PRECISION,
      metadata        TEXT,
      created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    "CREATE INDEX IF NOT EXISTS predictions_created_at_idx ON predictions (created_at);",
]

SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS categories (
      id          INTEGER PRIMARY KEY AUTOINCREMENT,
      name        TEXT UNIQUE NOT NULL,
      description TEXT,
      created_at  DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS labels (
      id          INTEGER PRIMARY KEY AUTOINCREMENT,
      name        TEXT UNIQUE NOT NULL,
      category_id INTEGER NOT NULL REFERENCES categories(id),
      description TEXT,
      created_at  DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS predictions (
      id              INTEGER PRIMARY KEY AUTOINCREMENT,
      audio_file      TEXT NOT NULL,
      label_id        INTEGER NOT NULL REFERENCES labels(id),
      confidence      REAL NOT NULL,
      processing_time REAL,
      metadata        TEXT,
      created_at      TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS predictions_created_at_idx ON predictions (created_at);",
]


@contextmanager
def _storage_errors():
    """Translate driver errors into StorageUnavailable."""
    try:
        yield
    except (sqlite3.Error, psycopg2.Error) as e:
        raise StorageUnavailable(f"Database error: {e}") from e


def _sqlite_path(url):
    # sqlite:///relative.db -> relative.db, sqlite:////abs/file.db -> /abs/file.db
    if url.startswith("sqlite:///"):
        return url[len("sqlite:///"):]
    return url


class Connection:
    """
    Thin wrapper over a sqlite3 or psycopg2 connection.
    SQL is written with %s placeholders; rows come back as plain dicts.
    """

    def __init__(self, raw, is_postgres):
        self.raw = raw
        self.is_postgres = is_postgres

    def _sql(self, sql):
        return sql if self.is_postgres else sql.replace("%s", "?")

    def _params(self, params):
        if self.is_postgres:
            return tuple(params)
        # timestamps are kept as fixed-width ISO text so they order lexically
        return tuple(
            p.isoformat(timespec="microseconds") if isinstance(p, datetime) else p
            for p in params
        )

    def _cursor(self, sql, params):
        cur = self.raw.cursor()
        cur.execute(self._sql(sql), self._params(params))
        return cur

    def fetch_all(self, sql, params=()):
        with _storage_errors():
            cur = self._cursor(sql, params)
            try:
                return [dict(row) for row in cur.fetchall()]
            finally:
                cur.close()

    def fetch_one(self, sql, params=()):
        with _storage_errors():
            cur = self._cursor(sql, params)
            try:
                row = cur.fetchone()
            finally:
                cur.close()
        return dict(row) if row is not None else None

    def execute(self, sql, params=()):
        """Run a statement and return the affected row count."""
        with _storage_errors():
            cur = self._cursor(sql, params)
            try:
                return cur.rowcount
            finally:
                cur.close()

    def insert(self, sql, params=()):
        """Run an INSERT and return the new row id."""
        with _storage_errors():
            if self.is_postgres:
                cur = self._cursor(sql + " RETURNING id", params)
                try:
                    return cur.fetchone()["id"]
                finally:
                    cur.close()
            cur = self._cursor(sql, params)
            try:
                return cur.lastrowid
            finally:
                cur.close()

    def commit(self):
        with _storage_errors():
            self.raw.commit()

    def rollback(self):
        with _storage_errors():
            self.raw.rollback()

    def close(self):
        self.raw.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.close()
        return False


class Database:
    """Connection factory for a DATABASE_URL."""

    def __init__(self, url):
        self.url = url
        self.is_postgres = url.startswith(POSTGRES_SCHEMES)

    def connect(self):
        with _storage_errors():
            if self.is_postgres:
                raw = psycopg2.connect(self.url)
                raw.cursor_factory = psycopg2.extras.RealDictCursor
            else:
                raw = sqlite3.connect(_sqlite_path(self.url), timeout=10)
                raw.row_factory = sqlite3.Row
                raw.execute("PRAGMA foreign_keys = ON")
        return Connection(raw, self.is_postgres)


def get_db():
    """Returns a Connection for the current request, stored in Flask's `g`."""
    if 'db' not in g:
        g.db = current_app.extensions["database"].connect()
    return g.db


def close_db(exc=None):
    """Closes the connection at the end of the request."""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_db(conn):
    """Creates tables and seeds the ESC-50 taxonomy if needed."""
    schema = POSTGRES_SCHEMA if conn.is_postgres else SQLITE_SCHEMA
    for statement in schema:
        conn.execute(statement)
    created = seed_taxonomy(conn)
    conn.commit()
    return created
