"""
=============================================================================
USER REPOSITORY (PERSISTENCE GATEWAY)
=============================================================================

Translates the five user operations into parameterized SQL against a
PostgreSQL table:

    ┌─────────────────┬─────────────────────────────────────────────────┐
    │ Operation       │ Statement                                       │
    ├─────────────────┼─────────────────────────────────────────────────┤
    │ initialize()    │ CREATE TABLE IF NOT EXISTS users (...)          │
    │ insert()        │ INSERT INTO users ... RETURNING id              │
    │ fetch_by_id()   │ SELECT id, name, email FROM users WHERE id = %s │
    │ fetch_all()     │ SELECT id, name, email FROM users               │
    │ update_by_id()  │ UPDATE users SET name, email WHERE id = %s      │
    │ delete_by_id()  │ DELETE FROM users WHERE id = %s                 │
    └─────────────────┴─────────────────────────────────────────────────┘

Each call is exactly one round trip. The connection runs in autocommit
mode, so every statement is its own transaction and a failed statement
never leaves the connection stuck in an aborted transaction.

UPDATE and DELETE check the affected-row count: zero rows means the id
does not exist, reported as UserNotFound.

=============================================================================
ERROR MAPPING
=============================================================================

    psycopg2.OperationalError  ─┐
    psycopg2.InterfaceError    ─┴──► StoreUnavailable  (connection is gone)
    any other psycopg2.Error   ─────► StoreError        (statement rejected)

The psycopg2 exception is kept as __cause__.

=============================================================================
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List

import psycopg2

from .errors import StoreError, StoreUnavailable, UserNotFound
from .models import User


logger = logging.getLogger(__name__)


CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    name VARCHAR NOT NULL,
    email VARCHAR NOT NULL
)
"""

INSERT_SQL = "INSERT INTO users (name, email) VALUES (%s, %s) RETURNING id"
SELECT_ONE_SQL = "SELECT id, name, email FROM users WHERE id = %s"
SELECT_ALL_SQL = "SELECT id, name, email FROM users"
UPDATE_SQL = "UPDATE users SET name = %s, email = %s WHERE id = %s"
DELETE_SQL = "DELETE FROM users WHERE id = %s"


class UserRepository:
    """
    Repository for user database operations.

    Owns one DB-API connection for the lifetime of the process. The
    server is serial, so the connection is never used concurrently.

    Usage:
        repo = UserRepository.connect("postgresql://localhost/users")
        repo.initialize()
        user_id = repo.insert("Ada", "ada@example.org")
        repo.fetch_by_id(user_id)
    """

    def __init__(self, connection):
        """
        Args:
            connection: An open psycopg2 connection, ideally in autocommit
                        mode (connect() takes care of that).
        """
        self._connection = connection

    @classmethod
    def connect(cls, dsn: str) -> "UserRepository":
        """
        Open a connection to the store.

        Raises:
            StoreUnavailable: If the store cannot be reached.
        """
        try:
            connection = psycopg2.connect(dsn)
        except psycopg2.Error as e:
            raise StoreUnavailable(f"Failed to connect to database: {e}") from e

        connection.autocommit = True
        logger.info("Connected to database")
        return cls(connection)

    @contextmanager
    def _cursor(self) -> Iterator:
        """
        Yield a cursor and translate psycopg2 errors into store errors.

        The cursor is closed on exit whatever happens.
        """
        try:
            with self._connection.cursor() as cursor:
                yield cursor
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            logger.error(f"Database unavailable: {e}")
            raise StoreUnavailable(str(e)) from e
        except psycopg2.Error as e:
            logger.error(f"Database error: {e}")
            raise StoreError(str(e)) from e

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def initialize(self) -> None:
        """
        Create the users table if it does not exist. Idempotent.

        Raises:
            StoreError: If the statement fails. Fatal at startup.
        """
        with self._cursor() as cursor:
            cursor.execute(CREATE_TABLE_SQL)
        logger.info("Users table ready")

    # =========================================================================
    # CRUD
    # =========================================================================

    def insert(self, name: str, email: str) -> int:
        """
        Insert a new user.

        Returns:
            The id assigned by the store.

        Raises:
            StoreError: If the statement is rejected or the store is down.
        """
        with self._cursor() as cursor:
            cursor.execute(INSERT_SQL, (name, email))
            row = cursor.fetchone()

        user_id = row[0]
        logger.debug(f"Inserted user {user_id}")
        return user_id

    def fetch_by_id(self, user_id: int) -> User:
        """
        Raises:
            UserNotFound: If no row has this id.
            StoreError: On store failure.
        """
        with self._cursor() as cursor:
            cursor.execute(SELECT_ONE_SQL, (user_id,))
            row = cursor.fetchone()

        if row is None:
            raise UserNotFound(user_id)
        return User.from_row(row)

    def fetch_all(self) -> List[User]:
        """
        Return every user, in whatever order the store yields them.
        An empty table gives an empty list.
        """
        with self._cursor() as cursor:
            cursor.execute(SELECT_ALL_SQL)
            rows = cursor.fetchall()

        return [User.from_row(row) for row in rows]

    def update_by_id(self, user_id: int, name: str, email: str) -> None:
        """
        Overwrite name and email of an existing user. The id never changes.

        Raises:
            UserNotFound: If no row was updated.
            StoreError: On store failure.
        """
        with self._cursor() as cursor:
            cursor.execute(UPDATE_SQL, (name, email, user_id))
            updated = cursor.rowcount

        if updated == 0:
            raise UserNotFound(user_id)
        logger.debug(f"Updated user {user_id}")

    def delete_by_id(self, user_id: int) -> None:
        """
        Raises:
            UserNotFound: If no row was deleted.
            StoreError: On store failure.
        """
        with self._cursor() as cursor:
            cursor.execute(DELETE_SQL, (user_id,))
            deleted = cursor.rowcount

        if deleted == 0:
            raise UserNotFound(user_id)
        logger.debug(f"Deleted user {user_id}")

    def close(self) -> None:
        """Close the owned connection. Safe to call twice."""
        if not self._connection.closed:
            self._connection.close()
            logger.info("Database connection closed")
