"""
SQLite rule store.

Implements RedirectRuleStorePort on the ``redirect_rules`` table. The
uniqueness check and the write share one ``BEGIN IMMEDIATE`` transaction,
backed by a partial unique index on active fingerprints, so concurrent puts
for the same fingerprint cannot both leave an active rule behind.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any
from uuid import UUID

from redirector.core.entities import RedirectRule
from redirector.core.errors import Conflict

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = dict_factory
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None


# -----------------------------------------------------------------------------
# RedirectRule Store
# -----------------------------------------------------------------------------


class SQLiteRedirectRuleStore(SQLiteRepoBase):
    """SQLite implementation of RedirectRuleStorePort."""

    def get(self, fingerprint: str) -> RedirectRule | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM redirect_rules WHERE fingerprint = ? AND is_active = 1",
                (fingerprint,),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, rule_id: UUID) -> RedirectRule | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM redirect_rules WHERE id = ?", (str(rule_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def put(self, rule: RedirectRule) -> UUID:
        conn = self._get_conn()
        owns_transaction = not conn.in_transaction
        try:
            if owns_transaction:
                conn.execute("BEGIN IMMEDIATE")

            if rule.active:
                clash = conn.execute(
                    "SELECT id FROM redirect_rules "
                    "WHERE fingerprint = ? AND is_active = 1 AND id != ?",
                    (rule.fingerprint, str(rule.id)),
                ).fetchone()
                if clash:
                    existing_id = clash["id"] if isinstance(clash, dict) else clash[0]
                    logger.info(
                        "Redirect conflict on %s (held by %s)", rule.from_canonical, existing_id
                    )
                    raise Conflict(rule.fingerprint, UUID(existing_id))

            conn.execute(
                """
                INSERT INTO redirect_rules (
                    id, fingerprint, from_canonical, to_target, status_code,
                    preserve_query_params, is_active, validation_error, notes,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    fingerprint=excluded.fingerprint,
                    from_canonical=excluded.from_canonical,
                    to_target=excluded.to_target,
                    status_code=excluded.status_code,
                    preserve_query_params=excluded.preserve_query_params,
                    is_active=excluded.is_active,
                    validation_error=excluded.validation_error,
                    notes=excluded.notes,
                    updated_at=excluded.updated_at
                """,
                (
                    str(rule.id),
                    rule.fingerprint,
                    rule.from_canonical,
                    rule.to_target,
                    rule.status_code,
                    int(rule.preserve_query_params),
                    int(rule.active),
                    rule.validation_error,
                    rule.notes,
                    rule.created_at.isoformat(),
                    rule.updated_at.isoformat(),
                ),
            )
            if owns_transaction:
                conn.commit()
            return rule.id
        except sqlite3.IntegrityError as e:
            if owns_transaction:
                conn.rollback()
            if "UNIQUE" not in str(e):
                raise
            raise Conflict(rule.fingerprint) from e
        except Exception:
            if owns_transaction:
                conn.rollback()
            raise
        finally:
            if self._should_close():
                conn.close()

    def delete(self, rule_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM redirect_rules WHERE id = ?", (str(rule_id),))
            if self._should_close():
                conn.commit()
        finally:
            if self._should_close():
                conn.close()

    def list_all(self) -> list[RedirectRule]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM redirect_rules ORDER BY created_at, rowid"
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: Any) -> RedirectRule:
        if not isinstance(row, dict):
            row = dict(row)
        return RedirectRule(
            id=UUID(row["id"]),
            fingerprint=row["fingerprint"],
            from_canonical=row["from_canonical"],
            to_target=row["to_target"],
            status_code=row["status_code"],
            preserve_query_params=bool(row["preserve_query_params"]),
            active=bool(row["is_active"]),
            validation_error=row["validation_error"],
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
