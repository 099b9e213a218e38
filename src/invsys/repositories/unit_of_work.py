from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol

from invsys.domain.errors import StorageError
from invsys.domain.models import StockDirection, TransactionKind

log = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def counterparty_exists(self, kind: TransactionKind, counterparty_id: int) -> bool: ...
    def user_exists(self, user_id: int) -> bool: ...
    def insert_header(self, kind: TransactionKind, counterparty_id: int, user_id: int, datetime_iso: str) -> int: ...
    def insert_line(self, kind: TransactionKind, header_id: int, product_id: int, qty: int, unit_price_cents: int) -> int: ...
    def update_header_total(self, kind: TransactionKind, header_id: int, total_cents: int) -> None: ...
    def get_product_stock(self, product_id: int) -> Optional[int]: ...
    def increment_stock(self, product_id: int, qty: int, datetime_iso: str) -> Optional[int]: ...
    def decrement_stock(self, product_id: int, qty: int, datetime_iso: str) -> Optional[int]: ...
    def append_movement(
        self,
        datetime_iso: str,
        product_id: int,
        direction: StockDirection,
        qty_delta: int,
        stock_after: int,
        reference_type: str,
        reference_id: Optional[int],
        actor_user_id: Optional[int],
        notes: Optional[str],
    ) -> int: ...


class SqliteUnitOfWork:
    """One sqlite write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so the stock
    read-modify-write of concurrent units of work is serialized and other
    connections only ever see committed state. Leaving the ``with`` block
    normally commits; any exception (cancellation included) rolls back.
    """

    def __init__(self, db_path: Path | str, timeout: float = 5.0):
        self.db_path = str(db_path)
        self.timeout = float(timeout)
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> "SqliteUnitOfWork":
        if self._conn is not None:
            raise StorageError("Unit of work is already active.")
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise StorageError(f"Could not open unit of work: {e}") from e
        self._conn = conn
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._conn is None:
            return None
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None

    @property
    def active(self) -> bool:
        return self._conn is not None

    def commit(self) -> None:
        conn = self._active()
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise StorageError(f"Commit failed: {e}") from e
        finally:
            # closing without COMMIT discards the transaction
            self._close()

    def rollback(self) -> None:
        conn = self._conn
        if conn is None:
            return
        try:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            log.warning("rollback_failed db=%s error=%s", self.db_path, e)
        finally:
            self._close()

    def _close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _active(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Unit of work is not active.")
        return self._conn

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._active()
        try:
            return conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise StorageError(f"Constraint violated: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        except OverflowError as e:
            raise StorageError(f"Value out of storage range: {e}") from e

    # ---------- Reference checks ----------
    def counterparty_exists(self, kind: TransactionKind, counterparty_id: int) -> bool:
        cur = self._execute(f"SELECT 1 FROM {kind.counterparty_table} WHERE id=?", (int(counterparty_id),))
        return cur.fetchone() is not None

    def user_exists(self, user_id: int) -> bool:
        cur = self._execute("SELECT 1 FROM users WHERE id=?", (int(user_id),))
        return cur.fetchone() is not None

    # ---------- Header / detail ----------
    def insert_header(self, kind: TransactionKind, counterparty_id: int, user_id: int, datetime_iso: str) -> int:
        cur = self._execute(
            f"""
            INSERT INTO {kind.header_table} ({kind.counterparty_column}, user_id, datetime, total_cents)
            VALUES (?, ?, ?, 0)
            """,
            (int(counterparty_id), int(user_id), datetime_iso),
        )
        return int(cur.lastrowid)

    def insert_line(self, kind: TransactionKind, header_id: int, product_id: int, qty: int, unit_price_cents: int) -> int:
        cur = self._execute(
            f"""
            INSERT INTO {kind.line_table} ({kind.parent_column}, product_id, qty, unit_price_cents)
            VALUES (?, ?, ?, ?)
            """,
            (int(header_id), int(product_id), int(qty), int(unit_price_cents)),
        )
        return int(cur.lastrowid)

    def update_header_total(self, kind: TransactionKind, header_id: int, total_cents: int) -> None:
        cur = self._execute(
            f"UPDATE {kind.header_table} SET total_cents=? WHERE id=?",
            (int(total_cents), int(header_id)),
        )
        if cur.rowcount != 1:
            raise StorageError(f"{kind.name} header {header_id} vanished before its total was written")

    # ---------- Stock ----------
    def get_product_stock(self, product_id: int) -> Optional[int]:
        cur = self._execute("SELECT stock FROM products WHERE id=?", (int(product_id),))
        row = cur.fetchone()
        return int(row[0]) if row else None

    def increment_stock(self, product_id: int, qty: int, datetime_iso: str) -> Optional[int]:
        cur = self._execute(
            "UPDATE products SET stock = stock + ?, updated_at = ? WHERE id = ?",
            (int(qty), datetime_iso, int(product_id)),
        )
        if cur.rowcount == 0:
            return None
        return self.get_product_stock(product_id)

    def decrement_stock(self, product_id: int, qty: int, datetime_iso: str) -> Optional[int]:
        """Returns the new stock, or ``None`` when the row is missing or would go negative."""
        cur = self._execute(
            "UPDATE products SET stock = stock - ?, updated_at = ? WHERE id = ? AND stock >= ?",
            (int(qty), datetime_iso, int(product_id), int(qty)),
        )
        if cur.rowcount == 0:
            return None
        return self.get_product_stock(product_id)

    def append_movement(
        self,
        datetime_iso: str,
        product_id: int,
        direction: StockDirection,
        qty_delta: int,
        stock_after: int,
        reference_type: str,
        reference_id: Optional[int],
        actor_user_id: Optional[int],
        notes: Optional[str],
    ) -> int:
        cur = self._execute(
            """
            INSERT INTO stock_movements (
                datetime, product_id, direction, qty_delta, stock_after,
                reference_type, reference_id, actor_user_id, notes
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                datetime_iso,
                int(product_id),
                direction.value,
                int(qty_delta),
                int(stock_after),
                reference_type,
                reference_id,
                actor_user_id,
                notes,
            ),
        )
        return int(cur.lastrowid)
