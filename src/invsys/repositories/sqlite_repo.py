from __future__ import annotations

import sqlite3
import shutil
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from invsys.domain.calculator import from_cents
from invsys.domain.models import (
    PURCHASE,
    SALE,
    Customer,
    Product,
    StockMovement,
    StockTransaction,
    Supplier,
    TransactionKind,
    TransactionLine,
    User,
)
from invsys.repositories.unit_of_work import SqliteUnitOfWork

PARTY_TABLES = {"suppliers": Supplier, "customers": Customer}


class SqliteRepository:
    def __init__(self, db_path: Path | str, lock_timeout: float = 5.0):
        self.db_path = str(db_path)
        self.lock_timeout = float(lock_timeout)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.lock_timeout)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def unit_of_work(self) -> SqliteUnitOfWork:
        return SqliteUnitOfWork(self.db_path, timeout=self.lock_timeout)

    def init_db(self) -> None:
        self.run_migrations()
        conn = self._conn()
        # WAL lets readers proceed while a unit of work holds the write lock
        conn.execute("PRAGMA journal_mode=WAL")
        conn.close()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_stock_movements),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def schema_version(self) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        version = int(cur.fetchone()[0])
        conn.close()
        return version

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS products (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                unit_price_cents INTEGER NOT NULL CHECK(unit_price_cents > 0),
                stock INTEGER NOT NULL DEFAULT 0 CHECK(stock >= 0),
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
            """
        )

        for table in PARTY_TABLES:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    phone TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )

        for kind in (PURCHASE, SALE):
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {kind.header_table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {kind.counterparty_column} INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    datetime TEXT NOT NULL,
                    total_cents INTEGER NOT NULL DEFAULT 0 CHECK(total_cents >= 0),
                    FOREIGN KEY({kind.counterparty_column}) REFERENCES {kind.counterparty_table}(id),
                    FOREIGN KEY(user_id) REFERENCES users(id)
                )
                """
            )
            # product FK is deferred so a missing product surfaces from the stock ledger
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {kind.line_table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {kind.parent_column} INTEGER NOT NULL,
                    product_id INTEGER NOT NULL,
                    qty INTEGER NOT NULL CHECK(qty > 0),
                    unit_price_cents INTEGER NOT NULL CHECK(unit_price_cents > 0),
                    FOREIGN KEY({kind.parent_column}) REFERENCES {kind.header_table}(id) ON DELETE CASCADE,
                    FOREIGN KEY(product_id) REFERENCES products(id) DEFERRABLE INITIALLY DEFERRED
                )
                """
            )
            cur.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{kind.line_table}_parent ON {kind.line_table}({kind.parent_column})"
            )
            cur.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{kind.header_table}_datetime ON {kind.header_table}(datetime)"
            )

    def _migration_v2_stock_movements(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS stock_movements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                datetime TEXT NOT NULL,
                product_id INTEGER NOT NULL,
                direction TEXT NOT NULL CHECK(direction IN ('increase','decrease')),
                qty_delta INTEGER NOT NULL,
                stock_after INTEGER NOT NULL CHECK(stock_after >= 0),
                reference_type TEXT NOT NULL CHECK(reference_type IN ('purchase','sale','manual')),
                reference_id INTEGER,
                actor_user_id INTEGER,
                notes TEXT,
                FOREIGN KEY(product_id) REFERENCES products(id),
                FOREIGN KEY(actor_user_id) REFERENCES users(id)
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_stock_movements_product ON stock_movements(product_id)")

    # ---------- Users ----------
    def add_user(self, username: str, first_name: str, last_name: str) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO users (username, first_name, last_name) VALUES (?, ?, ?)",
            (username, first_name, last_name),
        )
        uid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return uid

    def get_user(self, user_id: int) -> Optional[User]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT id, username, first_name, last_name FROM users WHERE id=?", (int(user_id),))
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return User(id=int(r[0]), username=str(r[1]), first_name=str(r[2]), last_name=str(r[3]))

    def get_user_by_username(self, username: str) -> Optional[User]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT id, username, first_name, last_name FROM users WHERE username=?", (username,))
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return User(id=int(r[0]), username=str(r[1]), first_name=str(r[2]), last_name=str(r[3]))

    # ---------- Products ----------
    def add_product(self, name: str, description: Optional[str], unit_price_cents: int, stock: int, created_at: str) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO products (name, description, unit_price_cents, stock, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (name, description, int(unit_price_cents), int(stock), created_at),
        )
        pid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return pid

    def update_product(self, product_id: int, name: str, description: Optional[str], unit_price_cents: int, updated_at: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE products
            SET name=?, description=?, unit_price_cents=?, updated_at=?
            WHERE id=?
            """,
            (name, description, int(unit_price_cents), updated_at, int(product_id)),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def product_has_history(self, product_id: int) -> bool:
        """True when purchase or sale lines or audit movements reference the product."""
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT EXISTS(SELECT 1 FROM purchase_items WHERE product_id=?)
                OR EXISTS(SELECT 1 FROM sale_items WHERE product_id=?)
                OR EXISTS(SELECT 1 FROM stock_movements WHERE product_id=?)
            """,
            (int(product_id), int(product_id), int(product_id)),
        )
        found = bool(cur.fetchone()[0])
        conn.close()
        return found

    def delete_product(self, product_id: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("DELETE FROM products WHERE id=?", (int(product_id),))
            changed = cur.rowcount > 0
            conn.commit()
            return bool(changed)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _product_from_row(r) -> Product:
        return Product(
            id=int(r[0]),
            name=str(r[1]),
            description=(r[2] if r[2] is not None else None),
            unit_price=from_cents(r[3]),
            stock=int(r[4]),
            created_at=str(r[5]),
            updated_at=(str(r[6]) if r[6] is not None else None),
        )

    def get_product(self, product_id: int) -> Optional[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, name, description, unit_price_cents, stock, created_at, updated_at
            FROM products
            WHERE id=?
            """,
            (int(product_id),),
        )
        r = cur.fetchone()
        conn.close()
        return self._product_from_row(r) if r else None

    def list_products(self, order_by_stock: bool = False) -> list[Product]:
        order = "stock ASC, name ASC" if order_by_stock else "name ASC"
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT id, name, description, unit_price_cents, stock, created_at, updated_at
            FROM products
            ORDER BY {order}
            """
        )
        rows = cur.fetchall()
        conn.close()
        return [self._product_from_row(r) for r in rows]

    def count_products(self, max_stock: Optional[int] = None) -> int:
        conn = self._conn()
        cur = conn.cursor()
        if max_stock is None:
            cur.execute("SELECT COUNT(*) FROM products")
        else:
            cur.execute("SELECT COUNT(*) FROM products WHERE stock <= ?", (int(max_stock),))
        count = int(cur.fetchone()[0])
        conn.close()
        return count

    def recent_movements(self, limit: int = 100, product_id: Optional[int] = None) -> list[StockMovement]:
        conn = self._conn()
        cur = conn.cursor()
        where = "WHERE product_id = ?" if product_id is not None else ""
        params: tuple = (int(product_id), int(limit)) if product_id is not None else (int(limit),)
        cur.execute(
            f"""
            SELECT id, datetime, product_id, direction, qty_delta, stock_after,
                   reference_type, reference_id, actor_user_id, notes
            FROM stock_movements
            {where}
            ORDER BY datetime DESC, id DESC
            LIMIT ?
            """,
            params,
        )
        rows = cur.fetchall()
        conn.close()
        return [StockMovement(*r) for r in rows]

    # ---------- Suppliers / customers ----------
    def add_party(self, table: str, name: str, email: str, phone: Optional[str], created_at: str) -> int:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"INSERT INTO {table} (name, email, phone, created_at) VALUES (?, ?, ?, ?)",
            (name, email, phone, created_at),
        )
        pid = int(cur.lastrowid)
        conn.commit()
        conn.close()
        return pid

    def update_party(self, table: str, party_id: int, name: str, email: str, phone: Optional[str]) -> bool:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"UPDATE {table} SET name=?, email=?, phone=? WHERE id=?",
            (name, email, phone, int(party_id)),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def party_email_taken(self, table: str, email: str, exclude_id: Optional[int] = None) -> bool:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT 1 FROM {table} WHERE lower(email) = lower(?) AND id != ?",
            (email, int(exclude_id) if exclude_id is not None else -1),
        )
        taken = cur.fetchone() is not None
        conn.close()
        return taken

    def party_has_transactions(self, table: str, party_id: int) -> bool:
        table = self._party_table(table)
        kind = PURCHASE if table == PURCHASE.counterparty_table else SALE
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT 1 FROM {kind.header_table} WHERE {kind.counterparty_column}=? LIMIT 1",
            (int(party_id),),
        )
        found = cur.fetchone() is not None
        conn.close()
        return found

    def delete_party(self, table: str, party_id: int) -> bool:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"DELETE FROM {table} WHERE id=?", (int(party_id),))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def get_party(self, table: str, party_id: int) -> Supplier | Customer | None:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT id, name, email, phone, created_at FROM {table} WHERE id=?", (int(party_id),))
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return PARTY_TABLES[table](id=int(r[0]), name=str(r[1]), email=str(r[2]), phone=r[3], created_at=str(r[4]))

    def list_parties(self, table: str) -> list:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT id, name, email, phone, created_at FROM {table} ORDER BY name")
        rows = cur.fetchall()
        conn.close()
        model = PARTY_TABLES[table]
        return [model(id=int(r[0]), name=str(r[1]), email=str(r[2]), phone=r[3], created_at=str(r[4])) for r in rows]

    def count_parties(self, table: str) -> int:
        table = self._party_table(table)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT COUNT(*) FROM {table}")
        count = int(cur.fetchone()[0])
        conn.close()
        return count

    @staticmethod
    def _party_table(table: str) -> str:
        if table not in PARTY_TABLES:
            raise ValueError(f"Unknown party table: {table}")
        return table

    # ---------- Purchases / sales (read side) ----------
    def _header_select(self, kind: TransactionKind) -> str:
        return f"""
            SELECT h.id, h.{kind.counterparty_column}, c.name, h.user_id,
                   u.first_name || ' ' || u.last_name, h.datetime, h.total_cents
            FROM {kind.header_table} h
            JOIN {kind.counterparty_table} c ON c.id = h.{kind.counterparty_column}
            JOIN users u ON u.id = h.user_id
        """

    def _lines_for(self, cur: sqlite3.Cursor, kind: TransactionKind, header_id: int) -> tuple[TransactionLine, ...]:
        cur.execute(
            f"""
            SELECT l.id, l.product_id, p.name, l.qty, l.unit_price_cents,
                   (l.qty * l.unit_price_cents) AS subtotal_cents
            FROM {kind.line_table} l
            JOIN products p ON p.id = l.product_id
            WHERE l.{kind.parent_column} = ?
            ORDER BY l.id
            """,
            (int(header_id),),
        )
        return tuple(
            TransactionLine(
                id=int(r[0]),
                product_id=int(r[1]),
                product_name=str(r[2]),
                quantity=int(r[3]),
                unit_price=from_cents(r[4]),
                subtotal=from_cents(r[5]),
            )
            for r in cur.fetchall()
        )

    def _transaction_from_row(self, cur: sqlite3.Cursor, kind: TransactionKind, r) -> StockTransaction:
        return StockTransaction(
            kind=kind.name,
            id=int(r[0]),
            counterparty_id=int(r[1]),
            counterparty_name=str(r[2]),
            user_id=int(r[3]),
            user_name=str(r[4]).strip(),
            datetime=str(r[5]),
            total=from_cents(r[6]),
            lines=self._lines_for(cur, kind, int(r[0])),
        )

    def get_transaction(self, kind: TransactionKind, transaction_id: int) -> Optional[StockTransaction]:
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute(self._header_select(kind) + " WHERE h.id = ?", (int(transaction_id),))
            r = cur.fetchone()
            if not r:
                return None
            return self._transaction_from_row(cur, kind, r)
        finally:
            conn.close()

    def list_transactions(
        self,
        kind: TransactionKind,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        counterparty_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[StockTransaction]:
        clauses: list[str] = []
        params: list = []
        if date_from is not None:
            clauses.append("date(h.datetime) >= ?")
            params.append(date_from.isoformat())
        if date_to is not None:
            clauses.append("date(h.datetime) <= ?")
            params.append(date_to.isoformat())
        if counterparty_id is not None:
            clauses.append(f"h.{kind.counterparty_column} = ?")
            params.append(int(counterparty_id))
        if user_id is not None:
            clauses.append("h.user_id = ?")
            params.append(int(user_id))
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""

        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute(self._header_select(kind) + where + " ORDER BY h.datetime DESC, h.id DESC", tuple(params))
            rows = cur.fetchall()
            return [self._transaction_from_row(cur, kind, r) for r in rows]
        finally:
            conn.close()

    def transaction_totals_between(self, kind: TransactionKind, date_from: date, date_to: date) -> tuple[int, int]:
        """(count, total_cents) of headers whose calendar day lies in the window."""
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT COUNT(*), COALESCE(SUM(total_cents), 0)
            FROM {kind.header_table}
            WHERE date(datetime) >= ? AND date(datetime) <= ?
            """,
            (date_from.isoformat(), date_to.isoformat()),
        )
        c, total_cents = cur.fetchone()
        conn.close()
        return int(c), int(total_cents)
