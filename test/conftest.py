import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@dataclass
class Seeded:
    container: object
    supplier_id: int
    customer_id: int
    user_id: int

    @property
    def repo(self):
        return self.container.repo


def seed(tmp_path: Path, name: str = "inventory.db") -> Seeded:
    from invsys.application.container import build_container

    container = build_container(tmp_path / name)
    supplier_id = container.suppliers.add("ACME Supplies", "sales@acme.example.com", "555-0100")
    customer_id = container.customers.add("Jane Roe", "jane@example.com")
    user_id = container.users.add_user("clerk", "Carla", "Diaz")
    return Seeded(container, supplier_id, customer_id, user_id)


def count_rows(repo, table: str) -> int:
    conn = repo._conn()
    cur = conn.cursor()
    cur.execute(f"SELECT COUNT(*) FROM {table}")
    n = int(cur.fetchone()[0])
    conn.close()
    return n


@pytest.fixture
def seeded(tmp_path: Path) -> Seeded:
    return seed(tmp_path)
