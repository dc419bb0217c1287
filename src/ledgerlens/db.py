import json
import sqlite3
import threading
from pathlib import Path
from typing import Callable

from ledgerlens.categories import DEFAULT_CATEGORIES
from ledgerlens.models import ANY, DIRECTIONS

SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    category_type TEXT NOT NULL,
    description TEXT,
    is_active INTEGER DEFAULT 1
);

CREATE TABLE IF NOT EXISTS rules (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    category TEXT NOT NULL,
    keywords TEXT NOT NULL,
    amount_direction TEXT,
    priority INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS imports (
    id INTEGER PRIMARY KEY,
    filename TEXT NOT NULL,
    user_id TEXT NOT NULL,
    bank TEXT,
    import_date TEXT DEFAULT (datetime('now')),
    record_count INTEGER,
    date_range_start TEXT,
    date_range_end TEXT,
    checksum TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    date TEXT NOT NULL,
    description TEXT NOT NULL,
    payee TEXT NOT NULL DEFAULT '',
    amount TEXT NOT NULL,
    type TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT '',
    source_line TEXT,
    is_flagged INTEGER DEFAULT 0,
    flag_reason TEXT,
    import_id INTEGER,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (import_id) REFERENCES imports(id)
);
"""


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and foreign keys enabled."""
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and seed default categories. Idempotent."""
    conn.executescript(SCHEMA)

    cursor = conn.execute("SELECT count(*) FROM categories")
    if cursor.fetchone()[0] == 0:
        conn.executemany(
            "INSERT INTO categories (name, category_type, description) VALUES (?, ?, ?)",
            DEFAULT_CATEGORIES,
        )
        conn.commit()


def category_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM categories WHERE name = ? AND is_active = 1", (name,)
    ).fetchone()
    return row is not None


class SqliteRuleStore:
    """Classification rules kept in the ``rules`` table.

    Every mutation calls ``on_change(user_id)``; wire it to ``RuleCache.clear``
    so edited rules take effect on the next classification.
    """

    def __init__(self, conn: sqlite3.Connection, on_change: Callable[[str], None] | None = None):
        self.conn = conn
        self.on_change = on_change
        self._lock = threading.Lock()

    def _changed(self, user_id: str) -> None:
        if self.on_change is not None:
            self.on_change(user_id)

    def get_classification_rules(self, user_id: str) -> list[dict]:
        """Active rules as plain records, highest priority first, then oldest first."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT id, category, keywords, amount_direction, priority FROM rules "
                "WHERE user_id = ? AND is_active = 1 ORDER BY priority DESC, id ASC",
                (user_id,),
            ).fetchall()
        records = []
        for row in rows:
            try:
                keywords = json.loads(row["keywords"])
            except (TypeError, ValueError):
                keywords = None  # leaves the rule inert
            records.append({
                "id": row["id"],
                "category": row["category"],
                "keywords": keywords,
                "amount_direction": row["amount_direction"],
                "priority": row["priority"],
            })
        return records

    def list_rules(self, user_id: str) -> list[sqlite3.Row]:
        """Every rule for the user, including disabled ones, in evaluation order."""
        return self.conn.execute(
            "SELECT id, category, keywords, amount_direction, priority, is_active FROM rules "
            "WHERE user_id = ? ORDER BY is_active DESC, priority DESC, id ASC",
            (user_id,),
        ).fetchall()

    def add_rule(
        self,
        user_id: str,
        category: str,
        keywords: list[str],
        amount_direction: str = ANY,
        priority: int = 0,
    ) -> int:
        if amount_direction not in DIRECTIONS:
            raise ValueError(f"Unknown amount direction: {amount_direction}")
        cursor = self.conn.execute(
            "INSERT INTO rules (user_id, category, keywords, amount_direction, priority) "
            "VALUES (?, ?, ?, ?, ?)",
            (user_id, category, json.dumps(list(keywords)), amount_direction, priority),
        )
        self.conn.commit()
        self._changed(user_id)
        return cursor.lastrowid

    def update_rule(self, user_id: str, rule_id: int, **fields) -> bool:
        allowed = {"category", "keywords", "amount_direction", "priority", "is_active"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown rule fields: {', '.join(sorted(unknown))}")
        if "amount_direction" in fields and fields["amount_direction"] not in DIRECTIONS:
            raise ValueError(f"Unknown amount direction: {fields['amount_direction']}")
        if "keywords" in fields:
            fields["keywords"] = json.dumps(list(fields["keywords"]))
        if not fields:
            return False
        assignments = ", ".join(f"{name} = ?" for name in fields)
        cursor = self.conn.execute(
            f"UPDATE rules SET {assignments} WHERE id = ? AND user_id = ?",
            (*fields.values(), rule_id, user_id),
        )
        self.conn.commit()
        self._changed(user_id)
        return cursor.rowcount > 0

    def delete_rule(self, user_id: str, rule_id: int) -> bool:
        cursor = self.conn.execute(
            "DELETE FROM rules WHERE id = ? AND user_id = ?", (rule_id, user_id)
        )
        self.conn.commit()
        self._changed(user_id)
        return cursor.rowcount > 0
