"""Database initialization and connection management.

Creates the schema on first boot, provides connection factory.
"""

import pathlib
import sqlite3


_SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id            INTEGER,
    plan_type          TEXT    NOT NULL DEFAULT 'standard',
    account_size       REAL    NOT NULL,
    current_balance    REAL,
    status             TEXT    NOT NULL DEFAULT 'pending',
    broker_account_id  TEXT,
    created_at         TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS orders (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id         INTEGER NOT NULL REFERENCES accounts(id),
    instrument         TEXT    NOT NULL,
    side               TEXT    NOT NULL,
    units              INTEGER NOT NULL,
    entry_price        REAL,
    stop_loss          REAL    NOT NULL,
    take_profit        REAL    NOT NULL,
    reference_price    REAL    NOT NULL,
    risk_dollars       REAL    NOT NULL,
    approx             INTEGER NOT NULL DEFAULT 0,
    status             TEXT    NOT NULL,
    broker_order_id    TEXT,
    broker_trade_id    TEXT,
    reason             TEXT,
    reject_reason      TEXT,
    placed_at          TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_account_placed
    ON orders (account_id, placed_at);
"""


def init_db(db_path: str) -> None:
    """Initialize the database, creating tables that don't exist yet.

    Args:
        db_path: Path to the SQLite database file (or ``":memory:"``).
    """
    if db_path != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(_SCHEMA)
    finally:
        conn.close()


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with row-factory enabled.

    Callers are responsible for closing the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn
