"""Order repository — SQLite CRUD for the orders table."""

from typing import Optional

from aurum.repos.db import get_connection
from aurum.risk.bracket import OrderBracket


class OrderRepo:
    """Data access layer for placed orders and their brackets.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_order(
        self,
        account_id: int,
        bracket: OrderBracket,
        status: str,
        placed_at: str,
        entry_price: Optional[float] = None,
        broker_order_id: Optional[str] = None,
        broker_trade_id: Optional[str] = None,
        reason: Optional[str] = None,
        reject_reason: Optional[str] = None,
    ) -> int:
        """Persist an order attempt and return its ``id``.

        *status* is ``"filled"``, ``"rejected"`` or ``"unknown"`` (sent but
        never confirmed by the broker).
        """
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO orders
                    (account_id, instrument, side, units, entry_price,
                     stop_loss, take_profit, reference_price, risk_dollars,
                     approx, status, broker_order_id, broker_trade_id,
                     reason, reject_reason, placed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account_id, bracket.instrument, bracket.direction,
                    bracket.signed_units, entry_price,
                    bracket.stop_loss_price, bracket.take_profit_price,
                    bracket.entry_price_used, bracket.risk_dollars,
                    int(bracket.approx), status, broker_order_id,
                    broker_trade_id, reason, reject_reason, placed_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def find_in_window(self, account_id: int, start: str, end: str) -> Optional[dict]:
        """Return the first order placed in ``[start, end)`` that may have filled.

        *start* and *end* are ISO-8601 UTC strings.
        """
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                """
                SELECT * FROM orders
                WHERE account_id = ? AND status IN ('filled', 'unknown')
                  AND placed_at >= ? AND placed_at < ?
                ORDER BY placed_at
                LIMIT 1
                """,
                (account_id, start, end),
            ).fetchone()
            return dict(row) if row is not None else None
        finally:
            conn.close()

    def get_orders(
        self,
        account_id: int,
        limit: int = 50,
        offset: int = 0,
        status_filter: Optional[str] = None,
    ) -> dict:
        """Return an account's orders, newest first.

        Returns:
            ``{"orders": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            conditions = ["account_id = ?"]
            params: list = [account_id]
            if status_filter:
                conditions.append("status = ?")
                params.append(status_filter)
            where_clause = "WHERE " + " AND ".join(conditions)

            rows = conn.execute(
                f"SELECT * FROM orders {where_clause} "
                "ORDER BY placed_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM orders {where_clause}",
                params,
            ).fetchone()[0]

            orders = [dict(row) for row in rows]
            for order in orders:
                order["approx"] = bool(order["approx"])
            return {"orders": orders, "total": total}
        finally:
            conn.close()
