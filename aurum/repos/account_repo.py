"""Account repository — SQLite CRUD for the accounts table."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from aurum.repos.db import get_connection
from aurum.risk.plans import normalize_plan_type, plan_for_cost


@dataclass(frozen=True)
class TradingAccount:
    """A funded challenge account linked to a broker account."""

    id: int
    user_id: Optional[int]
    plan_type: str
    account_size: float
    current_balance: Optional[float]
    status: str
    broker_account_id: Optional[str]

    @property
    def is_active(self) -> bool:
        return self.status == "active" and bool(self.broker_account_id)

    @property
    def risk_equity(self) -> float:
        """Equity figure risk is sized from (plan size, else balance)."""
        return float(self.account_size or self.current_balance or 0.0)


def _row_to_account(row) -> TradingAccount:
    return TradingAccount(
        id=row["id"],
        user_id=row["user_id"],
        plan_type=normalize_plan_type(row["plan_type"]),
        account_size=row["account_size"],
        current_balance=row["current_balance"],
        status=row["status"],
        broker_account_id=row["broker_account_id"],
    )


class AccountRepo:
    """Data access layer for trading accounts.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_account(
        self,
        account_size: float,
        plan_type: str = "standard",
        user_id: Optional[int] = None,
        status: str = "pending",
        broker_account_id: Optional[str] = None,
    ) -> int:
        """Insert a new account and return its ``id``."""
        created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO accounts
                    (user_id, plan_type, account_size, current_balance,
                     status, broker_account_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id, normalize_plan_type(plan_type), account_size,
                    account_size, status, broker_account_id, created_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def insert_from_plan(self, cost: str | int, user_id: Optional[int] = None) -> int:
        """Create a pending account for the plan sold at *cost*."""
        plan = plan_for_cost(cost)
        return self.insert_account(
            account_size=plan.account_size,
            plan_type=plan.plan_type,
            user_id=user_id,
        )

    def activate(self, account_id: int, broker_account_id: str) -> None:
        """Approve an account and bind it to a broker account."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE accounts SET status = 'active', broker_account_id = ? WHERE id = ?",
                (broker_account_id, account_id),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_account(self, account_id: int) -> Optional[TradingAccount]:
        """Return the account with *account_id*, or ``None``."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT * FROM accounts WHERE id = ?", (account_id,),
            ).fetchone()
            return _row_to_account(row) if row is not None else None
        finally:
            conn.close()
