"""Trade history data models — one ``LogicalTrade`` per broker trade id."""

from dataclasses import dataclass, field
from typing import Optional

from aurum.instruments import price_decimals_for
from aurum.timeutils import parse_time


@dataclass(frozen=True)
class CloseLeg:
    """One (possibly partial) close of a trade."""

    units: Optional[float]
    price: Optional[float]
    time: Optional[str]
    realized_pl: Optional[float]


@dataclass(frozen=True)
class LogicalTrade:
    """A reconstructed trade with its open and close legs.

    ``opened_at``, ``open_price``, ``open_units`` and ``side`` are ``None``
    when the opening fill was never seen.
    """

    trade_id: str
    instrument: Optional[str]
    side: Optional[str]  # "BUY" or "SELL"
    opened_at: Optional[str]
    closed_at: Optional[str]
    open_price: Optional[float]
    open_units: Optional[float]
    remaining_units: float
    closes: tuple[CloseLeg, ...] = ()
    total_realized_pl: float = 0.0
    unrealized_pl: Optional[float] = None

    @property
    def status(self) -> str:
        return "open" if self.remaining_units > 0 else "closed"

    @property
    def last_activity(self) -> Optional[str]:
        return self.closed_at or self.opened_at


@dataclass(frozen=True)
class UnresolvedTradeIdentifier:
    """A fill or close event skipped because no trade id could be found."""

    transaction_id: Optional[str]
    type: Optional[str]
    time: Optional[str]


@dataclass(frozen=True)
class ReconstructionResult:
    """Reconstructed trades plus the events that had to be skipped."""

    trades: list[LogicalTrade]
    skipped: list[UnresolvedTradeIdentifier] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


# ── Presentation ─────────────────────────────────────────────────────────


def _money(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 2)


def _price(value: Optional[float], decimals: int) -> Optional[float]:
    return None if value is None else round(value, decimals)


def trade_to_dict(trade: LogicalTrade) -> dict:
    """Serialise *trade* for display.

    This is the only place amounts are rounded: money to 2 decimals,
    prices to the instrument's quote precision.
    """
    decimals = price_decimals_for(trade.instrument)
    opened = parse_time(trade.opened_at)
    closed = parse_time(trade.closed_at)
    duration = (closed - opened).total_seconds() if opened and closed else None
    return {
        "trade_id": trade.trade_id,
        "instrument": trade.instrument,
        "side": trade.side,
        "status": trade.status,
        "opened_at": trade.opened_at,
        "closed_at": trade.closed_at,
        "open": {
            "price": _price(trade.open_price, decimals),
            "units": trade.open_units,
        },
        "remaining_units": trade.remaining_units,
        "closes": [
            {
                "units": leg.units,
                "price": _price(leg.price, decimals),
                "time": leg.time,
                "realized_pl": _money(leg.realized_pl),
            }
            for leg in trade.closes
        ],
        "totals": {
            "realized_pl": _money(trade.total_realized_pl),
            "unrealized_pl": _money(trade.unrealized_pl),
        },
        "duration_seconds": duration,
    }


def summarize(trades: list[LogicalTrade]) -> dict:
    """Aggregate counts and P&L across *trades* (rounded once, at the end)."""
    open_trades = [t for t in trades if t.status == "open"]
    realized = sum(t.total_realized_pl for t in trades)
    unrealized = sum(t.unrealized_pl or 0.0 for t in open_trades)
    return {
        "total_trades": len(trades),
        "open_trades": len(open_trades),
        "closed_trades": len(trades) - len(open_trades),
        "total_realized_pl": round(realized, 2),
        "total_unrealized_pl": round(unrealized, 2),
    }
