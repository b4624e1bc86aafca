"""Mutable per-trade accumulator shared by both history input paths.

Transaction folding and trade summaries both feed a ``TradeLedger``; only
the ledger produces ``LogicalTrade`` records, so both paths emit the same
structure.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from aurum.history.models import CloseLeg, LogicalTrade
from aurum.timeutils import parse_time

EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _side_from_units(units: float) -> str:
    return "BUY" if units >= 0 else "SELL"


@dataclass
class TradeBuilder:
    """Accumulates the open and close legs of one trade."""

    trade_id: str
    instrument: Optional[str] = None
    side: Optional[str] = None
    opened_at: Optional[str] = None
    closed_at: Optional[str] = None
    open_price: Optional[float] = None
    open_units: Optional[float] = None
    remaining_units: float = 0.0
    closes: list[CloseLeg] = field(default_factory=list)
    total_realized_pl: float = 0.0

    @property
    def has_opened(self) -> bool:
        return self.opened_at is not None or self.open_units is not None

    def apply_fill(
        self,
        units: float,
        price: Optional[float],
        time: Optional[str],
        instrument: Optional[str],
    ) -> None:
        """Open the trade, or scale into it with a weighted average price.

        A fill leaves units open, so any earlier ``closed_at`` is cleared.
        """
        added = abs(units)
        if not self.has_opened:
            self.instrument = self.instrument or instrument
            self.side = _side_from_units(units)
            self.opened_at = time
            self.open_price = price
            self.open_units = added
            self.remaining_units = added
        else:
            prev_units = self.open_units or 0.0
            total_units = prev_units + added
            if self.open_price is not None and price is not None and total_units > 0:
                self.open_price = (
                    self.open_price * prev_units + price * added
                ) / total_units
            elif self.open_price is None:
                self.open_price = price
            self.open_units = total_units
            self.remaining_units += added
            self.instrument = self.instrument or instrument
            self.side = self.side or _side_from_units(units)
        if self.remaining_units > 0:
            self.closed_at = None

    def apply_close(
        self,
        units: Optional[float],
        price: Optional[float],
        time: Optional[str],
        realized_pl: Optional[float],
        instrument: Optional[str] = None,
    ) -> None:
        """Record a (partial) close; remaining units never go negative."""
        closed_units = abs(units) if units is not None else None
        self.instrument = self.instrument or instrument
        self.closes.append(CloseLeg(closed_units, price, time, realized_pl))
        if realized_pl is not None:
            self.total_realized_pl += realized_pl
        if closed_units is not None:
            self.remaining_units = max(0.0, self.remaining_units - closed_units)
        if self.remaining_units == 0:
            self.closed_at = time

    def build(self, unrealized_pl: Optional[float] = None) -> LogicalTrade:
        return LogicalTrade(
            trade_id=self.trade_id,
            instrument=self.instrument,
            side=self.side,
            opened_at=self.opened_at,
            closed_at=self.closed_at,
            open_price=self.open_price,
            open_units=self.open_units,
            remaining_units=self.remaining_units,
            closes=tuple(self.closes),
            total_realized_pl=self.total_realized_pl,
            unrealized_pl=unrealized_pl if self.remaining_units > 0 else None,
        )


def id_sort_key(value) -> tuple:
    """Numeric-aware key for broker ids (``"9" < "10"``)."""
    text = "" if value is None else str(value)
    return (0, int(text), "") if text.isdigit() else (1, 0, text)


def activity_sort_key(trade: LogicalTrade) -> tuple:
    """Ascending key for ``closed_at ?? opened_at``, then trade id."""
    moment = parse_time(trade.last_activity)
    return (moment is not None, moment or EPOCH, id_sort_key(trade.trade_id))


class TradeLedger:
    """``trade_id → TradeBuilder`` with a deterministic final ordering."""

    def __init__(self) -> None:
        self._builders: dict[str, TradeBuilder] = {}

    def __contains__(self, trade_id: str) -> bool:
        return trade_id in self._builders

    def __len__(self) -> int:
        return len(self._builders)

    def get(self, trade_id: str) -> TradeBuilder:
        """Return the builder for *trade_id*, creating it on first use."""
        builder = self._builders.get(trade_id)
        if builder is None:
            builder = TradeBuilder(trade_id=trade_id)
            self._builders[trade_id] = builder
        return builder

    def replace(self, builder: TradeBuilder) -> None:
        self._builders[builder.trade_id] = builder

    def finish(
        self,
        unrealized_by_id: Optional[dict[str, Optional[float]]] = None,
    ) -> list[LogicalTrade]:
        """Build every trade and sort most recent activity first.

        Open trades pick up their unrealized P&L from *unrealized_by_id*;
        trades missing from it get ``None``.
        """
        lookup = unrealized_by_id or {}
        trades = [
            builder.build(lookup.get(trade_id))
            for trade_id, builder in self._builders.items()
        ]
        trades.sort(key=activity_sort_key, reverse=True)
        return trades
