"""Broker data models — typed representations of OANDA v20 API objects."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AccountSummary:
    """Summary of an OANDA account."""

    account_id: str
    balance: float
    equity: float
    open_trade_count: int
    currency: str
    margin_available: Optional[float] = None


@dataclass(frozen=True)
class Quote:
    """Current price for one instrument.

    ``bid``/``ask`` are the top of the bid/ask ladders; the closeout prices
    are what the broker would use to close a position right now.
    """

    instrument: str
    bid: Optional[float]
    ask: Optional[float]
    closeout_bid: Optional[float]
    closeout_ask: Optional[float]
    tradeable: bool = True
    status: str = ""
    time: str = ""


@dataclass(frozen=True)
class OrderRequest:
    """A market order with stop-loss and take-profit on fill."""

    instrument: str
    units: int  # positive=buy, negative=sell
    stop_loss_price: float
    take_profit_price: float


@dataclass(frozen=True)
class OrderResponse:
    """Fill confirmation for a placed order."""

    order_id: str
    trade_id: Optional[str]
    instrument: str
    units: float
    price: float
    time: str


@dataclass(frozen=True)
class TradeSummary:
    """A broker trade object as returned by ``/trades`` and ``/openTrades``."""

    trade_id: str
    instrument: str
    state: str  # "OPEN", "CLOSED" or "CLOSE_WHEN_TRADEABLE"
    initial_units: float
    current_units: float
    price: Optional[float]
    realized_pnl: Optional[float] = None
    unrealized_pnl: Optional[float] = None
    average_close_price: Optional[float] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None
