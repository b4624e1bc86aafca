"""Event classification and trade id resolution for broker transactions.

OANDA is inconsistent about where a transaction carries its trade id, so
each event class has one ordered table of accessors, tried first to last.
"""

from collections.abc import Callable, Mapping
from typing import Any, Optional

FILL = "fill"
CLOSE = "close"

FILL_TYPES = frozenset({
    "ORDER_FILL",
    "OrderFillTransaction",
    "MARKET_ORDER",
    "MARKET_ORDER_TRADE_OPEN",
})
CLOSE_TYPES = frozenset({"TRADE_CLOSE", "TradeCloseTransaction"})

Accessor = Callable[[Mapping], Any]


def _nested(key: str, field: str) -> Accessor:
    def get(txn: Mapping) -> Any:
        obj = txn.get(key)
        return obj.get(field) if isinstance(obj, Mapping) else None
    return get


def _first_closed(field: str) -> Accessor:
    def get(txn: Mapping) -> Any:
        closed = txn.get("tradesClosed")
        if isinstance(closed, list) and closed and isinstance(closed[0], Mapping):
            return closed[0].get(field)
        return None
    return get


def _own(field: str) -> Accessor:
    return lambda txn: txn.get(field)


TRADE_ID_ACCESSORS: dict[str, tuple[Accessor, ...]] = {
    FILL: (
        _nested("tradeOpened", "tradeID"),
        _own("tradeID"),
        # Reached only when tradeOpened is present but carries no id
        _first_closed("tradeID"),
    ),
    CLOSE: (
        _own("tradeID"),
        _first_closed("tradeID"),
        _nested("tradeReduced", "tradeID"),
    ),
}

CLOSE_UNITS_ACCESSORS: tuple[Accessor, ...] = (
    _own("units"),
    _first_closed("units"),
    _nested("tradeReduced", "units"),
)

REALIZED_PL_ACCESSORS: tuple[Accessor, ...] = (
    _own("pl"),
    _first_closed("realizedPL"),
    _nested("tradeReduced", "realizedPL"),
)


def first_present(txn: Mapping, accessors: tuple[Accessor, ...]) -> Any:
    """Return the first accessor value that is not ``None`` or ``""``."""
    for accessor in accessors:
        value = accessor(txn)
        if value is not None and value != "":
            return value
    return None


def classify(txn: Mapping) -> Optional[str]:
    """Return ``FILL``, ``CLOSE`` or ``None`` (ignored) for *txn*.

    An order fill that only closes or reduces existing trades is a close.
    """
    txn_type = txn.get("type")
    if txn_type in CLOSE_TYPES:
        return CLOSE
    if txn_type in FILL_TYPES:
        if not txn.get("tradeOpened") and (
            txn.get("tradesClosed") or txn.get("tradeReduced")
        ):
            return CLOSE
        return FILL
    return None


def resolve_trade_id(txn: Mapping, event_class: str) -> Optional[str]:
    """Resolve the trade id *txn* affects, as a string, or ``None``."""
    value = first_present(txn, TRADE_ID_ACCESSORS[event_class])
    return None if value is None else str(value).strip() or None


def to_float(value: Any) -> Optional[float]:
    """Parse a broker decimal string; ``None`` when absent or malformed."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
