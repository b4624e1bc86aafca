"""Reference price selection — pure function, no I/O."""

import math
from typing import Optional

from aurum.broker.models import Quote

PRICE_SOURCES = ("mid", "bid", "ask")


def _usable(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def select_reference_price(quote: Optional[Quote], source: str = "mid") -> Optional[float]:
    """Pick the price used to size an order from *quote*.

    ``mid`` prefers the closeout bid/ask midpoint, then the ladder
    midpoint, then a lone bid, then a lone ask.  ``bid`` / ``ask`` use
    that side only (ladder first, closeout second).

    Returns ``None`` when no usable price exists; callers must refuse to
    size rather than substitute a price.

    Raises:
        ValueError: If *source* is not one of ``PRICE_SOURCES``.
    """
    if source not in PRICE_SOURCES:
        raise ValueError(f"source must be one of {PRICE_SOURCES}, got '{source}'")
    if quote is None:
        return None

    if source == "bid":
        return next((p for p in (quote.bid, quote.closeout_bid) if _usable(p)), None)
    if source == "ask":
        return next((p for p in (quote.ask, quote.closeout_ask) if _usable(p)), None)

    if _usable(quote.closeout_bid) and _usable(quote.closeout_ask):
        return (quote.closeout_bid + quote.closeout_ask) / 2
    if _usable(quote.bid) and _usable(quote.ask):
        return (quote.bid + quote.ask) / 2
    if _usable(quote.bid):
        return quote.bid
    if _usable(quote.ask):
        return quote.ask
    return None
