"""Domain exceptions shared by the sizing core, the services and the API."""


class InvalidRiskInput(ValueError):
    """Sizing inputs that can never produce a valid order (never retried)."""


class InputUnavailable(RuntimeError):
    """Data the core needs could not be fetched from the broker."""


class PriceUnavailable(InputUnavailable):
    """No live price for the instrument; no fallback price is ever used."""

    def __init__(self, instrument: str, status: str = "unavailable") -> None:
        self.instrument = instrument
        self.status = status
        super().__init__(
            f"Live market price unavailable for {instrument} (status: {status}). "
            "Ensure the instrument is tradeable on the attached account and "
            "the market is open."
        )


class OrderRejected(RuntimeError):
    """The broker rejected the order or did not fill it."""

    def __init__(self, reason: str, status_code: int = 400) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Broker rejected or did not fill the order: {reason}")


class SessionLimitReached(RuntimeError):
    """An order was already placed for this account in the current session."""

    def __init__(self, session_name: str, placed_at: str) -> None:
        self.session_name = session_name
        self.placed_at = placed_at
        super().__init__(
            f"Only one trade is allowed per {session_name} session. "
            f"A trade was already placed at {placed_at}; wait for the "
            "session window to close before placing another."
        )


class AccountNotFound(LookupError):
    """No trading account with the requested id."""


class AccountNotActive(RuntimeError):
    """The trading account is not approved or has no linked broker account."""


class OrderStatusUnknown(InputUnavailable):
    """The order was sent but the broker never confirmed the outcome."""

    def __init__(self, instrument: str, detail: str) -> None:
        self.instrument = instrument
        self.detail = detail
        super().__init__(
            f"Broker did not confirm the {instrument} order ({detail}). "
            "It may have filled; check the broker account before retrying."
        )
