"""One-trade-per-session rule.

Sessions are UTC hour windows checked in priority order; the first window
containing the current hour is the active session.  An account may place
only one order per active session window.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from aurum.errors import SessionLimitReached

logger = logging.getLogger("aurum")

# (name, start hour inclusive, end hour exclusive) — UTC
SESSIONS: list[tuple[str, int, int]] = [
    ("New York", 12, 21),
    ("London", 7, 16),
    ("Tokyo", 23, 8),
    ("Sydney", 22, 7),
]


@dataclass(frozen=True)
class SessionWindow:
    """The trading session a moment in time falls into."""

    name: str
    start: datetime
    end: datetime


def is_in_session(utc_hour: int, session_start: int, session_end: int) -> bool:
    """Return True if *utc_hour* falls within ``[session_start, session_end)``.

    Windows whose start is later than their end wrap past midnight.
    """
    if session_start < session_end:
        return session_start <= utc_hour < session_end
    return utc_hour >= session_start or utc_hour < session_end


def session_window(now: datetime) -> SessionWindow:
    """Return the session window containing *now* (an aware UTC datetime).

    A wrapping window entered after midnight started the previous day.
    When no session matches, a two-hour window centred on *now* is used.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    for name, start_hour, end_hour in SESSIONS:
        if not is_in_session(now.hour, start_hour, end_hour):
            continue
        start = midnight + timedelta(hours=start_hour)
        if start_hour > end_hour and now.hour < end_hour:
            start -= timedelta(days=1)
        end = start.replace(hour=end_hour)
        if end <= start:
            end += timedelta(days=1)
        return SessionWindow(name=name, start=start, end=end)
    return SessionWindow(
        name="Unknown",
        start=now - timedelta(hours=1),
        end=now + timedelta(hours=1),
    )


class SessionGuard:
    """Blocks a second order for the same account within one session.

    Args:
        order_repo: Anything with ``find_in_window(account_id, start, end)``
            returning the first order row placed in the window (or ``None``).
        enabled: ``False`` disables the rule entirely.
    """

    def __init__(self, order_repo, enabled: bool = True) -> None:
        self._order_repo = order_repo
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def check(self, account_id: int, now: datetime) -> Optional[SessionWindow]:
        """Raise ``SessionLimitReached`` if the account already traded.

        Returns the active window (``None`` when the guard is disabled).
        """
        if not self._enabled:
            logger.info("Session limit bypassed for account %s", account_id)
            return None

        window = session_window(now)
        existing = self._order_repo.find_in_window(
            account_id, window.start.isoformat(), window.end.isoformat(),
        )
        if existing is not None:
            raise SessionLimitReached(window.name, existing["placed_at"])
        return window
