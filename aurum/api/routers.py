"""Internal API routers — /accounts, /orders, /orders/preview, /history endpoints.

No business logic, no DB access. Delegates to services and repos.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from aurum.errors import (
    AccountNotActive,
    AccountNotFound,
    InputUnavailable,
    InvalidRiskInput,
    OrderRejected,
    SessionLimitReached,
)
from aurum.history.models import summarize, trade_to_dict
from aurum.risk.bracket import OrderBracket

logger = logging.getLogger("aurum")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_order_service = None    # Set via configure_routers()
_history_service = None  # Set via configure_routers()
_account_repo = None     # Set via configure_routers()
_order_repo = None       # Set via configure_routers()
_account_service = None  # Set via configure_routers()


def configure_routers(
    order_service=None,
    history_service=None,
    account_repo=None,
    order_repo=None,
    account_service=None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        order_service: An ``OrderService`` instance (or duck-type for tests).
        history_service: A ``HistoryService`` instance.
        account_repo: An ``AccountRepo`` instance.
        order_repo: An ``OrderRepo`` instance.
        account_service: An ``AccountService`` instance.
    """
    global _order_service, _history_service, _account_repo, _order_repo, _account_service  # noqa: PLW0603
    _order_service = order_service
    _history_service = history_service
    _account_repo = account_repo
    _order_repo = order_repo
    _account_service = account_service


def _bracket_to_dict(bracket: OrderBracket) -> dict:
    data = asdict(bracket)
    data["signed_units"] = bracket.signed_units
    data["lots"] = bracket.lots
    data["risk_dollars"] = round(bracket.risk_dollars, 2)
    return data


def _parse_order_body(body: dict) -> tuple[int, str, str]:
    account_id = body.get("account_id")
    instrument = body.get("instrument")
    side = body.get("side")
    if not account_id or not instrument or not side:
        raise HTTPException(
            status_code=400,
            detail="account_id, instrument and side are required",
        )
    try:
        return int(account_id), str(instrument), str(side).upper()
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="account_id must be an integer") from exc


_STATUS_CODES: dict[type, int] = {
    AccountNotFound: 404,
    AccountNotActive: 403,
    SessionLimitReached: 403,
    InvalidRiskInput: 422,
    InputUnavailable: 503,
    OrderRejected: 400,
}
_DOMAIN_ERRORS = tuple(_STATUS_CODES)


def _to_http_error(exc: Exception) -> HTTPException:
    """Map a domain error onto its HTTP status code."""
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _require(service, name: str):
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not configured")
    return service


# ── Endpoints ────────────────────────────────────────────────────────────


@router.post("/orders/preview")
async def preview_order(body: dict):
    """Return the bracket an order would be placed with right now."""
    service = _require(_order_service, "order service")
    account_id, instrument, side = _parse_order_body(body)
    try:
        bracket = await service.preview(account_id, instrument, side)
    except _DOMAIN_ERRORS as exc:
        raise _to_http_error(exc) from exc
    return {"bracket": _bracket_to_dict(bracket)}


@router.post("/orders")
async def place_order(body: dict):
    """Size, submit and record a market order."""
    service = _require(_order_service, "order service")
    account_id, instrument, side = _parse_order_body(body)
    try:
        result = await service.place(
            account_id, instrument, side, reason=body.get("reason"),
        )
    except _DOMAIN_ERRORS as exc:
        raise _to_http_error(exc) from exc
    return {
        "order_id": result.order_id,
        "bracket": _bracket_to_dict(result.bracket),
        "fill": asdict(result.fill),
    }


@router.get("/orders")
async def get_orders(
    account_id: int = Query(...),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    status: Optional[str] = Query(default=None),
):
    """Return orders recorded for an account, newest first."""
    if _order_repo is None:
        return {"orders": [], "total": 0}
    result = _order_repo.get_orders(
        account_id, limit=limit, offset=offset, status_filter=status,
    )
    result["has_more"] = offset + limit < result["total"]
    return result


@router.get("/history")
async def get_history(
    account_id: Optional[int] = Query(default=None),
    broker_account_id: Optional[str] = Query(default=None),
    from_time: Optional[str] = Query(default=None, alias="from"),
    to_time: Optional[str] = Query(default=None, alias="to"),
):
    """Return the reconstructed trade ledger of an account."""
    service = _require(_history_service, "history service")
    if account_id is not None:
        account = _account_repo.get_account(account_id) if _account_repo else None
        if account is None:
            raise HTTPException(status_code=404, detail=f"Trading account {account_id} not found")
        broker_account_id = account.broker_account_id
    if not broker_account_id:
        raise HTTPException(
            status_code=400, detail="account_id or broker_account_id is required",
        )

    try:
        result = await service.load(
            broker_account_id, from_time=from_time, to_time=to_time,
        )
    except InputUnavailable as exc:
        raise _to_http_error(exc) from exc

    return {
        "history": [trade_to_dict(t) for t in result.trades],
        "summary": summarize(result.trades),
        "skipped_events": result.skipped_count,
    }


@router.post("/accounts")
async def open_account(body: dict):
    """Create a pending trading account for a purchased plan."""
    service = _require(_account_service, "account service")
    cost = body.get("cost")
    if cost is None:
        raise HTTPException(status_code=400, detail="cost is required")
    try:
        account = service.open_from_plan(cost, user_id=body.get("user_id"))
    except KeyError as exc:
        raise HTTPException(status_code=400, detail=f"No plan is sold at {cost}") from exc
    return {"account": asdict(account)}


@router.post("/accounts/{account_id}/activate")
async def activate_account(account_id: int, body: dict):
    """Approve an account and link it to a broker account."""
    service = _require(_account_service, "account service")
    try:
        account = await service.activate(account_id, body.get("broker_account_id"))
    except _DOMAIN_ERRORS as exc:
        raise _to_http_error(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"account": asdict(account)}
