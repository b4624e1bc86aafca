"""Aurum — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
serving the API, sizing a single order, and printing trade history.
"""

import logging

from fastapi import FastAPI

from aurum.api.routers import router

app = FastAPI(title="Aurum Trade Core API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("aurum")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command."""
    import argparse

    parser = argparse.ArgumentParser(description="Aurum trade core")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP API")

    size = sub.add_parser("size", help="Print the bracket for one order")
    size.add_argument("instrument", help="e.g. EUR_USD")
    size.add_argument("side", choices=["BUY", "SELL", "buy", "sell"])
    size.add_argument("--equity", type=float, required=True)
    size.add_argument("--price", type=float, required=True, help="Reference price")
    size.add_argument("--plan", choices=["standard", "pro"], default="standard")
    size.add_argument(
        "--conversion-rate",
        type=float,
        default=None,
        help="USD per unit of quote currency (cross pairs)",
    )

    history = sub.add_parser("history", help="Print reconstructed trade history")
    history.add_argument("--account", default=None, help="Broker account id")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "size":
        _run_size(args)
        return

    from aurum.config import load_config

    config = load_config()
    logging.getLogger("aurum").setLevel(config.log_level.upper())

    if args.command == "serve":
        _run_server(config)
    else:
        _run_history(config, args.account)


def _run_size(args) -> None:
    """Compute and print one bracket — no network access."""
    import json
    from dataclasses import asdict

    from aurum.errors import InvalidRiskInput
    from aurum.risk.bracket import RiskParameters, compute_bracket
    from aurum.risk.plans import STOP_PIPS, reward_pips_for

    try:
        bracket = compute_bracket(
            RiskParameters(
                instrument=args.instrument,
                account_equity=args.equity,
                direction=args.side.upper(),
                reference_price=args.price,
                stop_pips=STOP_PIPS,
                reward_pips=reward_pips_for(args.plan),
                quote_conversion_rate=args.conversion_rate,
            )
        )
    except InvalidRiskInput as exc:
        logger.error("Cannot size order: %s", exc)
        raise SystemExit(2) from exc
    print(json.dumps({**asdict(bracket), "signed_units": bracket.signed_units}, indent=2))


def _run_server(config) -> None:
    """Wire repositories, broker and services, then serve the API."""
    import uvicorn

    from aurum.api.routers import configure_routers
    from aurum.broker.oanda_client import OandaClient
    from aurum.repos.account_repo import AccountRepo
    from aurum.repos.db import init_db
    from aurum.repos.order_repo import OrderRepo
    from aurum.services.account_service import AccountService
    from aurum.services.history_service import HistoryService
    from aurum.services.order_service import OrderService

    init_db(config.db_path)
    broker = OandaClient(config)
    account_repo = AccountRepo(config.db_path)
    order_repo = OrderRepo(config.db_path)
    configure_routers(
        order_service=OrderService(config, broker, account_repo, order_repo),
        history_service=HistoryService(config, broker),
        account_repo=account_repo,
        order_repo=order_repo,
        account_service=AccountService(broker, account_repo),
    )

    if config.oanda_environment == "live":
        logger.warning("LIVE TRADING ENVIRONMENT — real money at risk!")
    logger.info("API available at http://localhost:%d", config.health_port)
    uvicorn.run(app, host="0.0.0.0", port=config.health_port, log_level="info")


def _run_history(config, account_id: str | None) -> None:
    """Fetch and print the trade ledger of a broker account."""
    import asyncio
    import json

    from aurum.broker.oanda_client import OandaClient
    from aurum.history.models import summarize, trade_to_dict
    from aurum.services.history_service import HistoryService

    service = HistoryService(config, OandaClient(config))
    result = asyncio.run(service.load(account_id))
    print(json.dumps(
        {
            "history": [trade_to_dict(t) for t in result.trades],
            "summary": summarize(result.trades),
            "skipped_events": result.skipped_count,
        },
        indent=2,
    ))


if __name__ == "__main__":
    _run_cli()
