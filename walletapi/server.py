"""Application wiring and the command that serves the wallet API."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Any, Sequence

from flask import Flask, jsonify

from walletapi.api import WalletHandler
from walletapi.database import Config, create_schema, new_database
from walletapi.repository import TransactionRepository, WalletRepository
from walletapi.service import WalletService

logger = logging.getLogger(__name__)

PASSWORD = "password"


def get_env(key: str, default: str) -> str:
    """The environment variable ``key``, or ``default`` when it is unset."""
    return os.environ.get(key, default)


def _db_credential() -> str:
    """The database credential from DB_PASSWORD, or the built-in default."""
    return get_env("DB_PASSWORD", PASSWORD)


def create_app(wallet_service: Any) -> Flask:
    """A Flask application serving the wallet routes over ``wallet_service``."""
    app = Flask(__name__)
    handler = WalletHandler(wallet_service)

    routes = (
        ("/deposit", "deposit", handler.deposit, "POST"),
        ("/withdraw", "withdraw", handler.withdraw, "POST"),
        ("/transfer", "transfer", handler.transfer, "POST"),
        ("/balance", "balance", handler.get_balance, "GET"),
        ("/transactions", "transactions", handler.get_transaction_history, "GET"),
    )
    for path, endpoint, view, method in routes:
        app.add_url_rule(
            "/api/v1/wallet" + path, endpoint=endpoint, view_func=view, methods=[method]
        )

    @app.get("/api/v1/health")
    def health():
        return jsonify({"status": "ok"})

    return app


def main(argv: Sequence[str] | None = None) -> int:
    """Connect to the database and serve the API; settings come from the environment."""
    parser = argparse.ArgumentParser(
        prog="walletapi",
        description="Serve the wallet API. Settings are read from DB_HOST, DB_PORT, "
        "DB_USER, DB_PASSWORD, DB_NAME, DB_SSL_MODE and PORT.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    password = _db_credential()
    config = Config(
        host=get_env("DB_HOST", "localhost"),
        port=get_env("DB_PORT", "5432"),
        user=get_env("DB_USER", "postgres"),
        password=password,
        dbname=get_env("DB_NAME", "walletapi"),
        sslmode=get_env("DB_SSL_MODE", "disable"),
    )
    try:
        engine = new_database(config)
    except ConnectionError as exc:
        logger.error("Failed to connect to database: %s", exc)
        return 1

    try:
        create_schema(engine)
        transaction_repo = TransactionRepository(engine)
        service = WalletService(WalletRepository(engine), transaction_repo, transaction_repo)
        app = create_app(service)

        port = get_env("PORT", "8080")
        logger.info("Server starting on port %s", port)
        try:
            app.run(host="0.0.0.0", port=int(port))
        except (OSError, ValueError) as exc:
            logger.error("Failed to start server: %s", exc)
            return 1
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())