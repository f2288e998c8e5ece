"""Deposits, withdrawals, transfers and queries over users' wallets."""

from __future__ import annotations

import contextlib
import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Iterator

from walletapi.errors import new_internal, new_invalid_input
from walletapi.models import Transaction, WalletResponse
from walletapi.util import WalletUtil

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_PAGE_SIZE = 100


@contextlib.contextmanager
def _timed(op: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info("[%s] completed in %.6fs", op, time.perf_counter() - start)


@contextlib.contextmanager
def _wrapped(op: str) -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        raise new_internal(op, exc) from exc


class WalletService:
    """The operations the wallet API offers."""

    def __init__(self, wallet_repo: Any, transaction_repo: Any, tx_manager: Any) -> None:
        self.utils = WalletUtil(wallet_repo, transaction_repo, tx_manager)

    def deposit(
        self, user_id: uuid.UUID, amount: Decimal, currency: str, reference: str
    ) -> WalletResponse:
        op = "service.Deposit"
        with _timed(op):
            if amount <= 0:
                raise new_invalid_input(op, "amount", amount)
            with _wrapped(op):
                wallet = self.utils.get_or_create_wallet(user_id, currency)
            return self.utils.update_balance_with_retry(
                wallet, amount, reference, "deposit", _MAX_RETRIES
            )

    def withdraw(
        self, user_id: uuid.UUID, amount: Decimal, currency: str, reference: str
    ) -> WalletResponse:
        op = "service.Withdraw"
        with _timed(op):
            if amount <= 0:
                raise new_invalid_input(op, "amount", amount)
            with _wrapped(op):
                wallet = self.utils.get_or_create_wallet(user_id, currency)
            return self.utils.update_balance_with_retry(
                wallet, -amount, reference, "withdrawal", _MAX_RETRIES
            )

    def transfer(
        self,
        from_user_id: uuid.UUID,
        to_user_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        reference: str,
    ) -> WalletResponse:
        """Move ``amount`` between two users inside one database transaction."""
        op = "service.Transfer"
        with _timed(op):
            if amount <= 0:
                raise new_invalid_input(op, "amount", amount)

            with _wrapped(op):
                tx = self.utils.tx_manager.begin_tx()

            try:
                with _wrapped(op):
                    from_wallet = self.utils.get_or_create_wallet(from_user_id, currency)
                    to_wallet = self.utils.get_or_create_wallet(to_user_id, currency)

                self.utils.validate_transfer(from_wallet, to_wallet, amount)

                new_from_balance = from_wallet.balance - amount
                new_to_balance = to_wallet.balance + amount
                with _wrapped(op):
                    tx.update_wallet_balance_tx(from_wallet.id, new_from_balance)
                    tx.update_wallet_balance_tx(to_wallet.id, new_to_balance)
                    self.utils.create_transfer_transactions(
                        tx, from_wallet, to_wallet, amount, reference
                    )
                    tx.commit()
            except BaseException:
                with contextlib.suppress(Exception):
                    tx.rollback()
                raise

            return WalletResponse(
                id=from_wallet.id,
                user_id=from_wallet.user_id,
                balance=new_from_balance,
                currency=from_wallet.currency,
            )

    def get_balance(self, user_id: uuid.UUID, currency: str) -> Decimal:
        op = "service.GetBalance"
        with _wrapped(op):
            wallet = self.utils.get_or_create_wallet(user_id, currency)
        return wallet.balance

    def get_transaction_history(
        self, user_id: uuid.UUID, currency: str, page: int, page_size: int
    ) -> list[Transaction]:
        """One page of entries; all currencies when ``currency`` is empty."""
        op = "service.GetTransactionHistory"
        if page < 1:
            raise new_invalid_input(op, "page", page)
        if page_size < 1 or page_size > _MAX_PAGE_SIZE:
            raise new_invalid_input(op, "pageSize", page_size)
        offset = (page - 1) * page_size

        if not currency:
            return self.utils.get_all_transactions(user_id, offset, page_size)
        with _wrapped(op):
            wallet = self.utils.get_or_create_wallet(user_id, currency)
        return self.utils.get_transactions(wallet.id, offset, page_size)