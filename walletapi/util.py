"""Wallet operations shared by the service layer."""

from __future__ import annotations

import time
import uuid
from decimal import Decimal
from typing import Any

from walletapi.errors import (
    is_not_found,
    new_conflict,
    new_currency_mismatch,
    new_insufficient_balance,
    new_internal,
)
from walletapi.models import Transaction, Wallet, WalletResponse

_RETRY_DELAY_SECONDS = 0.1


class WalletUtil:
    """Wallet lookups, optimistic balance updates and ledger bookkeeping."""

    def __init__(self, wallet_repo: Any, transaction_repo: Any, tx_manager: Any) -> None:
        self.wallet_repo = wallet_repo
        self.transaction_repo = transaction_repo
        self.tx_manager = tx_manager

    def get_or_create_wallet(self, user_id: uuid.UUID, currency: str) -> Wallet:
        """Return the user's wallet in ``currency``, creating an empty one if missing."""
        op = "utils.GetOrCreateWallet"
        try:
            return self.wallet_repo.get_wallet_by_user_and_currency(user_id, currency)
        except Exception as exc:
            if not is_not_found(exc):
                raise new_internal(op, exc) from exc

        wallet = Wallet(
            id=uuid.uuid4(),
            user_id=user_id,
            currency=currency,
            balance=Decimal(0),
        )
        try:
            self.wallet_repo.create_wallet(wallet)
        except Exception as exc:
            raise new_internal(op, exc) from exc
        return wallet

    def update_balance_with_retry(
        self,
        wallet: Wallet,
        amount: Decimal,
        reference: str,
        tx_type: str,
        max_retries: int,
    ) -> WalletResponse:
        """Apply ``amount`` under optimistic locking and record the entry.

        Raises an insufficient-balance error when the result would be
        negative, and a conflict error when every attempt loses the race.
        """
        op = "utils.UpdateBalanceWithRetry"
        new_balance = wallet.balance + amount
        if new_balance < 0:
            raise new_insufficient_balance(op)

        for _ in range(max_retries):
            try:
                rows = self.wallet_repo.update_wallet_balance(
                    wallet.id, new_balance, wallet.version
                )
            except Exception as exc:
                raise new_internal(op, exc) from exc

            if rows == 1:
                entry = Transaction(
                    id=uuid.uuid4(),
                    user_id=wallet.user_id,
                    wallet_id=wallet.id,
                    amount=amount,
                    currency=wallet.currency,
                    balance_before=wallet.balance,
                    balance_after=new_balance,
                    tx_type=tx_type,
                    reference=reference,
                )
                try:
                    self.transaction_repo.create_transaction(entry)
                except Exception as exc:
                    raise new_internal(op, exc) from exc
                return WalletResponse(
                    id=wallet.id,
                    user_id=wallet.user_id,
                    balance=new_balance,
                    currency=wallet.currency,
                )
            time.sleep(_RETRY_DELAY_SECONDS)

        raise new_conflict(op, "optimistic lock conflict")

    def validate_transfer(self, from_wallet: Wallet, to_wallet: Wallet, amount: Decimal) -> None:
        """Raise unless ``amount`` can move from one wallet to the other."""
        op = "utils.ValidateTransfer"
        if from_wallet.currency != to_wallet.currency:
            raise new_currency_mismatch(op)
        if from_wallet.balance < amount:
            raise new_insufficient_balance(op)

    def create_transfer_transactions(
        self,
        tx: Any,
        from_wallet: Wallet,
        to_wallet: Wallet,
        amount: Decimal,
        reference: str,
    ) -> None:
        """Record the debit and the linked credit of a transfer inside ``tx``."""
        op = "utils.CreateTransferTransactions"
        debit_id = uuid.uuid4()
        debit = Transaction(
            id=debit_id,
            user_id=from_wallet.user_id,
            wallet_id=from_wallet.id,
            amount=-amount,
            currency=from_wallet.currency,
            balance_before=from_wallet.balance,
            balance_after=from_wallet.balance - amount,
            tx_type="transfer",
            reference=reference,
        )
        credit = Transaction(
            id=uuid.uuid4(),
            user_id=to_wallet.user_id,
            wallet_id=to_wallet.id,
            amount=amount,
            currency=to_wallet.currency,
            balance_before=to_wallet.balance,
            balance_after=to_wallet.balance + amount,
            tx_type="transfer",
            related_tx_id=debit_id,
            reference=reference,
        )
        for entry in (debit, credit):
            try:
                tx.create_transaction_tx(entry)
            except Exception as exc:
                raise new_internal(op, exc) from exc

    def get_transactions(
        self, wallet_id: uuid.UUID, offset: int, limit: int
    ) -> list[Transaction]:
        """A page of one wallet's entries."""
        op = "utils.GetTransactions"
        try:
            return self.transaction_repo.get_transactions(wallet_id, offset, limit)
        except Exception as exc:
            raise new_internal(op, exc) from exc

    def get_all_transactions(
        self, user_id: uuid.UUID, offset: int, limit: int
    ) -> list[Transaction]:
        """A page of the entries of all of a user's wallets."""
        op = "utils.GetTransactions"
        try:
            return self.transaction_repo.get_all_transactions(user_id, offset, limit)
        except Exception as exc:
            raise new_internal(op, exc) from exc