"""Storage of wallets and transactions, with explicit database transactions."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import SQLAlchemyError

from walletapi.database import transactions_table, wallets_table
from walletapi.errors import (
    WalletError,
    new_insufficient_balance,
    new_internal,
    new_not_found,
)
from walletapi.models import Transaction, Wallet

_TX_DONE = "transaction has already been committed or rolled back"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _wallet_from_row(row: Row) -> Wallet:
    data = row._mapping
    return Wallet(
        id=data["id"],
        user_id=data["user_id"],
        currency=data["currency"],
        balance=data["balance"],
        version=data["version"],
        created_at=_text(data["created_at"]),
        updated_at=_text(data["updated_at"]),
    )


def _transaction_from_row(row: Row) -> Transaction:
    data = row._mapping
    return Transaction(
        id=data["id"],
        user_id=data["user_id"],
        wallet_id=data["wallet_id"],
        amount=data["amount"],
        currency=data["currency"],
        balance_before=data["balance_before"],
        balance_after=data["balance_after"],
        tx_type=data["type"],
        related_tx_id=data["related_tx_id"],
        reference=_text(data["reference"]),
        created_at=_text(data["created_at"]),
    )


def _transaction_values(tx: Transaction) -> dict[str, Any]:
    return {
        "id": tx.id,
        "wallet_id": tx.wallet_id,
        "amount": tx.amount,
        "balance_before": tx.balance_before,
        "balance_after": tx.balance_after,
        "type": tx.tx_type,
        "related_tx_id": tx.related_tx_id,
        "reference": tx.reference,
        "currency": tx.currency,
        "user_id": tx.user_id,
    }


def _fetch_wallet(conn: Connection, statement, op: str) -> Wallet:
    try:
        row = conn.execute(statement).first()
    except SQLAlchemyError as exc:
        raise new_internal(op, exc) from exc
    if row is None:
        raise new_not_found(op, "wallet")
    return _wallet_from_row(row)


def _wallet_for_update_query(wallet_id: uuid.UUID):
    return (
        select(wallets_table)
        .where(wallets_table.c.id == wallet_id)
        .with_for_update()
    )


class WalletRepository:
    """Reads and writes wallet rows."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_wallet(self, wallet: Wallet) -> None:
        op = "wallet.Create"
        statement = wallets_table.insert().values(
            id=wallet.id,
            user_id=wallet.user_id,
            currency=wallet.currency,
            balance=wallet.balance,
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(statement)
        except SQLAlchemyError as exc:
            # Any insert failure is reported as this error type.
            raise new_insufficient_balance(op) from exc

    def get_wallet(self, wallet_id: uuid.UUID) -> Wallet:
        op = "wallet.GetByID"
        statement = select(wallets_table).where(wallets_table.c.id == wallet_id)
        with self._connect(op) as conn:
            return _fetch_wallet(conn, statement, op)

    def get_wallet_by_user_and_currency(
        self, user_id: uuid.UUID, currency: str
    ) -> Wallet:
        op = "wallet.GetByUserAndCurrency"
        statement = select(wallets_table).where(
            wallets_table.c.user_id == user_id,
            wallets_table.c.currency == currency,
        )
        with self._connect(op) as conn:
            return _fetch_wallet(conn, statement, op)

    def get_wallet_for_update(self, wallet_id: uuid.UUID) -> Wallet:
        op = "wallet.GetForUpdate"
        with self._connect(op) as conn:
            return _fetch_wallet(conn, _wallet_for_update_query(wallet_id), op)

    def update_wallet_balance(
        self, wallet_id: uuid.UUID, new_balance: Decimal, version: int
    ) -> int:
        """Set the balance if the version still matches; return rows changed."""
        op = "wallet.UpdateBalance"
        statement = (
            wallets_table.update()
            .where(
                wallets_table.c.id == wallet_id,
                wallets_table.c.version == version,
            )
            .values(balance=new_balance, version=wallets_table.c.version + 1)
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(statement)
                return result.rowcount
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc

    def update_wallet_balance_tx(
        self, conn: Connection, wallet_id: uuid.UUID, new_balance: Decimal
    ) -> None:
        """Set the balance inside an open database transaction."""
        op = "wallet.UpdateBalanceTx"
        statement = (
            wallets_table.update()
            .where(wallets_table.c.id == wallet_id)
            .values(balance=new_balance)
        )
        try:
            conn.execute(statement)
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc

    def _connect(self, op: str) -> Connection:
        try:
            return self.engine.connect()
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc


class TransactionRepository:
    """Reads and writes ledger entries and opens database transactions."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_transaction(self, tx: Transaction) -> None:
        op = "transaction.Create"
        try:
            with self.engine.begin() as conn:
                conn.execute(transactions_table.insert().values(**_transaction_values(tx)))
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc

    def get_transactions(
        self, wallet_id: uuid.UUID, offset: int, limit: int
    ) -> list[Transaction]:
        """Entries of one wallet, newest first."""
        return self._select_page(
            "transaction.GetByWallet",
            transactions_table.c.wallet_id == wallet_id,
            offset,
            limit,
        )

    def get_all_transactions(
        self, user_id: uuid.UUID, offset: int, limit: int
    ) -> list[Transaction]:
        """Entries of all of a user's wallets, newest first."""
        return self._select_page(
            "transaction.GetByWallet",
            transactions_table.c.user_id == user_id,
            offset,
            limit,
        )

    def create_transaction_tx(self, conn: Connection, tx: Transaction) -> None:
        """Insert an entry inside an open database transaction."""
        op = "transaction.CreateTx"
        try:
            conn.execute(transactions_table.insert().values(**_transaction_values(tx)))
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc

    def begin_tx(self) -> WalletTx:
        """Open a database transaction for a multi-step wallet update."""
        op = "transaction.BeginTx"
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc
        try:
            conn.begin()
        except SQLAlchemyError as exc:
            conn.close()
            raise new_internal(op, exc) from exc
        return WalletTx(conn, WalletRepository(self.engine), self)

    def _select_page(self, op: str, condition, offset: int, limit: int) -> list[Transaction]:
        statement = (
            select(transactions_table)
            .where(condition)
            .order_by(transactions_table.c.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(statement).all()
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc
        return [_transaction_from_row(row) for row in rows]


class WalletTx:
    """An open database transaction over wallets and their entries.

    Used as a context manager it commits on normal exit and rolls back
    when an exception escapes.
    """

    def __init__(
        self,
        conn: Connection,
        wallet_repo: WalletRepository,
        transaction_repo: TransactionRepository,
    ) -> None:
        self.conn = conn
        self.wallet_repo = wallet_repo
        self.transaction_repo = transaction_repo
        self._done = False

    def commit(self) -> None:
        self._finish("walletTx.Commit", self.conn.commit)

    def rollback(self) -> None:
        self._finish("walletTx.Rollback", self.conn.rollback)

    def get_wallet_for_update(self, wallet_id: uuid.UUID) -> Wallet:
        op = "walletTx.GetForUpdate"
        return _fetch_wallet(self.conn, _wallet_for_update_query(wallet_id), op)

    def update_wallet_balance_tx(self, wallet_id: uuid.UUID, new_balance: Decimal) -> None:
        op = "walletTx.UpdateBalance"
        try:
            self.wallet_repo.update_wallet_balance_tx(self.conn, wallet_id, new_balance)
        except WalletError as exc:
            raise new_internal(op, exc) from exc

    def create_transaction_tx(self, tx: Transaction) -> None:
        op = "walletTx.CreateTransaction"
        try:
            self.transaction_repo.create_transaction_tx(self.conn, tx)
        except WalletError as exc:
            raise new_internal(op, exc) from exc

    def __enter__(self) -> WalletTx:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._done:
            return False
        if exc_type is None:
            self.commit()
        else:
            try:
                self.rollback()
            except WalletError:
                pass
        return False

    def _finish(self, op: str, action) -> None:
        if self._done:
            raise new_internal(op, RuntimeError(_TX_DONE))
        self._done = True
        try:
            action()
        except SQLAlchemyError as exc:
            raise new_internal(op, exc) from exc
        finally:
            self.conn.close()