"""Wallet and transaction records, request bodies and response bodies."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

_NIL_UUID = uuid.UUID(int=0)


def _decimal_text(value: Decimal) -> str:
    """Plain decimal notation without trailing zeros."""
    if value == 0:
        return "0"
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _parse_amount(raw: Any) -> Decimal:
    if raw is None:
        return Decimal(0)
    if isinstance(raw, bool):
        raise ValueError(f"can't convert {raw!r} to decimal")
    if isinstance(raw, int):
        return Decimal(raw)
    if isinstance(raw, float):
        value = Decimal(repr(raw))
    elif isinstance(raw, str):
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise ValueError(f"can't convert {raw!r} to decimal") from None
    else:
        raise ValueError(f"can't convert {raw!r} to decimal")
    if not value.is_finite():
        raise ValueError(f"can't convert {raw!r} to decimal")
    return value


def _parse_string(raw: Any, name: str) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise ValueError(f"field {name!r} must be a string")
    return raw


def _parse_uuid(raw: Any, name: str) -> uuid.UUID:
    if raw is None:
        return _NIL_UUID
    if not isinstance(raw, str):
        raise ValueError(f"field {name!r} must be a string")
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise ValueError(f"invalid UUID for field {name!r}: {raw!r}") from None


def _field_error(struct: str, field_name: str, tag: str) -> str:
    return (
        f"Key: '{struct}.{field_name}' Error:Field validation for "
        f"'{field_name}' failed on the '{tag}' tag"
    )


def _currency_problem(struct: str, currency: str) -> str | None:
    if not currency:
        return _field_error(struct, "Currency", "required")
    if len(currency) != 3:
        return _field_error(struct, "Currency", "len")
    return None


def _require_mapping(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _parse_money_fields(struct: str, data: Any) -> tuple[Decimal, str, str]:
    body = _require_mapping(data)
    amount = _parse_amount(body.get("amount"))
    currency = _parse_string(body.get("currency"), "currency")
    reference = _parse_string(body.get("reference"), "reference")
    problem = _currency_problem(struct, currency)
    if problem:
        raise ValueError(problem)
    return amount, currency, reference


@dataclass
class Wallet:
    """A user's balance in one currency."""

    id: uuid.UUID
    user_id: uuid.UUID
    currency: str
    balance: Decimal = field(default_factory=lambda: Decimal(0))
    version: int = 0
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Transaction:
    """One ledger entry against a wallet."""

    id: uuid.UUID
    user_id: uuid.UUID
    wallet_id: uuid.UUID
    amount: Decimal
    currency: str
    balance_before: Decimal
    balance_after: Decimal
    tx_type: str
    related_tx_id: uuid.UUID | None = None
    reference: str = ""
    created_at: str = ""


@dataclass(frozen=True)
class DepositRequest:
    """Body of a deposit request."""

    amount: Decimal
    currency: str
    reference: str = ""

    @classmethod
    def from_json(cls, data: Any) -> DepositRequest:
        """Build from decoded JSON, raising ValueError when it fails validation."""
        return cls(*_parse_money_fields("DepositRequest", data))


@dataclass(frozen=True)
class WithdrawalRequest:
    """Body of a withdrawal request."""

    amount: Decimal
    currency: str
    reference: str = ""

    @classmethod
    def from_json(cls, data: Any) -> WithdrawalRequest:
        """Build from decoded JSON, raising ValueError when it fails validation."""
        return cls(*_parse_money_fields("WithdrawalRequest", data))


@dataclass(frozen=True)
class TransferRequest:
    """Body of a transfer request."""

    to_user_id: uuid.UUID
    amount: Decimal
    currency: str
    reference: str = ""

    @classmethod
    def from_json(cls, data: Any) -> TransferRequest:
        """Build from decoded JSON, raising ValueError when it fails validation."""
        body = _require_mapping(data)
        to_user_id = _parse_uuid(body.get("to_user_id"), "to_user_id")
        amount = _parse_amount(body.get("amount"))
        currency = _parse_string(body.get("currency"), "currency")
        reference = _parse_string(body.get("reference"), "reference")

        problems = []
        if to_user_id == _NIL_UUID:
            problems.append(_field_error("TransferRequest", "ToUserId", "required"))
        currency_problem = _currency_problem("TransferRequest", currency)
        if currency_problem:
            problems.append(currency_problem)
        if problems:
            raise ValueError("\n".join(problems))
        return cls(to_user_id, amount, currency, reference)


@dataclass(frozen=True)
class BalanceResponse:
    """Balance of one wallet."""

    balance: Decimal
    currency: str

    def to_json(self) -> dict[str, str]:
        return {"balance": _decimal_text(self.balance), "currency": self.currency}


@dataclass(frozen=True)
class TransactionResponse:
    """A transaction as shown to API clients."""

    id: uuid.UUID
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    currency: str
    tx_type: str
    reference: str
    created_at: str

    @classmethod
    def from_transaction(cls, tx: Transaction) -> TransactionResponse:
        return cls(
            id=tx.id,
            amount=tx.amount,
            balance_before=tx.balance_before,
            balance_after=tx.balance_after,
            currency=tx.currency,
            tx_type=tx.tx_type,
            reference=tx.reference,
            created_at=tx.created_at,
        )

    def to_json(self) -> dict[str, str]:
        # The currency key is capitalised on the wire.
        return {
            "id": str(self.id),
            "amount": _decimal_text(self.amount),
            "balance_before": _decimal_text(self.balance_before),
            "balance_after": _decimal_text(self.balance_after),
            "Currency": self.currency,
            "type": self.tx_type,
            "reference": self.reference,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class WalletResponse:
    """A wallet's state after an operation."""

    id: uuid.UUID
    user_id: uuid.UUID
    balance: Decimal
    currency: str

    def to_json(self) -> dict[str, str]:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "balance": _decimal_text(self.balance),
            "currency": self.currency,
        }