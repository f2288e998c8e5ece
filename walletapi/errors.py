"""Typed errors raised by the wallet service layers."""

from __future__ import annotations

import enum
from typing import Any


class ErrorType(str, enum.Enum):
    """Category of a wallet error."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_FUND = "INSUFFICIENT_FUND"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class WalletError(Exception):
    """An error carrying its category, the failing operation and an optional cause."""

    def __init__(
        self,
        error_type: ErrorType | str,
        op: str,
        message: str,
        cause: BaseException | None = None,
    ) -> None:
        self.error_type = ErrorType(error_type)
        self.op = op
        self.message = message
        self.cause = cause
        super().__init__(self._render())
        if cause is not None:
            self.__cause__ = cause

    def _render(self) -> str:
        text = f"{self.error_type.value} [{self.op}]: {self.message}"
        if self.cause is not None:
            text += f" -> {self.cause}"
        return text

    def __str__(self) -> str:
        return self._render()


def new_invalid_input(op: str, field: str, value: Any) -> WalletError:
    """Error for a request field holding an unacceptable value."""
    return WalletError(ErrorType.INVALID_REQUEST, op, f"invalid {field}: {value}")


def new_not_found(op: str, resource: str) -> WalletError:
    """Error for a resource that does not exist."""
    return WalletError(ErrorType.NOT_FOUND, op, f"{resource} not found")


def new_insufficient_balance(op: str) -> WalletError:
    """Error for an operation that would overdraw a wallet."""
    return WalletError(ErrorType.INSUFFICIENT_FUND, op, "insufficient balance")


def new_currency_mismatch(op: str) -> WalletError:
    """Error for an operation between wallets of different currencies."""
    return WalletError(ErrorType.INVALID_REQUEST, op, "currency mismatch")


def new_internal(op: str, err: BaseException | None) -> WalletError:
    """Error for an unexpected failure, wrapping its cause."""
    return WalletError(ErrorType.INTERNAL, op, "internal server error", err)


def new_conflict(op: str, msg: str) -> WalletError:
    """Error for a conflicting concurrent update."""
    return WalletError(ErrorType.CONFLICT, op, msg)


def is_not_found(err: BaseException | None) -> bool:
    """Whether ``err`` is itself a not-found wallet error."""
    return isinstance(err, WalletError) and err.error_type is ErrorType.NOT_FOUND


def wrap_internal(op: str, err: BaseException | None) -> WalletError | None:
    """Wrap ``err`` as an internal error, or return None when there is no error."""
    if err is None:
        return None
    return new_internal(op, err)