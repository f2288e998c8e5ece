"""HTTP handlers for the wallet endpoints."""

from __future__ import annotations

import functools
import json
import re
import uuid
from http import HTTPStatus
from typing import Any, Callable

from flask import jsonify, request

from walletapi.models import (
    BalanceResponse,
    DepositRequest,
    TransactionResponse,
    TransferRequest,
    WithdrawalRequest,
)

_DEFAULT_CURRENCY = "USD"
_DEFAULT_PAGE = "1"
_DEFAULT_PAGE_SIZE = "10"
_MAX_PAGE_SIZE = 100
_INTEGER = re.compile(r"[+-]?\d+")


class _Failure(Exception):
    """A request that ends with an error body and status."""

    def __init__(self, status: HTTPStatus, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


def _handled(view: Callable[[Any], Any]) -> Callable[[Any], Any]:
    @functools.wraps(view)
    def wrapper(self):
        try:
            return view(self)
        except _Failure as failure:
            return jsonify({"error": failure.message}), failure.status

    return wrapper


def _user_id() -> uuid.UUID:
    try:
        return uuid.UUID(request.args.get("user_id", ""))
    except ValueError:
        raise _Failure(HTTPStatus.BAD_REQUEST, "invalid user ID") from None


def _bind(model_cls):
    raw = request.get_data(as_text=True)
    if not raw.strip():
        raise _Failure(HTTPStatus.BAD_REQUEST, "EOF")
    try:
        return model_cls.from_json(json.loads(raw))
    except ValueError as exc:
        raise _Failure(HTTPStatus.BAD_REQUEST, str(exc)) from None


def _check_positive(amount) -> None:
    if amount <= 0:
        raise _Failure(HTTPStatus.BAD_REQUEST, "amount must be positive")


def _call(operation: Callable[..., Any], *args: Any) -> Any:
    try:
        return operation(*args)
    except Exception as exc:
        raise _Failure(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc)) from exc


def _int_query(name: str, default: str) -> int | None:
    raw = request.args.get(name, default)
    if not _INTEGER.fullmatch(raw):
        return None
    return int(raw)


class WalletHandler:
    """Flask view functions bound to a wallet service."""

    def __init__(self, wallet_service: Any) -> None:
        self.wallet_service = wallet_service

    @_handled
    def deposit(self):
        user_id = _user_id()
        req = _bind(DepositRequest)
        _check_positive(req.amount)
        wallet = _call(
            self.wallet_service.deposit, user_id, req.amount, req.currency, req.reference
        )
        return jsonify(wallet.to_json()), HTTPStatus.OK

    @_handled
    def withdraw(self):
        user_id = _user_id()
        req = _bind(WithdrawalRequest)
        _check_positive(req.amount)
        wallet = _call(
            self.wallet_service.withdraw, user_id, req.amount, req.currency, req.reference
        )
        return jsonify(wallet.to_json()), HTTPStatus.OK

    @_handled
    def transfer(self):
        from_user_id = _user_id()
        req = _bind(TransferRequest)
        _check_positive(req.amount)
        wallet = _call(
            self.wallet_service.transfer,
            from_user_id,
            req.to_user_id,
            req.amount,
            req.currency,
            req.reference,
        )
        return jsonify(wallet.to_json()), HTTPStatus.OK

    @_handled
    def get_balance(self):
        user_id = _user_id()
        currency = request.args.get("currency", "") or _DEFAULT_CURRENCY
        balance = _call(self.wallet_service.get_balance, user_id, currency)
        return jsonify(BalanceResponse(balance, currency).to_json()), HTTPStatus.OK

    @_handled
    def get_transaction_history(self):
        user_id = _user_id()
        currency = request.args.get("currency", "")

        page = _int_query("page", _DEFAULT_PAGE)
        if page is None or page < 1:
            raise _Failure(HTTPStatus.BAD_REQUEST, "invalid page number")

        page_size = _int_query("page_size", _DEFAULT_PAGE_SIZE)
        if page_size is None or page_size < 1 or page_size > _MAX_PAGE_SIZE:
            raise _Failure(HTTPStatus.BAD_REQUEST, "invalid page size")

        transactions = _call(
            self.wallet_service.get_transaction_history,
            user_id,
            currency,
            page,
            page_size,
        )
        # An empty history is sent as null.
        body = [TransactionResponse.from_transaction(tx).to_json() for tx in transactions]
        return jsonify(body or None), HTTPStatus.OK