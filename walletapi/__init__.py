"""Wallet service: deposits, withdrawals, transfers and transaction history over HTTP."""

__version__ = "0.1.0"