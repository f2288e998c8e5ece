# walletapi

A small HTTP service that keeps multi-currency wallets for users. It supports
deposits, withdrawals, transfers between users, balance lookups and paged
transaction history. Balances are kept as exact decimals. Deposits and
withdrawals use optimistic locking with up to three attempts, and transfers
run inside a single database transaction.

## Installation

```
pip install .
```

The server connects to PostgreSQL through SQLAlchemy, so a PostgreSQL driver
that SQLAlchemy supports must also be installed in the same environment.

## Running the server

```
walletapi-server
```

The command takes no options. It reads its settings from the environment:

| Variable      | Default     |
|---------------|-------------|
| `DB_HOST`     | `localhost` |
| `DB_PORT`     | `5432`      |
| `DB_USER`     | `postgres`  |
| `DB_PASSWORD` | `password`  |
| `DB_NAME`     | `walletapi` |
| `DB_SSL_MODE` | `disable`   |
| `PORT`        | `8080`      |

For example:

```
DB_USER=user DB_PASSWORD=password PORT=8080 walletapi-server
```

On start it checks that the database answers, creates the `wallets` and
`transactions` tables if they are missing, and serves on all interfaces using
Flask's built-in server. It exits with status 1 if the database cannot be
reached or the server cannot start.

## HTTP API

Every wallet endpoint identifies the acting user with the `user_id` query
parameter, which must be a UUID.

| Method | Path                          | Body / query                                              |
|--------|-------------------------------|-----------------------------------------------------------|
| POST   | `/api/v1/wallet/deposit`      | `{"amount": "10.50", "currency": "USD", "reference": "…"}` |
| POST   | `/api/v1/wallet/withdraw`     | `{"amount": "5", "currency": "USD", "reference": "…"}`     |
| POST   | `/api/v1/wallet/transfer`     | `{"to_user_id": "<uuid>", "amount": "5", "currency": "USD", "reference": "…"}` |
| GET    | `/api/v1/wallet/balance`      | `currency` (defaults to `USD`)                            |
| GET    | `/api/v1/wallet/transactions` | `currency` (optional; all currencies when omitted), `page` (default 1), `page_size` (1–100, default 10) |
| GET    | `/api/v1/health`              | —                                                         |

Rules enforced by the service:

- `currency` in request bodies is required and must be exactly three characters.
- `amount` may be a JSON number or a string and must be positive.
- A wallet is created with a zero balance the first time a user touches a currency.
- Withdrawals and transfers fail with "insufficient balance" when the source
  wallet does not hold enough funds.
- Transfers record two transactions, one on each wallet; the credit entry
  refers to the debit entry.

Deposit, withdraw and transfer answer with the acting user's wallet:
`{"id", "user_id", "balance", "currency"}`. The balance endpoint answers with
`{"balance", "currency"}`. The history endpoint answers with a list of entries
carrying `id`, `amount`, `balance_before`, `balance_after`, `Currency`, `type`,
`reference` and `created_at`, newest first, or `null` when there are none.
Amounts are sent as decimal strings.

Errors are returned as `{"error": "<message>"}`: status 400 for a bad
`user_id`, a missing or invalid body, a non-positive amount or bad paging
values, and status 500 for any failure reported by the service, with the
error's text as the message.

## Using it as a library

The pieces can be wired together directly:

```python
from walletapi.database import Config, new_database, create_schema
from walletapi.repository import WalletRepository, TransactionRepository
from walletapi.service import WalletService
from walletapi.server import create_app

password = "password"
engine = new_database(Config(host="localhost", port="5432", user="user",
                             password=password, dbname="walletapi",
                             sslmode="disable"))
create_schema(engine)

wallets = WalletRepository(engine)
transactions = TransactionRepository(engine)
service = WalletService(wallets, transactions, transactions)

app = create_app(service)
```

`new_database` also accepts a SQLAlchemy URL or URL string, for example
`new_database("sqlite://")` for an in-memory database, and raises
`ConnectionError` when the database cannot be reached.

`WalletService` offers `deposit`, `withdraw`, `transfer`, `get_balance` and
`get_transaction_history`. It raises `walletapi.errors.WalletError` for every
failure; its `error_type` is one of the `ErrorType` members
(`INVALID_REQUEST`, `NOT_FOUND`, `INSUFFICIENT_FUND`, `CONFLICT`,
`INTERNAL_ERROR`), and its text has the form `TYPE [operation]: message`.
`TransactionRepository.begin_tx` returns a `WalletTx`, which can be used as a
context manager that commits on normal exit and rolls back on an exception.

## What it does not do

There is no authentication: any caller may act for any `user_id`. The server
creates missing tables but does not migrate existing ones.

## Tests

```
pip install ".[test]"
pytest
```