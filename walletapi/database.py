"""Database connection settings, engine creation and table definitions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    Uuid,
    create_engine,
    text,
)
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

_MAX_CONNECTIONS = 25
_CONNECTION_LIFETIME_SECONDS = 5 * 60
_CONNECT_TIMEOUT_SECONDS = 5


@dataclass(frozen=True)
class Config:
    """PostgreSQL connection settings."""

    host: str
    port: str
    user: str
    password: str
    dbname: str
    sslmode: str

    def url(self) -> URL:
        """The connection URL for these settings."""
        try:
            port = int(self.port)
        except ValueError:
            raise ValueError(f"invalid port: {self.port!r}") from None
        return URL.create(
            "postgresql",
            username=self.user,
            password=self.password,
            host=self.host,
            port=port,
            database=self.dbname,
            query={"sslmode": self.sslmode},
        )


class _DecimalText(TypeDecorator):
    """Exact decimal stored as text, portable across backends."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(Decimal(value), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


metadata = MetaData()

wallets_table = Table(
    "wallets",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", Uuid, nullable=False),
    Column("currency", String, nullable=False),
    Column("balance", _DecimalText, nullable=False, server_default="0"),
    Column("version", Integer, nullable=False, server_default="0"),
    Column("created_at", String, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    Column("updated_at", String, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    UniqueConstraint("user_id", "currency", name="wallets_user_currency_key"),
)

transactions_table = Table(
    "transactions",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("wallet_id", Uuid, ForeignKey("wallets.id"), nullable=False),
    Column("user_id", Uuid, nullable=False),
    Column("amount", _DecimalText, nullable=False),
    Column("currency", String, nullable=False),
    Column("balance_before", _DecimalText, nullable=False),
    Column("balance_after", _DecimalText, nullable=False),
    Column("type", String, nullable=False),
    Column("related_tx_id", Uuid, nullable=True),
    Column("reference", String, nullable=False, server_default=""),
    Column("created_at", String, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
)


def _engine_options(url: URL) -> dict:
    backend = url.get_backend_name()
    if backend == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options
    options = {
        "pool_size": _MAX_CONNECTIONS,
        "max_overflow": 0,
        "pool_recycle": _CONNECTION_LIFETIME_SECONDS,
        "pool_timeout": _CONNECT_TIMEOUT_SECONDS,
    }
    if backend == "postgresql":
        options["connect_args"] = {"connect_timeout": _CONNECT_TIMEOUT_SECONDS}
    return options


def new_database(cfg: Config | URL | str) -> Engine:
    """Create an engine and check that the database answers.

    Raises ConnectionError when the engine cannot be built or the database
    does not respond.
    """
    try:
        url = cfg.url() if isinstance(cfg, Config) else make_url(cfg)
        engine = create_engine(url, **_engine_options(url))
    except (SQLAlchemyError, ImportError, ValueError) as exc:
        raise ConnectionError(f"failed to connect to database: {exc}") from exc

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        raise ConnectionError(f"failed to ping database: {exc}") from exc
    return engine


def create_schema(engine: Engine) -> None:
    """Create the wallets and transactions tables if they are missing."""
    metadata.create_all(engine)