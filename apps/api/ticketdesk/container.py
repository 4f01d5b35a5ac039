"""Builds stores and services once per app from ``Settings``."""
from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.engine import Engine

from .core.config import Settings
from .db import bootstrap_schema, build_engine, build_session_factory, schema_ready
from .services.credentials import CredentialService
from .services.mail_service import Mailer, OutboxMailer, SmtpMailer
from .services.statistics import StatisticsService
from .services.tickets import TicketService
from .stores.base import TicketStore, UserStore
from .stores.cached import CachedTicketStore
from .stores.memory import MemoryTicketStore, MemoryUserStore
from .stores.sql import SqlTicketStore, SqlUserStore

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    users: UserStore
    tickets: TicketStore
    mailer: Mailer
    credentials: CredentialService
    ticket_service: TicketService
    statistics: StatisticsService
    engine: Engine | None = None

    def bootstrap(self, create_schema: bool = True) -> None:
        """Prepare storage and seed the default admin.

        With ``create_schema`` off the tables must already exist (migrations
        run first); startup fails fast instead of on the first request.
        """
        if self.engine is not None:
            if create_schema:
                bootstrap_schema(self.engine)
            elif not schema_ready(self.engine):
                raise RuntimeError(
                    "Database schema is missing and AUTO_DB_BOOTSTRAP is off; run `alembic upgrade head` first"
                )
        self.credentials.ensure_admin()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


def build_mailer(settings: Settings) -> Mailer:
    if settings.MAIL_BACKEND == "outbox":
        return OutboxMailer()
    return SmtpMailer(settings.SMTP_HOST, settings.SMTP_PORT, settings.SMTP_FROM)


def build_stores(settings: Settings) -> tuple[UserStore, TicketStore, Engine | None]:
    backend = settings.STORAGE_BACKEND
    if backend == "memory":
        return MemoryUserStore(), MemoryTicketStore(), None
    if backend == "sql":
        engine = build_engine(settings.DATABASE_URL)
        factory = build_session_factory(engine)
        return SqlUserStore(factory), SqlTicketStore(factory), engine
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r} (expected 'sql' or 'memory')")


def build_container(settings: Settings) -> Container:
    users, tickets, engine = build_stores(settings)
    if settings.TICKET_CACHE_TTL_SECONDS > 0 or settings.STATISTICS_CACHE_TTL_SECONDS > 0:
        tickets = CachedTicketStore(
            tickets,
            ticket_ttl=settings.TICKET_CACHE_TTL_SECONDS,
            stats_ttl=settings.STATISTICS_CACHE_TTL_SECONDS,
        )
    mailer = build_mailer(settings)
    logger.info(
        "storage backend=%s cache=%s mail=%s",
        settings.STORAGE_BACKEND,
        isinstance(tickets, CachedTicketStore),
        type(mailer).__name__,
    )
    return Container(
        settings=settings,
        users=users,
        tickets=tickets,
        mailer=mailer,
        credentials=CredentialService(users, settings, mailer),
        ticket_service=TicketService(tickets, settings),
        statistics=StatisticsService(tickets),
        engine=engine,
    )
