import logging

from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models.user import Base
from .models.ticket import Ticket, TicketSequence

import ticketdesk.models.comment  # noqa: F401
import ticketdesk.models.attachment  # noqa: F401

logger = logging.getLogger(__name__)

TICKET_SEQUENCE = "tickets"


def build_engine(database_url: str) -> Engine:
    kwargs: dict = {"future": True, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def schema_ready(engine: Engine) -> bool:
    """True when every table of the current models exists (e.g. after `alembic upgrade head`)."""
    existing = set(inspect(engine).get_table_names())
    return set(Base.metadata.tables).issubset(existing)


def bootstrap_schema(engine: Engine) -> None:
    """Create missing tables and make sure the ticket counter row exists."""
    Base.metadata.create_all(bind=engine)
    with Session(engine) as session, session.begin():
        seq = session.get(TicketSequence, TICKET_SEQUENCE)
        if seq is None:
            current_max = session.scalar(select(func.max(Ticket.sequential_id))) or 0
            session.add(TicketSequence(name=TICKET_SEQUENCE, value=current_max))
            logger.info("ticket sequence initialised at %s", current_max)
