from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator
from uuid import uuid4
import logging

from sqlalchemy import case, desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker, undefer

from ..core.errors import DuplicateEmail, StorageUnavailable
from ..core.ticket_rules import PENDING_STATUSES
from ..db import TICKET_SEQUENCE
from ..models.attachment import TicketAttachment
from ..models.comment import TicketComment
from ..models.ticket import Ticket, TicketSequence
from ..models.user import User, utcnow
from .base import DEPARTMENT_STATS_LIMIT, TicketStore, UserStore
from .records import (
    AttachmentFile,
    AttachmentInfo,
    CommentRecord,
    NewTicket,
    OwnerCounts,
    TicketFilter,
    TicketPage,
    TicketRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def user_record(u: User) -> UserRecord:
    return UserRecord(
        id=u.id,
        name=u.name,
        email=u.email,
        password_hash=u.password_hash,
        role=u.role,
        created_at=_aware(u.created_at),
        reset_token_hash=u.reset_token_hash,
        reset_token_expires_at=_aware(u.reset_token_expires_at),
    )


def comment_record(c: TicketComment) -> CommentRecord:
    return CommentRecord(author=c.author, text=c.text, created_at=_aware(c.created_at))


def ticket_record(t: Ticket) -> TicketRecord:
    return TicketRecord(
        id=t.id,
        sequential_id=t.sequential_id,
        title=t.title,
        description=t.description,
        type=t.type,
        department=t.department,
        status=t.status,
        submitter_name=t.submitter_name,
        submitter_email=t.submitter_email,
        user_id=t.user_id,
        created_at=_aware(t.created_at),
        comments=tuple(comment_record(c) for c in t.comments),
        attachments=tuple(
            AttachmentInfo(index=a.position, filename=a.filename, content_type=a.content_type, size=a.size)
            for a in t.attachments
        ),
    )


class _SqlStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """One transaction per store call; connection failures become StorageUnavailable."""
        try:
            with self._session_factory.begin() as session:
                yield session
        except OperationalError as exc:
            logger.exception("database operation failed")
            raise StorageUnavailable() from exc


class SqlUserStore(_SqlStore, UserStore):
    def get(self, user_id: str) -> UserRecord | None:
        with self._session() as session:
            u = session.get(User, user_id)
            return user_record(u) if u else None

    def get_by_email(self, email: str) -> UserRecord | None:
        with self._session() as session:
            u = session.scalar(select(User).where(User.email == email))
            return user_record(u) if u else None

    def list_all(self) -> list[UserRecord]:
        with self._session() as session:
            rows = session.scalars(select(User).order_by(User.created_at.asc(), User.email.asc())).all()
            return [user_record(u) for u in rows]

    def create(self, *, name: str, email: str, password_hash: str, role: str) -> UserRecord:
        try:
            with self._session() as session:
                if session.scalar(select(User.id).where(User.email == email)):
                    raise DuplicateEmail()
                u = User(id=uuid4().hex, name=name, email=email, password_hash=password_hash, role=role)
                session.add(u)
                session.flush()
                return user_record(u)
        except IntegrityError as exc:
            # lost a race against another registration with the same email
            raise DuplicateEmail() from exc

    def set_password(self, user_id: str, password_hash: str) -> None:
        with self._session() as session:
            session.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    password_hash=password_hash,
                    reset_token_hash=None,
                    reset_token_expires_at=None,
                    updated_at=utcnow(),
                )
            )

    def set_role(self, user_id: str, role: str) -> UserRecord | None:
        with self._session() as session:
            u = session.get(User, user_id)
            if not u:
                return None
            u.role = role
            session.flush()
            return user_record(u)

    def set_reset_token(self, user_id: str, token_hash: str, expires_at: datetime) -> None:
        with self._session() as session:
            session.execute(
                update(User)
                .where(User.id == user_id)
                .values(reset_token_hash=token_hash, reset_token_expires_at=expires_at, updated_at=utcnow())
            )

    def get_by_reset_token(self, token_hash: str) -> UserRecord | None:
        with self._session() as session:
            u = session.scalar(select(User).where(User.reset_token_hash == token_hash))
            return user_record(u) if u else None

    def consume_reset_token(self, user_id: str, token_hash: str, password_hash: str) -> bool:
        with self._session() as session:
            result = session.execute(
                update(User)
                .where(User.id == user_id, User.reset_token_hash == token_hash)
                .values(
                    password_hash=password_hash,
                    reset_token_hash=None,
                    reset_token_expires_at=None,
                    updated_at=utcnow(),
                )
            )
            return result.rowcount == 1


class SqlTicketStore(_SqlStore, TicketStore):
    def _next_sequential_id(self, session: Session) -> int:
        # The UPDATE takes the counter row lock until commit, so concurrent
        # creators line up here instead of reading the same max().
        result = session.execute(
            update(TicketSequence)
            .where(TicketSequence.name == TICKET_SEQUENCE)
            .values(value=TicketSequence.value + 1)
        )
        if result.rowcount == 0:
            current_max = session.scalar(select(func.max(Ticket.sequential_id))) or 0
            session.add(TicketSequence(name=TICKET_SEQUENCE, value=current_max + 1))
            session.flush()
            return current_max + 1
        return session.scalar(select(TicketSequence.value).where(TicketSequence.name == TICKET_SEQUENCE))

    def create(self, data: NewTicket, attachments: list[AttachmentFile], status: str) -> TicketRecord:
        with self._session() as session:
            t = Ticket(
                id=uuid4().hex,
                sequential_id=self._next_sequential_id(session),
                title=data.title,
                description=data.description,
                type=data.type,
                department=data.department,
                status=status,
                submitter_name=data.submitter_name,
                submitter_email=data.submitter_email,
                user_id=data.user_id,
                created_at=utcnow(),
                comments=[],
                attachments=[
                    TicketAttachment(
                        position=i,
                        filename=f.filename,
                        content_type=f.content_type,
                        size=f.size,
                        data=f.data,
                    )
                    for i, f in enumerate(attachments)
                ],
            )
            session.add(t)
            session.flush()
            return ticket_record(t)

    def get(self, ticket_id: str) -> TicketRecord | None:
        with self._session() as session:
            t = session.get(Ticket, ticket_id)
            return ticket_record(t) if t else None

    def list_page(self, filters: TicketFilter, *, offset: int, limit: int) -> TicketPage:
        conditions = []
        if filters.owner_id is not None:
            conditions.append(Ticket.user_id == filters.owner_id)
        if filters.status:
            conditions.append(Ticket.status == filters.status)
        if filters.type:
            conditions.append(Ticket.type == filters.type)
        if filters.search:
            needle = filters.search.lower()
            conditions.append(
                or_(
                    func.lower(Ticket.title).contains(needle, autoescape=True),
                    func.lower(Ticket.department).contains(needle, autoescape=True),
                )
            )

        with self._session() as session:
            total = session.scalar(select(func.count(Ticket.id)).where(*conditions)) or 0
            stmt = (
                select(Ticket)
                .where(*conditions)
                .order_by(desc(Ticket.created_at), desc(Ticket.sequential_id))
                .offset(offset)
                .limit(limit)
            )
            items = [ticket_record(t) for t in session.scalars(stmt).all()]
            return TicketPage(items=items, total=total)

    def set_status(self, ticket_id: str, status: str) -> TicketRecord | None:
        with self._session() as session:
            t = session.get(Ticket, ticket_id)
            if not t:
                return None
            t.status = status
            session.flush()
            return ticket_record(t)

    def append_comment(self, ticket_id: str, author: str, text: str) -> list[CommentRecord] | None:
        with self._session() as session:
            t = session.get(Ticket, ticket_id, with_for_update=True)
            if not t:
                return None
            now = utcnow()
            if t.comments:
                last = _aware(t.comments[-1].created_at)
                if last > now:
                    now = last
            t.comments.append(TicketComment(author=author, text=text, created_at=now))
            session.flush()
            return [comment_record(c) for c in t.comments]

    def get_attachment(self, ticket_id: str, index: int) -> AttachmentFile | None:
        with self._session() as session:
            a = session.scalar(
                select(TicketAttachment)
                .where(TicketAttachment.ticket_id == ticket_id, TicketAttachment.position == index)
                .options(undefer(TicketAttachment.data))
            )
            if not a:
                return None
            return AttachmentFile(filename=a.filename, content_type=a.content_type, data=a.data)

    def _count_by(self, column, limit: int | None = None) -> list[tuple[str, int]]:
        count = func.count(Ticket.id)
        stmt = select(column, count).group_by(column).order_by(desc(count), column)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as session:
            return [(value, n) for value, n in session.execute(stmt).all()]

    def count_by_type(self) -> list[tuple[str, int]]:
        return self._count_by(Ticket.type)

    def count_by_status(self) -> list[tuple[str, int]]:
        return self._count_by(Ticket.status)

    def top_departments(self, limit: int = DEPARTMENT_STATS_LIMIT) -> list[tuple[str, int]]:
        return self._count_by(Ticket.department, limit=limit)

    def owner_counts(self) -> dict[str, OwnerCounts]:
        pending_case = case((Ticket.status.in_(PENDING_STATUSES), 1), else_=0)
        stmt = (
            select(
                Ticket.user_id,
                func.count(Ticket.id).label("total"),
                func.coalesce(func.sum(pending_case), 0).label("pending"),
            )
            .where(Ticket.user_id.is_not(None))
            .group_by(Ticket.user_id)
        )
        with self._session() as session:
            return {
                row.user_id: OwnerCounts(total=row.total, pending=int(row.pending))
                for row in session.execute(stmt).all()
            }

    def ping(self) -> None:
        with self._session() as session:
            session.execute(select(1))
