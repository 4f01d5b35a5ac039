from __future__ import annotations

from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from uuid import uuid4
import threading

from ..core.errors import DuplicateEmail
from ..core.ticket_rules import PENDING_STATUSES
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


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryUserStore(UserStore):
    """Process-local user store for tests and demos. Records are immutable, so no copying."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: dict[str, UserRecord] = {}

    def get(self, user_id: str) -> UserRecord | None:
        return self._users.get(user_id)

    def get_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def list_all(self) -> list[UserRecord]:
        with self._lock:
            return sorted(self._users.values(), key=lambda u: (u.created_at, u.email))

    def create(self, *, name: str, email: str, password_hash: str, role: str) -> UserRecord:
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise DuplicateEmail()
            user = UserRecord(
                id=uuid4().hex,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                created_at=_now(),
            )
            self._users[user.id] = user
            return user

    def set_password(self, user_id: str, password_hash: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user:
                self._users[user_id] = replace(
                    user, password_hash=password_hash, reset_token_hash=None, reset_token_expires_at=None
                )

    def set_role(self, user_id: str, role: str) -> UserRecord | None:
        with self._lock:
            user = self._users.get(user_id)
            if not user:
                return None
            user = replace(user, role=role)
            self._users[user_id] = user
            return user

    def set_reset_token(self, user_id: str, token_hash: str, expires_at: datetime) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user:
                self._users[user_id] = replace(
                    user, reset_token_hash=token_hash, reset_token_expires_at=expires_at
                )

    def get_by_reset_token(self, token_hash: str) -> UserRecord | None:
        with self._lock:
            return next((u for u in self._users.values() if u.reset_token_hash == token_hash), None)

    def consume_reset_token(self, user_id: str, token_hash: str, password_hash: str) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if not user or user.reset_token_hash != token_hash:
                return False
            self._users[user_id] = replace(
                user, password_hash=password_hash, reset_token_hash=None, reset_token_expires_at=None
            )
            return True


class MemoryTicketStore(TicketStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._tickets: dict[str, TicketRecord] = {}
        self._files: dict[str, tuple[AttachmentFile, ...]] = {}
        self._last_sequential_id = 0

    def create(self, data: NewTicket, attachments: list[AttachmentFile], status: str) -> TicketRecord:
        with self._lock:
            self._last_sequential_id += 1
            ticket = TicketRecord(
                id=uuid4().hex,
                sequential_id=self._last_sequential_id,
                title=data.title,
                description=data.description,
                type=data.type,
                department=data.department,
                status=status,
                submitter_name=data.submitter_name,
                submitter_email=data.submitter_email,
                user_id=data.user_id,
                created_at=_now(),
                attachments=tuple(
                    AttachmentInfo(index=i, filename=f.filename, content_type=f.content_type, size=f.size)
                    for i, f in enumerate(attachments)
                ),
            )
            self._tickets[ticket.id] = ticket
            self._files[ticket.id] = tuple(attachments)
            return ticket

    def get(self, ticket_id: str) -> TicketRecord | None:
        return self._tickets.get(ticket_id)

    def list_page(self, filters: TicketFilter, *, offset: int, limit: int) -> TicketPage:
        needle = (filters.search or "").lower()

        def matches(t: TicketRecord) -> bool:
            if filters.owner_id is not None and t.user_id != filters.owner_id:
                return False
            if filters.status and t.status != filters.status:
                return False
            if filters.type and t.type != filters.type:
                return False
            if needle and needle not in t.title.lower() and needle not in t.department.lower():
                return False
            return True

        with self._lock:
            found = [t for t in self._tickets.values() if matches(t)]
        found.sort(key=lambda t: (t.created_at, t.sequential_id), reverse=True)
        return TicketPage(items=found[offset:offset + limit], total=len(found))

    def set_status(self, ticket_id: str, status: str) -> TicketRecord | None:
        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if not ticket:
                return None
            ticket = replace(ticket, status=status)
            self._tickets[ticket_id] = ticket
            return ticket

    def append_comment(self, ticket_id: str, author: str, text: str) -> list[CommentRecord] | None:
        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if not ticket:
                return None
            now = _now()
            if ticket.comments and ticket.comments[-1].created_at > now:
                now = ticket.comments[-1].created_at
            comments = ticket.comments + (CommentRecord(author=author, text=text, created_at=now),)
            self._tickets[ticket_id] = replace(ticket, comments=comments)
            return list(comments)

    def get_attachment(self, ticket_id: str, index: int) -> AttachmentFile | None:
        files = self._files.get(ticket_id, ())
        if 0 <= index < len(files):
            return files[index]
        return None

    def _count_by(self, attr: str, limit: int | None = None) -> list[tuple[str, int]]:
        with self._lock:
            counts = Counter(getattr(t, attr) for t in self._tickets.values())
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit] if limit is not None else ranked

    def count_by_type(self) -> list[tuple[str, int]]:
        return self._count_by("type")

    def count_by_status(self) -> list[tuple[str, int]]:
        return self._count_by("status")

    def top_departments(self, limit: int = DEPARTMENT_STATS_LIMIT) -> list[tuple[str, int]]:
        return self._count_by("department", limit=limit)

    def owner_counts(self) -> dict[str, OwnerCounts]:
        totals: Counter = Counter()
        pending: Counter = Counter()
        with self._lock:
            for t in self._tickets.values():
                if t.user_id is None:
                    continue
                totals[t.user_id] += 1
                if t.status in PENDING_STATUSES:
                    pending[t.user_id] += 1
        return {uid: OwnerCounts(total=n, pending=pending[uid]) for uid, n in totals.items()}
