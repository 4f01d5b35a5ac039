"""Plain records passed between stores and services.

Every ``UserStore`` / ``TicketStore`` implementation returns these, so the
services never see ORM rows.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class UserRecord:
    id: str
    name: str
    email: str
    password_hash: str
    role: str
    created_at: datetime
    reset_token_hash: str | None = None
    reset_token_expires_at: datetime | None = None


@dataclass(frozen=True)
class CommentRecord:
    author: str
    text: str
    created_at: datetime


@dataclass(frozen=True)
class AttachmentInfo:
    index: int
    filename: str
    content_type: str
    size: int


@dataclass(frozen=True)
class AttachmentFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class NewTicket:
    title: str
    description: str
    type: str
    department: str
    submitter_name: str | None = None
    submitter_email: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class TicketRecord:
    id: str
    sequential_id: int
    title: str
    description: str
    type: str
    department: str
    status: str
    submitter_name: str | None
    submitter_email: str | None
    user_id: str | None
    created_at: datetime
    comments: tuple[CommentRecord, ...] = ()
    attachments: tuple[AttachmentInfo, ...] = ()


@dataclass(frozen=True)
class TicketFilter:
    owner_id: str | None = None  # None: every ticket (admin view)
    status: str | None = None
    type: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class OwnerCounts:
    total: int = 0
    pending: int = 0


@dataclass(frozen=True)
class TicketPage:
    items: list[TicketRecord] = field(default_factory=list)
    total: int = 0
