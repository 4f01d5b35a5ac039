from __future__ import annotations

from dataclasses import dataclass
import logging
import math

from ..core.config import Settings
from ..core.errors import AttachmentRejected, EmptyComment, NotFound, ValidationError
from ..core.policy import Principal, assert_access, is_admin, require_admin
from ..core.ticket_rules import STATUS_NEW, TICKET_TYPES, normalize_status
from ..stores.base import TicketStore
from ..stores.records import (
    AttachmentFile,
    CommentRecord,
    NewTicket,
    TicketFilter,
    TicketRecord,
)
from .mail_service import normalize_email_address

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _optional(value: str | None) -> str | None:
    value = _clean(value)
    return value or None


class TicketService:
    def __init__(self, tickets: TicketStore, settings: Settings):
        self.tickets = tickets
        self.max_upload_bytes = settings.MAX_UPLOAD_BYTES
        self.max_attachments = settings.MAX_ATTACHMENTS
        self.allowed_content_types = set(settings.ALLOWED_CONTENT_TYPES)

    def check_attachments(self, files: list[AttachmentFile]) -> list[AttachmentFile]:
        """Reject the whole submission if any file breaks a rule; nothing is stored on failure."""
        files = [f for f in files if f.filename or f.size]
        if len(files) > self.max_attachments:
            raise AttachmentRejected(f"At most {self.max_attachments} attachments are allowed")
        for f in files:
            if f.content_type not in self.allowed_content_types:
                raise AttachmentRejected(
                    f"File type not allowed: {f.filename or 'upload'} ({f.content_type}). Only JPG, PNG and MP4 are accepted."
                )
        total = sum(f.size for f in files)
        if total > self.max_upload_bytes:
            raise AttachmentRejected(
                f"Attachments exceed the {self.max_upload_bytes // (1024 * 1024)}MB limit",
                too_large=True,
            )
        return files

    def create(self, data: NewTicket, attachments: list[AttachmentFile] | None = None) -> TicketRecord:
        cleaned = NewTicket(
            title=_clean(data.title),
            description=_clean(data.description),
            type=_clean(data.type),
            department=_clean(data.department),
            submitter_name=_optional(data.submitter_name),
            submitter_email=_optional(data.submitter_email),
            user_id=data.user_id,
        )
        if not (cleaned.title and cleaned.description and cleaned.type and cleaned.department):
            raise ValidationError("Title, description, type and department are required")
        if cleaned.submitter_email and not normalize_email_address(cleaned.submitter_email):
            raise ValidationError("Invalid submitter email")
        if cleaned.type not in TICKET_TYPES:
            # kept as typed; older clients sent other labels
            logger.info("non-standard ticket type %r", cleaned.type)

        files = self.check_attachments(attachments or [])
        ticket = self.tickets.create(cleaned, files, STATUS_NEW)
        logger.info(
            "ticket created #%s id=%s owner=%s attachments=%d",
            ticket.sequential_id,
            ticket.id,
            ticket.user_id or "anonymous",
            len(files),
        )
        return ticket

    def _load(self, ticket_id: str) -> TicketRecord:
        ticket = self.tickets.get(ticket_id)
        if not ticket:
            raise NotFound("Ticket not found")
        return ticket

    def get(self, ticket_id: str, principal: Principal) -> TicketRecord:
        ticket = self._load(ticket_id)
        assert_access(principal, ticket)
        return ticket

    def list(
        self,
        principal: Principal,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        status: str | None = None,
        type: str | None = None,
        search: str | None = None,
    ) -> tuple[list[TicketRecord], Pagination]:
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
        filters = TicketFilter(
            owner_id=None if is_admin(principal) else principal.id,
            status=normalize_status(status) if _clean(status) else None,
            type=_optional(type),
            search=_optional(search),
        )
        result = self.tickets.list_page(filters, offset=(page - 1) * page_size, limit=page_size)
        pagination = Pagination(
            page=page,
            limit=page_size,
            total=result.total,
            total_pages=math.ceil(result.total / page_size) if result.total else 0,
        )
        return result.items, pagination

    def update_status(self, ticket_id: str, new_status: str | None, principal: Principal) -> TicketRecord:
        require_admin(principal)
        status = normalize_status(new_status)
        ticket = self._load(ticket_id)
        # any move between the three statuses is allowed, reopening included
        if ticket.status == status:
            return ticket

        updated = self.tickets.set_status(ticket_id, status)
        if not updated:
            raise NotFound("Ticket not found")
        logger.info("ticket #%s status %s -> %s by %s", updated.sequential_id, ticket.status, status, principal.id)
        return updated

    def add_comment(
        self, ticket_id: str, author: str | None, text: str | None, principal: Principal
    ) -> list[CommentRecord]:
        ticket = self._load(ticket_id)
        assert_access(principal, ticket)

        text = _clean(text)
        if not text:
            raise EmptyComment()
        author = _clean(author) or principal.name

        comments = self.tickets.append_comment(ticket_id, author, text)
        if comments is None:
            raise NotFound("Ticket not found")
        return comments

    def get_attachment(self, ticket_id: str, index: int, principal: Principal) -> AttachmentFile:
        ticket = self.get(ticket_id, principal)
        if index < 0 or index >= len(ticket.attachments):
            raise NotFound("Attachment not found")
        attachment = self.tickets.get_attachment(ticket_id, index)
        if not attachment:
            raise NotFound("Attachment not found")
        return attachment
