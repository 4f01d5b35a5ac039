from datetime import datetime

from pydantic import Field

from .base import CamelModel
from .comment import CommentOut


class AttachmentOut(CamelModel):
    index: int
    filename: str
    content_type: str
    size: int
    url: str


class TicketOut(CamelModel):
    id: str
    sequential_id: int
    title: str
    description: str
    type: str
    department: str
    status: str
    submitter_name: str | None = None
    submitter_email: str | None = None
    user_id: str | None = None
    created_at: datetime
    comments: list[CommentOut] = Field(default_factory=list)
    attachments: list[AttachmentOut] = Field(default_factory=list)


class TicketEnvelope(CamelModel):
    message: str | None = None
    ticket: TicketOut


class PaginationOut(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TicketListOut(CamelModel):
    tickets: list[TicketOut]
    pagination: PaginationOut


class TicketStatusUpdateIn(CamelModel):
    status: str | None = None
