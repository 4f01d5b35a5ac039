from __future__ import annotations

from urllib.parse import quote

import anyio
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from ..container import Container
from ..core.current_user import get_container, get_current_user, get_ticket_service
from ..core.errors import AttachmentRejected
from ..core.policy import Principal
from ..schemas.comment import CommentCreateIn, CommentListOut, CommentOut
from ..schemas.ticket import (
    AttachmentOut,
    PaginationOut,
    TicketEnvelope,
    TicketListOut,
    TicketOut,
    TicketStatusUpdateIn,
)
from ..services.tickets import DEFAULT_PAGE_SIZE, TicketService
from ..stores.records import AttachmentFile, NewTicket, TicketRecord

router = APIRouter(prefix="/tickets", tags=["tickets"])

READ_CHUNK_BYTES = 1024 * 1024  # 1MB


def attachment_url(ticket_id: str, index: int) -> str:
    return f"/api/tickets/{ticket_id}/attachment/{index}"


def serialize_ticket(ticket: TicketRecord) -> TicketOut:
    return TicketOut(
        id=ticket.id,
        sequential_id=ticket.sequential_id,
        title=ticket.title,
        description=ticket.description,
        type=ticket.type,
        department=ticket.department,
        status=ticket.status,
        submitter_name=ticket.submitter_name,
        submitter_email=ticket.submitter_email,
        user_id=ticket.user_id,
        created_at=ticket.created_at,
        comments=[CommentOut.model_validate(c) for c in ticket.comments],
        attachments=[
            AttachmentOut(
                index=a.index,
                filename=a.filename,
                content_type=a.content_type,
                size=a.size,
                url=attachment_url(ticket.id, a.index),
            )
            for a in ticket.attachments
        ],
    )


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_") or "attachment"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


class TicketSubmission:
    def __init__(self, data: NewTicket, files: list[AttachmentFile]):
        self.data = data
        self.files = files


async def read_ticket_submission(
    title: str | None = Form(None),
    description: str | None = Form(None),
    ticket_type: str | None = Form(None, alias="type"),
    department: str | None = Form(None),
    submitter_name: str | None = Form(None, alias="submitterName"),
    submitter_email: str | None = Form(None, alias="submitterEmail"),
    attachments: list[UploadFile] | None = File(None),
    container: Container = Depends(get_container),
) -> TicketSubmission:
    """Copies the uploaded parts into memory, refusing once their combined size passes the cap.

    Starlette has already spooled the multipart body by the time this runs, so
    the cap bounds what is held in memory, not what the client may send.
    """
    limit = container.settings.MAX_UPLOAD_BYTES
    total = 0
    files: list[AttachmentFile] = []
    for upload in attachments or []:
        chunks = []
        while True:
            chunk = await upload.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise AttachmentRejected(
                    f"Attachments exceed the {limit // (1024 * 1024)}MB limit",
                    too_large=True,
                )
            chunks.append(chunk)
        await upload.close()
        files.append(
            AttachmentFile(
                filename=upload.filename or "",
                content_type=upload.content_type or "application/octet-stream",
                data=b"".join(chunks),
            )
        )

    data = NewTicket(
        title=title or "",
        description=description or "",
        type=ticket_type or "",
        department=department or "",
        submitter_name=submitter_name,
        submitter_email=submitter_email,
    )
    return TicketSubmission(data, files)


@router.post("", response_model=TicketEnvelope, status_code=201)
async def create_ticket(
    principal: Principal = Depends(get_current_user),
    submission: TicketSubmission = Depends(read_ticket_submission),
    service: TicketService = Depends(get_ticket_service),
):
    data = submission.data
    data = NewTicket(
        title=data.title,
        description=data.description,
        type=data.type,
        department=data.department,
        submitter_name=(data.submitter_name or "").strip() or principal.name,
        submitter_email=(data.submitter_email or "").strip() or principal.email,
        user_id=principal.id,
    )
    ticket = await anyio.to_thread.run_sync(service.create, data, submission.files)
    return TicketEnvelope(message="Ticket created successfully", ticket=serialize_ticket(ticket))


@router.post("/anonymous", response_model=TicketEnvelope, status_code=201)
async def create_anonymous_ticket(
    submission: TicketSubmission = Depends(read_ticket_submission),
    service: TicketService = Depends(get_ticket_service),
):
    ticket = await anyio.to_thread.run_sync(service.create, submission.data, submission.files)
    return TicketEnvelope(message="Ticket created successfully", ticket=serialize_ticket(ticket))


@router.get("", response_model=TicketListOut)
def list_tickets(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    status: str | None = None,
    type: str | None = None,
    q: str | None = None,
    principal: Principal = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    items, pagination = service.list(principal, page, limit, status=status, type=type, search=q)
    return TicketListOut(
        tickets=[serialize_ticket(t) for t in items],
        pagination=PaginationOut.model_validate(pagination),
    )


@router.get("/{ticket_id}", response_model=TicketEnvelope)
def get_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return TicketEnvelope(ticket=serialize_ticket(service.get(ticket_id, principal)))


@router.get("/{ticket_id}/attachment/{index}")
def download_attachment(
    ticket_id: str,
    index: int,
    principal: Principal = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    attachment = service.get_attachment(ticket_id, index, principal)
    return Response(
        content=attachment.data,
        media_type=attachment.content_type,
        headers={"Content-Disposition": content_disposition(attachment.filename or f"attachment-{index}")},
    )


@router.patch("/{ticket_id}/status", response_model=TicketEnvelope)
def update_status(
    ticket_id: str,
    payload: TicketStatusUpdateIn,
    principal: Principal = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    ticket = service.update_status(ticket_id, payload.status, principal)
    return TicketEnvelope(message="Status updated", ticket=serialize_ticket(ticket))


@router.post("/{ticket_id}/comments", response_model=CommentListOut)
def add_comment(
    ticket_id: str,
    payload: CommentCreateIn,
    principal: Principal = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    comments = service.add_comment(ticket_id, payload.author, payload.text, principal)
    return CommentListOut(comments=[CommentOut.model_validate(c) for c in comments])
