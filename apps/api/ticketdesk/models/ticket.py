from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index, func
from .user import Base, utcnow
from .comment import TicketComment
from .attachment import TicketAttachment


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    sequential_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(50))
    department: Mapped[str] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(32), default="New")

    # name/email typed into the form, also set for anonymous tickets
    submitter_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitter_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(32), ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    comments: Mapped[list[TicketComment]] = relationship(
        cascade="all, delete-orphan",
        order_by=TicketComment.id,
        lazy="selectin",
    )
    attachments: Mapped[list[TicketAttachment]] = relationship(
        cascade="all, delete-orphan",
        order_by=TicketAttachment.position,
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_tickets_user_created", "user_id", "created_at"),
        Index("ix_tickets_status_created", "status", "created_at"),
        Index("ix_tickets_department", "department"),
        Index("ix_tickets_type", "type"),
    )


class TicketSequence(Base):
    """Counter row for human-facing ticket numbers, bumped with UPDATE ... + 1."""

    __tablename__ = "ticket_sequences"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0)
