from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from .records import (
    AttachmentFile,
    CommentRecord,
    NewTicket,
    OwnerCounts,
    TicketFilter,
    TicketPage,
    TicketRecord,
    UserRecord,
)

DEPARTMENT_STATS_LIMIT = 6


class UserStore(ABC):
    @abstractmethod
    def get(self, user_id: str) -> UserRecord | None: ...

    @abstractmethod
    def get_by_email(self, email: str) -> UserRecord | None: ...

    @abstractmethod
    def list_all(self) -> list[UserRecord]: ...

    @abstractmethod
    def create(self, *, name: str, email: str, password_hash: str, role: str) -> UserRecord:
        """Insert a user. Raises ``DuplicateEmail`` when the email is taken."""

    @abstractmethod
    def set_password(self, user_id: str, password_hash: str) -> None:
        """Replace the hash and clear any pending reset token."""

    @abstractmethod
    def set_role(self, user_id: str, role: str) -> UserRecord | None: ...

    @abstractmethod
    def set_reset_token(self, user_id: str, token_hash: str, expires_at: datetime) -> None: ...

    @abstractmethod
    def get_by_reset_token(self, token_hash: str) -> UserRecord | None: ...

    @abstractmethod
    def consume_reset_token(self, user_id: str, token_hash: str, password_hash: str) -> bool:
        """Swap the password and clear the token only if ``token_hash`` is still current.

        Returns False when the token was already used or replaced.
        """


class TicketStore(ABC):
    @abstractmethod
    def create(self, data: NewTicket, attachments: list[AttachmentFile], status: str) -> TicketRecord:
        """Persist a ticket, assigning the next sequential id atomically."""

    @abstractmethod
    def get(self, ticket_id: str) -> TicketRecord | None: ...

    @abstractmethod
    def list_page(self, filters: TicketFilter, *, offset: int, limit: int) -> TicketPage:
        """Newest first (created_at desc, sequential id desc)."""

    @abstractmethod
    def set_status(self, ticket_id: str, status: str) -> TicketRecord | None: ...

    @abstractmethod
    def append_comment(self, ticket_id: str, author: str, text: str) -> list[CommentRecord] | None:
        """Append at "now" (never before the last comment); return the whole thread."""

    @abstractmethod
    def get_attachment(self, ticket_id: str, index: int) -> AttachmentFile | None: ...

    @abstractmethod
    def count_by_type(self) -> list[tuple[str, int]]: ...

    @abstractmethod
    def count_by_status(self) -> list[tuple[str, int]]: ...

    @abstractmethod
    def top_departments(self, limit: int = DEPARTMENT_STATS_LIMIT) -> list[tuple[str, int]]:
        """Count descending, ties broken by department name."""

    @abstractmethod
    def owner_counts(self) -> dict[str, OwnerCounts]: ...

    def ping(self) -> None:
        """Raise ``StorageUnavailable`` when the backend cannot be reached."""
