from datetime import datetime

from .base import CamelModel


class CommentCreateIn(CamelModel):
    author: str | None = None
    text: str | None = None


class CommentOut(CamelModel):
    author: str
    text: str
    created_at: datetime


class CommentListOut(CamelModel):
    comments: list[CommentOut]
