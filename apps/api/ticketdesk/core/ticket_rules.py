from .errors import InvalidStatus

STATUS_NEW = "New"
STATUS_IN_PROGRESS = "In Progress"
STATUS_RESOLVED = "Resolved"

ALLOWED_STATUS = (STATUS_NEW, STATUS_IN_PROGRESS, STATUS_RESOLVED)
PENDING_STATUSES = {STATUS_NEW, STATUS_IN_PROGRESS}

# Labels the Portuguese client sends.
STATUS_ALIASES = {
    "novo": STATUS_NEW,
    "em andamento": STATUS_IN_PROGRESS,
    "resolvido": STATUS_RESOLVED,
}

TICKET_TYPES = ("Bug", "Suggestion", "Feedback")


def normalize_status(value: str | None) -> str:
    """Return the canonical status for ``value`` or raise ``InvalidStatus``."""
    raw = (value or "").strip()
    for status in ALLOWED_STATUS:
        if raw.lower() == status.lower():
            return status
    alias = STATUS_ALIASES.get(raw.lower())
    if alias:
        return alias
    raise InvalidStatus(f"Invalid status: {value!r}. Allowed: {', '.join(ALLOWED_STATUS)}")

