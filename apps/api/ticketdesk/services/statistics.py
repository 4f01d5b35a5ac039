from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from ..core.ticket_rules import STATUS_RESOLVED
from ..stores.base import DEPARTMENT_STATS_LIMIT, TicketStore


@dataclass(frozen=True)
class TicketStatistics:
    total_tickets: int
    resolved_tickets: int
    resolved_percentage: int
    type_stats: list[dict] = field(default_factory=list)
    status_stats: list[dict] = field(default_factory=list)
    department_stats: list[dict] = field(default_factory=list)


def resolved_percentage(resolved: int, total: int) -> int:
    if total <= 0:
        return 0
    # round half up, like Math.round on the dashboard
    pct = (Decimal(resolved) * 100 / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(pct)))


class StatisticsService:
    def __init__(self, tickets: TicketStore):
        self.tickets = tickets

    def compute_statistics(self) -> TicketStatistics:
        by_status = self.tickets.count_by_status()
        by_type = self.tickets.count_by_type()
        departments = self.tickets.top_departments(DEPARTMENT_STATS_LIMIT)

        total = sum(n for _, n in by_status)
        resolved = next((n for status, n in by_status if status == STATUS_RESOLVED), 0)
        return TicketStatistics(
            total_tickets=total,
            resolved_tickets=resolved,
            resolved_percentage=resolved_percentage(resolved, total),
            type_stats=[{"type": t, "count": n} for t, n in by_type],
            status_stats=[{"status": s, "count": n} for s, n in by_status],
            department_stats=[{"department": d, "count": n} for d, n in departments],
        )
