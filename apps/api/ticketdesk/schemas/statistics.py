from .base import CamelModel


class TypeCountOut(CamelModel):
    type: str
    count: int


class StatusCountOut(CamelModel):
    status: str
    count: int


class DepartmentCountOut(CamelModel):
    department: str
    count: int


class StatisticsOut(CamelModel):
    total_tickets: int
    resolved_tickets: int
    resolved_percentage: int
    type_stats: list[TypeCountOut]
    status_stats: list[StatusCountOut]
    department_stats: list[DepartmentCountOut]
