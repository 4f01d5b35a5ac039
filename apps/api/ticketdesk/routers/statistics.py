from fastapi import APIRouter, Depends

from ..core.current_user import get_admin_user, get_statistics_service
from ..core.policy import Principal
from ..schemas.statistics import StatisticsOut
from ..services.statistics import StatisticsService

router = APIRouter(tags=["statistics"])


@router.get("/statistics", response_model=StatisticsOut)
def get_statistics(
    _admin: Principal = Depends(get_admin_user),
    statistics: StatisticsService = Depends(get_statistics_service),
):
    return StatisticsOut.model_validate(statistics.compute_statistics())
