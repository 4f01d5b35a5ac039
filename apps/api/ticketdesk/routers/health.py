from fastapi import APIRouter, Depends

from ..container import Container
from ..core.current_user import get_container

router = APIRouter(tags=["health"])


@router.get("/health")
def health(container: Container = Depends(get_container)):
    container.tickets.ping()
    return {"status": "ok", "storage": container.settings.STORAGE_BACKEND}
