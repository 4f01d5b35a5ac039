from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..container import Container
from ..services.credentials import CredentialService
from ..services.statistics import StatisticsService
from ..services.tickets import TicketService
from .errors import AuthError
from .policy import Principal, require_admin

bearer = HTTPBearer(auto_error=False)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_credentials(container: Container = Depends(get_container)) -> CredentialService:
    return container.credentials


def get_ticket_service(container: Container = Depends(get_container)) -> TicketService:
    return container.ticket_service


def get_statistics_service(container: Container = Depends(get_container)) -> StatisticsService:
    return container.statistics


def get_optional_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    credentials: CredentialService = Depends(get_credentials),
) -> Principal | None:
    if not creds:
        return None
    # InvalidToken / ExpiredToken bubble up as 401
    return credentials.verify(creds.credentials)


def get_current_user(principal: Principal | None = Depends(get_optional_user)) -> Principal:
    if principal is None:
        raise AuthError()
    return principal


def get_admin_user(principal: Principal = Depends(get_current_user)) -> Principal:
    require_admin(principal)
    return principal
