from fastapi import APIRouter, Depends

from ..container import Container
from ..core.current_user import get_admin_user, get_container
from ..core.policy import Principal
from ..schemas.user import AdminUserListOut, AdminUserOut, UserEnvelope, UserOut, UserRoleUpdateIn
from ..stores.records import OwnerCounts

router = APIRouter(prefix="/admin/users", tags=["admin-users"])


@router.get("", response_model=AdminUserListOut)
def list_users(
    _admin: Principal = Depends(get_admin_user),
    container: Container = Depends(get_container),
):
    counts = container.tickets.owner_counts()
    users = []
    for u in container.users.list_all():
        c = counts.get(u.id, OwnerCounts())
        users.append(
            AdminUserOut(
                id=u.id,
                name=u.name,
                email=u.email,
                role=u.role,
                created_at=u.created_at,
                total=c.total,
                pending=c.pending,
            )
        )
    return AdminUserListOut(users=users)


@router.patch("/{user_id}/role", response_model=UserEnvelope)
def update_role(
    user_id: str,
    payload: UserRoleUpdateIn,
    _admin: Principal = Depends(get_admin_user),
    container: Container = Depends(get_container),
):
    user = container.credentials.set_role(user_id, (payload.role or "").strip())
    return UserEnvelope(user=UserOut.model_validate(user))
