"""Current user endpoint."""

from fastapi import APIRouter, Depends

from budget_office.core.auth import RequestUserContext, get_current_user_context

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return the acting user's profile, roles and effective permissions."""

    return {
        "id": str(context.user_id),
        "email": context.email,
        "name": context.name,
        "is_active": context.is_active,
        "roles": [role.value for role in context.roles],
        "permissions": sorted(context.permissions),
    }
