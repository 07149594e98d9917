"""Role rules for the Launchpad pipeline."""

from typing import Any

from app.core.exceptions import SessionAccessDeniedError, ValidationError
from app.schemas.auth import CurrentUser
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Roles allowed to ingest documents and commit plans
LAUNCHPAD_ROLES = frozenset({"tenant_admin", "admin", "global_admin", "vega_consultant", "vega_admin"})

# Roles that may act on any tenant's data
CROSS_TENANT_ROLES = frozenset({"global_admin", "vega_consultant", "vega_admin"})

# Roles that may delete an approved session
ADMIN_ROLES = frozenset({"tenant_admin", "admin", "global_admin", "vega_admin"})


def require_launchpad_role(user: CurrentUser) -> None:
    if user.role not in LAUNCHPAD_ROLES:
        LOGGER.warning(f"Launchpad access denied for user {user.id}: role '{user.role}'")
        raise SessionAccessDeniedError(
            "Launchpad requires one of the roles: " + ", ".join(sorted(LAUNCHPAD_ROLES))
        )


def require_tenant(user: CurrentUser) -> str:
    """Return the tenant the caller is acting in."""
    tenant_id = user.effective_tenant_id
    if not tenant_id:
        raise ValidationError("Tenant context required")
    return tenant_id


def can_access_session(session: Any, user: CurrentUser) -> bool:
    """Same tenant, own session, or a cross-tenant role."""
    return (
        session.tenant_id == user.effective_tenant_id
        or session.user_id == user.id
        or user.role in CROSS_TENANT_ROLES
    )


def can_delete_approved(user: CurrentUser) -> bool:
    return user.role in ADMIN_ROLES
