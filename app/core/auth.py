"""Authentication dependencies for FastAPI routes."""

from typing import Annotated, Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.jwt import jwt_verifier
from app.core.permissions import CROSS_TENANT_ROLES
from app.schemas.auth import CurrentUser
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    x_tenant_id: Annotated[Optional[str], Header()] = None,
) -> CurrentUser:
    """Get the current authenticated user from the bearer token.

    Cross-tenant roles may pick the tenant they act in with the
    ``X-Tenant-ID`` header; the header is ignored for everyone else.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if not credentials:
        LOGGER.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = jwt_verifier.verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        LOGGER.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    active_tenant_id = None
    if x_tenant_id:
        if claims.role in CROSS_TENANT_ROLES:
            active_tenant_id = x_tenant_id
        else:
            LOGGER.warning(f"Ignoring X-Tenant-ID from user {claims.sub} with role '{claims.role}'")

    user = CurrentUser(
        id=claims.sub,
        email=claims.email,
        role=claims.role,
        tenant_id=claims.tenant_id,
        active_tenant_id=active_tenant_id,
    )
    LOGGER.debug(f"Authenticated user: {user.id} ({user.role})")
    return user
