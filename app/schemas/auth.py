"""Authentication schemas: verified token claims and the calling user."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field


class JWTClaims(BaseModel):
    """Claims carried by a verified access token."""

    sub: str = Field(..., description="Subject (user ID)")
    email: Optional[EmailStr] = Field(None, description="User email")
    role: str = Field(default="authenticated", description="Token role")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    aud: Optional[str] = Field(None, description="Audience")

    tenant_id: Optional[str] = Field(None, description="Tenant the user belongs to")
    app_metadata: Optional[Dict[str, Any]] = Field(None, description="Application metadata")
    user_metadata: Optional[Dict[str, Any]] = Field(None, description="User metadata")


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    id: str = Field(..., description="User ID")
    email: Optional[EmailStr] = Field(None, description="User email")
    role: str = Field(default="tenant_user", description="Application role")
    tenant_id: Optional[str] = Field(None, description="User's own tenant")
    active_tenant_id: Optional[str] = Field(
        None, description="Tenant selected by a cross-tenant user for this request"
    )

    @property
    def effective_tenant_id(self) -> Optional[str]:
        return self.active_tenant_id or self.tenant_id


__all__ = ["JWTClaims", "CurrentUser"]
