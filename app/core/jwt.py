"""JWT verification for bearer access tokens (HS256 shared secret)."""

from typing import Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.schemas.auth import JWTClaims
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class JWTVerifier:
    """Verifies access tokens signed with the shared secret.

    The application role is read from ``app_role``, then ``app_metadata.role``,
    then ``role``. The tenant comes from ``tenant_id`` or ``app_metadata.tenant_id``.
    """

    def __init__(self, jwt_secret: str, audience: Optional[str] = "authenticated"):
        self.jwt_secret = jwt_secret
        self.audience = audience or None

    def verify_token(self, token: str) -> JWTClaims:
        """Verify and decode an access token.

        Raises:
            jwt.InvalidTokenError: If the token is invalid, expired or the
                verifier has no secret configured
        """
        if not self.jwt_secret:
            raise jwt.InvalidTokenError("AUTH_JWT_SECRET is not configured")

        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=["HS256"],
                audience=self.audience,
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_aud": self.audience is not None,
                    "require": ["sub", "exp", "iat"],
                },
            )
        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise jwt.InvalidTokenError("Token has expired") from e
        except jwt.InvalidSignatureError as e:
            LOGGER.warning(f"Invalid signature: {e}")
            raise jwt.InvalidTokenError("Invalid token signature") from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid token: {e}")
            raise

        metadata = payload.get("app_metadata") or {}
        audience = payload.get("aud")
        try:
            claims = JWTClaims(
                **{
                    **payload,
                    "aud": audience[0] if isinstance(audience, list) and audience else audience,
                    "role": payload.get("app_role") or metadata.get("role") or payload.get("role") or "tenant_user",
                    "tenant_id": payload.get("tenant_id") or metadata.get("tenant_id"),
                }
            )
        except PydanticValidationError as e:
            LOGGER.warning(f"Token claims are malformed: {e}")
            raise jwt.InvalidTokenError("Malformed token claims") from e

        LOGGER.debug(f"Successfully verified token for user: {claims.sub}")
        return claims


jwt_verifier = JWTVerifier(
    jwt_secret=settings.auth.jwt_secret,
    audience=settings.auth.jwt_audience,
)
