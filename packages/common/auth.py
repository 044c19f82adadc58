"""Auth helpers for FastAPI endpoints.

Tokens are issued by the auth collaborator; these services only validate them.

Provides:
- `User` Pydantic model for the JWT subject, keeping the raw bearer token so it
  can be forwarded to the quiz service
- `verify_jwt` to decode/validate RS256 JWTs
- `get_current_user` FastAPI dependency using HTTP Bearer auth
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from pydantic import BaseModel
from .config import get_settings

security = HTTPBearer(auto_error=False)

ELEVATED_ROLES = frozenset({"Admin"})


class User(BaseModel):
    """Authenticated user extracted from a validated JWT."""
    sub: str
    email: str | None = None
    roles: list[str] = []
    token: str | None = None

    @property
    def is_elevated(self) -> bool:
        """True if the user may read other learners' submissions."""
        return bool(ELEVATED_ROLES.intersection(self.roles))

    @property
    def authorization(self) -> str | None:
        """`Authorization` header value to forward to collaborators."""
        return f"Bearer {self.token}" if self.token else None


def verify_jwt(token: str) -> User:
    """Decode and validate a JWT and return a `User`.

    Validates signature (RS256), audience, and expiration using settings.
    Raises HTTP 401 on any validation failure.

    Args:
        token: Bearer token string (JWT).

    Returns:
        User: Parsed user info from token claims.
    """
    s = get_settings()
    try:
        payload = jwt.decode(
            token,
            s.JWT_PUBLIC_KEY,
            algorithms=["RS256"],
            audience=s.OIDC_AUDIENCE,
            options={"verify_exp": True, "require": ["sub", "exp"]},
        )
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    roles = payload.get("roles")
    if roles is None and payload.get("role"):
        roles = [payload["role"]]
    return User(
        sub=str(payload["sub"]),
        email=payload.get("email"),
        roles=list(roles or []),
        token=token,
    )


def get_current_user(creds: HTTPAuthorizationCredentials = Depends(security)) -> User:
    """FastAPI dependency to extract the current user from Authorization header.

    Args:
        creds: Parsed HTTP Bearer credentials injected by FastAPI.

    Returns:
        User: The authenticated user.

    Raises:
        HTTPException: 401 if credentials are missing or token is invalid.
    """
    if not creds:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing credentials",
        )
    return verify_jwt(creds.credentials)
