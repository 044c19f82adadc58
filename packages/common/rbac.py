"""RBAC utilities for FastAPI dependencies.

Provides:
- `require_roles(*roles)`: dependency factory ensuring the authenticated user
  (from `get_current_user`) holds at least one of the given roles
- `ensure_self_or_elevated`: guard for endpoints scoped to a single learner
"""

from typing import Callable
from fastapi import Depends
from .auth import get_current_user, User
from .errors import AuthorizationError


def require_roles(*accepted: str) -> Callable[[User], User]:
    """Create a dependency that enforces presence of one of the given roles.

    Args:
        accepted: Role names; holding any one of them is sufficient.

    Returns:
        A FastAPI dependency callable that:
          - receives the current `User` (via `Depends(get_current_user)`)
          - raises `AuthorizationError` (403) if none of `accepted` is held
          - otherwise returns the `User`
    """
    def wrapper(user: User = Depends(get_current_user)) -> User:
        """Validate the current user's roles against the accepted set."""
        if not set(accepted).intersection(user.roles):
            raise AuthorizationError("Insufficient role")
        return user

    return wrapper


def ensure_self_or_elevated(user: User, owner_id: str) -> None:
    """Reject access to another user's data (learner history, instructor quizzes) unless the caller is elevated."""
    if user.sub != owner_id and not user.is_elevated:
        raise AuthorizationError("Not authorized to access another user's data")
