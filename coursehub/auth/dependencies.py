"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT
- Role-based access control
"""

from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import ValidationError

from coursehub.auth.permissions import UserRole, has_permission
from coursehub.auth.schemas import AuthenticatedUser
from coursehub.auth.security import decode_access_token
from coursehub.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _user_from_payload(payload: dict[str, Any]) -> AuthenticatedUser:
    iat = payload.get("iat")
    return AuthenticatedUser(
        id=payload["sub"],
        role=payload.get("role", UserRole.STUDENT.value),
        email=payload.get("email"),
        issued_at=datetime.fromtimestamp(iat, tz=UTC) if iat else None,
    )


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Get current authenticated user from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = _user_from_payload(decode_access_token(token))
    except (JWTError, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    set_user_id(user.id)
    return user


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser | None:
    """Get current user if authenticated, None otherwise.

    Use this for endpoints that work for both authenticated and anonymous users.
    """
    if not token:
        return None

    try:
        user = _user_from_payload(decode_access_token(token))
    except (JWTError, ValidationError):
        return None

    set_user_id(user.id)
    return user


def require_role(required_role: UserRole):
    """Create dependency requiring at least a permission level.

    Example:
        @router.post("/")
        async def create(
            user: Annotated[
                AuthenticatedUser, Depends(require_role(UserRole.INSTRUCTOR))
            ]
        ):
            # Accessible by INSTRUCTOR and ADMIN
            ...
    """

    async def role_checker(
        user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    ) -> AuthenticatedUser:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return role_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
OptionalUser = Annotated[AuthenticatedUser | None, Depends(get_current_user_optional)]
InstructorUser = Annotated[
    AuthenticatedUser, Depends(require_role(UserRole.INSTRUCTOR))
]
AdminUser = Annotated[AuthenticatedUser, Depends(require_role(UserRole.ADMIN))]
