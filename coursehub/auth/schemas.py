"""Pydantic schemas for authentication."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coursehub.auth.permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Identity resolved from a validated access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="User ID (token subject)")
    role: UserRole = Field(default=UserRole.STUDENT, description="User role")
    email: str | None = Field(default=None, description="Email, when in the token")
    issued_at: datetime | None = Field(default=None, description="Token iat")
