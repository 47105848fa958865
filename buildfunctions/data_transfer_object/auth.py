from typing import Optional

from pydantic import Field

from buildfunctions.pydantic_base import DictCompatibleImmutableModel


class AuthenticatedUser(DictCompatibleImmutableModel):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    compute_tier: Optional[str] = Field(default=None, alias="computeTier")


class AuthResponse(DictCompatibleImmutableModel):
    authenticated: bool
    user: AuthenticatedUser
    session_token: str = Field(alias="sessionToken")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    authenticated_at: Optional[str] = Field(
        default=None, alias="authenticatedAt"
    )
