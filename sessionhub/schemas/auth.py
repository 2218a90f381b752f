"""Authentication schemas for the API."""

from datetime import datetime

from pydantic import (
    BaseModel,
    Field,
)


class Token(BaseModel):
    """A signed JWT and its expiry."""

    access_token: str = Field(..., description="The signed token")
    token_type: str = Field(default="bearer", description="The type of token")
    expires_at: datetime = Field(..., description="The token expiration timestamp")


class TokenPayload(BaseModel):
    """Claims extracted from a verified token."""

    user_id: str
    role: str = "student"
    token_type: str = "access_token"


class RefreshTokenRequest(BaseModel):
    """Request model for token refresh."""

    refresh_token: str = Field(..., min_length=10, max_length=2048, description="Refresh token")


class TokenPairResponse(BaseModel):
    """A fresh access/refresh pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
