"""
Pydantic models for API payloads and responses.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    """Sign-up and login body."""

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class SignupResponse(BaseModel):
    message: str
    id: str


class TokenResponse(BaseModel):
    token: str


class MessageResponse(BaseModel):
    message: str


class User(BaseModel):
    """Basic user representation. Password hashes are never serialized."""

    id: str
    username: Optional[str] = None


class Profile(User):
    direct_friends_count: int = 0
    friends_of_friends_count: int = 0


class Recommendation(BaseModel):
    """A ranked friend suggestion, serialized as `{"id", "mutualCount"}`."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    mutual_count: int = Field(..., ge=1, alias="mutualCount")
