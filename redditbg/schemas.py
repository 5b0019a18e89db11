"""redditbg - Pydantic models for API validation.

Request/response models for the control API.
"""

from pydantic import BaseModel, ConfigDict, Field

# --- Request Models ---


class SetMemberCreate(BaseModel):
    """Request payload for adding a URL to a set."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., min_length=1, description="URL to add to the set")


# --- Response Models ---


class SetMemberResponse(BaseModel):
    """One PersistentSets row."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    name: str = Field(..., description="Set name")
    url: str = Field(..., description="Member URL")
    timestamp: str | None = Field(default=None, description="Insertion time (UTC, YYYY-MM-DD HH:MM:SS)")


class SetSummary(BaseModel):
    """A set name with its member count."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Set name")
    count: int = Field(..., ge=0, description="Number of members")


class SetListResponse(BaseModel):
    """All sets known to the database."""

    model_config = ConfigDict(extra="forbid")

    sets: list[SetSummary] = Field(default_factory=list)


class SetMembersResponse(BaseModel):
    """Members of one set, oldest first."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Set name")
    members: list[SetMemberResponse] = Field(default_factory=list)


class CacheStatusResponse(BaseModel):
    """State of the image cache."""

    model_config = ConfigDict(extra="forbid")

    cached: int = Field(..., ge=0, description="Images currently cached")
    max_cached: int = Field(..., ge=0, description="Cache capacity")
    need: int = Field(..., ge=0, description="Images a refresh would try to fetch")


class RefreshAcceptedResponse(BaseModel):
    """Response for a queued refresh."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="queued", description="Operation status")


class ErrorResponse(BaseModel):
    """Response for failed operations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error", description="Operation status")
    error_code: str = Field(..., description="Error code")
    error_message: str = Field(..., description="Human-readable error description")


__all__ = [
    "SetMemberCreate",
    "SetMemberResponse",
    "SetSummary",
    "SetListResponse",
    "SetMembersResponse",
    "CacheStatusResponse",
    "RefreshAcceptedResponse",
    "ErrorResponse",
]
