"""Request DTOs for API endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """A prior conversation turn."""

    role: Literal["user", "assistant"] = Field(..., description="Who sent the turn")
    content: str = Field(..., description="Turn text", min_length=1)


class ChatRequest(BaseModel):
    """Request DTO for the chat endpoint.

    The handler will convert this to internal calls to the service layer.
    """

    message: str = Field(..., description="Product name, company name or URL", min_length=1)
    history: list[ChatTurn] = Field(
        default_factory=list,
        description="Prior turns, oldest first. Empty for a fresh conversation.",
    )
    language: str = Field("en", description="Report language tag (e.g. 'en', 'fr')", max_length=16)
    user_id: str | None = Field(
        None,
        description="Acting user, recorded for analytics on the shared cache",
    )
