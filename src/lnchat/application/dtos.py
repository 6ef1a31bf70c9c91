"""Data Transfer Objects for the application layer."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..domain.entities import Comment


class CallbackResponseDTO(BaseModel):
    """DTO returned to the wallet with a payable invoice."""

    model_config = ConfigDict(populate_by_name=True)

    pr: str = Field(..., description="BOLT11 payment request")
    success_action: Optional[dict] = Field(None, alias="successAction")
    disposable: bool = True


class ErrorResponseDTO(BaseModel):
    """LNURL error document."""

    status: Literal["ERROR"] = "ERROR"
    reason: str


class CommentsResponseDTO(BaseModel):
    """DTO for returning the comment feed."""

    messages: List[Comment]


class NewCommentEvent(BaseModel):
    """Live event carrying a newly accepted comment."""

    type: Literal["MESSAGE"] = "MESSAGE"
    data: Comment


class PresenceCountEvent(BaseModel):
    """Live event carrying the number of connected viewers."""

    type: Literal["NUM_USERS"] = "NUM_USERS"
    data: int
