from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ButtonSchema(BaseModel):
    id: str
    title: str


class SendMessageRequest(BaseModel):
    to: str
    message: str
    type: Literal["text", "interactive"] = "text"
    buttons: Optional[list[ButtonSchema]] = None


class SendMessageResponse(BaseModel):
    success: bool
    message: str
    messageId: Optional[str] = None


class NotificationRequest(BaseModel):
    to: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
