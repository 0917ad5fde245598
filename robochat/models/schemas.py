"""API request and response models. Field aliases follow the widget's camelCase JSON."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    role: str = Field(..., description="system, user or assistant")
    content: str


class ChatProxyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessage] = Field(default_factory=list, description="Conversation so far, oldest first")
    model: str | None = Field(None, description="Provider model id; server default when omitted")
    temperature: float | None = None
    max_tokens: int | None = Field(None, alias="maxTokens")


class ContactSubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Checked by the route so a non-object answers 400 like the PHP endpoint
    collected_data: Any = Field(None, alias="collectedData")


class ContactSubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    saved: bool
    email_sent: bool = Field(..., alias="emailSent")
    message: str


class ContactBotRequest(BaseModel):
    message: str | None = Field(None, description="User's answer to the current question")
    action: str | None = Field(None, description='"reset" starts the form over')


class ContactConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slots: list[dict[str, str]]
    greeting: str
    completion_message: str = Field(..., alias="completionMessage")
