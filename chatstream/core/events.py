"""Request and notification payloads. All events are Pydantic models."""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

EVENT_CHAT_ALERT = "chat_alert"
EVENT_CHAT_APPEND = "chat_append"
EVENT_CHAT_FINISH = "chat_finish"
EVENT_CHAT_SUGGESTED_RESPONSES = "chat_suggested_responses"
EVENT_CHAT_TOKEN = "chat_token"

EVENT_CHAT_STOP = "chat_stop"


class AskType(IntEnum):
    """Backend variant selector carried by every request."""

    SYDNEY = 1
    OPENAI = 2


class AskOptions(BaseModel):
    """One chat request. Accepts the inbound wire shape (chatContext, imageURL, reply_deep)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: int = Field(default=AskType.SYDNEY, description="Backend variant selector")
    chat_context: str = Field(default="", alias="chatContext")
    prompt: str = ""
    image_url: str = Field(default="", alias="imageURL")
    reply_deep: int = Field(
        default=0, ge=0, description="How many times this conversation was retried after a revoke"
    )


class ChatAlert(BaseModel):
    event: Literal["chat_alert"] = EVENT_CHAT_ALERT
    message: str

    def payload(self) -> Any:
        return self.message


class ChatAppend(BaseModel):
    event: Literal["chat_append"] = EVENT_CHAT_APPEND
    text: str

    def payload(self) -> Any:
        return self.text


class ChatFinish(BaseModel):
    event: Literal["chat_finish"] = EVENT_CHAT_FINISH

    def payload(self) -> Any:
        return None


class ChatSuggestedResponses(BaseModel):
    event: Literal["chat_suggested_responses"] = EVENT_CHAT_SUGGESTED_RESPONSES
    responses: list[str] = Field(default_factory=list)

    def payload(self) -> Any:
        return list(self.responses)


class ChatToken(BaseModel):
    event: Literal["chat_token"] = EVENT_CHAT_TOKEN
    count: int

    def payload(self) -> Any:
        return self.count


Notification = Annotated[
    Union[ChatAlert, ChatAppend, ChatFinish, ChatSuggestedResponses, ChatToken],
    Field(discriminator="event"),
]

notification_adapter: TypeAdapter[Notification] = TypeAdapter(Notification)


def to_wire(notification: Notification) -> dict[str, Optional[Any]]:
    """Event name plus positional payload, as delivered to a UI."""
    return {"event": notification.event, "data": notification.payload()}
