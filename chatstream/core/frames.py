"""Protocol frames from the assistant service and their classification.

A frame is one JSON object. Two shapes carry data:

- ``type == 1``: ``arguments[0].messages[0]`` is the message in progress;
  ``arguments[0].cursor`` (presence only) starts a new answer segment.
- ``type == 2``: ``item.messages`` holds the final message list; only the last
  message is read, for its suggested responses.

Everything else is ignored. Within a type 1 frame the message's
``messageType`` selects the sub-stream (see ``MessageKind``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator

from chatstream.errors import FrameParseError

RECORD_SEPARATOR = "\x1e"


class RawFrame(BaseModel):
    """One unit from the raw event source: a JSON payload or a transport error."""

    model_config = ConfigDict(frozen=True)

    payload: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "RawFrame":
        if (self.payload is None) == (self.error is None):
            raise ValueError("RawFrame needs exactly one of payload or error")
        return self

    @classmethod
    def data(cls, payload: str) -> "RawFrame":
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: str) -> "RawFrame":
        return cls(error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None


class MessageKind(str, Enum):
    """Sub-stream of a type 1 message, selected by its messageType."""

    ANSWER = ""
    SEARCH_QUERY = "InternalSearchQuery"
    SEARCH_RESULT = "InternalSearchResult"
    LOADER = "InternalLoaderMessage"
    GENERATE_CONTENT = "GenerateContentQuery"
    UNRECOGNIZED = "<unrecognized>"

    @classmethod
    def classify(cls, raw: Optional[str]) -> "MessageKind":
        if not raw:
            return cls.ANSWER
        for kind in cls:
            if kind is not cls.UNRECOGNIZED and kind.value == raw:
                return kind
        return cls.UNRECOGNIZED


class ChatMessage(BaseModel):
    """The fields of a backend message the interpreter reads. Absent text stays None."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message_type: Optional[str] = Field(default=None, alias="messageType")
    text: Optional[str] = None
    hidden_text: Optional[str] = Field(default=None, alias="hiddenText")
    content_origin: Optional[str] = Field(default=None, alias="contentOrigin")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    suggested_responses: Optional[list[Any]] = Field(
        default=None, alias="suggestedResponses"
    )

    _raw: str = PrivateAttr(default="{}")

    @classmethod
    def from_obj(cls, obj: Any) -> "ChatMessage":
        if not isinstance(obj, dict):
            raise FrameParseError(f"message is not an object: {obj!r}")
        try:
            message = cls.model_validate(obj)
        except ValidationError as e:
            raise FrameParseError(f"malformed message: {e}") from e
        message._raw = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
        return message

    @property
    def kind(self) -> MessageKind:
        return MessageKind.classify(self.message_type)

    @property
    def raw(self) -> str:
        return self._raw

    def suggestions(self) -> Optional[list[str]]:
        """Texts of suggestedResponses in order, or None when the field is absent."""
        if self.suggested_responses is None:
            return None
        return [
            str(item.get("text") or "")
            for item in self.suggested_responses
            if isinstance(item, dict)
        ]


@dataclass(frozen=True)
class AnswerUpdate:
    """A type 1 frame: the first message of arguments[0], plus segment-start flag."""

    message: ChatMessage
    cursor: bool


@dataclass(frozen=True)
class SuggestionsUpdate:
    """A type 2 frame: the last message of item.messages."""

    message: ChatMessage


Update = Union[AnswerUpdate, SuggestionsUpdate]


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str

    def citation(self, index: int) -> str:
        return f"[^{index}^][{self.title}]({self.url})"


def _first_argument(data: dict[str, Any]) -> Optional[dict[str, Any]]:
    arguments = data.get("arguments")
    if not isinstance(arguments, list) or not arguments:
        return None
    first = arguments[0]
    return first if isinstance(first, dict) else None


def parse_frame(payload: str) -> Optional[Update]:
    """Classify one frame payload. Returns None for shapes that carry nothing to render."""
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise FrameParseError(f"frame is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        return None
    frame_type = data.get("type")
    if frame_type == 1:
        argument = _first_argument(data)
        if argument is None:
            return None
        messages = argument.get("messages")
        if not isinstance(messages, list) or not messages:
            return None
        return AnswerUpdate(
            message=ChatMessage.from_obj(messages[0]),
            cursor="cursor" in argument,
        )
    if frame_type == 2:
        item = data.get("item")
        if not isinstance(item, dict):
            return None
        messages = item.get("messages")
        if not isinstance(messages, list) or not messages:
            return None
        return SuggestionsUpdate(message=ChatMessage.from_obj(list(reversed(messages))[0]))
    return None


def parse_search_results(text: Optional[str]) -> list[list[SearchResult]]:
    """Decode the JSON array of result groups carried in a search-result message's text."""
    try:
        groups = json.loads(text or "")
    except (json.JSONDecodeError, TypeError) as e:
        raise FrameParseError(f"search results are not valid JSON: {e}") from e
    if not isinstance(groups, list):
        raise FrameParseError(f"search results are not a list: {type(groups).__name__}")
    parsed = []
    for group in groups:
        items = group if isinstance(group, list) else [group]
        results = []
        for item in items:
            if not isinstance(item, dict):
                continue
            results.append(
                SearchResult(title=str(item.get("title") or ""), url=str(item.get("url") or ""))
            )
        parsed.append(results)
    return parsed


def split_records(buffer: str) -> tuple[list[str], str]:
    """Split a record-separator delimited buffer into complete records and the unfinished tail."""
    *complete, tail = buffer.split(RECORD_SEPARATOR)
    return [r for r in complete if r.strip()], tail
