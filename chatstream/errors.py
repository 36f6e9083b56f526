"""Exception types for chatstream."""

from __future__ import annotations


class ChatStreamError(Exception):
    """Base exception for chatstream."""


class FrameParseError(ChatStreamError):
    """Raised when a frame or an inner payload is not valid JSON of the expected shape."""


class ConversationError(ChatStreamError):
    """Raised by a source factory when the conversation cannot be opened."""


class UnsupportedVariantError(ChatStreamError):
    """Raised when a request names a backend variant with no interpreter."""

    def __init__(self, variant: object) -> None:
        super().__init__(f"unsupported backend variant: {variant!r}")
        self.variant = variant
