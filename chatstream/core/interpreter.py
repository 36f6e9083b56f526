"""Stream interpreter: turns raw protocol frames into chat_* notifications.

State for one request lives in ``InterpreterState`` and is owned by the task
running ``StreamInterpreter.run``. The answer arrives as a growing full text,
so each frame forwards only the part past the watermark. Whatever ends the
loop (source closed, error frame, revocation, stop), ``ChatFinish`` is emitted
exactly once.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from chatstream.config.loader import ChatSettings
from chatstream.core.cancellation import CancelScope
from chatstream.core.events import (
    AskOptions,
    ChatAlert,
    ChatAppend,
    ChatFinish,
    ChatSuggestedResponses,
    ChatToken,
)
from chatstream.core.frames import (
    AnswerUpdate,
    ChatMessage,
    MessageKind,
    RawFrame,
    SuggestionsUpdate,
    parse_frame,
    parse_search_results,
)
from chatstream.core.sink import NotificationSink
from chatstream.core.source import FrameSource
from chatstream.core.tokenizer import TokenCounter
from chatstream.errors import FrameParseError

logger = logging.getLogger(__name__)

SEARCH_QUERY_BLOCK = "[assistant](#search_query)\n"
SEARCH_RESULTS_BLOCK = "[assistant](#search_results)\n"
LOADING_BLOCK = "[assistant](#loading)\n"
GENERATIVE_IMAGE_BLOCK = "[assistant](#generative_image)\nKeyword: "
MESSAGE_BLOCK = "[assistant](#message)\n"
BLOCK_END = "\n\n"

NO_RESULT_MARKER = "no relevant result"
APOLOGY_ORIGIN = "Apology"
IMAGE_CONTENT_TYPE = "IMAGE"

ALERT_REVOKED = "Message revoke detected"
ALERT_FILTERED = "Looks like the user's message has triggered the Bing filter"


@dataclass
class InterpreterState:
    watermark: int = 0
    has_committed_text: bool = False
    revoked: bool = False


class StreamInterpreter:
    """Consumes one request's frames and pushes notifications to a sink."""

    def __init__(
        self,
        options: AskOptions,
        sink: NotificationSink,
        tokenizer: TokenCounter,
        settings: Optional[ChatSettings] = None,
    ) -> None:
        self._options = options
        self._sink = sink
        self._tokenizer = tokenizer
        self._settings = settings or ChatSettings()
        self.state = InterpreterState()
        self._handlers: dict[MessageKind, Callable[[AnswerUpdate], Awaitable[bool]]] = {
            MessageKind.SEARCH_QUERY: self._on_search_query,
            MessageKind.SEARCH_RESULT: self._on_search_result,
            MessageKind.LOADER: self._on_loader,
            MessageKind.GENERATE_CONTENT: self._on_generate_content,
            MessageKind.ANSWER: self._on_answer,
            MessageKind.UNRECOGNIZED: self._on_unrecognized,
        }

    async def run(self, source: FrameSource, scope: Optional[CancelScope] = None) -> None:
        """Consume frames until the source ends, an error or revoke arrives, or scope stops."""
        scope = scope or CancelScope()
        try:
            async with aclosing(scope.guard(source)) as frames:
                async for frame in frames:
                    if not await self.handle(frame):
                        break
            if scope.stopped:
                logger.info("chat stopped by user", extra={"watermark": self.state.watermark})
        finally:
            await self._sink.emit(ChatFinish())

    async def handle(self, frame: RawFrame) -> bool:
        """Process one frame. Returns False when the loop must end."""
        if frame.is_error:
            await self._sink.emit(ChatAlert(message=frame.error or ""))
            return False
        try:
            update = parse_frame(frame.payload or "")
        except FrameParseError as e:
            logger.warning("skipping unparsable frame: %s", e, extra={"payload": frame.payload})
            return True
        if isinstance(update, AnswerUpdate):
            return await self._handlers[update.message.kind](update)
        if isinstance(update, SuggestionsUpdate):
            await self._send_suggestions(update.message)
            return True
        logger.debug("ignoring frame", extra={"payload": frame.payload})
        return True

    async def _append(self, text: str) -> None:
        await self._sink.emit(ChatAppend(text=text))

    async def _send_suggestions(self, message: ChatMessage) -> None:
        suggestions = message.suggestions()
        if suggestions is not None:
            await self._sink.emit(ChatSuggestedResponses(responses=suggestions))

    async def _on_search_query(self, update: AnswerUpdate) -> bool:
        await self._append(SEARCH_QUERY_BLOCK + (update.message.hidden_text or "") + BLOCK_END)
        return True

    async def _on_search_result(self, update: AnswerUpdate) -> bool:
        message = update.message
        hidden = message.hidden_text or ""
        if NO_RESULT_MARKER in hidden:
            await self._append(SEARCH_QUERY_BLOCK + hidden + BLOCK_END)
            return True
        try:
            groups = parse_search_results(message.text)
        except FrameParseError as e:
            logger.warning("error when parsing search results: %s", e, extra={"text": message.text})
            return True
        links = []
        for group in groups:
            # numbering restarts in every group
            for index, result in enumerate(group, start=1):
                links.append(result.citation(index))
        await self._append(SEARCH_RESULTS_BLOCK + "\n\n".join(links) + BLOCK_END)
        return True

    async def _on_loader(self, update: AnswerUpdate) -> bool:
        message = update.message
        if message.hidden_text is not None:
            body = message.hidden_text
        elif message.text is not None:
            body = message.text
        else:
            body = message.raw
        await self._append(LOADING_BLOCK + body + BLOCK_END)
        return True

    async def _on_generate_content(self, update: AnswerUpdate) -> bool:
        message = update.message
        if message.content_type != IMAGE_CONTENT_TYPE:
            return True
        await self._append(GENERATIVE_IMAGE_BLOCK + (message.text or "") + BLOCK_END)
        return True

    async def _on_answer(self, update: AnswerUpdate) -> bool:
        message = update.message
        state = self.state
        if update.cursor:
            await self._append(MESSAGE_BLOCK)
            state.watermark = 0
        if message.content_origin == APOLOGY_ORIGIN:
            state.revoked = True
            await self._sink.emit(ChatAlert(message=self._revoke_alert()))
            return False
        full_text = message.text or ""
        await self._append(full_text[state.watermark :])
        state.watermark = len(full_text)
        state.has_committed_text = True
        await self._sink.emit(ChatToken(count=self._tokenizer(full_text)))
        await self._send_suggestions(message)
        return True

    def _revoke_alert(self) -> str:
        settings = self._settings
        retry_left = bool(settings.revoke_reply_text) and (
            self._options.reply_deep < settings.revoke_reply_count
        )
        if self.state.has_committed_text and retry_left:
            return ALERT_REVOKED
        return ALERT_FILTERED

    async def _on_unrecognized(self, update: AnswerUpdate) -> bool:
        message = update.message
        logger.warning(
            "unsupported message type: %s",
            message.message_type,
            extra={"prompt": self._options.prompt, "response": message.raw},
        )
        return True
