"""Routes a chat request to the interpreter for its backend variant. One service per session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from chatstream.core.cancellation import CancelScope
from chatstream.core.events import AskOptions, AskType, ChatAlert
from chatstream.core.interpreter import StreamInterpreter
from chatstream.core.sink import NotificationSink
from chatstream.core.source import SourceFactory
from chatstream.core.tokenizer import TokenCounter, Tokenizer
from chatstream.errors import ConversationError, UnsupportedVariantError

if TYPE_CHECKING:
    from chatstream.config.loader import Config

logger = logging.getLogger(__name__)

ALERT_NOT_IMPLEMENTED = "not implemented"

IMPLEMENTED_VARIANTS = frozenset({AskType.SYDNEY})


def select_variant(options: AskOptions) -> AskType:
    """Backend variant from the request's selector; raises for variants with no interpreter."""
    try:
        variant = AskType(options.type)
    except ValueError:
        raise UnsupportedVariantError(options.type) from None
    if variant not in IMPLEMENTED_VARIANTS:
        raise UnsupportedVariantError(variant)
    return variant


class ChatService:
    """Session-scoped entrypoint: ask() runs one request, stop() handles chat_stop."""

    def __init__(
        self,
        config: "Config",
        sink: NotificationSink,
        source_factory: SourceFactory,
        tokenizer: Optional[TokenCounter] = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._source_factory = source_factory
        self._tokenizer = tokenizer or Tokenizer(config.chat.tokenizer_model)
        self._active: Optional[CancelScope] = None

    async def ask(self, options: AskOptions) -> None:
        try:
            select_variant(options)
        except UnsupportedVariantError as e:
            logger.info("%s", e, extra={"variant": e.variant})
            await self._sink.emit(ChatAlert(message=ALERT_NOT_IMPLEMENTED))
            return
        await self._ask_sydney(options)

    async def _ask_sydney(self, options: AskOptions) -> None:
        try:
            source = await self._source_factory(options)
        except ConversationError as e:
            logger.warning("conversation failed: %s", e)
            await self._sink.emit(ChatAlert(message=str(e)))
            return
        scope = CancelScope()
        scope.bind()
        self._active = scope
        interpreter = StreamInterpreter(options, self._sink, self._tokenizer, self._config.chat)
        try:
            await interpreter.run(source, scope)
        finally:
            if self._active is scope:
                self._active = None

    def stop(self) -> bool:
        """Cancel the running request, if any. Safe to call from any thread, any number of times."""
        scope = self._active
        if scope is None:
            return False
        return scope.stop()
