"""Recover display context for retracted messages."""

from __future__ import annotations

import logging
from collections import deque

from ..config import DEFAULT_HISTORY_WINDOW
from ..events import MessageEvent, RedactionEvent
from .buffers import BufferBridge
from .client import BACKWARD, ProtocolClient, acknowledge
from .registry import UNRESOLVED, RoomRegistry

logger = logging.getLogger(__name__)


def redacted_text(body: str) -> str:
    return f"s/{body}/[redacted]/"


class RedactionResolver:
    """Looks a redacted message up in recent room history.

    Only one page of ``window`` events is read, backwards from the point the
    redaction arrived. Older targets are dropped silently.

    By the time a redaction is delivered the server has already stripped the
    original's content, so the bodies of the last ``window`` messages written
    per room are kept here. The history page decides whether the target is
    recent enough; the kept body supplies the text.
    """

    def __init__(
        self,
        client: ProtocolClient,
        registry: RoomRegistry,
        bridge: BufferBridge,
        *,
        window: int = DEFAULT_HISTORY_WINDOW,
    ) -> None:
        self._client = client
        self._registry = registry
        self._bridge = bridge
        self.window = window
        self._recent: dict[str, deque[tuple[str, str]]] = {}

    def remember(self, ev: MessageEvent) -> None:
        """Keep the body of a message that was written to its buffer."""
        if ev.redacted or not ev.event_id:
            return
        recent = self._recent.get(ev.room_id)
        if recent is None:
            recent = self._recent[ev.room_id] = deque(maxlen=self.window)
        recent.append((ev.event_id, ev.body))

    def remembered(self, room_id: str, event_id: str) -> str | None:
        for seen_id, body in reversed(self._recent.get(room_id, ())):
            if seen_id == event_id:
                return body
        return None

    async def resolve(self, ev: RedactionEvent) -> tuple[str, str] | None:
        name = self._registry.resolve(ev.room_id)
        if name is UNRESOLVED:
            logger.debug("Redaction %s in unresolved room %s dropped", ev.event_id, ev.room_id)
            return None
        try:
            history = await self._client.fetch_history(ev.room_id, ev.page_token, BACKWARD, self.window)
        except Exception as exc:
            logger.warning("History fetch for redaction %s in %s failed: %s", ev.event_id, ev.room_id, exc)
            return None

        for original in list(history)[: self.window]:
            if original.event_id != ev.redacts:
                continue
            if not isinstance(original, MessageEvent):
                return None
            body = self.remembered(ev.room_id, ev.redacts)
            if body is None and not original.redacted:
                body = original.body
            if body is None:
                logger.debug("Redacted message %s in %s was never seen", ev.redacts, ev.room_id)
                return None
            return name, redacted_text(body)

        logger.debug("Redacted event %s not within the last %d events of %s", ev.redacts, self.window, ev.room_id)
        return None

    async def apply(self, ev: RedactionEvent) -> bool:
        resolved = await self.resolve(ev)
        if resolved is None:
            return False
        name, text = resolved
        if not self._bridge.write_main(name, text):
            return False
        await acknowledge(self._client, ev.room_id, ev.event_id)
        return True
