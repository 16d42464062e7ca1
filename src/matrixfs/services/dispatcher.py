"""Route typed room events to their handlers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Coroutine

from ..config import InvitePolicy
from ..errors import DuplicateRoomError, UnresolvedRoomError
from ..events import (
    AvatarEvent,
    CreateEvent,
    Event,
    MembershipEvent,
    MessageEvent,
    NameEvent,
    RedactionEvent,
    TopicEvent,
)
from .buffers import BufferBridge
from .client import ProtocolClient, acknowledge
from .redaction import RedactionResolver
from .registry import UNRESOLVED, RoomRegistry

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Coroutine[Any, Any, None]]

_ROSTER_MEMBERSHIPS = ("join", "leave", "ban")


class EventDispatcher:
    """Single entry point for events coming off the sync loop.

    The dispatcher is the only writer of the room registry. A failing handler
    costs the one event it was handling, never the loop.
    """

    def __init__(
        self,
        client: ProtocolClient,
        registry: RoomRegistry,
        bridge: BufferBridge,
        *,
        user_id: str,
        redactions: RedactionResolver | None = None,
        status_buffer: str = "server",
        invite_policy: InvitePolicy = InvitePolicy.NOTIFY,
    ) -> None:
        self._client = client
        self._registry = registry
        self._bridge = bridge
        self.user_id = user_id
        self._redactions = redactions or RedactionResolver(client, registry, bridge)
        self.status_buffer = status_buffer
        self.invite_policy = invite_policy
        self._handlers: dict[type, EventHandler] = {
            CreateEvent: self._on_create,
            NameEvent: self._on_name,
            TopicEvent: self._on_topic,
            AvatarEvent: self._on_avatar,
            MembershipEvent: self._on_membership,
            MessageEvent: self._on_message,
            RedactionEvent: self._on_redaction,
        }

    @property
    def kinds(self) -> tuple[type, ...]:
        return tuple(self._handlers)

    async def on_event(self, ev: Event) -> None:
        handler = self._handlers.get(type(ev))
        if handler is None:
            logger.debug("Ignoring unrecognized event %r", ev)
            return
        try:
            await handler(ev)
        except (DuplicateRoomError, UnresolvedRoomError) as exc:
            logger.warning("Dropping %s %s: %s", type(ev).__name__, ev.event_id, exc)
        except Exception:
            logger.exception("Handler for %s %s failed", type(ev).__name__, ev.event_id)

    async def _on_create(self, ev: CreateEvent) -> None:
        # No name is known yet; the buffer is created once a name arrives
        self._registry.register(ev.room_id)
        await acknowledge(self._client, ev.room_id, ev.event_id)

    async def _on_name(self, ev: NameEvent) -> None:
        if self._registry.set_name(ev.room_id, ev.name, ev.source):
            self._bridge.ensure_buffer(str(self._registry.resolve(ev.room_id)))
        await acknowledge(self._client, ev.room_id, ev.event_id)

    async def _on_topic(self, ev: TopicEvent) -> None:
        name = self._registry.resolve(ev.room_id)
        if name is UNRESOLVED:
            raise UnresolvedRoomError(ev.room_id)
        self._bridge.write_title(name, ev.topic)

    async def _on_avatar(self, ev: AvatarEvent) -> None:
        await acknowledge(self._client, ev.room_id, ev.event_id)

    async def _on_membership(self, ev: MembershipEvent) -> None:
        if ev.sender == self.user_id:
            return
        if ev.target == self.user_id:
            if ev.membership == "invite":
                await self._on_invite(ev)
                return
            if ev.membership == "ban":
                self._notify(f"{ev.sender} banned you from {self._label(ev.room_id)}")

        if ev.membership not in _ROSTER_MEMBERSHIPS:
            return
        name = self._registry.resolve(ev.room_id)
        if name is UNRESOLVED:
            logger.debug("Membership change in unresolved room %s not forwarded", ev.room_id)
            return
        self._bridge.update_roster(name, ev.target, ev.membership)

    async def _on_invite(self, ev: MembershipEvent) -> None:
        if self.invite_policy is InvitePolicy.IGNORE:
            logger.info("Ignoring invite from %s to %s", ev.sender, ev.room_id)
            return
        self._notify(f"{ev.sender} invited you to {ev.room_id}; send /join {ev.room_id} to accept")
        if self.invite_policy is InvitePolicy.AUTO_JOIN:
            try:
                await self._client.join_room(ev.room_id)
            except Exception as exc:
                logger.error("Failed to join room %s: %s", ev.room_id, exc)

    async def _on_message(self, ev: MessageEvent) -> None:
        if ev.sender == self.user_id or ev.redacted:
            return
        name = self._registry.resolve(ev.room_id)
        # Nowhere to file it without a name; the message is lost
        if name is UNRESOLVED:
            logger.debug("Message %s in unresolved room %s dropped", ev.event_id, ev.room_id)
            return
        if not self._bridge.write_main(name, ev.display_text):
            return
        self._redactions.remember(ev)
        await acknowledge(self._client, ev.room_id, ev.event_id)

    async def _on_redaction(self, ev: RedactionEvent) -> None:
        if ev.sender == self.user_id:
            return
        await self._redactions.apply(ev)

    def _notify(self, text: str) -> None:
        self._bridge.write_main(self.status_buffer, text)

    def _label(self, room_id: str) -> str:
        name = self._registry.resolve(room_id)
        return room_id if name is UNRESOLVED else name
