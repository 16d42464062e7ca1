"""The narrow view of the chat protocol client used by the session engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

from ..events import Event

logger = logging.getLogger(__name__)

BACKWARD = "b"
FORWARD = "f"


@dataclass(frozen=True)
class Credentials:
    user_id: str
    device_id: str
    access_token: str


@runtime_checkable
class ProtocolClient(Protocol):
    """An authenticated-on-demand chat client.

    Timeouts and transport retries belong to the implementation; every
    coroutine here either returns or raises.
    """

    async def login(self, user: str, password: str) -> Credentials: ...

    async def register_guest(self) -> Credentials: ...

    async def next_events(self) -> Sequence[Event]:
        """Block until the next sync batch arrives and return its events in order."""
        ...

    async def send_message(self, room: str, body: str) -> str: ...

    async def send_emote(self, room: str, body: str) -> str: ...

    async def mark_read(self, room: str, event_id: str) -> None: ...

    async def fetch_history(
        self, room: str, from_token: str | None, direction: str, limit: int
    ) -> Sequence[Event]: ...

    async def direct_room(self, user_id: str) -> str:
        """Return the id of the direct-message room shared with *user_id*."""
        ...

    async def join_room(self, room: str) -> str: ...

    async def logout(self) -> None: ...

    async def stop_sync(self) -> None: ...


async def acknowledge(client: ProtocolClient, room_id: str, event_id: str) -> None:
    """Mark an event read. Best effort: failures are logged, never raised."""
    if not event_id:
        return
    try:
        await client.mark_read(room_id, event_id)
    except Exception as exc:
        logger.warning("Read receipt failed for %s/%s: %s", room_id, event_id, exc)
