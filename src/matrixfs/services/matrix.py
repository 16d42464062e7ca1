"""ProtocolClient implementation on top of mautrix.

mautrix supplies the HTTP session, authentication and send helpers. Sync,
guest registration and history pages go through the raw client-server API so
batches can be parsed straight into ``matrixfs.events`` types.
"""

from __future__ import annotations

import logging
from typing import Any

from mautrix.api import Method, Path
from mautrix.client import Client
from mautrix.errors import MNotFound
from mautrix.types import EventID, MessageType, RoomID, UserID

from ..errors import SyncError
from ..events import Event, parse_event
from .client import BACKWARD, Credentials

logger = logging.getLogger(__name__)

# Sync state is unordered; rooms must be created and named before their other state applies
_STATE_ORDER = {"m.room.create": 0, "m.room.name": 1, "m.room.canonical_alias": 1}


def _state_rank(raw: dict[str, Any]) -> int:
    return _STATE_ORDER.get(raw.get("type", ""), 2)


def events_from_sync(data: dict[str, Any]) -> list[Event]:
    """Flatten a /sync response into room events, state before timeline.

    State events are ordered creation first, then naming, then the rest.
    Every event carries the batch's ``next_batch`` token so history can be read
    backwards from where the batch ended.
    """
    token = data.get("next_batch")
    rooms = data.get("rooms") or {}
    out: list[Event] = []

    for room_id, room in (rooms.get("join") or {}).items():
        raws = sorted((room.get("state") or {}).get("events") or [], key=_state_rank)
        raws.extend((room.get("timeline") or {}).get("events") or [])
        for raw in raws:
            ev = parse_event(raw, room_id, token)
            if ev is not None:
                out.append(ev)

    for room_id, room in (rooms.get("invite") or {}).items():
        for raw in (room.get("invite_state") or {}).get("events") or []:
            if raw.get("type") != "m.room.member":
                continue
            ev = parse_event(raw, room_id, token)
            if ev is not None:
                out.append(ev)
    return out


class MautrixClient:
    def __init__(
        self,
        address: str,
        *,
        device_id: str = "matrixfs",
        sync_timeout_ms: int = 30000,
        client: Client | None = None,
    ) -> None:
        self._client = client or Client(mxid=UserID(""), base_url=address)
        self._device_id = device_id
        self._sync_timeout_ms = sync_timeout_ms
        self._since: str | None = None
        self._stopped = False

    @property
    def since(self) -> str | None:
        return self._since

    async def login(self, user: str, password: str) -> Credentials:
        resp = await self._client.login(
            identifier=user,
            password=password,
            device_id=self._device_id,
            store_access_token=True,
        )
        return Credentials(
            user_id=str(resp.user_id),
            device_id=str(resp.device_id),
            access_token=resp.access_token,
        )

    async def register_guest(self) -> Credentials:
        resp = await self._client.api.request(
            Method.POST,
            Path.v3.register,
            content={"initial_device_display_name": f"{self._device_id} - guest"},
            query_params={"kind": "guest"},
        )
        creds = Credentials(
            user_id=resp["user_id"],
            device_id=resp.get("device_id", ""),
            access_token=resp["access_token"],
        )
        self._client.mxid = UserID(creds.user_id)
        self._client.device_id = creds.device_id
        self._client.api.token = creds.access_token
        return creds

    async def next_events(self) -> list[Event]:
        if self._stopped:
            raise SyncError("Sync was stopped")
        data = await self._client.sync(since=self._since, timeout=self._sync_timeout_ms)
        if not isinstance(data, dict):
            raise SyncError(f"Unexpected sync response: {type(data).__name__}")
        self._since = data.get("next_batch") or self._since
        return events_from_sync(data)

    async def send_message(self, room: str, body: str) -> str:
        return str(await self._client.send_text(RoomID(room), body))

    async def send_emote(self, room: str, body: str) -> str:
        return str(await self._client.send_text(RoomID(room), body, msgtype=MessageType.EMOTE))

    async def mark_read(self, room: str, event_id: str) -> None:
        await self._client.send_receipt(RoomID(room), EventID(event_id), "m.read")

    async def fetch_history(
        self, room: str, from_token: str | None, direction: str = BACKWARD, limit: int = 50
    ) -> list[Event]:
        query = {"dir": direction, "limit": str(limit)}
        if from_token:
            query["from"] = from_token
        resp = await self._client.api.request(
            Method.GET,
            Path.v3.rooms[room].messages,
            query_params=query,
        )
        out: list[Event] = []
        for raw in resp.get("chunk") or []:
            ev = parse_event(raw, room)
            if ev is not None:
                out.append(ev)
        return out

    async def direct_room(self, user_id: str) -> str:
        """Return the direct-message room shared with *user_id*, creating it if needed."""
        rooms = await self._direct_rooms()
        existing = rooms.get(user_id)
        if existing:
            return existing[0]
        room_id = str(await self._client.create_room(is_direct=True, invitees=[UserID(user_id)]))
        logger.info("Created direct room %s with %s", room_id, user_id)
        rooms[user_id] = [room_id]
        await self._client.api.request(Method.PUT, self._direct_path(), content=rooms)
        return room_id

    async def _direct_rooms(self) -> dict[str, list[str]]:
        try:
            return dict(await self._client.api.request(Method.GET, self._direct_path()))
        except MNotFound:
            return {}

    def _direct_path(self) -> Any:
        return Path.v3.user[self._client.mxid].account_data["m.direct"]

    async def join_room(self, room: str) -> str:
        return str(await self._client.join_room(room))

    async def logout(self) -> None:
        await self._client.logout()

    async def stop_sync(self) -> None:
        self._stopped = True
        self._client.stop()

    async def aclose(self) -> None:
        try:
            await self._client.api.session.close()
        except Exception:
            logger.debug("Error closing HTTP session", exc_info=True)
