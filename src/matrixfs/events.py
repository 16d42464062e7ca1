"""Typed room events consumed by the dispatcher.

The transport hands over raw client-server JSON; ``parse_event`` narrows it to
one of a closed set of frozen dataclasses, each carrying only the fields its
handler needs. Unrecognized event types parse to ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class NameSource(str, Enum):
    ROOM_NAME = "m.room.name"
    ALIAS = "m.room.canonical_alias"


@dataclass(frozen=True)
class RoomEvent:
    room_id: str
    sender: str
    event_id: str


@dataclass(frozen=True)
class CreateEvent(RoomEvent):
    pass


@dataclass(frozen=True)
class NameEvent(RoomEvent):
    name: str
    source: NameSource = NameSource.ROOM_NAME


@dataclass(frozen=True)
class TopicEvent(RoomEvent):
    topic: str


@dataclass(frozen=True)
class AvatarEvent(RoomEvent):
    url: str = ""


@dataclass(frozen=True)
class MembershipEvent(RoomEvent):
    target: str
    membership: str


@dataclass(frozen=True)
class MessageEvent(RoomEvent):
    body: str
    formatted_body: str = ""
    msgtype: str = "m.text"
    # Content stripped by a redaction; only the identifiers survive
    redacted: bool = False

    @property
    def display_text(self) -> str:
        return self.formatted_body or self.body


@dataclass(frozen=True)
class RedactionEvent(RoomEvent):
    redacts: str
    # Pagination token of the batch the redaction arrived in; history is read backwards from it.
    page_token: str | None = None


Event = Union[
    CreateEvent,
    NameEvent,
    TopicEvent,
    AvatarEvent,
    MembershipEvent,
    MessageEvent,
    RedactionEvent,
]


def parse_event(raw: dict[str, Any], room_id: str, page_token: str | None = None) -> Event | None:
    event_type = raw.get("type")
    content = raw.get("content") or {}
    if not isinstance(content, dict):
        return None
    common = {
        "room_id": raw.get("room_id") or room_id,
        "sender": raw.get("sender", ""),
        "event_id": raw.get("event_id", ""),
    }

    if event_type == "m.room.create":
        return CreateEvent(**common)
    if event_type == "m.room.name":
        return NameEvent(**common, name=content.get("name", ""), source=NameSource.ROOM_NAME)
    if event_type == "m.room.canonical_alias":
        return NameEvent(**common, name=content.get("alias") or "", source=NameSource.ALIAS)
    if event_type == "m.room.topic":
        return TopicEvent(**common, topic=content.get("topic", ""))
    if event_type == "m.room.avatar":
        return AvatarEvent(**common, url=content.get("url", ""))
    if event_type == "m.room.member":
        return MembershipEvent(
            **common,
            target=raw.get("state_key", ""),
            membership=content.get("membership", ""),
        )
    if event_type == "m.room.message":
        if "body" not in content:
            # Redacted messages keep their type but lose their content
            return MessageEvent(**common, body="", msgtype="", redacted=True)
        return MessageEvent(
            **common,
            body=str(content.get("body", "")),
            formatted_body=str(content.get("formatted_body", "")),
            msgtype=content.get("msgtype", "m.text"),
        )
    if event_type == "m.room.redaction":
        # Room versions 11+ moved `redacts` into the content
        redacts = raw.get("redacts") or content.get("redacts")
        if not redacts:
            return None
        return RedactionEvent(**common, redacts=redacts, page_token=page_token)
    return None
