"""Room id to buffer name resolution."""

from __future__ import annotations

import logging
from typing import Final

from ..errors import DuplicateRoomError
from ..events import NameSource

logger = logging.getLogger(__name__)


class _Unresolved:
    _instance: _Unresolved | None = None

    def __new__(cls) -> _Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED: Final = _Unresolved()


class RoomRegistry:
    """Maps protocol room ids to buffer names.

    Owned by a single dispatcher; nothing else writes to it. A room's entry
    moves from ``UNRESOLVED`` to a concrete name and never back. Buffer names
    are unique: a room whose name is already taken by another room gets its
    room id appended.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, str | _Unresolved] = {}
        self._created: set[str] = set()

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def resolve(self, room_id: str) -> str | _Unresolved:
        return self._rooms.get(room_id, UNRESOLVED)

    def register(self, room_id: str) -> None:
        """Record the room's creation. A name seen earlier is kept."""
        if room_id in self._created:
            raise DuplicateRoomError(room_id)
        self._created.add(room_id)
        self._rooms.setdefault(room_id, UNRESOLVED)

    def set_name(self, room_id: str, name: str, source: NameSource = NameSource.ROOM_NAME) -> bool:
        """Record *name* for *room_id*; return True if the buffer name changed.

        An explicit room name always wins. A canonical alias only fills a room
        that has no name yet.
        """
        name = name.strip()
        if not name:
            return False
        current = self._rooms.get(room_id, UNRESOLVED)
        if source is NameSource.ALIAS and current is not UNRESOLVED:
            return False
        owner = self.room_for(name)
        if owner is not None and owner != room_id:
            name = f"{name}:{room_id}"
        if current == name:
            return False
        if owner is not None and owner != room_id:
            logger.warning("Room %s shares the name of %s; using buffer '%s'", room_id, owner, name)
        self._rooms[room_id] = name
        return True

    def room_for(self, name: str) -> str | None:
        for room_id, current in self._rooms.items():
            if current == name:
                return room_id
        return None

    def names(self) -> dict[str, str]:
        return {room_id: n for room_id, n in self._rooms.items() if isinstance(n, str)}
