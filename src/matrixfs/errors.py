"""Exception types shared across the session engine."""

from __future__ import annotations


class MatrixfsError(Exception):
    pass


class AuthenticationError(MatrixfsError):
    """Login or guest registration was rejected; the session never started."""


class SyncError(MatrixfsError):
    """The sync loop stopped with a transport error; the session is over."""


class DuplicateRoomError(MatrixfsError):
    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} was already created")
        self.room_id = room_id


class UnresolvedRoomError(MatrixfsError):
    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} has no buffer name yet")
        self.room_id = room_id


class CommandError(MatrixfsError, ValueError):
    def __init__(self, message: str, *, command: str | None = None) -> None:
        super().__init__(message)
        self.command = command
