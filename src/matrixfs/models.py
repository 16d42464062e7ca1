"""Pydantic models for records arriving from the presentation layer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    args: tuple[str, ...] = Field(default_factory=tuple)
    sender: str = ""
    target_room: str = ""


def parse_command_line(line: str, *, target_room: str = "", sender: str = "") -> Command | None:
    """Parse ``/name arg arg...`` into a Command.

    For ``msg`` style commands everything after the first argument is kept as a
    single argument so message text survives intact. Returns None for lines
    that are not commands.
    """
    text = line.strip()
    if not text.startswith("/") or len(text) == 1:
        return None
    head, _, rest = text[1:].partition(" ")
    name = head.lower()
    rest = rest.strip()
    if name in ("msg", "query", "m", "q"):
        target, _, body = rest.partition(" ")
        args = tuple(a for a in (target, body.strip()) if a)
    else:
        args = tuple(rest.split()) if rest else ()
    return Command(name=name, args=args, sender=sender, target_room=target_room)
