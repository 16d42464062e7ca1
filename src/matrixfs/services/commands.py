"""Outbound user commands: messages, emotes, joins."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

from ..errors import CommandError
from ..models import Command
from .client import ProtocolClient
from .registry import RoomRegistry

logger = logging.getLogger(__name__)

CommandHandler = Callable[[Command], Coroutine[Any, Any, None]]


@dataclass(frozen=True)
class CommandSpec:
    name: str
    description: str
    aliases: tuple[str, ...] = ()
    args: tuple[str, ...] = ()
    heading: str = "default"

    @property
    def usage(self) -> str:
        return " ".join((self.name, *self.args))


COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name="action",
        aliases=("me", "act"),
        args=("<msg>",),
        heading="action",
        description="Send an emote to the channel",
    ),
    CommandSpec(
        name="msg",
        aliases=("query", "m", "q"),
        args=("<name>", "<msg>"),
        description="Send a direct message to the user",
    ),
    CommandSpec(
        name="join",
        aliases=("j",),
        args=("<room>",),
        description="Join a room, or accept a pending invite",
    ),
)


class CommandBridge:
    """Turns presentation-layer commands into outbound protocol requests.

    Runs on the caller's task. Reads the registry to map buffer names back to
    room ids; never writes it.
    """

    def __init__(
        self,
        client: ProtocolClient,
        registry: RoomRegistry,
        specs: tuple[CommandSpec, ...] = COMMANDS,
    ) -> None:
        self.client = client
        self.registry = registry
        self.specs = specs
        self._handlers: dict[str, CommandHandler] = {
            "action": self._action,
            "msg": self._msg,
            "join": self._join,
        }
        self._aliases: dict[str, str] = {}
        for spec in specs:
            self._aliases[spec.name] = spec.name
            for alias in spec.aliases:
                self._aliases[alias] = spec.name

    def canonical(self, name: str) -> str | None:
        return self._aliases.get(name.lower())

    async def dispatch(self, cmd: Command) -> None:
        name = self.canonical(cmd.name)
        handler = self._handlers.get(name) if name else None
        if handler is None:
            raise CommandError(f"Unknown command: {cmd.name}", command=cmd.name)
        logger.debug("command name=%s sender=%s target=%s", name, cmd.sender, cmd.target_room)
        await handler(cmd)

    def room_id(self, target: str) -> str:
        """Map a buffer name to its room id; other targets pass through."""
        return self.registry.room_for(target) or target

    async def _action(self, cmd: Command) -> None:
        body = " ".join(cmd.args).strip()
        if not cmd.target_room:
            raise CommandError("action needs a target buffer", command=cmd.name)
        if not body:
            raise CommandError("usage: action <msg>", command=cmd.name)
        await self._send(cmd, self.client.send_emote, self.room_id(cmd.target_room), body)

    async def _msg(self, cmd: Command) -> None:
        if len(cmd.args) < 2:
            raise CommandError("usage: msg <name> <msg>", command=cmd.name)
        target, *words = cmd.args
        body = " ".join(words).strip()
        if not body:
            raise CommandError("usage: msg <name> <msg>", command=cmd.name)
        await self._send(cmd, self.client.send_message, await self._message_room(cmd, target), body)

    async def _message_room(self, cmd: Command, target: str) -> str:
        """User ids (``@alice:hs``) go through their direct-message room."""
        if not target.startswith("@"):
            return self.room_id(target)
        try:
            return await self.client.direct_room(target)
        except Exception as exc:
            raise CommandError(f"No direct room with {target}: {exc}", command=cmd.name) from exc

    async def _join(self, cmd: Command) -> None:
        if len(cmd.args) != 1:
            raise CommandError("usage: join <room>", command=cmd.name)
        try:
            await self.client.join_room(cmd.args[0])
        except Exception as exc:
            raise CommandError(f"join {cmd.args[0]} failed: {exc}", command=cmd.name) from exc

    async def _send(
        self,
        cmd: Command,
        send: Callable[[str, str], Coroutine[Any, Any, str]],
        room: str,
        body: str,
    ) -> None:
        try:
            await send(room, body)
        except Exception as exc:
            raise CommandError(f"{cmd.name} to {room} failed: {exc}", command=cmd.name) from exc
