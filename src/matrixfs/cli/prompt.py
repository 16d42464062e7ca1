"""Interactive command source reading from the terminal."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterator

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from ..models import Command, parse_command_line
from . import renderer

logger = logging.getLogger(__name__)


def line_to_command(line: str, buffer: str, sender: str = "") -> Command | None:
    """Plain text goes to the current buffer as a message; ``/...`` lines are commands."""
    text = line.strip()
    if not text:
        return None
    if text.startswith("/"):
        return parse_command_line(text, target_room=buffer, sender=sender)
    if not buffer:
        return None
    return Command(name="msg", args=(buffer, text), sender=sender, target_room=buffer)


class PromptCommandSource:
    def __init__(self, *, buffer: str = "", history_path: Path | None = None, sender: str = "") -> None:
        self.buffer = buffer
        self.sender = sender
        history = FileHistory(str(history_path)) if history_path else InMemoryHistory()
        self._session: PromptSession[str] = PromptSession(history=history, multiline=False)

    async def commands(self) -> AsyncIterator[Command]:
        while True:
            try:
                with patch_stdout():
                    line = await self._session.prompt_async(f"{self.buffer or '-'}> ")
            except KeyboardInterrupt:
                continue
            except EOFError:
                yield Command(name="quit", sender=self.sender)
                return

            cmd = line_to_command(line, self.buffer, self.sender)
            if cmd is None:
                if line.strip() and not self.buffer:
                    renderer.render_error("No current buffer; use /buffer <name> first")
                continue
            if cmd.name in ("buffer", "b"):
                if len(cmd.args) != 1:
                    renderer.render_error("usage: /buffer <name>")
                    continue
                self.buffer = cmd.args[0]
                continue
            if cmd.name == "help":
                renderer.render_help()
                continue
            if cmd.name in ("quit", "exit"):
                yield Command(name="quit", sender=self.sender)
                return
            yield cmd

    async def report(self, cmd: Command, error: Exception | None) -> None:
        if error is not None:
            renderer.render_error(str(error))
