"""Rich-based terminal output for the matrixfs CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..services.commands import COMMANDS

console = Console(stderr=True)


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug, markup=False)],
        force=True,
    )
    # mautrix and aiohttp are chatty at DEBUG
    if not debug:
        logging.getLogger("mautrix").setLevel(logging.WARNING)


def render_error(message: str) -> None:
    console.print(f"\n[red bold]Error:[/red bold] {escape(message)}")


def render_info(message: str) -> None:
    console.print(f"[grey62]{escape(message)}[/grey62]")


def render_welcome(address: str, user: str, buffer_root: str) -> None:
    console.print(f"\n [bold]matrixfs[/bold] [dim]─[/dim] {escape(user)} @ {escape(address)}")
    console.print(f" [dim]buffers in {escape(buffer_root)} · /help for commands[/dim]\n")


def render_help() -> None:
    console.print()
    for spec in COMMANDS:
        aliases = ", ".join(f"/{a}" for a in spec.aliases)
        usage = escape(" ".join(spec.args))
        console.print(f" [bold]/{spec.name}[/bold] {usage}  [dim]({aliases})[/dim]  {escape(spec.description)}")
    console.print(" [bold]/buffer[/bold] <name>  switch the buffer plain text and /me go to")
    console.print(" [bold]/quit[/bold]  log out and exit")
    console.print()
