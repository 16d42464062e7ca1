"""Directory-backed buffer store.

Each buffer is a directory under the store root::

    <root>/<buffer>/main      conversation log, appended line by line
    <root>/<buffer>/title     current topic, replaced on every write
    <root>/<buffer>/members   sorted roster, one user id per line
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[/\\\x00]")


def _buffer_dirname(name: str) -> str:
    cleaned = _UNSAFE_NAME_RE.sub("_", name).strip()
    if cleaned in ("", ".", ".."):
        raise ValueError(f"Invalid buffer name: {name!r}")
    return cleaned


class FileWriter:
    def __init__(self, handle: IO[str], *, newline: bool) -> None:
        self._handle = handle
        self._newline = newline

    def write(self, text: str) -> None:
        self._handle.write(text)
        if self._newline and not text.endswith("\n"):
            self._handle.write("\n")

    def close(self) -> None:
        self._handle.close()


class DirectoryStore:
    def __init__(self, root: Path) -> None:
        self.root = root
        self._rosters: dict[str, set[str]] = {}

    def buffer_path(self, name: str) -> Path:
        return self.root / _buffer_dirname(name)

    def create_buffer(self, name: str) -> None:
        path = self.buffer_path(name)
        if path.is_dir():
            return
        path.mkdir(parents=True, exist_ok=True)
        (path / "main").touch()
        (path / "title").touch()
        logger.info("Created buffer %s", path)

    def main_writer(self, name: str) -> FileWriter:
        path = self._existing(name)
        return FileWriter(open(path / "main", "a", encoding="utf-8"), newline=True)

    def title_writer(self, name: str) -> FileWriter:
        path = self._existing(name)
        return FileWriter(open(path / "title", "w", encoding="utf-8"), newline=False)

    def update_roster(self, name: str, user_id: str, membership: str) -> None:
        path = self._existing(name)
        members = self._rosters.setdefault(name, set())
        if membership == "join":
            members.add(user_id)
        else:
            members.discard(user_id)
        tmp = path / ".members.tmp"
        tmp.write_text("".join(f"{m}\n" for m in sorted(members)), encoding="utf-8")
        os.replace(tmp, path / "members")

    def _existing(self, name: str) -> Path:
        path = self.buffer_path(name)
        if not path.is_dir():
            raise FileNotFoundError(f"No such buffer: {name}")
        return path
