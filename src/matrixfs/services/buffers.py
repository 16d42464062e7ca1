"""Writes into the presentation layer.

``BufferBridge`` is the only code that touches a ``BufferController``. Every
write acquires a writer for the duration of the call and releases it on all
paths; failures are logged and reported as a False return, never retried.
"""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class BufferWriter(Protocol):
    def write(self, text: str) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class BufferController(Protocol):
    def create_buffer(self, name: str) -> None: ...

    def main_writer(self, name: str) -> BufferWriter: ...

    def title_writer(self, name: str) -> BufferWriter: ...

    def update_roster(self, name: str, user_id: str, membership: str) -> None: ...


class BufferBridge:
    def __init__(self, controller: BufferController) -> None:
        self._controller = controller

    def ensure_buffer(self, name: str) -> bool:
        try:
            self._controller.create_buffer(name)
        except Exception as exc:
            logger.warning("Could not create buffer '%s': %s", name, exc)
            return False
        return True

    def write_main(self, name: str, text: str) -> bool:
        return self._write("main", name, text)

    def write_title(self, name: str, text: str) -> bool:
        return self._write("title", name, text)

    def update_roster(self, name: str, user_id: str, membership: str) -> bool:
        try:
            self._controller.update_roster(name, user_id, membership)
        except Exception as exc:
            logger.warning("Roster update for '%s' failed: %s", name, exc)
            return False
        return True

    def _write(self, stream: str, name: str, text: str) -> bool:
        acquire = self._controller.main_writer if stream == "main" else self._controller.title_writer
        try:
            writer = acquire(name)
        except Exception as exc:
            logger.warning("No %s writer for buffer '%s': %s", stream, name, exc)
            return False
        try:
            with closing(writer):
                writer.write(text)
        except Exception as exc:
            logger.warning("Write to %s stream of '%s' failed: %s", stream, name, exc)
            return False
        return True
