"""Tests for the buffer bridge and the directory store."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeController

from matrixfs.services.buffers import BufferBridge, BufferController
from matrixfs.services.store import DirectoryStore


class TestBufferBridge:
    def test_writes_release_writer(self, bridge: BufferBridge, controller: FakeController) -> None:
        assert bridge.write_main("lobby", "hi") is True
        assert bridge.write_title("lobby", "topic") is True
        assert controller.writes == [("main", "lobby", "hi"), ("title", "lobby", "topic")]
        assert controller.closed == 2

    def test_write_failure_still_releases(self, bridge: BufferBridge, controller: FakeController) -> None:
        controller.failing_writes.add("lobby")
        assert bridge.write_main("lobby", "hi") is False
        assert controller.closed == 1

    def test_missing_writer_is_reported(self, bridge: BufferBridge, controller: FakeController) -> None:
        controller.missing.add("lobby")
        assert bridge.write_title("lobby", "topic") is False
        assert controller.closed == 0

    def test_ensure_buffer_and_roster(self, bridge: BufferBridge, controller: FakeController) -> None:
        assert bridge.ensure_buffer("lobby") is True
        assert bridge.update_roster("lobby", "@bob:hs", "join") is True
        assert controller.created == ["lobby"]
        assert controller.roster == [("lobby", "@bob:hs", "join")]

    def test_create_failure_is_reported(self, controller: FakeController) -> None:
        def _fail(name: str) -> None:
            raise PermissionError(name)

        controller.create_buffer = _fail  # type: ignore[method-assign]
        assert BufferBridge(controller).ensure_buffer("lobby") is False


class TestDirectoryStore:
    @pytest.fixture()
    def store(self, tmp_path: Path) -> DirectoryStore:
        return DirectoryStore(tmp_path / "matrix")

    def test_satisfies_controller_protocol(self, store: DirectoryStore) -> None:
        assert isinstance(store, BufferController)

    def test_create_buffer_layout(self, store: DirectoryStore) -> None:
        store.create_buffer("lobby")
        store.create_buffer("lobby")
        path = store.root / "lobby"
        assert (path / "main").read_text() == ""
        assert (path / "title").read_text() == ""

    def test_main_appends_lines(self, store: DirectoryStore) -> None:
        store.create_buffer("lobby")
        bridge = BufferBridge(store)
        bridge.write_main("lobby", "hi")
        bridge.write_main("lobby", "there\n")
        assert (store.root / "lobby" / "main").read_text() == "hi\nthere\n"

    def test_title_is_replaced(self, store: DirectoryStore) -> None:
        store.create_buffer("lobby")
        bridge = BufferBridge(store)
        bridge.write_title("lobby", "first")
        bridge.write_title("lobby", "second")
        assert (store.root / "lobby" / "title").read_text() == "second"

    def test_writer_for_unknown_buffer_fails(self, store: DirectoryStore) -> None:
        with pytest.raises(FileNotFoundError):
            store.main_writer("nope")
        assert BufferBridge(store).write_main("nope", "hi") is False

    def test_unsafe_names_are_flattened(self, store: DirectoryStore) -> None:
        store.create_buffer("a/../b")
        assert (store.root / "a_.._b").is_dir()
        with pytest.raises(ValueError):
            store.create_buffer("..")

    def test_roster(self, store: DirectoryStore) -> None:
        store.create_buffer("lobby")
        store.update_roster("lobby", "@bob:hs", "join")
        store.update_roster("lobby", "@alice:hs", "join")
        store.update_roster("lobby", "@bob:hs", "leave")
        assert (store.root / "lobby" / "members").read_text() == "@alice:hs\n"
