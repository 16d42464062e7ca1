"""Tests for redaction lookup in recent history."""

from __future__ import annotations

import pytest
from fakes import FakeClient, FakeController

from matrixfs.events import MessageEvent, RedactionEvent, TopicEvent
from matrixfs.services.buffers import BufferBridge
from matrixfs.services.redaction import RedactionResolver, redacted_text
from matrixfs.services.registry import RoomRegistry

R1 = "!r1:hs"


def _msg(i: int) -> MessageEvent:
    return MessageEvent(room_id=R1, sender="@bob:hs", event_id=f"$m{i}", body=f"message {i}")


def _redaction(target: str, token: str | None = "tok") -> RedactionEvent:
    return RedactionEvent(room_id=R1, sender="@bob:hs", event_id="$red", redacts=target, page_token=token)


@pytest.fixture()
def resolver(client: FakeClient, registry: RoomRegistry, bridge: BufferBridge) -> RedactionResolver:
    registry.set_name(R1, "lobby")
    return RedactionResolver(client, registry, bridge)


class TestResolve:
    @pytest.mark.asyncio()
    async def test_found_within_window(self, resolver: RedactionResolver, client: FakeClient) -> None:
        client.history = [_msg(i) for i in range(10)]
        assert await resolver.resolve(_redaction("$m3")) == ("lobby", "s/message 3/[redacted]/")
        assert client.calls == [("fetch_history", R1, "tok", "b", 50)]

    @pytest.mark.asyncio()
    async def test_last_slot_of_window(self, resolver: RedactionResolver, client: FakeClient) -> None:
        client.history = [_msg(i) for i in range(60)]
        assert await resolver.resolve(_redaction("$m49")) == ("lobby", "s/message 49/[redacted]/")

    @pytest.mark.asyncio()
    async def test_older_than_window_dropped(
        self, resolver: RedactionResolver, client: FakeClient, controller: FakeController
    ) -> None:
        client.history = [_msg(i) for i in range(60)]
        assert await resolver.resolve(_redaction("$m55")) is None
        assert await resolver.apply(_redaction("$m55")) is False
        assert controller.writes == []
        assert client.calls_named("mark_read") == []

    @pytest.mark.asyncio()
    async def test_window_is_configurable(self, client: FakeClient, registry: RoomRegistry, bridge: BufferBridge) -> None:
        registry.set_name(R1, "lobby")
        resolver = RedactionResolver(client, registry, bridge, window=5)
        client.history = [_msg(i) for i in range(10)]
        assert await resolver.resolve(_redaction("$m7")) is None
        assert client.calls[-1] == ("fetch_history", R1, "tok", "b", 5)

    @pytest.mark.asyncio()
    async def test_target_not_a_message(self, resolver: RedactionResolver, client: FakeClient) -> None:
        client.history = [TopicEvent(room_id=R1, sender="@bob:hs", event_id="$t", topic="x")]
        assert await resolver.resolve(_redaction("$t")) is None

    @pytest.mark.asyncio()
    async def test_unresolved_room_skips_fetch(self, client: FakeClient, bridge: BufferBridge) -> None:
        resolver = RedactionResolver(client, RoomRegistry(), bridge)
        assert await resolver.resolve(_redaction("$m1")) is None
        assert client.calls == []

    @pytest.mark.asyncio()
    async def test_fetch_failure_is_not_raised(self, resolver: RedactionResolver, client: FakeClient) -> None:
        client.history_error = RuntimeError("timeout")
        assert await resolver.resolve(_redaction("$m1")) is None


class TestApply:
    @pytest.mark.asyncio()
    async def test_writes_and_acknowledges(
        self, resolver: RedactionResolver, client: FakeClient, controller: FakeController
    ) -> None:
        client.history = [_msg(1)]
        assert await resolver.apply(_redaction("$m1", token=None)) is True
        assert controller.main_writes("lobby") == ["s/message 1/[redacted]/"]
        assert client.calls == [("fetch_history", R1, None, "b", 50), ("mark_read", R1, "$red")]

    @pytest.mark.asyncio()
    async def test_write_failure_skips_ack(
        self, resolver: RedactionResolver, client: FakeClient, controller: FakeController
    ) -> None:
        client.history = [_msg(1)]
        controller.missing.add("lobby")
        assert await resolver.apply(_redaction("$m1")) is False
        assert client.calls_named("mark_read") == []


class TestRecentBodies:
    @pytest.mark.asyncio()
    async def test_stripped_target_uses_remembered_body(self, resolver: RedactionResolver, client: FakeClient) -> None:
        resolver.remember(_msg(3))
        client.history = [MessageEvent(room_id=R1, sender="@bob:hs", event_id="$m3", body="", msgtype="", redacted=True)]
        assert await resolver.resolve(_redaction("$m3")) == ("lobby", "s/message 3/[redacted]/")

    @pytest.mark.asyncio()
    async def test_remembered_but_outside_window(self, resolver: RedactionResolver, client: FakeClient) -> None:
        resolver.remember(_msg(55))
        client.history = [_msg(i) for i in range(60)]
        assert await resolver.resolve(_redaction("$m55")) is None

    def test_memory_is_bounded_per_room(self, client: FakeClient, registry: RoomRegistry, bridge: BufferBridge) -> None:
        resolver = RedactionResolver(client, registry, bridge, window=3)
        for i in range(5):
            resolver.remember(_msg(i))
        assert resolver.remembered(R1, "$m0") is None
        assert resolver.remembered(R1, "$m4") == "message 4"
        assert resolver.remembered("!other:hs", "$m4") is None


def test_redacted_text() -> None:
    assert redacted_text("hello") == "s/hello/[redacted]/"
