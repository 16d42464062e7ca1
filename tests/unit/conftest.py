from __future__ import annotations

import pytest
from fakes import FakeClient, FakeController

from matrixfs.services.buffers import BufferBridge
from matrixfs.services.registry import RoomRegistry


@pytest.fixture()
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture()
def controller() -> FakeController:
    return FakeController()


@pytest.fixture()
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture()
def bridge(controller: FakeController) -> BufferBridge:
    return BufferBridge(controller)
