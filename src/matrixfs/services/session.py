"""Session lifecycle: authentication, the supervised sync loop, and shutdown.

States move strictly forward::

    CREATED -> AUTHENTICATING -> SYNCING -> SHUTTING_DOWN -> CLOSED

An authentication failure skips straight to CLOSED. ``run()`` blocks until
CLOSED and re-raises anything fatal to the session; ``quit()`` may be called
from any task at any time.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Protocol, runtime_checkable

from ..config import AppConfig
from ..errors import AuthenticationError, CommandError, SyncError
from ..events import Event
from ..models import Command
from .buffers import BufferBridge, BufferController
from .client import Credentials, ProtocolClient
from .commands import CommandBridge
from .dispatcher import EventDispatcher
from .redaction import RedactionResolver
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CREATED = "created"
    AUTHENTICATING = "authenticating"
    SYNCING = "syncing"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


@runtime_checkable
class CommandSource(Protocol):
    def commands(self) -> AsyncIterator[Command]: ...

    async def report(self, cmd: Command, error: Exception | None) -> None: ...


async def sync_loop(client: ProtocolClient, on_event: Callable[[Event], Awaitable[None]]) -> None:
    """Feed every synced event to *on_event* until cancelled or the transport fails."""
    while True:
        batch = await client.next_events()
        for ev in batch:
            await on_event(ev)


class Session:
    def __init__(
        self,
        config: AppConfig,
        client: ProtocolClient,
        controller: BufferController,
        *,
        commands: CommandSource | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.registry = RoomRegistry()
        self.bridge = BufferBridge(controller)
        self.command_bridge = CommandBridge(client, self.registry)
        self.dispatcher: EventDispatcher | None = None
        self.credentials: Credentials | None = None
        self.state = SessionState.CREATED
        self._command_source = commands
        self._stop = asyncio.Event()
        self._error: BaseException | None = None
        self._sync_task: asyncio.Task[None] | None = None
        self._supervisor_task: asyncio.Task[None] | None = None
        self._command_task: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()

    @property
    def user_id(self) -> str | None:
        return self.credentials.user_id if self.credentials else None

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def quit(self) -> None:
        """Ask the session to shut down. Safe to call repeatedly."""
        if self.state is SessionState.CREATED:
            self.state = SessionState.CLOSED
            self._closed.set()
        self._stop.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def run(self) -> None:
        if self.state is not SessionState.CREATED:
            raise RuntimeError(f"Session cannot run from state {self.state.value}")
        try:
            await self._authenticate()
        except BaseException:
            self.state = SessionState.CLOSED
            self._closed.set()
            raise

        try:
            if not self._stop.is_set():
                self._start_syncing()
                await self._stop.wait()
        finally:
            await self._shutdown()

        if self._error is not None:
            raise SyncError(f"Sync loop stopped: {self._error}") from self._error

    async def command(self, cmd: Command) -> None:
        if self.state is not SessionState.SYNCING:
            raise CommandError(f"Session is {self.state.value}", command=cmd.name)
        await self.command_bridge.dispatch(cmd)

    async def _authenticate(self) -> None:
        self.state = SessionState.AUTHENTICATING
        mx = self.config.matrix
        try:
            if mx.is_guest:
                logger.info("Registering guest session on %s", mx.address)
                self.credentials = await self.client.register_guest()
            else:
                logger.info("Logging in as %s on %s", mx.user, mx.address)
                self.credentials = await self.client.login(mx.user, mx.password)
        except Exception as exc:
            raise AuthenticationError(f"Authentication as {mx.user} failed: {exc}") from exc
        logger.info(
            "login success: user_id=%s device_id=%s",
            self.credentials.user_id,
            self.credentials.device_id,
        )

    def _start_syncing(self) -> None:
        assert self.credentials is not None
        app = self.config.app
        self.dispatcher = EventDispatcher(
            self.client,
            self.registry,
            self.bridge,
            user_id=self.credentials.user_id,
            redactions=RedactionResolver(
                self.client,
                self.registry,
                self.bridge,
                window=self.config.redaction.history_window,
            ),
            status_buffer=app.status_buffer,
            invite_policy=app.invite_policy,
        )
        self.bridge.ensure_buffer(app.status_buffer)
        self.state = SessionState.SYNCING

        self._sync_task = asyncio.create_task(
            sync_loop(self.client, self.dispatcher.on_event), name="matrixfs-sync"
        )
        self._supervisor_task = asyncio.create_task(self._supervise(self._sync_task), name="matrixfs-supervisor")
        if self._command_source is not None:
            self._command_task = asyncio.create_task(
                self._consume_commands(self._command_source), name="matrixfs-commands"
            )
        logger.info("Sync started for %s", self.credentials.user_id)

    async def _supervise(self, task: asyncio.Task[None]) -> None:
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            exc = task.exception()
            logger.error("Sync loop failed: %s", exc, exc_info=exc)
            self._error = exc
        self._stop.set()

    async def _consume_commands(self, source: CommandSource) -> None:
        async for cmd in source.commands():
            if cmd.name == "quit":
                self.quit()
                return
            error: Exception | None = None
            try:
                await self.command_bridge.dispatch(cmd)
            except CommandError as exc:
                logger.info("Command %s rejected: %s", cmd.name, exc)
                error = exc
            try:
                await source.report(cmd, error)
            except Exception:
                logger.warning("Could not report result of %s", cmd.name, exc_info=True)

    async def _shutdown(self) -> None:
        if self.state in (SessionState.SHUTTING_DOWN, SessionState.CLOSED):
            return
        self.state = SessionState.SHUTTING_DOWN
        self._stop.set()
        logger.info("Shutting down session")

        tasks = [t for t in (self._sync_task, self._command_task, self._supervisor_task) if t is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            _done, pending = await asyncio.wait(tasks, timeout=self.config.app.shutdown_grace)
            for task in pending:
                logger.warning("Task %s did not stop within %.1fs", task.get_name(), self.config.app.shutdown_grace)

        try:
            await self.client.logout()
        except Exception as exc:
            logger.warning("Logout failed: %s", exc)
        try:
            await self.client.stop_sync()
        except Exception as exc:
            logger.warning("Stopping sync failed: %s", exc)

        self.state = SessionState.CLOSED
        self._closed.set()
        logger.info("Session closed")
