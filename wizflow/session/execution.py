"""
Execution session: owns the duplex control channel to the external runner.

Every control action (START, PAUSE, RESUME) closes the current channel and
opens a fresh one; the message is sent from the open step, never before the
channel is open. Status frames arriving on the live channel are decoded and
handed to `on_update` strictly in arrival order. Frames from a channel that
has been replaced or closed are discarded.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from ..errors import ChannelError
from ..notify import Notifier, LoggingNotifier
from ..workflow.compiler import dumps_document
from ..workflow.schema import WorkflowDocument
from .messages import (
    ControlMessage, StartMessage, PauseMessage, ResumeMessage, NodeUpdate,
    encode_message, decode_message,
)

logger = logging.getLogger(__name__)

# Errors a transport may raise while opening, sending or reading
TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)

Connect = Callable[[str], Awaitable[Any]]


class ChannelState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


async def websocket_connect(url: str):
    """ Default channel factory: a `websockets` client connection. """
    return await websockets.connect(url)


class ExecutionSession:
    """
    At most one live runner channel per editing session.

    Args:
        url: runner websocket endpoint
        connect: coroutine factory returning a channel with ``send``, ``close``
            and async iteration over inbound frames
        notifier: receives user-facing success / error notifications
        on_update: called with each decoded NodeUpdate
    """

    def __init__(self, url: str, *, connect: Optional[Connect] = None,
                 notifier: Optional[Notifier] = None,
                 on_update: Optional[Callable[[NodeUpdate], None]] = None):
        self.url = url
        self.notifier = notifier or LoggingNotifier()
        self.on_update = on_update
        self.state = ChannelState.IDLE
        self._connect = connect or websocket_connect
        self._channel: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def channel(self) -> Any:
        return self._channel

    async def __aenter__(self) -> "ExecutionSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.teardown()

    async def run(self, doc: WorkflowDocument) -> bool:
        """ Open a fresh channel and send START with the serialized document. """
        message = StartMessage(workflow=dumps_document(doc))
        return await self._control(message, "Workflow execution started")

    async def pause(self) -> bool:
        return await self._control(PauseMessage(), "Workflow execution paused")

    async def resume(self) -> bool:
        return await self._control(ResumeMessage(), "Workflow execution resumed")

    async def teardown(self) -> None:
        """ Close the channel whatever state it is in. Safe to call repeatedly. """
        self._generation += 1
        await self._close_current()
        if self.state != ChannelState.IDLE:
            self.state = ChannelState.CLOSED

    async def wait_closed(self) -> None:
        """ Wait until the runner closes the current channel. """
        reader = self._reader
        if reader is not None:
            await asyncio.wait({reader})

    async def _control(self, message: ControlMessage, success: str) -> bool:
        self._generation += 1
        generation = self._generation
        await self._close_current()

        self.state = ChannelState.CONNECTING
        try:
            channel = await self._open()
        except ChannelError as e:
            if generation == self._generation:
                self.state = ChannelState.CLOSED
            logger.error("%s", e)
            self.notifier.error("WebSocket connection error")
            return False

        if generation != self._generation:
            # another control action or a teardown started while connecting
            logger.info("Discarding superseded runner channel")
            await self._close_channel(channel)
            return False

        self._channel = channel
        self.state = ChannelState.OPEN
        logger.info("Runner channel opened: %s", self.url)
        if not await self._on_open(channel, message):
            return False
        self.notifier.success(success)
        self._reader = asyncio.create_task(self._pump(channel))
        return True

    async def _open(self) -> Any:
        try:
            return await self._connect(self.url)
        except ChannelError:
            raise
        except TRANSPORT_ERRORS as e:
            raise ChannelError(f"Could not connect to runner at {self.url}: {e}") from e

    async def _on_open(self, channel: Any, message: ControlMessage) -> bool:
        try:
            await channel.send(encode_message(message))
        except TRANSPORT_ERRORS as e:
            logger.error("Failed to send %s to runner: %s", message.type, e)
            self.notifier.error("WebSocket connection error")
            await self._close_current()
            self.state = ChannelState.CLOSED
            return False
        logger.debug("Sent %s", message.type)
        return True

    async def _pump(self, channel: Any) -> None:
        try:
            async for frame in channel:
                if channel is not self._channel:
                    break
                self._dispatch(frame)
        except TRANSPORT_ERRORS as e:
            if channel is self._channel:
                logger.error("Runner channel failed: %s", e)
                self.notifier.error("WebSocket connection error")
        finally:
            if channel is self._channel:
                logger.info("Runner channel closed")
                self._channel = None
                self.state = ChannelState.CLOSED

    def _dispatch(self, frame: Any) -> None:
        try:
            update = decode_message(frame)
        except ValueError as e:
            logger.warning("Skipping inbound frame: %s", e)
            return
        if update is None:
            logger.debug("Ignoring inbound message: %s", frame)
            return
        logger.debug("NODE_UPDATE %s status=%s loading=%s",
                     update.node_id, update.status, update.loading)
        if self.on_update is None:
            return
        try:
            self.on_update(update)
        except Exception:
            logger.exception("Status handler failed for task %s", update.node_id)

    async def _close_current(self) -> None:
        channel, reader = self._channel, self._reader
        self._channel = None
        self._reader = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            await asyncio.wait({reader})
        if channel is not None:
            await self._close_channel(channel)
            self.state = ChannelState.CLOSED

    async def _close_channel(self, channel: Any) -> None:
        try:
            await channel.close()
        except TRANSPORT_ERRORS as e:
            logger.debug("Error while closing runner channel: %s", e)
