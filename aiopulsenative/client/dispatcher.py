"""
Request/reply multiplexing over a single PulseAudio connection.

Every request carries a 32-bit tag and the server answers with a REPLY or ERROR
packet carrying the same tag. Server-initiated SUBSCRIBE_EVENT packets use the
reserved tag 0xFFFFFFFF and are folded into a coalescing update channel.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass

from aiopulsenative.errors import (
    ConnectionClosed,
    ProtocolViolation,
    PulseAudioError,
    PulseError,
    RequestTimeout,
    RequestTooLarge,
    TransportError,
)
from aiopulsenative.models import SUBSCRIPTION_TAG, SubscriptionEvent, pack_frame
from aiopulsenative.models.tagstruct import TagStructReader, TagStructWriter
from aiopulsenative.models.types import Command

from .transport import Transport

logger = logging.getLogger(__name__)

# Callback invoked once when the dispatcher closes, with the fault that closed it (if any).
CloseCallback = Callable[[BaseException | None], None]


def _command_name(code: int) -> str:
    try:
        return Command(code).name
    except ValueError:
        return str(code)


class UpdateChannel:
    """
    Capacity-one channel signalling that some server object changed.

    A notification that arrives while a previous one is still unread is dropped, so
    a slow reader sees "something changed" once instead of a growing backlog.
    Iterating the channel yields None per update and stops when the connection closes.
    """

    _pending: bool = False
    """True if a notification is waiting to be read."""
    _error: ConnectionClosed | None = None
    """Set once the channel is closed."""
    _wakeup: asyncio.Event

    def __init__(self) -> None:
        """Create an open, empty channel."""
        self._wakeup = asyncio.Event()

    @property
    def pending(self) -> bool:
        """Return True if an unread notification is waiting."""
        return self._pending

    @property
    def closed(self) -> bool:
        """Return True once the channel has been closed."""
        return self._error is not None

    def notify(self) -> bool:
        """
        Signal an update without blocking.

        Returns:
            False if the notification was coalesced into an unread one or the channel
            is closed, True otherwise.
        """
        if self._error is not None or self._pending:
            return False
        self._pending = True
        self._wakeup.set()
        return True

    def close(self, error: ConnectionClosed) -> None:
        """Close the channel; readers waiting now or later receive error."""
        if self._error is not None:
            return
        self._error = error
        self._wakeup.set()

    async def wait(self) -> None:
        """
        Wait for the next update.

        An update that was signalled before the channel closed is still delivered.

        Raises:
            ConnectionClosed: If the channel is closed and nothing is pending
        """
        while True:
            if self._pending:
                self._pending = False
                self._wakeup.clear()
                return
            if self._error is not None:
                raise ConnectionClosed(str(self._error), self._error.reason)
            self._wakeup.clear()
            await self._wakeup.wait()

    def __aiter__(self) -> UpdateChannel:
        """Return the channel itself as async iterator."""
        return self

    async def __anext__(self) -> None:
        """Wait for the next update, stopping when the connection closes."""
        try:
            await self.wait()
        except ConnectionClosed:
            raise StopAsyncIteration from None


@dataclass(slots=True)
class _PendingRequest:
    """Waiter registered for one request tag."""

    command: Command
    future: asyncio.Future[TagStructReader]


class Dispatcher:
    """
    Correlates requests and replies on one transport.

    A writer task drains the outgoing queue so only one task ever writes to the
    socket, and a reader task routes every incoming packet. Both tasks and all
    shared state live on the event loop that created the dispatcher.
    """

    _transport: Transport
    _request_timeout: float | None
    """Default deadline in seconds applied to requests, None for no deadline."""
    _loop: asyncio.AbstractEventLoop
    _pending: dict[int, _PendingRequest]
    """Requests waiting for their reply, keyed by tag."""
    _abandoned: set[int]
    """Tags given up after a timeout or cancellation whose reply is still outstanding."""
    _next_tag: int = 0
    _to_write: asyncio.Queue[tuple[int, bytes]]
    """Outgoing frames with the tag they were built for."""
    _updates: UpdateChannel
    _close_callbacks: list[CloseCallback]
    _closed: bool = False
    _close_reason: BaseException | None = None
    _reader_task: asyncio.Task[None] | None = None
    _writer_task: asyncio.Task[None] | None = None

    def __init__(self, transport: Transport, *, request_timeout: float | None = None) -> None:
        """
        Create a dispatcher for an open transport.

        Args:
            transport: Connected transport; the dispatcher takes ownership of it.
            request_timeout: Default per-request deadline in seconds, None to wait forever.
        """
        self._transport = transport
        self._request_timeout = request_timeout
        self._loop = asyncio.get_running_loop()
        self._pending = {}
        self._abandoned = set()
        self._to_write = asyncio.Queue()
        self._updates = UpdateChannel()
        self._close_callbacks = []

    def start(self) -> None:
        """Start the reader and writer tasks."""
        if self._reader_task is not None:
            return
        self._reader_task = self._loop.create_task(self._reader())
        self._writer_task = self._loop.create_task(self._writer())

    @property
    def closed(self) -> bool:
        """Return True once the dispatcher refuses new requests."""
        return self._closed

    @property
    def close_reason(self) -> BaseException | None:
        """Return the fault that closed the dispatcher, None for a regular close."""
        return self._close_reason

    @property
    def pending_count(self) -> int:
        """Return the number of requests waiting for a reply."""
        return len(self._pending)

    @property
    def updates(self) -> UpdateChannel:
        """Return the coalescing channel fed by subscription events."""
        return self._updates

    def add_close_listener(self, callback: CloseCallback) -> Callable[[], None]:
        """Add a listener invoked once when the dispatcher closes.

        Returns:
            A function that removes this listener when called.
        """
        self._close_callbacks.append(callback)

        def _remove() -> None:
            with suppress(ValueError):
                self._close_callbacks.remove(callback)

        return _remove

    def _closed_error(self) -> ConnectionClosed:
        if self._close_reason is None:
            return ConnectionClosed()
        return ConnectionClosed(
            f"PulseAudio connection lost: {self._close_reason}", self._close_reason
        )

    def _allocate_tag(self) -> int:
        """Return the next free tag, never the reserved subscription tag."""
        # There are fewer taken tags than iterations, so one of them is free.
        for _ in range(len(self._pending) + len(self._abandoned) + 1):
            tag = self._next_tag
            self._next_tag = (tag + 1) % SUBSCRIPTION_TAG
            if tag not in self._pending and tag not in self._abandoned:
                return tag
        raise RuntimeError("No free request tag")

    async def request(
        self,
        command: Command,
        body: TagStructWriter | None = None,
        *,
        timeout: float | None = None,
    ) -> TagStructReader:
        """
        Send a request and wait for its reply.

        Args:
            command: Command to send.
            body: Tagged arguments of the command.
            timeout: Deadline in seconds, None to use the dispatcher default.

        Returns:
            Reader positioned at the first value after the reply header.

        Raises:
            PulseError: The server answered with an error code.
            RequestTimeout: No reply arrived before the deadline.
            RequestTooLarge: The request does not fit in a frame; this closes the connection.
            TransportError: Writing this request failed.
            ConnectionClosed: The connection is or became closed.
        """
        if self._closed:
            raise self._closed_error()

        tag = self._allocate_tag()
        try:
            frame = pack_frame(command, tag, body)
        except RequestTooLarge as err:
            logger.error("Refusing to send %s: %s", command.name, err)
            await self.close(err)
            raise

        future: asyncio.Future[TagStructReader] = self._loop.create_future()
        self._pending[tag] = _PendingRequest(command, future)
        self._to_write.put_nowait((tag, frame))
        logger.debug("Sending %s with tag %d", command.name, tag)

        if timeout is None:
            timeout = self._request_timeout
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError as err:
            self._abandon(tag, future)
            raise RequestTimeout(
                f"No reply to {command.name} (tag {tag}) within {timeout} seconds"
            ) from err
        except asyncio.CancelledError:
            self._abandon(tag, future)
            raise

    def _abandon(self, tag: int, future: asyncio.Future[TagStructReader]) -> None:
        """Forget a waiter whose caller stopped waiting; its late reply will be dropped."""
        entry = self._pending.get(tag)
        if entry is None or entry.future is not future:
            return
        del self._pending[tag]
        if not self._closed:
            self._abandoned.add(tag)
        logger.debug("Abandoned %s with tag %d", entry.command.name, tag)

    async def _writer(self) -> None:
        """Write queued frames to the transport, one at a time."""
        while True:
            tag, frame = await self._to_write.get()
            try:
                await self._transport.write_frame(frame)
            except TransportError as err:
                logger.error("Failed to send request with tag %d: %s", tag, err)
                entry = self._pending.pop(tag, None)
                if entry is not None and not entry.future.done():
                    entry.future.set_exception(err)
                await self.close(err)
                return

    async def _reader(self) -> None:
        """Route incoming packets until the connection ends."""
        try:
            while True:
                payload = await self._transport.read_frame()
                self._handle_packet(payload)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as err:
            logger.info("%s", err)
            await self.close(err)
        except PulseAudioError as err:
            logger.error("Closing PulseAudio connection after protocol fault: %s", err)
            await self.close(err)
        except Exception as err:
            logger.exception("Unexpected error in PulseAudio reader")
            await self.close(err)

    def _handle_packet(self, payload: bytes) -> None:
        """Route one packet to its waiter or to the update channel.

        Raises:
            MalformedFrame: The packet header or an error body cannot be decoded.
            ProtocolViolation: The packet does not belong to any request.
        """
        reader = TagStructReader(payload)
        command = reader.read_u32()
        tag = reader.read_u32()

        if command == Command.SUBSCRIBE_EVENT:
            if tag != SUBSCRIPTION_TAG:
                raise ProtocolViolation(f"Subscription event with request tag {tag}")
            event = SubscriptionEvent.read_from(reader)
            delivered = self._updates.notify()
            logger.debug(
                "Subscription event %s/%s index %d%s",
                event.facility.name if event.facility is not None else "?",
                event.event_type.name if event.event_type is not None else "?",
                event.index,
                "" if delivered else " (coalesced)",
            )
            return

        entry = self._pending.get(tag)
        if entry is None:
            if tag in self._abandoned:
                self._abandoned.discard(tag)
                logger.warning("Discarding stale %s for tag %d", _command_name(command), tag)
                return
            raise ProtocolViolation(f"Received {_command_name(command)} for unknown tag {tag}")

        if command == Command.REPLY:
            del self._pending[tag]
            logger.debug("Reply to %s with tag %d", entry.command.name, tag)
            if not entry.future.done():
                entry.future.set_result(reader)
        elif command == Command.ERROR:
            code = reader.read_u32()
            del self._pending[tag]
            error = PulseError(entry.command, code)
            logger.debug("%s", error)
            if not entry.future.done():
                entry.future.set_exception(error)
        else:
            raise ProtocolViolation(
                f"Received {_command_name(command)} for tag {tag} of {entry.command.name}"
            )

    async def close(self, reason: BaseException | None = None) -> None:
        """
        Close the dispatcher and its transport.

        Every waiting request fails with ConnectionClosed, the update channel closes and
        later requests fail immediately. Safe to call more than once and from the
        dispatcher's own tasks.

        Args:
            reason: Fault that ended the connection, None for a regular close.
        """
        if self._closed:
            return
        self._closed = True
        self._close_reason = reason

        pending = list(self._pending.values())
        self._pending.clear()
        self._abandoned.clear()
        for entry in pending:
            if not entry.future.done():
                entry.future.set_exception(self._closed_error())
        self._updates.close(self._closed_error())

        current_task = asyncio.current_task(loop=self._loop)
        for task in (self._reader_task, self._writer_task):
            if task is not None and task is not current_task and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        await self._transport.close()

        for callback in list(self._close_callbacks):
            try:
                callback(reason)
            except Exception:
                logger.exception("Error in close listener")
