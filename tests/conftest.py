from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections.abc import Callable, Iterator
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from aiopulsenative.config import ClientConfig
from aiopulsenative.models import (
    FRAME_DESCRIPTOR_SIZE,
    SUBSCRIPTION_TAG,
    pack_frame,
    unpack_frame_descriptor,
)
from aiopulsenative.models.tagstruct import TagStructReader, TagStructWriter
from aiopulsenative.models.types import Command, ErrorCode

COOKIE = bytes(range(256))


@dataclass
class ReceivedRequest:
    command: int
    tag: int
    body: TagStructReader
    raw: bytes = field(repr=False)


# Returns a reply body, an error code, or None to leave the request unanswered.
Handler = Callable[[ReceivedRequest], "TagStructWriter | bytes | ErrorCode | None"]


class FakePulseServer:
    """Minimal PulseAudio server speaking the native framing on a UNIX socket."""

    def __init__(
        self,
        socket_path: str,
        *,
        version: int = 32,
        client_index: int = 7,
    ) -> None:
        self.socket_path = socket_path
        self.handlers: dict[int, Handler] = {
            Command.AUTH: lambda _req: TagStructWriter().put_u32(version),
            Command.SET_CLIENT_NAME: lambda _req: TagStructWriter().put_u32(client_index),
        }
        self.received: list[ReceivedRequest] = []
        self.requests: asyncio.Queue[ReceivedRequest] = asyncio.Queue()
        self.connection_lost = asyncio.Event()
        self._server: asyncio.AbstractServer | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._connected = asyncio.Event()

    async def __aenter__(self) -> FakePulseServer:
        self._server = await asyncio.start_unix_server(self._handle, path=self.socket_path)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.drop()
        assert self._server is not None
        self._server.close()
        await self._server.wait_closed()

    def on(self, command: Command, handler: Handler) -> None:
        self.handlers[command] = handler

    def commands(self) -> list[int]:
        return [request.command for request in self.received]

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writer = writer
        self._connected.set()
        try:
            while True:
                header = await reader.readexactly(FRAME_DESCRIPTOR_SIZE)
                descriptor = unpack_frame_descriptor(header)
                raw = await reader.readexactly(descriptor.length)
                body = TagStructReader(raw)
                request = ReceivedRequest(
                    command=body.read_u32(), tag=body.read_u32(), body=body, raw=raw
                )
                self.received.append(request)
                self.requests.put_nowait(request)
                handler = self.handlers.get(request.command)
                if handler is None:
                    continue
                result = handler(request)
                if isinstance(result, ErrorCode):
                    await self.error(request.tag, result)
                elif result is not None:
                    await self.reply(request.tag, result)
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            self.connection_lost.set()

    async def next_request(self, command: Command) -> ReceivedRequest:
        while True:
            request = await asyncio.wait_for(self.requests.get(), 5)
            if request.command == command:
                return request

    async def send(self, data: bytes) -> None:
        await asyncio.wait_for(self._connected.wait(), 5)
        assert self._writer is not None
        self._writer.write(data)
        await self._writer.drain()

    async def reply(self, tag: int, body: TagStructWriter | bytes | None = None) -> None:
        await self.send(pack_frame(Command.REPLY, tag, body))

    async def error(self, tag: int, code: int) -> None:
        await self.send(pack_frame(Command.ERROR, tag, TagStructWriter().put_u32(code)))

    async def send_event(
        self, event: int = 0x10, index: int = 0, tag: int = SUBSCRIPTION_TAG
    ) -> None:
        body = TagStructWriter().put_u32(event).put_u32(index)
        await self.send(pack_frame(Command.SUBSCRIBE_EVENT, tag, body))

    async def drop(self) -> None:
        if self._writer is None:
            return
        self._writer.close()
        with suppress(ConnectionError):
            await self._writer.wait_closed()
        self._writer = None


@pytest.fixture
def workdir() -> Iterator[Path]:
    # Short path: UNIX socket paths are limited to about 100 bytes
    path = Path(tempfile.mkdtemp(prefix="pa-"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(workdir: Path) -> str:
    return str(workdir / "native")


@pytest.fixture
def cookie_path(workdir: Path) -> str:
    path = workdir / "cookie"
    path.write_bytes(COOKIE)
    return str(path)


@pytest.fixture
def config(socket_path: str, cookie_path: str) -> ClientConfig:
    return ClientConfig(
        socket_path=socket_path,
        cookie_path=cookie_path,
        request_timeout=5,
        application_name="noisetorch-test",
    )


@pytest.fixture
def make_server(socket_path: str) -> Callable[..., FakePulseServer]:
    return lambda **kwargs: FakePulseServer(socket_path, **kwargs)
