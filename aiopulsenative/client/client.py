"""PulseAudio native protocol client implementation."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from contextlib import suppress
from types import TracebackType
from typing import TypeVar

from aiopulsenative.config import ClientConfig
from aiopulsenative.errors import ConnectionClosed, MalformedFrame, PulseError
from aiopulsenative.models.card import Card
from aiopulsenative.models.core import INVALID_INDEX, VOLUME_MAX, VOLUME_NORM
from aiopulsenative.models.device import Sink, Source
from aiopulsenative.models.module import Module
from aiopulsenative.models.server import ServerInfo
from aiopulsenative.models.tagstruct import TagStructReader, TagStructWriter
from aiopulsenative.models.types import Command, ErrorCode, SubscriptionMask
from aiopulsenative.util import AudioServerInfo, detect_audio_server

from .dispatcher import Dispatcher, UpdateChannel
from .session import authenticate, client_properties, load_cookie, set_client_name
from .transport import Transport

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Callback invoked when the client disconnects from the server.
DisconnectCallback = Callable[[], None]


def _read_list(reader: TagStructReader, read_record: Callable[[TagStructReader], _T]) -> list[_T]:
    """Decode records until the reply is exhausted."""
    records = []
    while not reader.at_end:
        records.append(read_record(reader))
    return records


def _to_volume(volume: float) -> int:
    """Convert a linear volume (1.0 = 100 %) to the wire representation."""
    if not math.isfinite(volume):
        raise ValueError(f"Volume {volume} is not a finite number")
    raw = round(volume * VOLUME_NORM)
    if not 0 <= raw <= VOLUME_MAX:
        raise ValueError(f"Volume {volume} is out of range")
    return raw


class PulseClient:
    """
    Async client for the PulseAudio native protocol.

    Many tasks may issue requests concurrently; every operation returns once the
    server answered it. Server errors (PulseError) and timeouts only fail the call
    that caused them. A lost connection fails every in-flight call and every later
    call with ConnectionClosed.

    Usage:
        async with PulseClient() as client:
            for sink in await client.sinks():
                print(sink.name)
    """

    _config: ClientConfig
    """Effective configuration of this client."""
    _dispatcher: Dispatcher | None = None
    """Dispatcher of the current connection, kept after it closed to report why."""
    _client_index: int | None = None
    """Index the server assigned to this client."""
    _protocol_version: int | None = None
    """Protocol version negotiated with the server."""
    _disconnect_callbacks: list[DisconnectCallback]
    """Callbacks invoked when the connection closes."""

    def __init__(
        self,
        socket_path: str | None = None,
        *,
        cookie_path: str | None = None,
        request_timeout: float | None = None,
        application_name: str | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        """
        Create a new PulseAudio client. Call connect() (or use async with) to connect.

        Args:
            socket_path: Server socket, defaults to the per-user PulseAudio socket.
            cookie_path: Authentication cookie, defaults to ~/.config/pulse/cookie.
            request_timeout: Per-request deadline in seconds, None to wait forever.
            application_name: application.name announced to the server.
            config: Base configuration; defaults to ClientConfig.from_env(). The other
                arguments override it when given.
        """
        base = config if config is not None else ClientConfig.from_env()
        self._config = base.override(
            socket_path=socket_path,
            cookie_path=cookie_path,
            request_timeout=request_timeout,
            application_name=application_name,
        )
        self._disconnect_callbacks = []

    @property
    def config(self) -> ClientConfig:
        """Return the effective configuration."""
        return self._config

    @property
    def connected(self) -> bool:
        """Return True if the client currently has an open connection."""
        return self._dispatcher is not None and not self._dispatcher.closed

    @property
    def client_index(self) -> int | None:
        """Return the index the server assigned to this client, if connected once."""
        return self._client_index

    @property
    def protocol_version(self) -> int | None:
        """Return the negotiated protocol version, if connected once."""
        return self._protocol_version

    @property
    def pending_requests(self) -> int:
        """Return the number of requests waiting for their reply."""
        return 0 if self._dispatcher is None else self._dispatcher.pending_count

    @property
    def updates(self) -> UpdateChannel:
        """Return the update channel fed once subscribe() was called."""
        return self._require_dispatcher().updates

    async def connect(self) -> None:
        """
        Connect, authenticate and announce the client.

        Raises:
            BadCookie: The cookie is missing or has the wrong size.
            OSError: The socket cannot be opened.
            VersionUnsupported: The server is too old.
        """
        if self.connected:
            logger.debug("Already connected")
            return

        cookie = load_cookie(self._config.cookie_path)
        logger.info("Connecting to PulseAudio at %s", self._config.socket_path)
        transport = await Transport.open(self._config.socket_path)
        dispatcher = Dispatcher(transport, request_timeout=self._config.request_timeout)
        dispatcher.start()
        try:
            protocol_version = await authenticate(dispatcher, cookie)
            client_index = await set_client_name(
                dispatcher, client_properties(self._config.application_name)
            )
        except BaseException:
            await dispatcher.close()
            raise

        self._dispatcher = dispatcher
        self._protocol_version = protocol_version
        self._client_index = client_index
        dispatcher.add_close_listener(self._on_connection_closed)
        logger.info(
            "Connected to PulseAudio (protocol version %d, client index %d)",
            protocol_version,
            client_index,
        )

    async def disconnect(self) -> None:
        """Close the connection. In-flight requests fail with ConnectionClosed."""
        if self._dispatcher is not None:
            await self._dispatcher.close()

    async def __aenter__(self) -> PulseClient:
        """Connect when entering the context."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Disconnect when leaving the context."""
        await self.disconnect()

    def add_disconnect_listener(self, callback: DisconnectCallback) -> Callable[[], None]:
        """Add a listener for the connection closing (lost or disconnected).

        Returns:
            A function that removes this listener when called.
        """
        self._disconnect_callbacks.append(callback)

        def _remove() -> None:
            with suppress(ValueError):
                self._disconnect_callbacks.remove(callback)

        return _remove

    def _on_connection_closed(self, reason: BaseException | None) -> None:
        if reason is None:
            logger.info("Disconnected from PulseAudio")
        else:
            logger.warning("Connection to PulseAudio lost: %s", reason)
        for callback in list(self._disconnect_callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Error in disconnect listener")

    def _require_dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            raise ConnectionClosed("PulseAudio client is not connected")
        return self._dispatcher

    async def _request(
        self, command: Command, body: TagStructWriter | None = None
    ) -> TagStructReader:
        return await self._require_dispatcher().request(command, body)

    async def _query(
        self,
        command: Command,
        decode: Callable[[TagStructReader], _T],
        body: TagStructWriter | None = None,
    ) -> _T:
        """Send a request and decode its reply; a reply that does not decode is fatal."""
        reply = await self._request(command, body)
        try:
            return decode(reply)
        except MalformedFrame as err:
            logger.error("Cannot decode reply to %s: %s", command.name, err)
            if self._dispatcher is not None:
                await self._dispatcher.close(err)
            raise

    async def server_info(self) -> ServerInfo:
        """Return information about the server and its defaults."""
        return await self._query(Command.GET_SERVER_INFO, ServerInfo.read_from)

    async def sinks(self) -> list[Sink]:
        """Return all sinks in server order."""
        return await self._query(
            Command.GET_SINK_INFO_LIST, lambda reply: _read_list(reply, Sink.read_from)
        )

    async def sources(self) -> list[Source]:
        """Return all sources (including monitors) in server order."""
        return await self._query(
            Command.GET_SOURCE_INFO_LIST, lambda reply: _read_list(reply, Source.read_from)
        )

    async def cards(self) -> list[Card]:
        """Return all cards in server order."""
        return await self._query(
            Command.GET_CARD_INFO_LIST, lambda reply: _read_list(reply, Card.read_from)
        )

    async def modules(self) -> list[Module]:
        """Return all loaded modules in server order."""
        return await self._query(
            Command.GET_MODULE_INFO_LIST, lambda reply: _read_list(reply, Module.read_from)
        )

    async def find_module(self, name: str, argument_match: str = "") -> Module | None:
        """Return the first loaded module called name whose argument contains argument_match."""
        for module in await self.modules():
            if module.name == name and argument_match in module.argument:
                return module
        return None

    async def set_default_sink(self, name: str) -> None:
        """Make the named sink the default sink."""
        await self._request(Command.SET_DEFAULT_SINK, TagStructWriter().put_string(name))

    async def set_default_source(self, name: str) -> None:
        """Make the named source the default source."""
        await self._request(Command.SET_DEFAULT_SOURCE, TagStructWriter().put_string(name))

    async def set_card_profile(self, card_index: int, profile: str) -> None:
        """Activate a profile of a card."""
        body = TagStructWriter().put_u32(card_index).put_null().put_string(profile)
        await self._request(Command.SET_CARD_PROFILE, body)

    async def load_module(self, name: str, argument: str = "") -> int:
        """
        Load a server module.

        Args:
            name: Module name, e.g. "module-null-sink".
            argument: Module argument string, passed to the server verbatim.

        Returns:
            Index of the loaded module.
        """
        body = TagStructWriter().put_string(name).put_string(argument)
        index = await self._query(Command.LOAD_MODULE, TagStructReader.read_u32, body)
        logger.debug("Loaded %s as module %d", name, index)
        return index

    async def unload_module(self, index: int) -> None:
        """Unload the module with the given index."""
        await self._request(Command.UNLOAD_MODULE, TagStructWriter().put_u32(index))

    async def subscribe(self, mask: SubscriptionMask = SubscriptionMask.ALL) -> UpdateChannel:
        """
        Ask the server to report changes of the objects selected by mask.

        Returns:
            The update channel, which signals (coalesced) that something changed.
        """
        await self._request(Command.SUBSCRIBE, TagStructWriter().put_u32(int(mask)))
        return self.updates

    async def set_sink_volume(self, name: str, volume: float) -> None:
        """Set the volume of all channels of a sink (1.0 = 100 %)."""
        body = (
            TagStructWriter()
            .put_u32(INVALID_INDEX)
            .put_string(name)
            .put_cvolume([_to_volume(volume)])
        )
        await self._request(Command.SET_SINK_VOLUME, body)

    async def set_source_volume(self, name: str, volume: float) -> None:
        """Set the volume of all channels of a source (1.0 = 100 %)."""
        body = (
            TagStructWriter()
            .put_u32(INVALID_INDEX)
            .put_string(name)
            .put_cvolume([_to_volume(volume)])
        )
        await self._request(Command.SET_SOURCE_VOLUME, body)

    async def set_sink_mute(self, name: str, muted: bool) -> None:
        """Mute or unmute a sink."""
        body = TagStructWriter().put_u32(INVALID_INDEX).put_string(name).put_bool(muted)
        await self._request(Command.SET_SINK_MUTE, body)

    async def set_source_mute(self, name: str, muted: bool) -> None:
        """Mute or unmute a source."""
        body = TagStructWriter().put_u32(INVALID_INDEX).put_string(name).put_bool(muted)
        await self._request(Command.SET_SOURCE_MUTE, body)

    async def _default_sink(self) -> Sink:
        info = await self.server_info()
        for sink in await self.sinks():
            if sink.name == info.default_sink_name:
                return sink
        raise PulseError(Command.GET_SINK_INFO_LIST, ErrorCode.NOENTITY)

    async def volume(self) -> float:
        """Return the volume of the default sink (1.0 = 100 %, more when boosted)."""
        sink = await self._default_sink()
        if not sink.volume:
            return 0.0
        return sink.volume[0] / VOLUME_NORM

    async def set_volume(self, volume: float) -> None:
        """Set the volume of the default sink (1.0 = 100 %)."""
        info = await self.server_info()
        await self.set_sink_volume(info.default_sink_name, volume)

    async def mute(self) -> bool:
        """Return True if the default sink is muted."""
        return (await self._default_sink()).muted

    async def set_mute(self, muted: bool) -> None:
        """Mute or unmute the default sink."""
        info = await self.server_info()
        await self.set_sink_mute(info.default_sink_name, muted)

    async def toggle_mute(self) -> bool:
        """Flip the mute state of the default sink and return the new state."""
        sink = await self._default_sink()
        await self.set_sink_mute(sink.name, not sink.muted)
        return not sink.muted

    async def audio_server(self) -> AudioServerInfo:
        """Return whether PulseAudio or pipewire-pulse serves the socket, and its version."""
        return detect_audio_server(await self.server_info())
