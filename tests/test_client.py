from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest
from conftest import COOKIE, FakePulseServer
from test_records import put_card, put_device, put_server_info

from aiopulsenative import PulseClient
from aiopulsenative.config import ClientConfig
from aiopulsenative.errors import (
    BadCookie,
    ConnectionClosed,
    MalformedFrame,
    PulseError,
    VersionUnsupported,
)
from aiopulsenative.models.tagstruct import TagStructWriter
from aiopulsenative.models.types import AudioServerType, Command, ErrorCode, SubscriptionMask

ServerFactory = Callable[..., FakePulseServer]


def _modules_reply(_request: object) -> TagStructWriter:
    writer = TagStructWriter()
    for index, name, argument in (
        (0, "module-alsa-card", "device_id=0"),
        (22, "module-null-sink", "sink_name=nui_mic_denoised_out"),
        (23, "module-null-sink", "sink_name=other"),
    ):
        writer.put_u32(index).put_string(name).put_string(argument)
        writer.put_u32(0xFFFFFFFF).put_proplist({})
    return writer


@pytest.mark.asyncio
async def test_handshake(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server(version=0x10000020, client_index=7) as server:
        client = PulseClient(config=config)
        await client.connect()
        try:
            assert client.connected
            assert client.protocol_version == 32
            assert client.client_index == 7

            auth, set_name = server.received
            assert auth.command == Command.AUTH
            assert auth.body.read_u32() == 32
            assert auth.body.read_arbitrary() == COOKIE
            assert set_name.command == Command.SET_CLIENT_NAME
            properties = set_name.body.read_proplist()
            assert properties["application.name"] == "noisetorch-test"
            assert properties["application.language"] == "en_US.UTF-8"
            assert "application.process.id" in properties
            assert "application.process.binary" in properties
        finally:
            await client.disconnect()
        assert not client.connected


@pytest.mark.asyncio
async def test_handshake_omits_display_when_unset(
    make_server: ServerFactory, config: ClientConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    async with make_server() as server, PulseClient(config=config):
        properties = server.received[1].body.read_proplist()
        assert "window.x11.display" not in properties


@pytest.mark.asyncio
async def test_version_too_old(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server(version=30) as server:
        client = PulseClient(config=config)
        with pytest.raises(VersionUnsupported) as exc_info:
            await client.connect()
        assert exc_info.value.server_version == 30
        assert not client.connected
        await asyncio.wait_for(server.connection_lost.wait(), 5)
        assert server.commands() == [Command.AUTH]


@pytest.mark.asyncio
async def test_bad_cookie(
    make_server: ServerFactory, config: ClientConfig, workdir: Path
) -> None:
    short_cookie = workdir / "short"
    short_cookie.write_bytes(b"\0" * 255)
    async with make_server() as server:
        client = PulseClient(config=config, cookie_path=str(short_cookie))
        with pytest.raises(BadCookie):
            await client.connect()
        assert server.received == []


@pytest.mark.asyncio
async def test_missing_cookie(config: ClientConfig, workdir: Path) -> None:
    client = PulseClient(config=config, cookie_path=str(workdir / "missing"))
    with pytest.raises(BadCookie):
        await client.connect()


@pytest.mark.asyncio
async def test_connect_error_is_surfaced(config: ClientConfig, workdir: Path) -> None:
    client = PulseClient(config=config, socket_path=str(workdir / "nothing"))
    with pytest.raises(OSError):
        await client.connect()
    assert not client.connected


@pytest.mark.asyncio
async def test_requests_before_connect(config: ClientConfig) -> None:
    client = PulseClient(config=config)
    with pytest.raises(ConnectionClosed):
        await client.server_info()


@pytest.mark.asyncio
async def test_server_error_leaves_client_usable(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.SET_DEFAULT_SINK, lambda _req: ErrorCode.NOENTITY)
        server.on(Command.GET_SERVER_INFO, lambda _req: put_server_info(TagStructWriter()))

        with pytest.raises(PulseError) as exc_info:
            await client.set_default_sink("no-such-sink")
        assert exc_info.value.command.name == "SET_DEFAULT_SINK"
        assert exc_info.value.code == 5

        info = await client.server_info()
        assert info.default_sink_name == "alsa_output.pci"
        assert client.connected


@pytest.mark.asyncio
async def test_concurrent_list_and_load(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        sinks_task = asyncio.create_task(client.sinks())
        sinks_request = await server.next_request(Command.GET_SINK_INFO_LIST)

        load_task = asyncio.create_task(client.load_module("module-null-sink", "sink_name=foo"))
        load_request = await server.next_request(Command.LOAD_MODULE)
        assert load_request.body.read_string() == "module-null-sink"
        assert load_request.body.read_string() == "sink_name=foo"

        await server.reply(load_request.tag, TagStructWriter().put_u32(42))
        assert await load_task == 42
        assert not sinks_task.done()

        reply = put_device(TagStructWriter(), index=0, name="a")
        put_device(reply, index=1, name="b")
        await server.reply(sinks_request.tag, reply)
        sinks = await sinks_task
        assert [sink.name for sink in sinks] == ["a", "b"]
        assert client.pending_requests == 0


@pytest.mark.asyncio
async def test_subscription_coalescing(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.SUBSCRIBE, lambda _req: TagStructWriter())
        server.on(Command.GET_SERVER_INFO, lambda _req: put_server_info(TagStructWriter()))

        updates = await client.subscribe()
        request = server.received[-1]
        assert request.command == Command.SUBSCRIBE
        assert request.body.read_u32() == SubscriptionMask.ALL == 0x02FF

        await server.send_event(index=1)
        await server.send_event(index=2)
        await client.server_info()

        await asyncio.wait_for(updates.wait(), 1)
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(updates.wait(), 0.1)
        assert client.connected


@pytest.mark.asyncio
async def test_event_before_subscribe_ack(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        subscribe = asyncio.create_task(client.subscribe())
        request = await server.next_request(Command.SUBSCRIBE)
        await server.send_event(index=3)
        await server.reply(request.tag)
        updates = await subscribe
        await asyncio.wait_for(updates.wait(), 1)


@pytest.mark.asyncio
async def test_disconnect_during_request(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        lost = asyncio.Event()
        client.add_disconnect_listener(lost.set)
        load_task = asyncio.create_task(client.load_module("module-null-sink"))
        await server.next_request(Command.LOAD_MODULE)
        await server.drop()

        with pytest.raises(ConnectionClosed):
            await load_task
        assert not client.connected
        await asyncio.wait_for(lost.wait(), 1)

        # Fails immediately instead of waiting for the request timeout
        with pytest.raises(ConnectionClosed):
            await asyncio.wait_for(client.server_info(), 0.5)


@pytest.mark.asyncio
async def test_undecodable_reply_closes_client(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.GET_SERVER_INFO, lambda _req: TagStructWriter().put_u32(1))
        with pytest.raises(MalformedFrame):
            await client.server_info()
        assert not client.connected


@pytest.mark.asyncio
async def test_lists(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.GET_SINK_INFO_LIST, lambda _req: TagStructWriter())
        server.on(
            Command.GET_SOURCE_INFO_LIST,
            lambda _req: put_device(TagStructWriter(), name="mic.monitor", monitor_index=0),
        )
        server.on(Command.GET_CARD_INFO_LIST, lambda _req: put_card(TagStructWriter()))
        server.on(Command.GET_MODULE_INFO_LIST, _modules_reply)

        assert await client.sinks() == []
        (source,) = await client.sources()
        assert source.is_monitor
        (card,) = await client.cards()
        assert card.active_profile is not None
        modules = await client.modules()
        assert [module.index for module in modules] == [0, 22, 23]


@pytest.mark.asyncio
async def test_find_module(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.GET_MODULE_INFO_LIST, _modules_reply)
        module = await client.find_module("module-null-sink", "nui_mic")
        assert module is not None
        assert module.index == 22
        assert await client.find_module("module-null-sink", "missing") is None


@pytest.mark.asyncio
async def test_set_card_profile_encoding(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.SET_CARD_PROFILE, lambda _req: TagStructWriter())
        await client.set_card_profile(3, "off")
        body = server.received[-1].body
        assert body.read_u32() == 3
        assert body.read_null() is None
        assert body.read_string() == "off"
        assert body.at_end


@pytest.mark.asyncio
async def test_simple_commands(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        for command in (
            Command.UNLOAD_MODULE,
            Command.SET_DEFAULT_SOURCE,
            Command.SET_SOURCE_MUTE,
            Command.SET_SOURCE_VOLUME,
        ):
            server.on(command, lambda _req: TagStructWriter())

        await client.unload_module(22)
        assert server.received[-1].body.read_u32() == 22
        await client.set_default_source("mic")
        assert server.received[-1].body.read_string() == "mic"

        await client.set_source_mute("mic", True)
        body = server.received[-1].body
        assert body.read_u32() == 0xFFFFFFFF
        assert body.read_string() == "mic"
        assert body.read_bool() is True

        await client.set_source_volume("mic", 0.5)
        body = server.received[-1].body
        assert body.read_u32() == 0xFFFFFFFF
        assert body.read_string() == "mic"
        assert body.read_cvolume() == (0x8000,)


@pytest.mark.asyncio
async def test_default_sink_volume_and_mute(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.GET_SERVER_INFO, lambda _req: put_server_info(TagStructWriter()))
        server.on(
            Command.GET_SINK_INFO_LIST,
            lambda _req: put_device(put_device(TagStructWriter(), name="other"), index=1),
        )
        server.on(Command.SET_SINK_VOLUME, lambda _req: TagStructWriter())
        server.on(Command.SET_SINK_MUTE, lambda _req: TagStructWriter())

        assert await client.volume() == 1.0
        assert await client.mute() is False

        await client.set_volume(0.25)
        body = server.received[-1].body
        assert body.read_u32() == 0xFFFFFFFF
        assert body.read_string() == "alsa_output.pci"
        assert body.read_cvolume() == (0x4000,)

        assert await client.toggle_mute() is True
        body = server.received[-1].body
        body.read_u32()
        assert body.read_string() == "alsa_output.pci"
        assert body.read_bool() is True

        await client.set_mute(False)
        body = server.received[-1].body
        body.read_u32()
        body.read_string()
        assert body.read_bool() is False

        with pytest.raises(ValueError):
            await client.set_volume(-1)
        with pytest.raises(ValueError):
            await client.set_volume(float("inf"))
        with pytest.raises(ValueError):
            await client.set_sink_volume("alsa_output.pci", float("nan"))


@pytest.mark.asyncio
async def test_volume_without_default_sink(
    make_server: ServerFactory, config: ClientConfig
) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(Command.GET_SERVER_INFO, lambda _req: put_server_info(TagStructWriter()))
        server.on(Command.GET_SINK_INFO_LIST, lambda _req: TagStructWriter())
        with pytest.raises(PulseError) as exc_info:
            await client.volume()
        assert exc_info.value.code == ErrorCode.NOENTITY


@pytest.mark.asyncio
async def test_audio_server_detection(make_server: ServerFactory, config: ClientConfig) -> None:
    async with make_server() as server, PulseClient(config=config) as client:
        server.on(
            Command.GET_SERVER_INFO,
            lambda _req: put_server_info(
                TagStructWriter(), package_name="PulseAudio (on PipeWire 0.3.25)"
            ),
        )
        info = await client.audio_server()
        assert info.server_type is AudioServerType.PIPEWIRE
        assert info.version == "0.3.25"
        assert info.outdated_pipewire


@pytest.mark.asyncio
async def test_multiple_clients_do_not_interfere(
    make_server: ServerFactory, config: ClientConfig, workdir: Path
) -> None:
    other_socket = str(workdir / "other")
    async with (
        make_server(client_index=1),
        FakePulseServer(other_socket, client_index=2),
        PulseClient(config=config) as first,
        PulseClient(config=config, socket_path=other_socket) as second,
    ):
        assert first.client_index == 1
        assert second.client_index == 2
        await first.disconnect()
        assert second.connected
