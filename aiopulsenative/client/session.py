"""Connection handshake: cookie authentication and client identity."""

from __future__ import annotations

import getpass
import logging
import os
import socket
import sys
from collections.abc import Mapping
from pathlib import Path

from aiopulsenative.errors import BadCookie, VersionUnsupported
from aiopulsenative.models.core import (
    PROPLIST_APPLICATION_LANGUAGE,
    PROPLIST_APPLICATION_NAME,
    PROPLIST_APPLICATION_PROCESS_BINARY,
    PROPLIST_APPLICATION_PROCESS_HOST,
    PROPLIST_APPLICATION_PROCESS_ID,
    PROPLIST_APPLICATION_PROCESS_USER,
    PROPLIST_WINDOW_X11_DISPLAY,
)
from aiopulsenative.models.tagstruct import TagStructWriter
from aiopulsenative.models.types import Command

from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 32
"""Native protocol version spoken by this client, also the minimum accepted."""
PROTOCOL_VERSION_MASK = 0x0000FFFF
"""The upper bits of the version word carry feature flags (e.g. shm support)."""
COOKIE_LENGTH = 256


def load_cookie(path: str | os.PathLike[str]) -> bytes:
    """
    Read the authentication cookie.

    Raises:
        BadCookie: If the file cannot be read or is not exactly 256 bytes long
    """
    try:
        cookie = Path(path).read_bytes()
    except OSError as err:
        raise BadCookie(f"Cannot read PulseAudio cookie {str(path)!r}: {err}") from err
    if len(cookie) != COOKIE_LENGTH:
        raise BadCookie(
            f"PulseAudio cookie has incorrect length {len(cookie)}: "
            f"expected {COOKIE_LENGTH} (path {str(path)!r})"
        )
    return cookie


def client_properties(application_name: str | None = None) -> dict[str, str]:
    """
    Build the identity property list sent with SET_CLIENT_NAME.

    Args:
        application_name: Name shown by mixers, defaults to the basename of argv[0].
    """
    binary = sys.argv[0] if sys.argv and sys.argv[0] else sys.executable
    properties = {
        PROPLIST_APPLICATION_NAME: application_name or os.path.basename(binary),
        PROPLIST_APPLICATION_PROCESS_ID: str(os.getpid()),
        PROPLIST_APPLICATION_PROCESS_BINARY: binary,
        PROPLIST_APPLICATION_LANGUAGE: "en_US.UTF-8",
    }
    try:
        properties[PROPLIST_APPLICATION_PROCESS_USER] = getpass.getuser()
    except (OSError, KeyError):
        logger.debug("Cannot determine the login user name")
    if hostname := socket.gethostname():
        properties[PROPLIST_APPLICATION_PROCESS_HOST] = hostname
    if display := os.environ.get("DISPLAY"):
        properties[PROPLIST_WINDOW_X11_DISPLAY] = display
    return properties


async def authenticate(dispatcher: Dispatcher, cookie: bytes) -> int:
    """
    Send AUTH and check the protocol version offered by the server.

    Returns:
        The negotiated protocol version (feature bits masked off)

    Raises:
        VersionUnsupported: If the server is older than PROTOCOL_VERSION
    """
    body = TagStructWriter().put_u32(PROTOCOL_VERSION).put_arbitrary(cookie)
    reply = await dispatcher.request(Command.AUTH, body)
    server_version = reply.read_u32() & PROTOCOL_VERSION_MASK
    if server_version < PROTOCOL_VERSION:
        raise VersionUnsupported(server_version, PROTOCOL_VERSION)
    logger.debug("Authenticated, server speaks protocol version %d", server_version)
    return server_version


async def set_client_name(dispatcher: Dispatcher, properties: Mapping[str, str]) -> int:
    """
    Announce the client identity.

    Returns:
        The client index assigned by the server
    """
    body = TagStructWriter().put_proplist(properties)
    reply = await dispatcher.request(Command.SET_CLIENT_NAME, body)
    client_index = reply.read_u32()
    logger.debug("Server assigned client index %d", client_index)
    return client_index
