"""
Client configuration.

Resolves where the server socket and the authentication cookie live, following the
same environment variables libpulse consults, and carries the per-client knobs
(request deadline, application name) in one immutable object.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

logger = logging.getLogger(__name__)

SOCKET_NAME = "native"
COOKIE_NAME = "cookie"


def runtime_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Return the PulseAudio runtime directory of the current user."""
    env = os.environ if environ is None else environ
    if xdg_runtime_dir := env.get("XDG_RUNTIME_DIR"):
        return Path(xdg_runtime_dir) / "pulse"
    return Path(f"/run/user/{os.getuid()}/pulse")


def runtime_path(name: str, environ: Mapping[str, str] | None = None) -> Path:
    """Return the path of a file in the PulseAudio runtime directory (e.g. "pid")."""
    return runtime_dir(environ) / name


def default_socket_path(environ: Mapping[str, str] | None = None) -> str:
    """
    Return the server socket path.

    PULSE_SERVER is honoured when it names a local socket ("unix:/path" or a bare
    absolute path); other server strings are ignored since only local sockets are
    supported.
    """
    env = os.environ if environ is None else environ
    server = env.get("PULSE_SERVER", "")
    # PULSE_SERVER may list several servers separated by whitespace
    for candidate in server.split():
        if candidate.startswith("unix:"):
            return candidate[len("unix:") :]
        if candidate.startswith("/"):
            return candidate
    if server:
        logger.debug("Ignoring non-local PULSE_SERVER %r", server)
    return str(runtime_path(SOCKET_NAME, env))


def default_cookie_path(environ: Mapping[str, str] | None = None) -> str:
    """Return the authentication cookie path."""
    env = os.environ if environ is None else environ
    if cookie := env.get("PULSE_COOKIE"):
        return cookie
    if xdg_config_home := env.get("XDG_CONFIG_HOME"):
        return str(Path(xdg_config_home) / "pulse" / COOKIE_NAME)
    home = env.get("HOME") or str(Path.home())
    return str(Path(home) / ".config" / "pulse" / COOKIE_NAME)


@dataclass(frozen=True)
class ClientConfig:
    """Immutable settings of one PulseClient."""

    socket_path: str
    """Path of the server's UNIX socket."""
    cookie_path: str
    """Path of the 256-byte authentication cookie."""
    request_timeout: float | None = None
    """Default per-request deadline in seconds, None to wait forever."""
    application_name: str | None = None
    """application.name announced to the server, None for the program name."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """
        Build the configuration from environment variables.

        Reads PULSE_SERVER, XDG_RUNTIME_DIR, PULSE_COOKIE, XDG_CONFIG_HOME, HOME and
        AIOPULSENATIVE_TIMEOUT (seconds).

        Raises:
            ValueError: If AIOPULSENATIVE_TIMEOUT is not a positive number
        """
        env = os.environ if environ is None else environ
        request_timeout: float | None = None
        if timeout := env.get("AIOPULSENATIVE_TIMEOUT"):
            request_timeout = float(timeout)
            if request_timeout <= 0:
                raise ValueError("AIOPULSENATIVE_TIMEOUT must be positive")
        return cls(
            socket_path=default_socket_path(env),
            cookie_path=default_cookie_path(env),
            request_timeout=request_timeout,
        )

    def override(
        self,
        *,
        socket_path: str | None = None,
        cookie_path: str | None = None,
        request_timeout: float | None = None,
        application_name: str | None = None,
    ) -> ClientConfig:
        """Return a copy with every argument that is not None replacing the current value."""
        changes = {
            key: value
            for key, value in (
                ("socket_path", socket_path),
                ("cookie_path", cookie_path),
                ("request_timeout", request_timeout),
                ("application_name", application_name),
            )
            if value is not None
        }
        return replace(self, **changes)
