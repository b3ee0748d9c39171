"""Port availability checks and bounded port scanning for container services.

A port is considered occupied when it is held by a listening socket on the
host or published by a running container. Both checks are advisory: nothing
is reserved, so a process may still grab the port between the check and the
container's bind.
"""

from __future__ import annotations

import logging
import socket
from contextlib import closing
from typing import Callable, NamedTuple, Sequence

import psutil

logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535
DEFAULT_MAX_ATTEMPTS = 50

PortProbe = Callable[[int], bool]


class ProbeUnavailable(RuntimeError):
    """Raised by a probe when its host-inspection mechanism cannot run."""


class InvalidPortError(ValueError):
    """Raised for a port or attempt count outside the accepted range."""


class AllocationResult(NamedTuple):
    port: int
    found: bool


def validate_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidPortError(f"Port must be an integer, got {port!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPortError(f"Port {port} is outside {MIN_PORT}-{MAX_PORT}")
    return port


def _bind_probe(port: int) -> bool:
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(("0.0.0.0", port))
        except PermissionError as exc:
            # Privileged ports cannot be tested this way without root.
            raise ProbeUnavailable(f"bind probe not permitted: {exc}") from exc
        except OSError:
            return True
    return False


def listening_ports() -> set[int]:
    """Return local ports held by listening TCP or bound UDP sockets."""
    try:
        conns = psutil.net_connections(kind="inet")
    except (psutil.Error, OSError, NotImplementedError) as exc:
        raise ProbeUnavailable(f"cannot enumerate sockets: {exc}") from exc

    ports: set[int] = set()
    for conn in conns:
        if not conn.laddr:
            continue
        if conn.type == socket.SOCK_STREAM and conn.status != psutil.CONN_LISTEN:
            continue
        if conn.type == socket.SOCK_DGRAM and conn.raddr:
            continue
        ports.add(conn.laddr.port)
    return ports


def is_listening(port: int) -> bool:
    """Check the host socket table, falling back to a bind attempt."""
    try:
        return port in listening_ports()
    except ProbeUnavailable as exc:
        logger.debug("Socket table unavailable (%s), trying bind on %d", exc, port)
    return _bind_probe(port)


def default_probes() -> tuple[PortProbe, ...]:
    from dsbox.runtime.docker import is_published

    return (is_listening, is_published)


def check_port_free(port: int, probes: Sequence[PortProbe] | None = None) -> bool:
    """Return True if no probe reports ``port`` as occupied.

    A probe that raises ``ProbeUnavailable`` counts as not occupied, so with
    every mechanism missing the port is reported free.
    """
    validate_port(port)
    if probes is None:
        probes = default_probes()

    for probe in probes:
        name = getattr(probe, "__name__", repr(probe))
        try:
            occupied = probe(port)
        except ProbeUnavailable as exc:
            logger.debug("Probe %s unavailable for port %d: %s", name, port, exc)
            continue
        if occupied:
            logger.debug("Port %d occupied according to %s", port, name)
            return False
    return True


def find_available_port(
    start: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    probes: Sequence[PortProbe] | None = None,
) -> AllocationResult:
    """Return the first free port in ``[start, start + max_attempts)``.

    On exhaustion the result carries ``start`` with ``found=False``; the
    caller decides whether to proceed with it.
    """
    validate_port(start)
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
        raise InvalidPortError(f"max_attempts must be an integer, got {max_attempts!r}")
    if max_attempts < 1:
        raise InvalidPortError(f"max_attempts must be positive, got {max_attempts}")
    if probes is None:
        probes = default_probes()

    end = min(start + max_attempts, MAX_PORT + 1)
    for candidate in range(start, end):
        if check_port_free(candidate, probes):
            return AllocationResult(candidate, True)

    logger.debug("No free port in %d-%d", start, end - 1)
    return AllocationResult(start, False)


__all__ = [
    "AllocationResult",
    "DEFAULT_MAX_ATTEMPTS",
    "InvalidPortError",
    "PortProbe",
    "ProbeUnavailable",
    "check_port_free",
    "find_available_port",
    "is_listening",
    "listening_ports",
    "validate_port",
]
