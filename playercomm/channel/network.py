"""
TCP channel for two players running as separate processes.

The responder listens and accepts exactly one peer; the initiator connects,
retrying a bounded number of times while the listener comes up. Messages are
UTF-8 text lines, one message per line, flushed as soon as they are written.
Both ends tune their socket for latency rather than throughput.
"""

import logging
import socket
from typing import Optional, Tuple

from ..utils.cancellation import CancellationToken
from .base import ChannelCancelledError, ChannelConnectionError, ChannelTimeoutError

logger = logging.getLogger(__name__)

BUFFER_SIZE = 8 * 1024
LOW_DELAY_TOS = 0x10
LINE_TERMINATOR = "\n"

# Connection establishment
SETTLE_DELAY = 1.0
RETRY_DELAY = 2.0
MAX_RETRIES = 5


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused TCP port on ``host``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind((host, 0))
        return probe.getsockname()[1]


def configure_socket(sock: socket.socket) -> None:
    """
    Apply low-latency options to a connected socket.

    Disables Nagle coalescing, shrinks both buffers, enables keep-alive and
    asks for low-delay traffic class. The traffic class is a hint that some
    platforms refuse, so failing to set it is not an error.
    """
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, BUFFER_SIZE)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, BUFFER_SIZE)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

    try:
        if sock.family == socket.AF_INET6:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_TCLASS, LOW_DELAY_TOS)
        else:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_TOS, LOW_DELAY_TOS)
    except (OSError, AttributeError) as e:
        logger.debug(f"Traffic class not applied: {e}")


class NetworkChannel:
    """
    Channel over one TCP connection.

    Build instances with :meth:`listen` (responder side) or :meth:`connect`
    (initiator side). Read and write failures never raise out of
    :meth:`send` or :meth:`receive`; a failed or finished stream reads as
    ``None``.
    """

    def __init__(self, sock: socket.socket,
                 server_socket: Optional[socket.socket] = None,
                 connect_attempts: int = 1):
        """
        Wrap an already connected socket.

        Args:
            sock: Connected TCP socket
            server_socket: Listening socket to release on close (server role)
            connect_attempts: Attempts the client needed to connect
        """
        self._reader = None
        self._writer = None
        self._socket: Optional[socket.socket] = sock
        self._server_socket = server_socket
        self.connect_attempts = connect_attempts
        self.local_address: Optional[Tuple] = None
        self.peer_address: Optional[Tuple] = None

        try:
            configure_socket(sock)
            self.local_address = sock.getsockname()
            self.peer_address = sock.getpeername()
            self._reader = sock.makefile("r", encoding="utf-8", errors="replace", newline="\n")
            self._writer = sock.makefile("w", encoding="utf-8", newline="\n")
        except OSError as e:
            self.close()
            raise ChannelConnectionError(f"Failed to initialize connection: {e}") from e

    @classmethod
    def listen(cls, port: int, host: str = "",
               accept_timeout: Optional[float] = None) -> "NetworkChannel":
        """
        Listen on ``port`` and block until exactly one peer connects.

        Args:
            port: TCP port to listen on
            host: Interface to bind (default: all interfaces)
            accept_timeout: Seconds to wait for the peer (None = forever)

        Raises:
            ChannelConnectionError: If the port cannot be bound or accept fails
            ChannelTimeoutError: If no peer connects within accept_timeout
        """
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, BUFFER_SIZE)
            server.bind((host, port))
            server.listen(1)
        except OSError as e:
            server.close()
            raise ChannelConnectionError(f"Failed to listen on port {port}: {e}") from e

        logger.info(f"Listening on {server.getsockname()}, waiting for peer")

        try:
            server.settimeout(accept_timeout)
            sock, address = server.accept()
        except socket.timeout as e:
            server.close()
            raise ChannelTimeoutError(f"No peer connected within {accept_timeout}s") from e
        except OSError as e:
            server.close()
            raise ChannelConnectionError(f"Failed to accept peer: {e}") from e

        sock.settimeout(None)
        logger.info(f"Accepted peer {address}")
        try:
            return cls(sock, server_socket=server)
        except ChannelConnectionError:
            server.close()
            raise

    @classmethod
    def connect(cls, host: str, port: int,
                settle_delay: float = SETTLE_DELAY,
                retry_delay: float = RETRY_DELAY,
                max_retries: int = MAX_RETRIES,
                connect_timeout: Optional[float] = None,
                token: Optional[CancellationToken] = None) -> "NetworkChannel":
        """
        Connect to a listening peer, retrying while it is not yet up.

        Waits ``settle_delay`` first so a concurrently started listener can
        bind. A refused first attempt is followed by up to ``max_retries``
        further attempts, each after ``retry_delay``. Only refused or reset
        connections are retried; a timeout or any other socket error on any
        attempt ends the connect at once.

        Args:
            host: Peer host name or address
            port: Peer TCP port
            settle_delay: Seconds to wait before the first attempt
            retry_delay: Seconds to wait before each retry
            max_retries: Retries after a refused first attempt
            connect_timeout: Per-attempt timeout (None = OS default)
            token: Cancels the settle and retry waits when set

        Raises:
            ChannelConnectionError: If every attempt is refused or an
                attempt fails with a non-retryable socket error
            ChannelTimeoutError: If an attempt times out
            ChannelCancelledError: If the token is set while waiting
        """
        if token is None:
            token = CancellationToken()

        if token.wait(settle_delay):
            raise ChannelCancelledError("Connect cancelled before the first attempt")

        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout)
            attempts = 1
        except ConnectionError as e:
            logger.warning(f"Socket connection to {host}:{port} failed - retrying for connection...")
            sock, attempts = _retry_connect(host, port, retry_delay, max_retries,
                                            connect_timeout, token, e)
        except socket.timeout as e:
            raise ChannelTimeoutError(f"Connection to {host}:{port} timed out") from e
        except OSError as e:
            raise ChannelConnectionError(f"Failed to connect to {host}:{port}: {e}") from e

        sock.settimeout(None)
        logger.info(f"Connected to {host}:{port} (attempts: {attempts})")
        return cls(sock, connect_attempts=attempts)

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    @property
    def sock(self) -> Optional[socket.socket]:
        """The connected socket, or None once closed."""
        return self._socket

    def send(self, message: Optional[str]) -> None:
        """Write one line and flush it immediately."""
        if message is None:
            return

        if self._writer is None:
            logger.warning(f"Cannot send on closed channel: {message}")
            return

        try:
            self._writer.write(message + LINE_TERMINATOR)
            self._writer.flush()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to send message: {e}")

    def receive(self) -> Optional[str]:
        """
        Read one line.

        Returns:
            The line without its terminator, or None when the peer closed
            the stream or the read failed
        """
        if self._reader is None:
            return None

        try:
            line = self._reader.readline()
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to receive message: {e}")
            return None

        if not line:
            return None

        if line.endswith(LINE_TERMINATOR):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        return line

    def close(self) -> None:
        """
        Release reader, writer, socket and listening socket, in that order.

        Each resource is closed independently, so a partially built or
        partially closed channel still closes cleanly.
        """
        for name in ("_reader", "_writer", "_socket", "_server_socket"):
            resource = getattr(self, name, None)
            if resource is None:
                continue
            setattr(self, name, None)
            try:
                resource.close()
            except OSError as e:
                logger.warning(f"Error while closing {name.lstrip('_')}: {e}")

    def __repr__(self):
        status = "open" if self.is_open else "closed"
        return f"NetworkChannel({self.local_address} <-> {self.peer_address}, {status})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _retry_connect(host: str, port: int, retry_delay: float, max_retries: int,
                   connect_timeout: Optional[float], token: CancellationToken,
                   first_error: OSError) -> Tuple[socket.socket, int]:
    """
    Fixed-delay bounded retry; returns the socket and total attempts made.

    Only a refused or reset connection is retried. Timeouts and other
    socket errors end the retry loop exactly as they end the first attempt.
    """
    last_error = first_error

    for attempt in range(1, max_retries + 1):
        if token.wait(retry_delay):
            raise ChannelCancelledError(f"Connection retry cancelled after {attempt - 1} retries")

        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout)
            logger.info(f"Socket connection successfully created - after retry {attempt}")
            return sock, attempt + 1
        except ConnectionError as e:
            last_error = e
            logger.warning(f"Connection attempt {attempt} failed, retrying in {retry_delay}s...")
        except socket.timeout as e:
            raise ChannelTimeoutError(f"Connection to {host}:{port} timed out") from e
        except OSError as e:
            raise ChannelConnectionError(f"Failed to connect to {host}:{port}: {e}") from e

    raise ChannelConnectionError(
        f"Could not connect to {host}:{port} after {max_retries} retries: {last_error}"
    ) from last_error
