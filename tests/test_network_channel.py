"""
Tests for the TCP network channel.

All tests run over loopback on a free port, with the blocking listener in a
helper thread and shortened connection timings.
"""

import errno
import socket
import threading
import time

import pytest

from playercomm.channel import (
    ChannelCancelledError,
    ChannelConnectionError,
    ChannelTimeoutError,
    NetworkChannel,
)
from playercomm.channel.network import BUFFER_SIZE, LOW_DELAY_TOS
from playercomm.utils.cancellation import CancellationToken

HOST = "127.0.0.1"


def start_listener(port, **kwargs):
    """Run NetworkChannel.listen in a thread; results land in the returned dict."""
    outcome = {}

    def serve():
        try:
            outcome['channel'] = NetworkChannel.listen(port, host=HOST, **kwargs)
        except Exception as e:
            outcome['error'] = e

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    return thread, outcome


def quick_connect(port, **kwargs):
    options = {'settle_delay': 0.0, 'retry_delay': 0.05, 'max_retries': 40}
    options.update(kwargs)
    return NetworkChannel.connect(HOST, port, **options)


@pytest.fixture
def connected_pair(free_port):
    thread, outcome = start_listener(free_port, accept_timeout=5.0)
    time.sleep(0.2)
    client = quick_connect(free_port)
    thread.join(timeout=5.0)
    server = outcome['channel']

    yield server, client

    client.close()
    server.close()


class TestConnection:
    """Test connection establishment."""

    def test_server_client_connect(self, connected_pair):
        """Test listener and connector both end up open."""
        server, client = connected_pair

        assert server.is_open
        assert client.is_open
        assert client.connect_attempts == 1
        assert server.peer_address == client.local_address

    def test_port_already_in_use(self, free_port):
        """Test a second listener on a bound port fails hard."""
        thread, outcome = start_listener(free_port, accept_timeout=5.0)
        time.sleep(0.3)

        with pytest.raises(ChannelConnectionError):
            NetworkChannel.listen(free_port, host=HOST)

        client = quick_connect(free_port)
        thread.join(timeout=5.0)
        client.close()
        outcome['channel'].close()

    def test_connect_without_server_fails(self, free_port):
        """Test exhausting retries surfaces the last connection error."""
        with pytest.raises(ChannelConnectionError) as exc_info:
            quick_connect(free_port, max_retries=2)

        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)

    def test_connect_succeeds_on_retry(self, free_port):
        """Test a client started before the server connects on a later attempt."""
        outcome = {}

        def connect():
            outcome['client'] = quick_connect(free_port, retry_delay=0.2, max_retries=10)

        connector = threading.Thread(target=connect, daemon=True)
        connector.start()
        time.sleep(0.3)

        thread, listened = start_listener(free_port, accept_timeout=5.0)
        connector.join(timeout=5.0)
        thread.join(timeout=5.0)

        client = outcome['client']
        server = listened['channel']
        try:
            assert client.connect_attempts > 1
            client.send("after retry")
            assert server.receive() == "after retry"
        finally:
            client.close()
            server.close()

    def test_cancel_stops_retrying(self, free_port):
        """Test cancelling during the retry wait is reported as cancellation."""
        token = CancellationToken()
        timer = threading.Timer(0.2, token.cancel)
        timer.start()

        start = time.monotonic()
        with pytest.raises(ChannelCancelledError):
            quick_connect(free_port, retry_delay=1.0, max_retries=5, token=token)
        timer.join()

        assert time.monotonic() - start < 2.0

    def test_unreachable_during_retry(self, monkeypatch):
        """Test a non-retryable error after a refusal becomes a connection error."""
        unreachable = OSError(errno.ENETUNREACH, "Network is unreachable")
        calls = []

        def fake_create_connection(address, timeout=None):
            calls.append(address)
            if len(calls) == 1:
                raise ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
            raise unreachable

        monkeypatch.setattr(socket, "create_connection", fake_create_connection)

        with pytest.raises(ChannelConnectionError) as exc_info:
            NetworkChannel.connect(HOST, 5050, settle_delay=0.0, retry_delay=0.0, max_retries=3)

        assert exc_info.value.__cause__ is unreachable
        assert len(calls) == 2

    def test_timeout_during_retry(self, monkeypatch):
        """Test a timeout on a retry ends the connect like a first-attempt timeout."""
        calls = []

        def fake_create_connection(address, timeout=None):
            calls.append(address)
            if len(calls) == 1:
                raise ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
            raise socket.timeout("timed out")

        monkeypatch.setattr(socket, "create_connection", fake_create_connection)

        with pytest.raises(ChannelTimeoutError):
            NetworkChannel.connect(HOST, 5050, settle_delay=0.0, retry_delay=0.0,
                                   max_retries=3, connect_timeout=0.1)

        assert len(calls) == 2

    def test_accept_timeout(self, free_port):
        """Test a listener with nobody connecting times out and frees the port."""
        with pytest.raises(ChannelTimeoutError):
            NetworkChannel.listen(free_port, host=HOST, accept_timeout=0.2)

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            probe.bind((HOST, free_port))


class TestSocketTuning:
    """Test low-latency socket options on both ends."""

    def test_nodelay_enabled(self, connected_pair):
        """Test Nagle's algorithm is disabled."""
        for channel in connected_pair:
            assert channel.sock.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) != 0

    def test_keepalive_enabled(self, connected_pair):
        """Test keep-alive probing is enabled."""
        for channel in connected_pair:
            assert channel.sock.getsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE) != 0

    def test_small_buffers(self, connected_pair):
        """Test send and receive buffers are shrunk to the low-latency size."""
        # Linux reports twice the requested size.
        for channel in connected_pair:
            assert channel.sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF) <= 2 * BUFFER_SIZE
            assert channel.sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF) <= 2 * BUFFER_SIZE

    @pytest.mark.skipif(not hasattr(socket, "IP_TOS"), reason="IP_TOS not available")
    def test_low_delay_traffic_class(self, connected_pair):
        """Test the low-delay type of service is requested."""
        for channel in connected_pair:
            assert channel.sock.getsockopt(socket.IPPROTO_IP, socket.IP_TOS) == LOW_DELAY_TOS

    def test_listener_options(self, connected_pair):
        """Test the listening socket allows address reuse and has a small receive buffer."""
        server, _ = connected_pair
        listener = server._server_socket

        assert listener.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR) != 0
        assert listener.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF) <= 2 * BUFFER_SIZE


class TestMessaging:
    """Test line-framed message exchange."""

    def test_client_sends_server_receives(self, connected_pair):
        """Test messages arrive in order."""
        server, client = connected_pair
        for message in ["Chit Chat", "Chit Chat1", "Chit Chat12"]:
            client.send(message)

        assert [server.receive() for _ in range(3)] == ["Chit Chat", "Chit Chat1", "Chit Chat12"]

    def test_bidirectional_exchange(self, connected_pair):
        """Test both directions carry messages."""
        server, client = connected_pair

        client.send("ping")
        assert server.receive() == "ping"
        server.send("pong")
        assert client.receive() == "pong"

    def test_empty_message(self, connected_pair):
        """Test an empty string round-trips as an empty string, not None."""
        server, client = connected_pair
        client.send("")

        assert server.receive() == ""

    def test_none_message_ignored(self, connected_pair):
        """Test sending None writes nothing."""
        server, client = connected_pair
        client.send(None)
        client.send("after none")

        assert server.receive() == "after none"

    def test_unicode_message(self, connected_pair):
        """Test UTF-8 text survives the wire."""
        server, client = connected_pair
        client.send("Hello, 世界! 🌍")

        assert server.receive() == "Hello, 世界! 🌍"

    def test_crlf_terminator_stripped(self, connected_pair):
        """Test a peer using CRLF line endings is read cleanly."""
        server, client = connected_pair
        client.sock.sendall(b"windows line\r\n")

        assert server.receive() == "windows line"

    def test_peer_close_reads_none(self, connected_pair):
        """Test the end of the peer's stream reads as None."""
        server, client = connected_pair
        client.close()

        assert server.receive() is None


class TestClose:
    """Test channel release."""

    def test_double_close(self, connected_pair):
        """Test close twice raises nothing."""
        server, client = connected_pair
        client.close()
        client.close()

        assert not client.is_open

    def test_operations_after_close(self, connected_pair):
        """Test send and receive on a closed channel fail quietly."""
        _, client = connected_pair
        client.close()

        client.send("into the void")
        assert client.receive() is None

    def test_context_manager_closes(self, free_port):
        """Test leaving a with-block closes the channel."""
        thread, outcome = start_listener(free_port, accept_timeout=5.0)
        with quick_connect(free_port) as client:
            thread.join(timeout=5.0)
            assert client.is_open
        outcome['channel'].close()

        assert not client.is_open
