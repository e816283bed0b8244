import base64
import json
import socket
import threading

import pytest

from slimchat.client import ClientServices
from slimchat.connection import ServerBusyError, ServerConnection
from slimchat.messaging import MessageChannel
from slimchat.paths import prepare_directories
from slimchat.protocol import decode_message, encode_message, text_message
from slimchat.store import IncomingText


def _recv_exact(conn, size):
    buffer = b""
    while len(buffer) < size:
        chunk = conn.recv(size - len(buffer))
        if not chunk:
            break
        buffer += chunk
    return buffer


def _free_udp_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class FakeServer(threading.Thread):
    def __init__(self, offline, all_info):
        super().__init__(daemon=True)
        self.offline = offline
        self.all_info = all_info
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.listener.settimeout(10)
        self.port = self.listener.getsockname()[1]
        self.login_key = None
        self.uploaded = None

    def run(self):
        try:
            conn, _ = self.listener.accept()
            with conn:
                conn.settimeout(10)
                self.login_key = conn.recv(64)
                conn.sendall(str(len(self.offline)).encode())
                _recv_exact(conn, len(b"pleaseSend"))
                conn.sendall(self.offline)
                if self.all_info is not None:
                    _recv_exact(conn, len(b"GetAllInfo"))
                    conn.sendall(str(len(self.all_info)).encode())
                    _recv_exact(conn, len(b"pleaseSend"))
                    conn.sendall(self.all_info)
                size = int(conn.recv(64))
                conn.sendall(b"send")
                self.uploaded = _recv_exact(conn, size)
                conn.sendall(b"ok")
        finally:
            self.listener.close()


@pytest.fixture
def services(tmp_path):
    paths = prepare_directories(tmp_path)
    client = ClientServices("127.0.0.1", paths, "alice", _free_udp_port(), 42)
    yield client
    client.transfers.shutdown()
    client.channel.close()


def _b64(data):
    return base64.b64encode(data).decode("ascii")


def test_start_downloads_info_and_shutdown_uploads(services):
    all_info = json.dumps(
        {
            "baseinfo": {"nickname": "Alice", "headshot": _b64(b"me")},
            "friends": {"bob": ["Bob", _b64(b"bob")]},
            "messagerecord": {"bob": []},
            "messageitem": ["bob"],
            "requestaddfriend": [],
        }
    ).encode()
    offline = json.dumps({"bob": [["amessage", "bob", "alice", "hi", "10:00:00"]]}).encode()
    server = FakeServer(offline, all_info)
    server.start()
    services.connection = ServerConnection(
        "127.0.0.1", services.paths.user_info_dir, "alice", 42, 0, server_port=server.port
    )

    events = services.start()
    assert events == [IncomingText("bob", "hi", "10:00:00")]
    assert services.started
    assert services.store.baseinfo["nickname"] == "Alice"
    assert services.store.records["bob"] == [["amessage", "bob", "alice", "hi", "10:00:00"]]
    assert (services.paths.avatar_dir / "alice.png").read_bytes() == b"me"

    reply = services.shutdown()
    server.join(10)
    assert reply == "ok"
    assert server.login_key == b"42"
    assert json.loads(server.uploaded) == services.store.to_document()


def test_start_fails_when_server_is_unreachable(services):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        closed_port = sock.getsockname()[1]
    services.connection = ServerConnection(
        "127.0.0.1", services.paths.user_info_dir, "alice", 42, 0, server_port=closed_port
    )
    with pytest.raises(ServerBusyError):
        services.start()
    assert not services.started


def test_poll_handles_a_datagram(services):
    services.channel = MessageChannel("127.0.0.1", _free_udp_port())
    services.channel.start()
    message = text_message("bob", "alice", "hey", "11:00:00")
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
        sender.sendto(encode_message(message), ("127.0.0.1", services.channel.port))
    event = services.poll(5.0)
    assert event == IncomingText("bob", "hey", "11:00:00")
    assert services.store.records["bob"][-1] == message


def test_poll_times_out(services):
    services.channel = MessageChannel("127.0.0.1", _free_udp_port())
    services.channel.start()
    assert services.poll(0.05) is None


def test_send_records_and_transmits(services):
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as receiver:
        receiver.bind(("127.0.0.1", 0))
        receiver.settimeout(5)
        services.channel = MessageChannel(
            "127.0.0.1", _free_udp_port(), server_port=receiver.getsockname()[1]
        )
        services.channel.start()
        message = text_message("alice", "bob", "ping", "12:00:00")
        services.send("bob", message)
        data, _ = receiver.recvfrom(65535)
    assert decode_message(data) == message
    assert services.store.records["bob"] == [message]


def test_shutdown_without_login_raises(services):
    with pytest.raises(RuntimeError):
        services.shutdown()
    assert services.store.info_path().is_file()