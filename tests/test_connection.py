import socket
import threading

import pytest

from slimchat.connection import ServerBusyError, ServerConnection


def _recv_exact(conn, n):
    buffer = b""
    while len(buffer) < n:
        chunk = conn.recv(n - len(buffer))
        if not chunk:
            break
        buffer += chunk
    return buffer


def _serve(script):
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    result = {}

    def run():
        try:
            conn, _ = listener.accept()
            with conn:
                conn.settimeout(5)
                script(conn, result)
        finally:
            listener.close()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return listener.getsockname()[1], thread, result


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_connect_returns_offline_messages(tmp_path):
    offline = b'{"u2": [["amessage", "u2", "u1", "hi", "10:00:00"]]}'

    def script(conn, result):
        result["key"] = conn.recv(64)
        conn.sendall(str(len(offline)).encode())
        result["answer"] = _recv_exact(conn, len(b"pleaseSend"))
        conn.sendall(offline)

    port, thread, result = _serve(script)
    connection = ServerConnection("127.0.0.1", tmp_path, "u1", 1234, 0, port)
    try:
        got = connection.connect(False)
    finally:
        connection.close()
    thread.join(5)
    assert got == offline
    assert result["key"] == b"1234"
    assert result["answer"] == b"pleaseSend"
    assert not (tmp_path / "u1").exists()


def test_connect_downloads_all_info(tmp_path):
    document = b'{"baseinfo": {"nickname": "me"}}'

    def script(conn, result):
        conn.recv(64)
        conn.sendall(b"0")
        _recv_exact(conn, len(b"pleaseSend"))
        result["request"] = _recv_exact(conn, len(b"GetAllInfo"))
        conn.sendall(str(len(document)).encode())
        _recv_exact(conn, len(b"pleaseSend"))
        conn.sendall(document)

    port, thread, result = _serve(script)
    connection = ServerConnection("127.0.0.1", tmp_path, "u1", 7, 0, port)
    try:
        offline = connection.connect(True)
    finally:
        connection.close()
    thread.join(5)
    assert offline == b""
    assert result["request"] == b"GetAllInfo"
    assert (tmp_path / "u1" / "u1.json").read_bytes() == document


def test_connect_refused_raises(tmp_path):
    connection = ServerConnection("127.0.0.1", tmp_path, "u1", 1, 0, _free_port())
    with pytest.raises(ServerBusyError):
        connection.connect(False)


def test_server_hanging_up_raises(tmp_path):
    def script(conn, result):
        result["closed"] = True

    port, thread, result = _serve(script)
    connection = ServerConnection("127.0.0.1", tmp_path, "u1", 1, 0, port)
    with pytest.raises(ServerBusyError):
        connection.connect(False)
    thread.join(5)
    assert result["closed"] is True


def test_upload_info_sends_the_file(tmp_path):
    document = b'{"friends": {"u2": ["bob", ""]}}'
    info = tmp_path / "u1" / "u1.json"
    info.parent.mkdir()
    info.write_bytes(document)

    def script(conn, result):
        conn.recv(64)
        conn.sendall(b"0")
        _recv_exact(conn, len(b"pleaseSend"))
        size = int(conn.recv(64))
        conn.sendall(b"send")
        result["data"] = _recv_exact(conn, size)
        conn.sendall(b"ok")

    port, thread, result = _serve(script)
    connection = ServerConnection("127.0.0.1", tmp_path, "u1", 1, 0, port)
    connection.connect(False)
    reply = connection.upload_info()
    thread.join(5)
    assert result["data"] == document
    assert reply == "ok"


def test_upload_before_connect_raises(tmp_path):
    connection = ServerConnection("127.0.0.1", tmp_path, "u1", 1)
    with pytest.raises(RuntimeError):
        connection.upload_info()