"""Login connection to the chat server.

One TCP session carries the whole login handshake. The client sends its
login key and downloads the messages that arrived while it was offline. If
asked, it also downloads the user's stored data. When the client leaves, it
uploads that data again over the same session.
"""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Optional

DEFAULT_SERVER_PORT = 8888
UPLOAD_CHUNK_SIZE = 4 * 1024

_CONNECT_TIMEOUT = 10.0
_SIZE_TIMEOUT = 5.0
_OFFLINE_TIMEOUT = 3.0
_ALL_INFO_REPLY_TIMEOUT = 10.0
_ALL_INFO_TIMEOUT = 5.0
_UPLOAD_TIMEOUT = 10.0
_RECV_SIZE = 64 * 1024

_PLEASE_SEND = b"pleaseSend"
_GET_ALL_INFO = b"GetAllInfo"
_SEND = b"send"


class ServerBusyError(ConnectionError):
    """The server could not be reached or stopped answering."""


def _to_int(data: bytes) -> int:
    try:
        return int(data.strip())
    except ValueError:
        return 0


class ServerConnection:
    """The client's login session with the server."""

    def __init__(
        self,
        server_host: str,
        info_dir,
        user_id: str,
        login_key: int,
        port: int = 0,
        server_port: int = DEFAULT_SERVER_PORT,
    ) -> None:
        self.server_host = server_host
        self.info_dir = Path(info_dir)
        self.user_id = user_id
        self.login_key = login_key
        self.port = port
        self.server_port = server_port
        self._sock: Optional[socket.socket] = None

    def _info_path(self) -> Path:
        return self.info_dir / self.user_id / f"{self.user_id}.json"

    def _recv(self, timeout: float) -> Optional[bytes]:
        assert self._sock is not None
        self._sock.settimeout(timeout)
        try:
            data = self._sock.recv(_RECV_SIZE)
        except TimeoutError:
            return None
        return data or None

    def _read_until(self, size: int, timeout: float) -> bytes:
        buffer = bytearray()
        while len(buffer) < size:
            chunk = self._recv(timeout)
            if chunk is None:
                break
            buffer += chunk
        return bytes(buffer)

    def _expect_reply(self, timeout: float) -> bytes:
        reply = self._recv(timeout)
        if reply is None:
            raise ServerBusyError("the server did not answer")
        return reply

    def _open(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", self.port))
            sock.settimeout(_CONNECT_TIMEOUT)
            sock.connect((self.server_host, self.server_port))
        except OSError as exc:
            sock.close()
            raise ServerBusyError("could not connect to the server") from exc
        self._sock = sock

    def _handshake(self, need_all_info: bool) -> tuple[bytes, Optional[bytes]]:
        assert self._sock is not None
        self._sock.sendall(str(self.login_key).encode("ascii"))
        size = _to_int(self._expect_reply(_SIZE_TIMEOUT))
        self._sock.sendall(_PLEASE_SEND)
        offline = self._read_until(size, _OFFLINE_TIMEOUT)

        all_info = None
        if need_all_info:
            self._sock.sendall(_GET_ALL_INFO)
            size = _to_int(self._expect_reply(_ALL_INFO_REPLY_TIMEOUT))
            self._sock.sendall(_PLEASE_SEND)
            all_info = self._read_until(size, _ALL_INFO_TIMEOUT)
        return offline, all_info

    def connect(self, need_all_info: bool) -> bytes:
        """Log in and return the raw offline messages.

        If ``need_all_info`` is set, the user's stored data is also downloaded
        and written to the info file.
        """
        self._open()
        try:
            offline, all_info = self._handshake(need_all_info)
        except ServerBusyError:
            self.close()
            raise
        except OSError as exc:
            self.close()
            raise ServerBusyError("the connection to the server was lost") from exc

        if all_info is not None:
            path = self._info_path()
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(all_info)
        return offline

    def upload_info(self) -> Optional[str]:
        """Send the info file to the server, then end the session.

        Returns the server's final reply, or None if it gave none.
        """
        if self._sock is None:
            raise RuntimeError("not connected to the server")
        data = self._info_path().read_bytes()
        try:
            self._sock.sendall(str(len(data)).encode("ascii"))
            answer = self._recv(_UPLOAD_TIMEOUT)
            if answer == _SEND:
                for start in range(0, len(data), UPLOAD_CHUNK_SIZE):
                    self._sock.sendall(data[start:start + UPLOAD_CHUNK_SIZE])
            reply = self._recv(_UPLOAD_TIMEOUT)
        except OSError as exc:
            raise ServerBusyError("the connection to the server was lost") from exc
        finally:
            self.close()
        return reply.decode("utf-8", errors="replace") if reply else None

    def close(self) -> None:
        """Close the session if it is open."""
        if self._sock is None:
            return
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
        self._sock = None

    def __enter__(self) -> "ServerConnection":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()