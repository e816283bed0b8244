"""Datagram channel for chat messages and friend lookups."""

from __future__ import annotations

import socket
from typing import Any, Optional

from slimchat.protocol import encode_message

MESSAGE_PORT = 10016
FIND_FRIEND_PORT = 10030
_MAX_DATAGRAM = 65535


class MessageChannel:
    """Sends messages to the server and receives the ones it forwards."""

    def __init__(
        self,
        server_host: str,
        port: int,
        server_port: int = MESSAGE_PORT,
        find_port: int = FIND_FRIEND_PORT,
    ) -> None:
        self.server_host = server_host
        self.port = port
        self.server_port = server_port
        self.find_port = find_port
        self._sock: Optional[socket.socket] = None

    def start(self) -> None:
        """Bind the local port so that messages can flow."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind(("", self.port))
        except OSError:
            sock.close()
            raise
        self._sock = sock

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeError("the message channel is not started")
        return self._sock

    def send_message(self, message: list[Any]) -> None:
        """Send one chat message to the server."""
        self._socket().sendto(encode_message(message), (self.server_host, self.server_port))

    def find_friend(self, friend_id: str) -> None:
        """Ask the server to look up a user by id."""
        self._socket().sendto(friend_id.encode("utf-8"), (self.server_host, self.find_port))

    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Wait for one datagram and return it, or None if the timeout expires."""
        sock = self._socket()
        sock.settimeout(timeout)
        try:
            data, _ = sock.recvfrom(_MAX_DATAGRAM)
        except TimeoutError:
            return None
        return data

    def close(self) -> None:
        """Release the local port."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "MessageChannel":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()