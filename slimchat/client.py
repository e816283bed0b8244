"""The client's background services wired together."""

from __future__ import annotations

from typing import Any, Optional

from slimchat.connection import ServerConnection
from slimchat.messaging import MessageChannel
from slimchat.paths import ClientPaths
from slimchat.store import Event, UserStore
from slimchat.transfer import FileTransferPool


class ClientServices:
    """User data, login session, message channel and file transfers of one user."""

    def __init__(
        self, server_host: str, paths: ClientPaths, user_id: str, port: int, login_key: int
    ) -> None:
        self.server_host = server_host
        self.paths = paths
        self.user_id = user_id
        self.port = port
        self.store = UserStore(paths.all_pix_dir, paths.user_info_dir, paths.avatar_dir, user_id)
        self.connection = ServerConnection(
            server_host, paths.user_info_dir, user_id, login_key, port
        )
        self.channel = MessageChannel(server_host, port)
        self.transfers = FileTransferPool(server_host)
        self.started = False

    def start(self) -> list[Event]:
        """Load local data, log in, and return what arrived while offline.

        Raises ServerBusyError when the server cannot be reached.
        """
        need_all_info = self.store.prepare_all_info()
        offline = self.connection.connect(need_all_info)
        events = self.store.parse_offline(offline)
        self.channel.start()
        self.started = True
        return events

    def send(self, to_id: str, message: list[Any]) -> list[Any]:
        """Record an outgoing message and send it to the server."""
        self.store.record_outgoing(to_id, message)
        self.channel.send_message(message)
        return message

    def poll(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Wait for one forwarded message and apply it; None on timeout."""
        data = self.channel.receive(timeout)
        if data is None:
            return None
        return self.store.handle_datagram(data)

    def shutdown(self) -> Optional[str]:
        """Stop the services, save the user's data and upload it to the server.

        Returns the server's final reply, or None if it gave none.
        """
        self.transfers.shutdown()
        self.channel.close()
        self.store.save()
        self.started = False
        return self.connection.upload_info()