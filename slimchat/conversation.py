"""One open chat with a friend: its entries and the messages it sends."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

from slimchat.entries import ChatEntry, FileState, Side, entry_from_record
from slimchat.protocol import (
    MessageType,
    current_time,
    file_message,
    pixmap_message,
    text_message,
)

SendFunction = Callable[[str, list], Any]


class Conversation:
    """The chat between the user and one friend.

    Outgoing messages go to ``send(friend_id, message)``. Incoming ones are
    added with the ``add_*`` methods.
    """

    def __init__(
        self,
        avatar_dir,
        pix_dir,
        friend_id: str,
        friend_name: str,
        my_id: str,
        record: list[list[Any]],
        send: SendFunction,
    ) -> None:
        self.avatar_dir = Path(avatar_dir)
        self.pix_dir = Path(pix_dir)
        self.friend_id = friend_id
        self.friend_name = friend_name
        self.my_id = my_id
        self._send = send
        self.entries: list[ChatEntry] = []
        for message in record:
            entry = entry_from_record(message, my_id, self.pix_dir)
            if entry is not None:
                self.entries.append(entry)

    @property
    def title(self) -> str:
        """The friend's name followed by the id in parentheses."""
        return f"{self.friend_name}({self.friend_id})"

    @property
    def friend_avatar(self) -> Path:
        return self.avatar_dir / f"{self.friend_id}.png"

    @property
    def my_avatar(self) -> Path:
        return self.avatar_dir / f"{self.my_id}.png"

    def avatar_for(self, side) -> Path:
        """The avatar drawn next to a bubble on ``side``."""
        return self.my_avatar if Side(side) is Side.ME else self.friend_avatar

    def send_text(self, text: str) -> Optional[list[Any]]:
        """Send a text message; nothing happens when the text is empty."""
        if not text:
            return None
        time = current_time()
        message = text_message(self.my_id, self.friend_id, text, time)
        self._send(self.friend_id, message)
        self.add_text(text, Side.ME, time)
        return message

    def send_pixmap(self, path) -> list[Any]:
        """Send an image inline and show it in the chat."""
        path = Path(path)
        data = path.read_bytes()
        time = current_time()
        message = pixmap_message(self.my_id, self.friend_id, data, "." + path.suffix[1:], time)
        self.add_pixmap(path, time, Side.ME)
        self._send(self.friend_id, message)
        return message

    def send_file(self, path) -> ChatEntry:
        """Show a file that is about to be uploaded; return its entry."""
        path = Path(path)
        size = path.stat().st_size
        entry = ChatEntry(
            MessageType.FILE,
            Side.ME,
            current_time(),
            path=path,
            filename=path.name,
            filesize=float(size),
            state=FileState.SENDING,
        )
        self.entries.append(entry)
        return entry

    def file_sent(self, key: str, path) -> list[Any]:
        """Tell the friend that a file was uploaded under ``key``."""
        path = Path(path)
        message = file_message(
            self.my_id, self.friend_id, key, path.name, path.stat().st_size, current_time()
        )
        self._send(self.friend_id, message)
        return message

    def add_text(self, text: str, side, time: str) -> ChatEntry:
        """Add a text bubble."""
        entry = ChatEntry(MessageType.TEXT, Side(side), time, text=text)
        self.entries.append(entry)
        return entry

    def add_file(self, filename: str, filesize: float, key: str, time: str, side) -> ChatEntry:
        """Add a file that is waiting to be downloaded."""
        entry = ChatEntry(
            MessageType.FILE,
            Side(side),
            time,
            filename=filename,
            filesize=float(filesize),
            key=key,
            state=FileState.WAIT_GET,
        )
        self.entries.append(entry)
        return entry

    def add_pixmap(self, path, time: str, side) -> ChatEntry:
        """Add an image bubble."""
        entry = ChatEntry(MessageType.PIXMAP, Side(side), time, path=Path(path))
        self.entries.append(entry)
        return entry