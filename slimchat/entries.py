"""Entries shown in the client: chat bubbles, conversation summaries, friends, requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from slimchat.protocol import MessageType, pixmap_filename

FILE_PREVIEW = "[文件]"
PIXMAP_PREVIEW = "[图片]"
FRIEND_STATUS = "我的好友"


class Side(int, Enum):
    """Which side of the chat a bubble is drawn on."""

    FRIEND = 0
    ME = 1


class FileState(str, Enum):
    """Progress of a file shown in a chat."""

    WAIT_GET = "waitGet"
    WAIT_SEND = "waitSend"
    GETTING = "Getting"
    SENDING = "Sending"
    HAVE_SEND = "haveSend"
    HAVE_GET = "haveGet"


class EntryAction(Enum):
    """What activating (double-clicking) an entry asks the client to do."""

    NOTHING = "nothing"
    DOWNLOAD = "download"
    LEAVE_QUEUE = "leave_queue"
    OPEN = "open"
    CANCEL_DOWNLOAD = "cancel_download"
    CANCEL_UPLOAD = "cancel_upload"


_RECEIVING = (FileState.WAIT_GET, FileState.GETTING, FileState.HAVE_GET)


@dataclass
class ChatEntry:
    """One bubble in a conversation: a text, a file or an image."""

    kind: MessageType
    side: Side
    time: str
    text: str = ""
    path: Optional[Path] = None
    filename: str = ""
    filesize: float = 0.0
    key: str = ""
    state: Optional[FileState] = None

    @property
    def label(self) -> str:
        """The text shown inside the bubble."""
        if self.kind is MessageType.TEXT:
            return self.text
        if self.kind is MessageType.FILE:
            if self.state in _RECEIVING:
                return f"{self.filename}+{self.key}+{self.filesize:g}"
            return f"{self.filename}+{self.filesize:g}"
        return str(self.path) if self.path is not None else ""

    def _require_file(self) -> None:
        if self.kind is not MessageType.FILE:
            raise ValueError("only file entries have a transfer state")

    def mark_received(self) -> None:
        """Record that the file was downloaded in full."""
        self._require_file()
        self.state = FileState.HAVE_GET

    def mark_sent(self, key: str) -> tuple[str, Optional[Path]]:
        """Record that the file was uploaded under ``key``; return the key and file path."""
        self._require_file()
        self.state = FileState.HAVE_SEND
        self.key = key
        return self.key, self.path

    def activate(self) -> EntryAction:
        """Decide what a double-click on this entry does."""
        if self.kind is MessageType.PIXMAP:
            return EntryAction.OPEN
        if self.kind is not MessageType.FILE:
            return EntryAction.NOTHING
        return {
            FileState.WAIT_GET: EntryAction.DOWNLOAD,
            FileState.WAIT_SEND: EntryAction.LEAVE_QUEUE,
            FileState.HAVE_SEND: EntryAction.OPEN,
            FileState.HAVE_GET: EntryAction.OPEN,
            FileState.GETTING: EntryAction.CANCEL_DOWNLOAD,
            FileState.SENDING: EntryAction.CANCEL_UPLOAD,
        }.get(self.state, EntryAction.NOTHING)


def entry_from_record(record: list[Any], my_id: str, pix_dir) -> Optional[ChatEntry]:
    """Build the entry for a stored message; None when its type is not shown in chats."""
    if not record:
        raise ValueError("empty message record")
    kind = record[0]
    side = Side.ME if record[1] == my_id else Side.FRIEND
    time = record[-1]
    if kind == MessageType.TEXT.value:
        return ChatEntry(MessageType.TEXT, side, time, text=record[3])
    if kind == MessageType.FILE.value:
        return ChatEntry(
            MessageType.FILE,
            side,
            time,
            filename=record[4],
            filesize=float(record[5]),
            key=record[3],
            state=FileState.WAIT_GET,
        )
    if kind == MessageType.PIXMAP.value:
        path = Path(pix_dir) / pixmap_filename(time, record[4])
        return ChatEntry(MessageType.PIXMAP, side, time, path=path)
    return None


def summarize_record(record: list[list[Any]]) -> tuple[str, str]:
    """The preview text and time of the last message in a record."""
    if not record:
        return "", ""
    last = record[-1]
    kind = last[0]
    if kind == MessageType.FILE.value:
        message = FILE_PREVIEW
    elif kind == MessageType.PIXMAP.value:
        message = PIXMAP_PREVIEW
    else:
        message = last[3]
    return message, last[-1]


class ConversationSummary:
    """A line in the conversation list: friend, last message and unread count."""

    def __init__(self, friend_id: str, name: str, record: list[list[Any]]) -> None:
        self.friend_id = friend_id
        self.name = name
        self.record = record
        self.unread = 0
        self.last_message, self.last_time = summarize_record(record)

    def change_last_message(self, message: str, time: str, chat_open: bool) -> None:
        """Show a newly arrived message; count it as unread unless its chat is open."""
        self.unread = 0 if chat_open else self.unread + 1
        self.last_message = message
        self.last_time = time

    def clear_unread(self) -> None:
        """Mark every message as seen."""
        self.unread = 0


@dataclass
class FriendEntry:
    """A line in the friend list."""

    friend_id: str
    name: str
    avatar_path: Path
    status: str = FRIEND_STATUS

    def label(self) -> str:
        """The friend's name followed by the id in parentheses."""
        return f"{self.name}({self.friend_id})"


@dataclass
class FriendRequestEntry:
    """A pending request from someone who wants to become a friend."""

    friend_id: str
    name: str
    avatar_path: Path
    time: str
    accepted: bool = field(default=False)

    def accept(self) -> tuple[str, str, Path]:
        """Accept the request once; return the friend's id, name and avatar path."""
        if self.accepted:
            raise RuntimeError("the request has already been accepted")
        self.accepted = True
        return self.friend_id, self.name, self.avatar_path