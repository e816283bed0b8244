"""Local user data: profile, friends, pending requests and message records."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from slimchat.protocol import (
    MessageType,
    current_time,
    decode_message,
    pixmap_filename,
)


@dataclass(frozen=True)
class IncomingText:
    friend_id: str
    text: str
    time: str


@dataclass(frozen=True)
class IncomingFile:
    friend_id: str
    key: str
    filesize: float
    filename: str
    time: str


@dataclass(frozen=True)
class IncomingPixmap:
    friend_id: str
    path: Path
    time: str


@dataclass(frozen=True)
class FriendRequest:
    friend_id: str
    name: str
    avatar_path: Path
    time: str


@dataclass(frozen=True)
class FriendAnswer:
    friend_id: str
    name: str
    avatar_path: Path
    time: str


@dataclass(frozen=True)
class FindResult:
    friend_id: Optional[str] = None
    name: Optional[str] = None
    avatar_path: Optional[Path] = None

    @property
    def found(self) -> bool:
        return self.friend_id is not None


Event = Union[IncomingText, IncomingFile, IncomingPixmap, FriendRequest, FriendAnswer, FindResult]


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _unb64(text: str) -> bytes:
    return base64.b64decode(text.encode("utf-8"))


class UserStore:
    """Everything the client keeps about one user between sessions."""

    def __init__(self, pix_dir, info_dir, avatar_dir, user_id: str) -> None:
        self.pix_dir = Path(pix_dir)
        self.info_dir = Path(info_dir)
        self.avatar_dir = Path(avatar_dir)
        self.user_id = user_id
        self.baseinfo: dict[str, Any] = {}
        self.friends: dict[str, list[Any]] = {}
        self.message_items: list[str] = []
        self.other_requests: list[list[Any]] = []
        self.records: dict[str, list[list[Any]]] = {}
        self.loaded = False

    def info_path(self) -> Path:
        """Path of the JSON file holding this user's data."""
        return self.info_dir / self.user_id / f"{self.user_id}.json"

    def _avatar_path(self, user_id: str) -> Path:
        return self.avatar_dir / f"{user_id}.png"

    def _ensure_avatar(self, user_id: str, encoded: str) -> None:
        path = self._avatar_path(user_id)
        if not path.exists():
            _write_bytes(path, _unb64(encoded))

    def prepare_all_info(self) -> bool:
        """Load saved data; return True when none exists and the server must supply it."""
        if not (self.info_dir / self.user_id).is_dir():
            return True
        document = json.loads(self.info_path().read_bytes() or b"{}")
        if not isinstance(document, dict):
            raise ValueError("user data must be a JSON object")

        self.baseinfo = dict(document.get("baseinfo", {}))
        self._ensure_avatar(self.user_id, self.baseinfo.get("headshot", ""))

        self.records = {}
        for friend_id, messages in document.get("messagerecord", {}).items():
            for message in messages:
                if message and message[0] == MessageType.PIXMAP.value:
                    target = self.pix_dir / pixmap_filename(message[5], message[4])
                    _write_bytes(target, _unb64(message[3]))
            self.records[friend_id] = [list(m) for m in messages]

        self.friends = {k: list(v) for k, v in document.get("friends", {}).items()}
        for friend_id, info in self.friends.items():
            self._ensure_avatar(friend_id, info[1])

        self.message_items = list(document.get("messageitem", []))

        self.other_requests = [list(r) for r in document.get("requestaddfriend", [])]
        for request in self.other_requests:
            self._ensure_avatar(request[1], request[4])

        self.loaded = True
        return False

    def parse_offline(self, data: bytes) -> list[Event]:
        """Handle the messages that arrived while offline, keyed by sender."""
        if not self.loaded:
            self.prepare_all_info()
        if not data.strip():
            return []
        pending = json.loads(data)
        if not isinstance(pending, dict):
            raise ValueError("offline messages must be a JSON object")
        return [
            self.handle_message(message)
            for messages in pending.values()
            for message in messages
        ]

    def handle_message(self, message: list[Any]) -> Event:
        """Apply one incoming message to the store and describe what happened."""
        if not message:
            raise ValueError("empty message")
        kind = message[0]

        if kind == MessageType.FIND_RESULT.value:
            if len(message) == 1:
                return FindResult()
            path = self.pix_dir / (current_time().replace(":", "") + ".png")
            _write_bytes(path, _unb64(message[3]))
            return FindResult(message[1], message[2], path)

        from_id = message[1]
        time = message[-1]

        if kind == MessageType.FRIEND_REQUEST.value:
            path = self._avatar_path(from_id)
            _write_bytes(path, _unb64(message[4]))
            self.other_requests.append(list(message))
            return FriendRequest(from_id, message[3], path, time)

        if kind == MessageType.FRIEND_ANSWER.value:
            path = self._avatar_path(from_id)
            _write_bytes(path, _unb64(message[4]))
            self.friends[from_id] = [message[3], message[4]]
            self.records[from_id] = []
            return FriendAnswer(from_id, message[3], path, time)

        event: Event
        if kind == MessageType.TEXT.value:
            event = IncomingText(from_id, message[3], time)
        elif kind == MessageType.FILE.value:
            event = IncomingFile(from_id, message[3], float(message[5]), message[4], time)
        elif kind == MessageType.PIXMAP.value:
            path = self.pix_dir / pixmap_filename(time, message[4])
            _write_bytes(path, _unb64(message[3]))
            event = IncomingPixmap(from_id, path, time)
        else:
            raise ValueError(f"unknown message type: {kind!r}")
        self.records.setdefault(from_id, []).append(list(message))
        return event

    def handle_datagram(self, data: bytes) -> Event:
        """Decode and handle a message received over the network."""
        return self.handle_message(decode_message(data))

    def record_outgoing(self, to_id: str, message: list[Any]) -> list[Any]:
        """Note a message about to be sent and return it unchanged."""
        kind = message[0]
        if kind == MessageType.FRIEND_REQUEST.value:
            pass
        elif kind == MessageType.FRIEND_ANSWER.value:
            for request in self.other_requests:
                if request[1] == to_id:
                    self.other_requests.remove(request)
                    break
        else:
            self.records.setdefault(to_id, []).append(list(message))
        return message

    def to_document(self) -> dict[str, Any]:
        """The user's data as the JSON object that is saved and uploaded."""
        return {
            "baseinfo": self.baseinfo,
            "messagerecord": self.records,
            "friends": self.friends,
            "messageitem": self.message_items,
            "requestaddfriend": self.other_requests,
        }

    def save(self) -> Path:
        """Write the user's data to :meth:`info_path` and return that path."""
        path = self.info_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(self.to_document(), ensure_ascii=False, indent=4), encoding="utf-8"
        )
        return path