"""The signed-in user's view of the client: conversations, friends and requests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

from slimchat.conversation import Conversation
from slimchat.entries import (
    FILE_PREVIEW,
    PIXMAP_PREVIEW,
    ChatEntry,
    ConversationSummary,
    FriendEntry,
    FriendRequestEntry,
    Side,
)
from slimchat.paths import ClientPaths
from slimchat.protocol import current_time, friend_answer, friend_request
from slimchat.store import (
    FindResult,
    FriendAnswer,
    FriendRequest,
    IncomingFile,
    IncomingPixmap,
    IncomingText,
    UserStore,
)

SendFunction = Callable[[str, list], Any]


class ChatSession:
    """Keeps the conversation list, friend list, pending requests and open chats.

    Outgoing messages go to ``send(friend_id, message)``, which is expected to
    record them in the store and pass them to the server.
    """

    def __init__(
        self, paths: ClientPaths, user_id: str, store: UserStore, send: SendFunction
    ) -> None:
        self.paths = paths
        self.user_id = user_id
        self.store = store
        self._send = send
        self.name = ""
        self.summaries: dict[str, ConversationSummary] = {}
        self.friends: dict[str, FriendEntry] = {}
        self.requests: dict[str, FriendRequestEntry] = {}
        self.chats: dict[str, Conversation] = {}
        self.find_results: list[FindResult] = []

    def _avatar_path(self, user_id: str) -> Path:
        return Path(self.paths.avatar_dir) / f"{user_id}.png"

    def _own_avatar_bytes(self) -> bytes:
        path = self._avatar_path(self.user_id)
        return path.read_bytes() if path.exists() else b""

    def _friend_name(self, friend_id: str) -> str:
        info = self.store.friends.get(friend_id)
        if info:
            return info[0]
        summary = self.summaries.get(friend_id)
        return summary.name if summary is not None else ""

    def _add_summary(self, friend_id: str) -> ConversationSummary:
        record = self.store.records.setdefault(friend_id, [])
        summary = ConversationSummary(friend_id, self._friend_name(friend_id), record)
        self.summaries[friend_id] = summary
        return summary

    def _add_friend(self, friend_id: str, name: str, avatar_path: Path) -> FriendEntry:
        entry = FriendEntry(friend_id, name, Path(avatar_path))
        self.friends[friend_id] = entry
        return entry

    def _add_request(
        self, friend_id: str, name: str, avatar_path: Path, time: str
    ) -> FriendRequestEntry:
        entry = FriendRequestEntry(friend_id, name, Path(avatar_path), time)
        self.requests[friend_id] = entry
        return entry

    def load(self) -> None:
        """Build the lists from the data held in the store."""
        self.name = self.store.baseinfo.get("nickname", "")
        self.summaries = {}
        self.friends = {}
        self.requests = {}
        for friend_id, info in self.store.friends.items():
            self._add_friend(friend_id, info[0], self._avatar_path(friend_id))
        for friend_id in self.store.message_items:
            self._add_summary(friend_id)
        for request in self.store.other_requests:
            self._add_request(request[1], request[3], self._avatar_path(request[1]), request[-1])

    def open_chat(self, friend_id: str) -> Conversation:
        """Return the chat with a friend, opening it if needed."""
        chat = self.chats.get(friend_id)
        if chat is not None:
            return chat
        if friend_id not in self.friends and friend_id not in self.summaries:
            raise KeyError(f"unknown friend: {friend_id}")
        summary = self.summaries.get(friend_id)
        if summary is None:
            summary = self._add_summary(friend_id)
        chat = Conversation(
            self.paths.avatar_dir,
            self.paths.all_pix_dir,
            friend_id,
            self._friend_name(friend_id),
            self.user_id,
            summary.record,
            self._send,
        )
        self.chats[friend_id] = chat
        return chat

    def close_chat(self, friend_id: str) -> Optional[Conversation]:
        """Close the chat with a friend; return it, or None if it was not open."""
        return self.chats.pop(friend_id, None)

    def _incoming(
        self,
        friend_id: str,
        preview: str,
        time: str,
        add: Callable[[Conversation], ChatEntry],
    ) -> None:
        summary = self.summaries.get(friend_id)
        if summary is None:
            self._add_summary(friend_id)
            return
        chat = self.chats.get(friend_id)
        if chat is not None:
            add(chat)
        summary.change_last_message(preview, time, chat is not None)

    def handle_event(self, event) -> None:
        """Update the lists and open chats for an event produced by the store."""
        if isinstance(event, IncomingText):
            self._incoming(
                event.friend_id,
                event.text,
                event.time,
                lambda chat: chat.add_text(event.text, Side.FRIEND, event.time),
            )
        elif isinstance(event, IncomingFile):
            self._incoming(
                event.friend_id,
                FILE_PREVIEW,
                event.time,
                lambda chat: chat.add_file(
                    event.filename, event.filesize, event.key, event.time, Side.FRIEND
                ),
            )
        elif isinstance(event, IncomingPixmap):
            self._incoming(
                event.friend_id,
                PIXMAP_PREVIEW,
                event.time,
                lambda chat: chat.add_pixmap(event.path, event.time, Side.FRIEND),
            )
        elif isinstance(event, FriendAnswer):
            self._add_friend(event.friend_id, event.name, event.avatar_path)
            self._add_summary(event.friend_id)
        elif isinstance(event, FriendRequest):
            self._add_request(event.friend_id, event.name, event.avatar_path, event.time)
        elif isinstance(event, FindResult):
            self.find_results.append(event)
        else:
            raise TypeError(f"unsupported event: {event!r}")

    def send_text(self, friend_id: str, text: str) -> Optional[list[Any]]:
        """Send a text message to a friend through their chat."""
        return self.open_chat(friend_id).send_text(text)

    def send_pixmap(self, friend_id: str, path) -> list[Any]:
        """Send an image to a friend through their chat."""
        return self.open_chat(friend_id).send_pixmap(path)

    def file_sent(self, friend_id: str, key: str, path) -> list[Any]:
        """Tell a friend that a file was uploaded under ``key``."""
        return self.open_chat(friend_id).file_sent(key, path)

    def request_friend(self, friend_id: str) -> list[Any]:
        """Ask another user to become a friend."""
        message = friend_request(
            self.user_id, friend_id, self.name, self._own_avatar_bytes(), current_time()
        )
        self._send(friend_id, message)
        return message

    def accept_request(self, friend_id: str) -> list[Any]:
        """Accept a pending friend request and answer it."""
        request = self.requests[friend_id]
        request.accept()
        del self.requests[friend_id]

        encoded = next(
            (r[4] for r in self.store.other_requests if r[1] == friend_id), ""
        )
        self.store.friends[friend_id] = [request.name, encoded]
        self.store.records.setdefault(friend_id, [])
        if friend_id not in self.summaries:
            self._add_summary(friend_id)
        self._add_friend(friend_id, request.name, request.avatar_path)

        message = friend_answer(
            self.user_id, friend_id, self.name, self._own_avatar_bytes(), current_time()
        )
        self._send(friend_id, message)
        return message

    def save(self) -> Path:
        """Store the conversation list and write the user's data to disk."""
        self.store.message_items = list(self.summaries)
        return self.store.save()