"""Wire format of chat messages exchanged with the server.

Every message is a JSON array whose first element names its type:

* text:    [type, from_id, to_id, text, time]
* pixmap:  [type, from_id, to_id, base64 image, suffix, time]
* file:    [type, from_id, to_id, key, filename, filesize, time]
* friend request / answer: [type, from_id, to_id, from_name, base64 avatar, time]
* find result: [type, id, name, base64 avatar], or [type] alone when no user matched
"""

from __future__ import annotations

import base64
import json
from datetime import datetime
from enum import Enum
from typing import Any


class MessageType(str, Enum):
    """The type tag carried in the first element of every message."""

    TEXT = "amessage"
    FILE = "afile"
    PIXMAP = "apix"
    FRIEND_REQUEST = "addfriendrequest"
    FRIEND_ANSWER = "addfriendanswer"
    FIND_RESULT = "findfriendreslute"


def current_time() -> str:
    """Return the local wall-clock time as HH:MM:SS."""
    return datetime.now().strftime("%H:%M:%S")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def text_message(from_id: str, to_id: str, text: str, time: str) -> list[Any]:
    """Build a plain text message."""
    return [MessageType.TEXT.value, from_id, to_id, text, time]


def file_message(
    from_id: str, to_id: str, key: str, filename: str, filesize: float, time: str
) -> list[Any]:
    """Build the announcement of a file already uploaded under ``key``."""
    return [MessageType.FILE.value, from_id, to_id, key, filename, filesize, time]


def pixmap_message(
    from_id: str, to_id: str, image_bytes: bytes, suffix: str, time: str
) -> list[Any]:
    """Build an inline image message; ``suffix`` includes its leading dot."""
    return [MessageType.PIXMAP.value, from_id, to_id, _b64(image_bytes), suffix, time]


def friend_request(
    from_id: str, to_id: str, name: str, avatar_bytes: bytes, time: str
) -> list[Any]:
    """Build a request to become ``to_id``'s friend."""
    return [MessageType.FRIEND_REQUEST.value, from_id, to_id, name, _b64(avatar_bytes), time]


def friend_answer(
    from_id: str, to_id: str, name: str, avatar_bytes: bytes, time: str
) -> list[Any]:
    """Build the acceptance of a friend request from ``to_id``."""
    return [MessageType.FRIEND_ANSWER.value, from_id, to_id, name, _b64(avatar_bytes), time]


def encode_message(message: list[Any]) -> bytes:
    """Serialise a message to UTF-8 JSON bytes."""
    return json.dumps(message, ensure_ascii=False).encode("utf-8")


def decode_message(data: bytes | str) -> list[Any]:
    """Parse JSON bytes into a message; raise ValueError unless it is a non-empty array."""
    message = json.loads(data)
    if not isinstance(message, list):
        raise ValueError("a message must be a JSON array")
    if not message:
        raise ValueError("a message must not be empty")
    return message


def pixmap_filename(time: str, suffix: str) -> str:
    """Name under which an image received at ``time`` is stored."""
    return time.replace(":", "") + suffix