import base64
from datetime import datetime

import pytest

from slimchat.protocol import (
    MessageType,
    current_time,
    decode_message,
    encode_message,
    file_message,
    friend_answer,
    friend_request,
    pixmap_filename,
    pixmap_message,
    text_message,
)


def test_message_type_tags():
    assert MessageType.TEXT.value == "amessage"
    assert MessageType("addfriendrequest") is MessageType.FRIEND_REQUEST


def test_current_time_format():
    before = datetime.now().replace(microsecond=0)
    value = current_time()
    after = datetime.now().replace(microsecond=0)
    parsed = datetime.strptime(value, "%H:%M:%S")
    assert parsed.strftime("%H:%M:%S") == value
    if before.date() == after.date():
        assert before.strftime("%H:%M:%S") <= value <= after.strftime("%H:%M:%S")


def test_text_message_layout():
    assert text_message("1", "2", "hi", "10:00:00") == ["amessage", "1", "2", "hi", "10:00:00"]


def test_file_message_layout():
    msg = file_message("1", "2", "k1", "a.txt", 42, "10:00:00")
    assert msg == ["afile", "1", "2", "k1", "a.txt", 42, "10:00:00"]


def test_pixmap_message_roundtrips_image():
    msg = pixmap_message("1", "2", b"\x89PNG data", ".png", "t")
    assert msg[0] == "apix"
    assert base64.b64decode(msg[3]) == b"\x89PNG data"
    assert msg[4:] == [".png", "t"]


@pytest.mark.parametrize("builder,tag", [(friend_request, "addfriendrequest"), (friend_answer, "addfriendanswer")])
def test_friend_messages(builder, tag):
    msg = builder("1", "2", "alice", b"avatar", "t")
    assert msg[:4] == [tag, "1", "2", "alice"]
    assert base64.b64decode(msg[4]) == b"avatar"
    assert msg[5] == "t"


def test_encode_decode_roundtrip():
    msg = text_message("1", "2", "héllo", "t")
    assert decode_message(encode_message(msg)) == msg


@pytest.mark.parametrize("data", [b'{"a": 1}', b"[]", b"not json"])
def test_decode_rejects_bad_input(data):
    with pytest.raises(ValueError):
        decode_message(data)


def test_pixmap_filename():
    assert pixmap_filename("12:34:56", ".png") == "123456.png"