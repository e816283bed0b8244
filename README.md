# slimchat

`slimchat` is the client side of a small instant-messaging service. It
handles the client's data and network work but has no windows of its own:

- `slimchat.protocol` builds, encodes and decodes the JSON-array messages
  the server relays. These are text, pictures, file announcements, and
  friend requests and answers.
- `slimchat.store.UserStore` keeps one user's profile, friends, conversation
  records and pending friend requests. It loads them from disk and saves
  them back.
- `slimchat.connection.ServerConnection` runs the TCP login handshake. It
  fetches the messages that arrived while the user was offline. On first
  login it also fetches the whole stored profile. It uploads the profile
  again when the user leaves.
- `slimchat.messaging.MessageChannel` is the UDP channel for live messages
  and friend lookup.
- `slimchat.transfer` uploads and downloads files through the server's file
  ports. This is done on a thread pool.
- `slimchat.entries`, `slimchat.conversation` and `slimchat.session` hold the
  state behind a chat window, the conversation list, the friend list and the
  list of friend requests waiting for an answer.
- `slimchat.paths` creates the client's data directories.
- `slimchat.client.ClientServices` wires the store, the connection, the
  channel and the transfer pool together for one logged-in user.

The package has no dependencies beyond the standard library.

## Message format

Every message is a JSON array whose first element names its type
(`slimchat.protocol.MessageType`):

| type                | fields                                            |
|---------------------|---------------------------------------------------|
| `amessage`          | type, from id, to id, text, time                  |
| `apix`              | type, from id, to id, base64 image, suffix, time  |
| `afile`             | type, from id, to id, key, filename, size, time   |
| `addfriendrequest`  | type, from id, to id, name, base64 avatar, time   |
| `addfriendanswer`   | type, from id, to id, name, base64 avatar, time   |
| `findfriendreslute` | type, id, name, base64 avatar; or type alone when no user matched |

Times are local `HH:MM:SS` strings (`current_time()`). The suffix of a
picture includes its leading dot. A received picture is stored under the
name `pixmap_filename(time, suffix)`, which is the time without colons
followed by the suffix.

```python
from slimchat.protocol import text_message, encode_message, decode_message, current_time

message = text_message("1001", "1002", "hello", current_time())
data = encode_message(message)
assert decode_message(data) == message
```

`decode_message` raises `ValueError` unless the data is a non-empty JSON
array.

## The user store

`UserStore(pix_dir, info_dir, avatar_dir, user_id)` holds one user's data. The
data file is `info_dir/<id>/<id>.json` (`info_path()`).

- `prepare_all_info()` reads the saved data if the user's directory exists.
  It writes out any avatars and pictures the data carries, then returns
  `False`. If there is no saved data, it returns `True`, meaning the whole
  profile must come from the server.
- `parse_offline(data)` handles the object of offline messages, keyed by
  sender, that the server sends at login.
- `handle_datagram(data)` handles one live message. `handle_message(message)`
  does the same for a message that is already decoded.
- Each handled message returns one event: `IncomingText`, `IncomingFile`,
  `IncomingPixmap`, `FriendRequest`, `FriendAnswer` or `FindResult`. Text,
  file and picture messages are also appended to the sender's record.
- `record_outgoing(to_id, message)` records a message the user sends. A friend
  answer instead removes the pending request it answers.
- `to_document()` returns the data as the JSON object that is saved and
  uploaded. `save()` writes it to `info_path()`.

```python
from slimchat.store import UserStore

store = UserStore("pix/", "userinfo/", "avatars/", "1001")
need_all_info = store.prepare_all_info()
event = store.handle_datagram(data)
print(event)
store.save()
```

## Chats, lists and requests

`ChatSession(paths, user_id, store, send)` builds the client's lists from a
loaded store with `load()`:

- `summaries` holds `ConversationSummary` objects: the last message, its time
  and the unread count.
- `friends` holds `FriendEntry` objects.
- `requests` holds `FriendRequestEntry` objects.

`handle_event(event)` applies an event from the store to those lists and to
any open chat. Find results collect in `find_results`.

`open_chat(friend_id)` returns a `Conversation`. Its `entries` are
`ChatEntry` bubbles. `ChatEntry.activate()` reports what a double-click
should do as an `EntryAction`: download, open, cancel and so on, according
to the file's `FileState`.

The session sends messages through `send(friend_id, message)`. The methods
that send are `send_text`, `send_pixmap`, `file_sent`, `request_friend` and
`accept_request`. `save()` stores the conversation list and writes the
user's data.

## Putting it together

```python
from slimchat.paths import prepare_directories
from slimchat.client import ClientServices
from slimchat.session import ChatSession

paths = prepare_directories("/path/to/app")
services = ClientServices("192.0.2.10", paths, "1001", 10021, 123456)
events = services.start()          # raises ServerBusyError if the server is unreachable

session = ChatSession(paths, "1001", services.store, services.send)
session.load()
for event in events:
    session.handle_event(event)

try:
    while True:
        event = services.poll(1.0)
        if event is not None:
            session.handle_event(event)
finally:
    session.save()
    services.shutdown()            # saves and uploads the user's data
```

The sequence for sending a file is as follows:

1. `Conversation.send_file(path)` adds a bubble in the `Sending` state.
2. `services.transfers.send_file(path)` returns a `FileSender` and a
   future. The future yields the key the server stored the file under.
3. `session.file_sent(friend_id, key, path)` announces the file to the
   friend.

Downloads go through `services.transfers.get_file(save_path, key)`. Failed
transfers raise `FileTransferError`.

## What the package does not do

- It has no graphical interface and no command-line program. Drawing windows
  and reacting to clicks is left to the application that uses it.
- It does not log in or register users. The caller must already have the
  user id, the local port and the login key that `ClientServices` and
  `ServerConnection` are given.
- It contains no server.

## Running the tests

Install the package with its `test` extra and run `pytest`.