"""File uploads and downloads through the server's file ports."""

from __future__ import annotations

import json
import socket
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

SEND_PORT = 10018
GET_PORT = 10019
SEND_CHUNK_SIZE = 50 * 1024
CHUNK_DELAY = 0.1

_CONNECT_TIMEOUT = 5.0
_REPLY_TIMEOUT = 10.0
_DATA_TIMEOUT = 5.0
_RECV_SIZE = 64 * 1024

_SUCCESS = "success"
_PLEASE_SEND = b"pleaseSend"


class FileTransferError(Exception):
    """A file could not be sent or received in full."""


def _recv(sock: socket.socket, timeout: float) -> Optional[bytes]:
    sock.settimeout(timeout)
    try:
        data = sock.recv(_RECV_SIZE)
    except TimeoutError:
        return None
    return data or None


def _connect(host: str, port: int) -> socket.socket:
    try:
        return socket.create_connection((host, port), timeout=_CONNECT_TIMEOUT)
    except OSError as exc:
        raise FileTransferError("could not connect to the file server") from exc


def _to_float(data: bytes) -> float:
    try:
        return float(data.strip())
    except ValueError:
        return 0.0


class FileSender:
    """Uploads one file and learns the key it is stored under."""

    def __init__(self, server_host: str, filepath, port: int = SEND_PORT) -> None:
        self.server_host = server_host
        self.filepath = Path(filepath)
        self.port = port
        self._stopped = threading.Event()

    def stop(self) -> None:
        """Ask a running upload to stop after the current chunk."""
        self._stopped.set()

    def run(self) -> Optional[str]:
        """Upload the file and return its key, or None if it was stopped."""
        size = self.filepath.stat().st_size
        info = json.dumps([f".{self.filepath.suffix[1:]}", size]).encode("utf-8")
        sock = _connect(self.server_host, self.port)
        try:
            with sock:
                sock.sendall(info)
                key = _recv(sock, _REPLY_TIMEOUT)
                if key is None:
                    raise FileTransferError("the server did not hand out a key")
                with self.filepath.open("rb") as source:
                    while not self._stopped.is_set():
                        chunk = source.read(SEND_CHUNK_SIZE)
                        if not chunk:
                            break
                        sock.sendall(chunk)
                        time.sleep(CHUNK_DELAY)
                if self._stopped.is_set():
                    return None
                result = _recv(sock, _REPLY_TIMEOUT)
        except OSError as exc:
            raise FileTransferError("the connection was lost during upload") from exc
        if result is None or result.decode("utf-8", errors="replace") != _SUCCESS:
            raise FileTransferError("the server rejected the upload")
        return key.decode("utf-8")


class FileReceiver:
    """Downloads the file stored under a key."""

    def __init__(self, server_host: str, save_path, key: str, port: int = GET_PORT) -> None:
        self.server_host = server_host
        self.save_path = Path(save_path)
        self.key = key
        self.port = port

    def run(self) -> Path:
        """Download the file to ``save_path`` and return that path."""
        sock = _connect(self.server_host, self.port)
        try:
            with sock, self.save_path.open("wb") as target:
                sock.sendall(self.key.encode("utf-8"))
                reply = _recv(sock, _REPLY_TIMEOUT)
                if reply is None:
                    raise FileTransferError("the server did not announce the file size")
                size = _to_float(reply)
                sock.sendall(_PLEASE_SEND)
                received = 0
                while received < size:
                    chunk = _recv(sock, _DATA_TIMEOUT)
                    if chunk is None:
                        break
                    target.write(chunk)
                    received += len(chunk)
        except OSError as exc:
            raise FileTransferError("the connection was lost during download") from exc
        if received != size:
            raise FileTransferError(f"received {received} of {size:g} bytes")
        return self.save_path


class FileTransferPool:
    """Runs uploads and downloads on worker threads."""

    def __init__(self, server_host: str, max_workers: Optional[int] = None) -> None:
        self.server_host = server_host
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="slimchat-transfer"
        )

    def _submit(self, job: Callable, on_done: Optional[Callable[[Future], None]]) -> Future:
        future = self._executor.submit(job)
        if on_done is not None:
            future.add_done_callback(on_done)
        return future

    def send_file(
        self, filepath, on_done: Optional[Callable[[Future], None]] = None
    ) -> tuple[FileSender, Future]:
        """Start an upload; return the sender, which can be stopped, and its future."""
        sender = FileSender(self.server_host, filepath)
        return sender, self._submit(sender.run, on_done)

    def get_file(
        self, save_path, key: str, on_done: Optional[Callable[[Future], None]] = None
    ) -> Future:
        """Start a download and return its future."""
        receiver = FileReceiver(self.server_host, save_path, key)
        return self._submit(receiver.run, on_done)

    def shutdown(self) -> None:
        """Drop queued transfers and wait for running ones to finish."""
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> "FileTransferPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()