"""Directories the client keeps its data in."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ClientPaths:
    """Where files, images, avatars and user data are stored."""

    app_dir: Path
    all_file_dir: Path
    all_pix_dir: Path
    avatar_dir: Path
    user_info_dir: Path
    client_file_dir: Path


def prepare_directories(app_dir) -> ClientPaths:
    """Create the client's data directories under ``app_dir`` and return their paths."""
    base = Path(app_dir).resolve()
    paths = ClientPaths(
        app_dir=base,
        all_file_dir=base / "AllFile",
        all_pix_dir=base / "AllPix",
        avatar_dir=base / "friendpixmap",
        user_info_dir=base / "UserInfoPath",
        client_file_dir=base / "clientfile",
    )
    for directory in (
        paths.all_pix_dir,
        paths.client_file_dir,
        paths.avatar_dir,
        paths.user_info_dir,
        paths.all_file_dir,
    ):
        directory.mkdir(parents=True, exist_ok=True)
    return paths