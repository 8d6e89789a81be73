"""Filesystem layout and transport endpoint for beachpatrol.

Directory layout (per-user):

    ${XDG_DATA_HOME:-~/.local/share}/
      beachpatrol/
        beachpatrol.sock    # Unix domain socket (non-Windows only)
        beachpatrol.log     # Server log

    ~/.config/beachpatrol/
      profiles/
        chromium/
          default/          # Persistent browser profile
        firefox/
          default/

    ${XDG_DOWNLOAD_DIR:-~/Downloads}/   # Where downloads are saved

On Windows the server listens on the named pipe ``\\\\.\\pipe\\beachpatrol``
instead of a socket file.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

SERVICE_NAME = "beachpatrol"

_SOCKET_FILENAME = f"{SERVICE_NAME}.sock"
_LOG_FILENAME = f"{SERVICE_NAME}.log"
_NAMED_PIPE = rf"\\.\pipe\{SERVICE_NAME}"
_COMMANDS_DIRNAME = "commands"


def uses_unix_socket() -> bool:
    """Return ``True`` when the endpoint is a filesystem-backed Unix socket."""
    return sys.platform != "win32"


def get_data_dir() -> Path:
    """Return ``$XDG_DATA_HOME`` or ``~/.local/share``."""
    xdg = os.environ.get("XDG_DATA_HOME", "").strip()
    if xdg:
        return Path(xdg)
    return Path.home() / ".local" / "share"


def get_service_dir() -> Path:
    """Return the beachpatrol data directory, creating it if needed."""
    service_dir = get_data_dir() / SERVICE_NAME
    service_dir.mkdir(parents=True, exist_ok=True)
    return service_dir


def get_socket_path() -> Path:
    """Return the Unix domain socket path (not created)."""
    return get_data_dir() / SERVICE_NAME / _SOCKET_FILENAME


def get_endpoint() -> str:
    """Return the endpoint the server binds and the client connects to."""
    if uses_unix_socket():
        return str(get_socket_path())
    return _NAMED_PIPE


def get_log_path() -> Path:
    """Return the server log file path."""
    return get_service_dir() / _LOG_FILENAME


def get_profile_dir(browser_name: str, profile: str) -> Path:
    """Return the persistent profile directory, creating it if needed."""
    profile_dir = (
        Path.home() / ".config" / SERVICE_NAME / "profiles" / browser_name / profile
    )
    profile_dir.mkdir(parents=True, exist_ok=True)
    return profile_dir


def get_download_dir() -> Path:
    """Return ``$XDG_DOWNLOAD_DIR`` or ``~/Downloads``, creating it if needed."""
    xdg = os.environ.get("XDG_DOWNLOAD_DIR", "").strip()
    download_dir = Path(xdg) if xdg else Path.home() / "Downloads"
    download_dir.mkdir(parents=True, exist_ok=True)
    return download_dir


def get_commands_dir(override: str | None = None) -> Path:
    """Return the command scripts root.

    Defaults to the ``commands`` directory shipped inside the package, so the
    root does not depend on the current working directory.
    """
    if override:
        return Path(override)
    return Path(__file__).resolve().parent / _COMMANDS_DIRNAME
