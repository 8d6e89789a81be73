"""Wire format between ``beachmsg`` and the ``beachpatrol`` server.

One request per connection: a UTF-8 JSON array whose first element is the
command name and whose remaining elements are string arguments::

    ["search", "cats", "and", "dogs"]

The server answers with exactly one newline-terminated line and closes the
connection.  Clients may half-close after writing, but are not required to:
the server parses the buffer after every chunk and stops reading as soon as
it holds one complete message.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, Field

SUCCESS_MESSAGE = "Command executed successfully."
MALFORMED_MESSAGE = "Error: Malformed command message."


class ProtocolError(Exception):
    """The request could not be decoded."""


class CommandRequest(BaseModel):
    name: str
    args: list[str] = Field(default_factory=list)


def encode_request(name: str, args: list[str] | tuple[str, ...] = ()) -> bytes:
    """Encode a command request for the wire."""
    return json.dumps([name, *args]).encode("utf-8")


def decode_request(data: bytes) -> CommandRequest:
    """Decode one wire message.

    Raises ``ProtocolError`` for anything but a non-empty JSON array of strings.
    """
    try:
        message = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"Message is not valid UTF-8 JSON: {exc}") from exc

    if not isinstance(message, list) or not message:
        raise ProtocolError("Message must be a non-empty JSON array")
    if not all(isinstance(item, str) for item in message):
        raise ProtocolError("Command name and arguments must all be strings")
    for item in message:
        try:
            item.encode("utf-8")
        except UnicodeEncodeError as exc:
            # JSON \u escapes can carry lone surrogates
            raise ProtocolError(f"Message is not valid UTF-8: {exc}") from exc

    name, *args = message
    return CommandRequest(name=name, args=args)


def try_decode_request(data: bytes) -> CommandRequest | None:
    """Return the request if *data* already holds a complete message.

    Returns ``None`` when more bytes may still complete it.  A buffer that is
    complete JSON but not a valid request raises ``ProtocolError``.
    """
    try:
        json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return decode_request(data)


def single_line(text: str) -> str:
    """Join the lines of *text* with spaces."""
    return " ".join(text.splitlines())


def format_response(message: str) -> bytes:
    """Encode exactly one response line."""
    return f"{single_line(message)}\n".encode("utf-8", errors="backslashreplace")
