"""JSON control-frame codec for the relay wire protocol.

Every message on the duplex channel is a JSON object with a ``type`` field.
Clients send ``connect``, ``data`` and ``resize``; the relay answers with
``connected``, ``data``, ``error`` and ``close``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from term_relay.types import ProtocolError, SSHCredentials, SSHTarget


@dataclass
class ConnectFrame:
    """Request to open an SSH session."""

    target: SSHTarget
    credentials: SSHCredentials


@dataclass
class DataFrame:
    """Raw keystrokes for the remote shell, forwarded verbatim."""

    data: str

    @property
    def payload(self) -> bytes:
        return self.data.encode("utf-8")


@dataclass
class ResizeFrame:
    """Pseudo-terminal window size change."""

    rows: int
    cols: int


ClientFrame = ConnectFrame | DataFrame | ResizeFrame


def _require_int(message: dict[str, Any], key: str) -> int:
    value = message.get(key)
    if value is None:
        raise ProtocolError(f"Missing '{key}' field", key)
    # bool is an int subclass but never a valid dimension or port
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value)
        else:
            raise ProtocolError(f"Field '{key}' must be an integer", key)
    if value <= 0:
        raise ProtocolError(f"Field '{key}' must be positive", key)
    return value


def _optional_int(message: dict[str, Any], key: str, default: int) -> int:
    # 0, "" and null mean "use the default"
    value = message.get(key)
    if value is None or value == "" or (type(value) is int and value == 0):
        return default
    return _require_int(message, key)


def _optional_str(message: dict[str, Any], key: str) -> str | None:
    value = message.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ProtocolError(f"Field '{key}' must be a string", key)
    return value


def _parse_connect(
    message: dict[str, Any],
    default_rows: int,
    default_cols: int,
    term_type: str,
) -> ConnectFrame:
    host = _optional_str(message, "host")
    username = _optional_str(message, "username")
    if not host or not username:
        raise ProtocolError("Missing host or username", "connect")

    port = _optional_int(message, "port", 22)
    if port > 65535:
        raise ProtocolError("Field 'port' is out of range", "port")

    target = SSHTarget(
        host=host,
        username=username,
        port=port,
        rows=_optional_int(message, "rows", default_rows),
        cols=_optional_int(message, "cols", default_cols),
        term_type=term_type,
    )
    credentials = SSHCredentials(
        password=_optional_str(message, "password"),
        private_key=_optional_str(message, "privateKey"),
        passphrase=_optional_str(message, "passphrase"),
    )
    credentials.validate()
    return ConnectFrame(target=target, credentials=credentials)


def parse_client_frame(
    raw: str | bytes,
    *,
    default_rows: int = 24,
    default_cols: int = 80,
    term_type: str = "xterm-256color",
) -> ClientFrame:
    """Parse one client message into a typed frame.

    Raises:
        ProtocolError: If the message is not a JSON object, has an unknown
            ``type``, or its fields are missing or malformed.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("Message is not valid UTF-8", "parse") from exc

    try:
        message = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Invalid JSON: {exc.msg}", "parse") from exc

    if not isinstance(message, dict):
        raise ProtocolError("Message must be a JSON object", "parse")

    msg_type = message.get("type")

    if msg_type == "connect":
        return _parse_connect(message, default_rows, default_cols, term_type)

    if msg_type == "data":
        data = message.get("data")
        if not isinstance(data, str):
            raise ProtocolError("Field 'data' must be a string", "data")
        try:
            data.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ProtocolError("Field 'data' is not encodable as UTF-8", "data") from exc
        return DataFrame(data=data)

    if msg_type == "resize":
        return ResizeFrame(
            rows=_require_int(message, "rows"),
            cols=_require_int(message, "cols"),
        )

    raise ProtocolError(f"Unknown message type: {msg_type!r}", "parse")


def encode_connected() -> str:
    return json.dumps({"type": "connected"})


def encode_data(data: str) -> str:
    return json.dumps({"type": "data", "data": data})


def encode_error(message: str, code: str | None = None) -> str:
    frame: dict[str, str] = {"type": "error", "message": message}
    if code:
        frame["code"] = str(code)
    return json.dumps(frame)


def encode_close() -> str:
    return json.dumps({"type": "close"})
