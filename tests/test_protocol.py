"""Tests for the wire protocol codec."""

from __future__ import annotations

import json

import pytest

from term_relay.protocol import (
    ConnectFrame,
    DataFrame,
    ResizeFrame,
    encode_close,
    encode_connected,
    encode_data,
    encode_error,
    parse_client_frame,
)
from term_relay.types import ErrorCode, ProtocolError


def raw(**fields) -> str:
    return json.dumps(fields)


class TestParseConnect:
    def test_password_connect(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", port=22, username="u", password="p")
        )
        assert isinstance(frame, ConnectFrame)
        assert frame.target.host == "h"
        assert frame.target.port == 22
        assert frame.target.username == "u"
        assert frame.credentials.password == "p"
        assert frame.credentials.private_key is None
        assert frame.credentials.method == "password"

    def test_private_key_connect(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", username="u", privateKey="KEY", passphrase="pp")
        )
        assert frame.credentials.private_key == "KEY"
        assert frame.credentials.passphrase == "pp"
        assert frame.credentials.method == "private-key"

    def test_defaults(self):
        frame = parse_client_frame(raw(type="connect", host="h", username="u", password="p"))
        assert frame.target.port == 22
        assert (frame.target.rows, frame.target.cols) == (24, 80)
        assert frame.target.term_type == "xterm-256color"

    def test_configured_defaults(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", username="u", password="p"),
            default_rows=40,
            default_cols=120,
            term_type="xterm",
        )
        assert (frame.target.rows, frame.target.cols) == (40, 120)
        assert frame.target.term_type == "xterm"

    def test_initial_dimensions(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", username="u", password="p", rows=50, cols=132)
        )
        assert (frame.target.rows, frame.target.cols) == (50, 132)

    def test_zero_dimensions_use_defaults(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", username="u", password="p", rows=0, cols=0),
            default_rows=30,
            default_cols=100,
        )
        assert (frame.target.rows, frame.target.cols) == (30, 100)

    @pytest.mark.parametrize("port", [0, "", None])
    def test_empty_port_uses_default(self, port):
        frame = parse_client_frame(
            raw(type="connect", host="h", port=port, username="u", password="p")
        )
        assert frame.target.port == 22

    def test_numeric_string_port(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", port="2222", username="u", password="p")
        )
        assert frame.target.port == 2222

    def test_both_auth_methods_rejected(self):
        with pytest.raises(ProtocolError, match="not both"):
            parse_client_frame(
                raw(type="connect", host="h", username="u", password="p", privateKey="k")
            )

    def test_no_auth_method_rejected(self):
        with pytest.raises(ProtocolError, match="required"):
            parse_client_frame(raw(type="connect", host="h", username="u"))

    def test_empty_password_counts_as_missing(self):
        with pytest.raises(ProtocolError):
            parse_client_frame(raw(type="connect", host="h", username="u", password=""))

    @pytest.mark.parametrize(
        "fields",
        [
            {"username": "u", "password": "p"},
            {"host": "h", "password": "p"},
            {"host": "", "username": "u", "password": "p"},
            {"host": 5, "username": "u", "password": "p"},
        ],
    )
    def test_missing_host_or_username(self, fields):
        with pytest.raises(ProtocolError):
            parse_client_frame(raw(type="connect", **fields))

    @pytest.mark.parametrize("port", [-1, 70000, "abc", True, False, 22.5])
    def test_invalid_port(self, port):
        with pytest.raises(ProtocolError):
            parse_client_frame(
                raw(type="connect", host="h", port=port, username="u", password="p")
            )

    def test_credentials_hidden_from_repr(self):
        frame = parse_client_frame(
            raw(type="connect", host="h", username="u", password="hunter2")
        )
        assert "hunter2" not in repr(frame)


class TestParseData:
    @pytest.mark.parametrize("data", ["ls\r", "ls\n", "ls\r\n", "\x03", "", "é€"])
    def test_data_is_verbatim(self, data):
        frame = parse_client_frame(raw(type="data", data=data))
        assert isinstance(frame, DataFrame)
        assert frame.data == data
        assert frame.payload == data.encode("utf-8")

    def test_non_string_data(self):
        with pytest.raises(ProtocolError):
            parse_client_frame(raw(type="data", data=42))

    def test_lone_surrogate_rejected(self):
        with pytest.raises(ProtocolError):
            parse_client_frame('{"type": "data", "data": "\\ud800"}')

    def test_bytes_message(self):
        frame = parse_client_frame(b'{"type": "data", "data": "x"}')
        assert frame == DataFrame(data="x")


class TestParseResize:
    def test_resize(self):
        frame = parse_client_frame(raw(type="resize", rows=30, cols=100))
        assert frame == ResizeFrame(rows=30, cols=100)

    def test_missing_dimension(self):
        with pytest.raises(ProtocolError):
            parse_client_frame(raw(type="resize", rows=30))

    def test_zero_dimension(self):
        with pytest.raises(ProtocolError):
            parse_client_frame(raw(type="resize", rows=0, cols=80))


class TestParseMalformed:
    @pytest.mark.parametrize(
        "message",
        ["not json", "[1, 2]", '"connect"', "{}", '{"type": "exec"}', b"\xff\xfe"],
    )
    def test_rejected(self, message):
        with pytest.raises(ProtocolError) as exc_info:
            parse_client_frame(message)
        assert exc_info.value.code == ErrorCode.PROTOCOL_ERROR


class TestEncode:
    def test_connected(self):
        assert json.loads(encode_connected()) == {"type": "connected"}

    def test_data(self):
        assert json.loads(encode_data("file1\nfile2\n")) == {
            "type": "data",
            "data": "file1\nfile2\n",
        }

    def test_error_with_code(self):
        assert json.loads(encode_error("boom", ErrorCode.NETWORK_ERROR)) == {
            "type": "error",
            "message": "boom",
            "code": "NETWORK_ERROR",
        }

    def test_error_without_code(self):
        assert json.loads(encode_error("boom")) == {"type": "error", "message": "boom"}

    def test_close(self):
        assert json.loads(encode_close()) == {"type": "close"}
