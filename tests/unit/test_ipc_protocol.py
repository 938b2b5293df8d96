"""Tests for the IPC wire format."""

import json

import pytest

from pipeboom.engine.ipc_protocol import (
    CurrentSongResponse,
    ErrorResponse,
    IpcCommand,
    StatusResponse,
    SuccessResponse,
    decode_message,
    decode_response,
    encode_message,
    encode_response,
)
from pipeboom.errors import ParseError
from pipeboom.models.player import PlayerState


class TestMessages:
    def test_encode_start(self) -> None:
        assert encode_message(IpcCommand.START) == b'{"command":"Start"}\n'

    @pytest.mark.parametrize("tag", ["Start", "Stop", "CurrentSong", "Status", "Shutdown"])
    def test_decode_every_command(self, tag: str) -> None:
        message = decode_message(json.dumps({"command": tag}).encode() + b"\n")
        assert message.command == IpcCommand(tag)

    def test_decode_ignores_unknown_fields(self) -> None:
        message = decode_message(b'{"command": "Status", "id": 1}\n')
        assert message.command is IpcCommand.STATUS

    @pytest.mark.parametrize(
        "line",
        [b"not json\n", b'{"command": "Reboot"}\n', b"{}\n", b"\n", b'{"cmd": "Start"}\n'],
    )
    def test_decode_rejects_malformed(self, line: bytes) -> None:
        with pytest.raises(ParseError):
            decode_message(line)


class TestResponses:
    def test_success_is_bare_tag(self) -> None:
        assert encode_response(SuccessResponse()) == b'"Success"\n'

    def test_error_wire_shape(self) -> None:
        encoded = encode_response(ErrorResponse(message="nope"))
        assert json.loads(encoded) == {"Error": "nope"}

    def test_status_wire_shape(self) -> None:
        encoded = encode_response(
            StatusResponse(
                running=True, discord_connected=False, discord_open=False, music_app_open=True
            )
        )
        assert json.loads(encoded) == {
            "Status": {
                "running": True,
                "discord_connected": False,
                "discord_open": False,
                "music_app_open": True,
            }
        }

    def test_current_song_uses_variant_names(self) -> None:
        encoded = encode_response(
            CurrentSongResponse(title="T", artist="A", album="B", state=PlayerState.FAST_FORWARDING)
        )
        assert json.loads(encoded)["CurrentSong"]["state"] == "FastForwarding"

    @pytest.mark.parametrize(
        "response",
        [
            SuccessResponse(),
            ErrorResponse(message="Failed to get current song: boom"),
            CurrentSongResponse(title="Só", artist="Ünïcode", album="Album", state=PlayerState.PLAYING),
            CurrentSongResponse(state=PlayerState.STOPPED),
            StatusResponse(running=False, discord_connected=True, discord_open=True, music_app_open=False),
        ],
    )
    def test_round_trip(self, response) -> None:
        assert decode_response(encode_response(response)) == response

    @pytest.mark.parametrize(
        "line",
        [b"garbage", b'"Failure"', b'{"Nope": {}}', b'{"Status": {"running": true}}', b"[1, 2]"],
    )
    def test_decode_rejects_unknown(self, line: bytes) -> None:
        with pytest.raises(ParseError):
            decode_response(line)
