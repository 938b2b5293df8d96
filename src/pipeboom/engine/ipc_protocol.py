"""Wire format for the local control socket.

One JSON document per direction, newline terminated. Requests look like
``{"command": "Status"}``. Responses are tagged by variant name:
``"Success"``, ``{"Error": "..."}``, ``{"CurrentSong": {...}}`` or
``{"Status": {...}}``.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Union

from pydantic import BaseModel, ConfigDict, ValidationError

from pipeboom.errors import ParseError
from pipeboom.models.player import PlayerState


class IpcCommand(StrEnum):
    START = "Start"
    STOP = "Stop"
    CURRENT_SONG = "CurrentSong"
    STATUS = "Status"
    SHUTDOWN = "Shutdown"


class IpcMessage(BaseModel):
    """Request envelope sent by the client."""

    command: IpcCommand


@dataclass
class IpcRequest:
    """A decoded command plus the slot its response goes into. Never serialized."""

    command: IpcCommand
    reply: asyncio.Future


class SuccessResponse(BaseModel):
    model_config = ConfigDict(frozen=True)


class ErrorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class CurrentSongResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    state: PlayerState = PlayerState.STOPPED


class StatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    running: bool
    discord_connected: bool
    discord_open: bool
    music_app_open: bool


IpcResponse = Union[SuccessResponse, ErrorResponse, CurrentSongResponse, StatusResponse]

_TAGS: dict[type, str] = {
    SuccessResponse: "Success",
    ErrorResponse: "Error",
    CurrentSongResponse: "CurrentSong",
    StatusResponse: "Status",
}
_MODELS = {tag: model for model, tag in _TAGS.items()}


def encode_message(command: IpcCommand) -> bytes:
    return IpcMessage(command=command).model_dump_json().encode() + b"\n"


def decode_message(line: bytes | str) -> IpcMessage:
    try:
        return IpcMessage.model_validate_json(line.strip())
    except ValidationError as e:
        raise ParseError(f"Failed to parse IPC message: {e}") from e


def encode_response(response: IpcResponse) -> bytes:
    tag = _TAGS[type(response)]
    if isinstance(response, SuccessResponse):
        body: object = tag
    elif isinstance(response, ErrorResponse):
        body = {tag: response.message}
    else:
        body = {tag: response.model_dump(mode="json")}
    return json.dumps(body).encode() + b"\n"


def decode_response(line: bytes | str) -> IpcResponse:
    try:
        body = json.loads(line)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse IPC response: {e}") from e

    if body == "Success":
        return SuccessResponse()
    if not isinstance(body, dict) or len(body) != 1:
        raise ParseError(f"Unrecognized IPC response: {body!r}")

    tag, payload = next(iter(body.items()))
    model = _MODELS.get(tag)
    if model is None or model is SuccessResponse:
        raise ParseError(f"Unknown IPC response variant: {tag}")
    try:
        if model is ErrorResponse:
            return ErrorResponse(message=payload)
        return model.model_validate(payload)
    except ValidationError as e:
        raise ParseError(f"Invalid {tag} response: {e}") from e
