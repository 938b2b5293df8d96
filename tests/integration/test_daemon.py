"""End-to-end tests: App, controller and IPC server over a real socket."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from pipeboom.config.schema import DaemonConfig
from pipeboom.engine.app import App
from pipeboom.engine.controller import Controller
from pipeboom.engine.ipc import send_command
from pipeboom.engine.ipc_protocol import (
    CurrentSongResponse,
    IpcCommand,
    StatusResponse,
    SuccessResponse,
)
from pipeboom.models.player import PlayerState


@pytest.fixture
async def daemon(player, itunes, discord, socket_path: Path):
    config = DaemonConfig(socket_path=socket_path)
    controller = Controller(
        app_name="Music",
        poll_interval=0.01,
        discord_app_id=config.discord_app_id,
        itunes=itunes,
        client_factory=discord,
    )
    app = App(config, app_name="Music", controller=controller, itunes=itunes)
    task = asyncio.create_task(app.run())
    for _ in range(100):
        if socket_path.exists():
            break
        await asyncio.sleep(0.01)
    yield app, task
    if not task.done():
        app.request_stop()
    await asyncio.wait_for(task, timeout=2.0)


async def _wait_running(socket_path: Path, expected: bool) -> StatusResponse:
    for _ in range(100):
        status = await send_command(IpcCommand.STATUS, socket_path=socket_path)
        if status.running is expected:
            return status
        await asyncio.sleep(0.01)
    return status


class TestDaemon:
    async def test_starts_automatically(self, daemon, socket_path: Path, discord) -> None:
        status = await _wait_running(socket_path, True)
        assert status == StatusResponse(
            running=True, discord_connected=True, discord_open=True, music_app_open=True
        )
        assert len(discord.clients) == 1

    async def test_status_when_apps_closed(self, player, daemon, socket_path: Path, discord) -> None:
        player.open = {}
        status = await send_command(IpcCommand.STATUS, socket_path=socket_path)
        assert status.discord_open is False
        assert status.music_app_open is False
        assert status.discord_connected is False

    async def test_stop_and_start(self, daemon, socket_path: Path, discord) -> None:
        await _wait_running(socket_path, True)

        assert await send_command(IpcCommand.STOP, socket_path=socket_path) == SuccessResponse()
        assert (await _wait_running(socket_path, False)).running is False
        assert discord.clients[0].closed

        assert await send_command(IpcCommand.START, socket_path=socket_path) == SuccessResponse()
        assert (await _wait_running(socket_path, True)).running is True
        assert len(discord.clients) == 2

    async def test_current_song(self, daemon, socket_path: Path, song) -> None:
        response = await send_command(IpcCommand.CURRENT_SONG, socket_path=socket_path)
        assert response == CurrentSongResponse(
            title=song.name, artist=song.artist, album=song.album, state=PlayerState.PLAYING
        )

    async def test_pushes_presence(self, daemon, socket_path: Path, discord, song, details) -> None:
        await _wait_running(socket_path, True)
        await asyncio.sleep(0.1)
        assert discord.clients[0].updates[0] == (song, details)

    async def test_shutdown(self, daemon, socket_path: Path, discord, itunes) -> None:
        _, task = daemon
        await _wait_running(socket_path, True)

        assert await send_command(IpcCommand.SHUTDOWN, socket_path=socket_path) == SuccessResponse()
        await asyncio.wait_for(task, timeout=2.0)
        assert not socket_path.exists()
        assert discord.clients[0].closed
        assert itunes.closed

    async def test_malformed_request_gets_no_response(self, daemon, socket_path: Path) -> None:
        reader, writer = await asyncio.open_unix_connection(str(socket_path))
        writer.write(b"{this is not json}\n")
        await writer.drain()
        assert await asyncio.wait_for(reader.read(), timeout=1.0) == b""
        writer.close()

        status = await send_command(IpcCommand.STATUS, socket_path=socket_path)
        assert isinstance(status, StatusResponse)

    async def test_termination_request(self, daemon, socket_path: Path) -> None:
        app, task = daemon
        app.request_stop()
        await asyncio.wait_for(task, timeout=2.0)
        assert not socket_path.exists()
