"""App — top-level orchestrator between the IPC server and the controller."""

from __future__ import annotations

import asyncio
import signal

import structlog

from pipeboom import __version__
from pipeboom.config.schema import DaemonConfig
from pipeboom.engine.channel import Channel, ChannelClosed, drop, fulfil, reply_slot
from pipeboom.engine.controller import Control, Controller, ControlSignal, GetStatus
from pipeboom.engine.ipc_protocol import (
    CurrentSongResponse,
    ErrorResponse,
    IpcCommand,
    IpcRequest,
    IpcResponse,
    StatusResponse,
    SuccessResponse,
)
from pipeboom.engine.ipc_server import IPCServer
from pipeboom.errors import PipeBoomError
from pipeboom.integrations import apple_music
from pipeboom.integrations.apple_music import DISCORD_APP
from pipeboom.integrations.itunes import ITunesClient
from pipeboom.models.player import PlayerState
from pipeboom.utils import player_app_name

log = structlog.get_logger()


class App:
    """Central coordinator. Owns the request queue and the controller's inbox.

    This is the only place IPC commands are turned into controller signals,
    and the only place read-only status and song queries are answered.
    """

    def __init__(
        self,
        config: DaemonConfig,
        app_name: str | None = None,
        controller: Controller | None = None,
        itunes: ITunesClient | None = None,
    ) -> None:
        self.config = config
        self.app_name = app_name or player_app_name()
        self._itunes = itunes or ITunesClient(cache_ttl_seconds=config.cache_ttl_seconds)
        self._controller = controller or Controller(
            app_name=self.app_name,
            poll_interval=config.poll_interval,
            discord_app_id=config.discord_app_id,
            itunes=self._itunes,
        )
        self._requests: Channel[IpcRequest] = Channel()
        self._control: Channel[ControlSignal] | None = None
        self._ipc_server = IPCServer(config.socket_path, self._requests)
        self._tasks: list[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def ipc_server(self) -> IPCServer:
        return self._ipc_server

    def request_stop(self) -> None:
        """Leave the main loop as if the process were being terminated."""
        self._stop_event.set()

    async def run(self, install_signal_handlers: bool = False) -> None:
        """Start the server and controller, then serve requests until shutdown."""
        log.info("starting pipeboom", version=__version__, app=self.app_name)

        await self._ipc_server.start()
        server_task = asyncio.create_task(self._ipc_server.serve(), name="ipc-server")

        self._control = Channel()
        controller_task = asyncio.create_task(
            self._controller.run(self._control), name="controller"
        )
        self._tasks = [server_task, controller_task]

        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.request_stop)

        log.info("pipeboom is ready for ipc commands", socket=str(self.config.socket_path))
        self.handle_start()

        try:
            await self._main_loop()
        finally:
            await self._teardown(controller_task, server_task)

    async def _main_loop(self) -> None:
        stop_wait = asyncio.create_task(self._stop_event.wait())
        recv: asyncio.Task | None = None
        try:
            while True:
                if recv is None:
                    recv = asyncio.create_task(self._requests.recv())
                done, _ = await asyncio.wait(
                    {recv, stop_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                if recv in done:
                    request, recv = recv.result(), None
                    if not await self.dispatch(request):
                        return
                elif stop_wait in done:
                    log.info("termination requested")
                    return
        finally:
            for task in (recv, stop_wait):
                if task is not None and not task.done():
                    task.cancel()

    async def dispatch(self, request: IpcRequest) -> bool:
        """Answer one request. Returns False when the main loop should end."""
        if request.command is IpcCommand.SHUTDOWN:
            log.info("received shutdown command via ipc")
            if not fulfil(request.reply, SuccessResponse()):
                log.warning("failed to send shutdown response")
            return False

        response = await self.handle(request.command)
        if not fulfil(request.reply, response):
            log.warning("failed to send ipc response, client may have disconnected")
        return True

    async def handle(self, command: IpcCommand) -> IpcResponse:
        if command is IpcCommand.START:
            return self.handle_start()
        if command is IpcCommand.STOP:
            return self.handle_stop()
        if command is IpcCommand.CURRENT_SONG:
            return await self.handle_current_song()
        if command is IpcCommand.STATUS:
            return await self.handle_status()
        return ErrorResponse(message=f"Unsupported command: {command}")

    def handle_start(self) -> IpcResponse:
        log.info("received start command")
        return self._send_control(Control.START)

    def handle_stop(self) -> IpcResponse:
        log.info("received stop command")
        return self._send_control(Control.STOP)

    def _send_control(self, control: Control) -> IpcResponse:
        if self._control is None:
            return ErrorResponse(message="Player controller not available")
        try:
            self._control.send(control)
        except ChannelClosed:
            return ErrorResponse(
                message=f"Failed to send {control} command to player controller"
            )
        return SuccessResponse()

    async def handle_current_song(self) -> IpcResponse:
        try:
            song = await asyncio.to_thread(apple_music.get_current_song, self.app_name)
        except PipeBoomError as e:
            return ErrorResponse(message=f"Failed to get current song: {e}")

        if song is None:
            return CurrentSongResponse(state=PlayerState.STOPPED)

        try:
            state = await asyncio.to_thread(apple_music.get_player_state, self.app_name)
        except PipeBoomError as e:
            log.warning("failed to get player state", error=str(e))
            state = PlayerState.UNKNOWN
        return CurrentSongResponse(
            title=song.name, artist=song.artist, album=song.album, state=state
        )

    async def handle_status(self) -> IpcResponse:
        discord_open = await self._is_open(DISCORD_APP)
        music_open = await self._is_open(self.app_name)
        running = await self._controller_running()
        return StatusResponse(
            running=running,
            # mirrors discord_open rather than the controller's connection
            discord_connected=discord_open,
            discord_open=discord_open,
            music_app_open=music_open,
        )

    async def _is_open(self, app_name: str) -> bool:
        try:
            return await asyncio.to_thread(apple_music.is_open, app_name)
        except PipeBoomError as e:
            log.debug("is-open query failed", app=app_name, error=str(e))
            return False

    async def _controller_running(self) -> bool:
        if self._control is None:
            return False
        reply = reply_slot()
        try:
            self._control.send(GetStatus(reply=reply))
            return bool(await reply)
        except ChannelClosed:
            return False

    async def _teardown(self, controller_task: asyncio.Task, server_task: asyncio.Task) -> None:
        for request in self._requests.close():
            drop(request.reply)

        if self._control is not None:
            try:
                self._control.send(Control.SHUTDOWN)
            except ChannelClosed:
                pass
        try:
            await controller_task
        except Exception:
            log.exception("player controller failed")

        server_task.cancel()
        try:
            await server_task
        except asyncio.CancelledError:
            pass
        except PipeBoomError as e:
            log.error("ipc server error", error=str(e))

        await self._itunes.aclose()
        log.info("pipeboom shutting down")
