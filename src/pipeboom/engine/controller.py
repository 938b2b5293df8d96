"""Controller — owns the presence bridge's run state and Discord connection."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

import structlog

from pipeboom.engine.channel import Channel, drop, fulfil
from pipeboom.errors import InternalError, PipeBoomError, classify
from pipeboom.integrations import apple_music
from pipeboom.integrations.apple_music import DISCORD_APP
from pipeboom.integrations.discord import DiscordClient
from pipeboom.integrations.itunes import ITunesClient
from pipeboom.models.player import PlayerState

log = structlog.get_logger()


class Control(StrEnum):
    START = "start"
    STOP = "stop"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class GetStatus:
    """Asks the controller whether it is running; answered through ``reply``."""

    reply: asyncio.Future


ControlSignal = Control | GetStatus


class _StartAborted(Exception):
    pass


class Controller:
    """Polling state machine driven by control signals and a poll timer.

    All state is private to the task running ``run``; other tasks talk to it
    only through the inbox channel.
    """

    def __init__(
        self,
        app_name: str,
        poll_interval: float,
        discord_app_id: str,
        itunes: ITunesClient,
        client_factory: Callable[[str], DiscordClient] = DiscordClient,
    ) -> None:
        self.app_name = app_name
        self.poll_interval = poll_interval
        self.discord_app_id = discord_app_id
        self._itunes = itunes
        self._client_factory = client_factory
        self._discord: DiscordClient | None = None
        self._is_running = False
        self._shutdown_requested = False
        self._inbox: Channel[ControlSignal] | None = None
        self._recv_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def discord_connected(self) -> bool:
        return self._discord is not None and self._discord.is_connected

    async def run(self, inbox: Channel[ControlSignal]) -> None:
        """Process signals and poll cycles until ``Shutdown``."""
        self._inbox = inbox
        try:
            while not self._shutdown_requested:
                timeout = self.poll_interval if self._is_running else None
                signal = await self._next_signal(timeout)
                if signal is None:
                    await self._tick()
                else:
                    await self._handle(signal)
        finally:
            if self._recv_task and not self._recv_task.done():
                self._recv_task.cancel()
            for pending in inbox.close():
                if isinstance(pending, GetStatus):
                    drop(pending.reply)
            log.info("player controller exited")

    async def _next_signal(self, timeout: float | None) -> ControlSignal | None:
        """Next inbox item, or None if ``timeout`` elapses first."""
        if self._recv_task is None:
            self._recv_task = asyncio.ensure_future(self._inbox.recv())
        done, _ = await asyncio.wait({self._recv_task}, timeout=timeout)
        if not done:
            return None
        task, self._recv_task = self._recv_task, None
        return task.result()

    async def _handle(self, signal: ControlSignal) -> None:
        if isinstance(signal, GetStatus):
            fulfil(signal.reply, self._is_running)
        elif signal is Control.START:
            try:
                await self.start()
            except _StartAborted:
                log.info("start aborted")
            except PipeBoomError as e:
                log.error("failed to start player", error=str(e))
        elif signal is Control.STOP:
            await self.stop()
        elif signal is Control.SHUTDOWN:
            log.info("player controller shutting down")
            self._shutdown_requested = True
            await self.stop()

    async def start(self) -> None:
        if self._is_running:
            return

        log.info("starting player controller", app=self.app_name)
        await self._wait_for_applications()

        log.info("initializing discord client")
        client = self._client_factory(self.discord_app_id)
        await asyncio.to_thread(client.connect)
        self._discord = client
        self._is_running = True
        log.info("player controller running")

    async def stop(self, clear_presence: bool = True) -> None:
        """Single teardown path for external and internal stops."""
        if not self._is_running:
            return

        log.info("stopping player controller")
        client, self._discord = self._discord, None
        if client is not None and client.is_connected:
            if clear_presence:
                await self._clear_best_effort(client)
            try:
                await asyncio.to_thread(client.close)
            except Exception as e:
                log.warning("error closing discord client", error=str(classify(e)))
        self._is_running = False

    async def _wait_for_applications(self) -> None:
        """Poll until Discord and the player are both open.

        The inbox stays live while waiting: status queries are answered,
        ``Stop`` and ``Shutdown`` abort the start.
        """
        log.info("waiting for applications", discord=DISCORD_APP, player=self.app_name)
        loop = asyncio.get_running_loop()
        while True:
            discord_open = await self._check_open(DISCORD_APP)
            music_open = await self._check_open(self.app_name)
            if discord_open and music_open:
                log.info("applications are open", discord=DISCORD_APP, player=self.app_name)
                return

            log.debug("waiting for apps", discord_open=discord_open, music_open=music_open)
            deadline = loop.time() + self.poll_interval
            while (remaining := deadline - loop.time()) > 0:
                signal = await self._next_signal(remaining)
                if signal is None:
                    break
                self._handle_while_starting(signal)

    def _handle_while_starting(self, signal: ControlSignal) -> None:
        if isinstance(signal, GetStatus):
            fulfil(signal.reply, False)
        elif signal is Control.START:
            log.debug("start already in progress")
        elif signal is Control.STOP:
            raise _StartAborted()
        elif signal is Control.SHUTDOWN:
            self._shutdown_requested = True
            raise _StartAborted()

    async def _check_open(self, app_name: str) -> bool:
        try:
            return await asyncio.to_thread(apple_music.is_open, app_name)
        except Exception as e:
            raise InternalError(f"Failed to check if {app_name} is open: {e}") from e

    async def _tick(self) -> None:
        try:
            await self.run_cycle()
        except Exception as e:
            error = classify(e)
            if error.recoverable:
                log.warning("recoverable player error", error=str(error))
            else:
                log.error("fatal player error", error=str(error))
                await self.stop()

    async def run_cycle(self) -> None:
        """One steady-state poll: push or clear presence for the current track."""
        client = self._discord
        if client is None:
            raise InternalError("Discord client not initialized in player cycle")

        if not await asyncio.to_thread(apple_music.is_open, DISCORD_APP):
            log.error("discord closed, stopping player")
            await self.stop(clear_presence=False)
            return

        if not await asyncio.to_thread(apple_music.is_open, self.app_name):
            log.info("player closed, clearing activity and stopping", app=self.app_name)
            await self._clear_best_effort(client)
            await self.stop(clear_presence=False)
            return

        state = await asyncio.to_thread(apple_music.get_player_state, self.app_name)
        if state is PlayerState.PLAYING:
            song = await asyncio.to_thread(apple_music.get_current_song, self.app_name)
            if song is not None:
                log.debug("currently playing", artist=song.artist, title=song.name)
                details = await self._itunes.get_details(song)
                await asyncio.to_thread(client.update_activity, song, details)
                return
            log.debug("playing but no song info available, clearing activity")
        else:
            log.debug("not playing, clearing activity", state=str(state))

        await asyncio.to_thread(client.clear_activity)

    async def _clear_best_effort(self, client: DiscordClient) -> None:
        try:
            await asyncio.to_thread(client.clear_activity)
        except Exception as e:
            log.warning("failed to clear activity", error=str(classify(e)))
