"""IPC server — one request/response exchange per Unix socket connection."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from pipeboom.engine.channel import Channel, ChannelClosed, reply_slot
from pipeboom.engine.ipc_protocol import IpcRequest, decode_message, encode_response
from pipeboom.errors import IPCError, PipeBoomError

log = structlog.get_logger()

SOCKET_MODE = 0o600


class IPCServer:
    """Accepts local connections and forwards each decoded command to the app.

    Every connection runs in its own task, so a slow client never holds up
    another one.
    """

    def __init__(self, socket_path: Path, requests: Channel[IpcRequest]) -> None:
        self.socket_path = socket_path
        self._requests = requests
        self._server: asyncio.Server | None = None
        self._clients: set[asyncio.StreamWriter] = set()
        self._closed = asyncio.Event()

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        """Bind the socket, replacing any stale file left at the path."""
        if self.socket_path.exists() or self.socket_path.is_symlink():
            try:
                self.socket_path.unlink()
            except OSError as e:
                raise IPCError(f"Failed to remove existing socket: {e}") from e

        try:
            self._server = await asyncio.start_unix_server(
                self._handle_client, path=str(self.socket_path)
            )
            os.chmod(self.socket_path, SOCKET_MODE)
        except OSError as e:
            raise IPCError(f"Failed to bind Unix socket: {e}") from e
        log.info("ipc server listening", socket=str(self.socket_path))

    async def serve(self) -> None:
        """Run until cancelled; the socket file is removed on the way out."""
        if self._server is None:
            await self.start()
        try:
            await self._closed.wait()
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop accepting, drop open connections and remove the socket file."""
        self._closed.set()
        for writer in list(self._clients):
            writer.transport.abort()
        if self._server is not None:
            self._server.close()
            self._server = None
        if self.socket_path.exists():
            self.socket_path.unlink()
            log.info("ipc socket removed", socket=str(self.socket_path))

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Read one command, wait for the app's answer, write it back."""
        self._clients.add(writer)
        try:
            line = await reader.readline()
            if not line:
                return

            message = decode_message(line)
            reply = reply_slot()
            self._requests.send(IpcRequest(command=message.command, reply=reply))
            response = await reply

            writer.write(encode_response(response))
            await writer.drain()
        except ChannelClosed as e:
            log.error("client handler error", error=f"request not handled: {e}")
        except PipeBoomError as e:
            log.error("client handler error", error=str(e))
        except (ConnectionError, ValueError) as e:
            log.error("client handler error", error=f"transport failure: {e}")
        finally:
            self._clients.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
