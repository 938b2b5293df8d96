"""IPC client for CLI-to-daemon communication via Unix domain socket."""

from __future__ import annotations

import asyncio
from pathlib import Path

from pipeboom.config.schema import default_socket_path
from pipeboom.engine.ipc_protocol import (
    IpcCommand,
    IpcResponse,
    decode_response,
    encode_message,
)
from pipeboom.errors import IPCError, ParseError

DEFAULT_SOCKET_PATH = default_socket_path()


async def send_command(
    command: IpcCommand,
    socket_path: Path = DEFAULT_SOCKET_PATH,
    timeout: float = 10.0,
) -> IpcResponse:
    """Send a command to the daemon and return its decoded response."""
    if not socket_path.exists():
        raise IPCError("Daemon is not running. Start it with: pipeboom")

    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_unix_connection(str(socket_path)),
            timeout=timeout,
        )
    except (ConnectionRefusedError, FileNotFoundError, asyncio.TimeoutError) as e:
        raise IPCError("Cannot connect to daemon. Start it with: pipeboom") from e

    try:
        writer.write(encode_message(command))
        await writer.drain()

        data = await asyncio.wait_for(reader.readline(), timeout=timeout)
        if not data:
            raise IPCError("Empty response from daemon")

        try:
            return decode_response(data)
        except ParseError as e:
            raise IPCError(f"Invalid response from daemon: {e.message}") from e
    except asyncio.TimeoutError as e:
        raise IPCError("Timed out waiting for daemon") from e
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass
