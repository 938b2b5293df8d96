"""Error taxonomy shared by the adapters, the controller and the IPC layer."""

from __future__ import annotations

import json

import httpx
from pydantic import ValidationError
from pypresence.exceptions import PyPresenceException


class PipeBoomError(Exception):
    """Base error. ``recoverable`` errors let the controller keep running."""

    kind = "Internal"
    recoverable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.kind} error: {message}")


class AppleMusicError(PipeBoomError):
    kind = "Apple Music"
    recoverable = True


class DiscordError(PipeBoomError):
    kind = "Discord"
    recoverable = True


class NetworkError(PipeBoomError):
    kind = "Network"
    recoverable = True


class ConfigError(PipeBoomError):
    """Raised when config loading or validation fails."""

    kind = "Configuration"

    def __init__(self, path: object, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class ParseError(PipeBoomError):
    kind = "Parse"


class FileSystemError(PipeBoomError):
    kind = "IO"


class IPCError(PipeBoomError):
    kind = "IPC"


class SetupError(PipeBoomError):
    kind = "Setup"


class InternalError(PipeBoomError):
    kind = "Internal"


def classify(exc: BaseException) -> PipeBoomError:
    """Map a third-party exception onto the taxonomy."""
    if isinstance(exc, PipeBoomError):
        return exc
    if isinstance(exc, httpx.HTTPError):
        return NetworkError(str(exc) or type(exc).__name__)
    if isinstance(exc, PyPresenceException):
        return DiscordError(str(exc) or type(exc).__name__)
    if isinstance(exc, (json.JSONDecodeError, ValidationError)):
        return ParseError(str(exc))
    if isinstance(exc, OSError):
        return FileSystemError(str(exc))
    return InternalError(str(exc) or type(exc).__name__)
