"""LaunchAgent install/uninstall so the daemon starts at login."""

from __future__ import annotations

import plistlib
import shutil
import subprocess
import sys
from pathlib import Path

import structlog

from pipeboom.errors import SetupError
from pipeboom.logging_config import ERR_FILE_NAME, LOG_FILE_NAME

log = structlog.get_logger()

LABEL = "com.pipeboom.daemon"


def plist_path(home: Path | None = None) -> Path:
    home = home or Path.home()
    return home / "Library" / "LaunchAgents" / f"{LABEL}.plist"


def resolve_executable() -> Path:
    """Locate the installed ``pipeboom`` entry point."""
    found = shutil.which("pipeboom")
    if found:
        return Path(found).resolve()
    candidate = Path(sys.executable).parent / "pipeboom"
    if candidate.exists():
        return candidate
    raise SetupError("Failed to locate the pipeboom executable; is it on your PATH?")


def build_plist(executable: Path, log_dir: Path, home: Path) -> dict:
    return {
        "Label": LABEL,
        "ProgramArguments": [str(executable)],
        "RunAtLoad": True,
        "KeepAlive": True,
        "StandardOutPath": str(log_dir / LOG_FILE_NAME),
        "StandardErrorPath": str(log_dir / ERR_FILE_NAME),
        "WorkingDirectory": str(home),
    }


def _launchctl(*args: str) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(["launchctl", *args], capture_output=True, text=True)
    except OSError as e:
        raise SetupError(f"Failed to run launchctl: {e}") from e


def install(log_dir: Path, home: Path | None = None, executable: Path | None = None) -> Path:
    """Write the LaunchAgent plist and (re)load it. Returns the plist path."""
    home = home or Path.home()
    executable = executable or resolve_executable()
    path = plist_path(home)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            plistlib.dump(build_plist(executable, log_dir, home), f)
    except OSError as e:
        raise SetupError(f"Failed to write {path}: {e}") from e
    log.info("launch agent written", path=str(path), executable=str(executable))

    _launchctl("unload", str(path))
    result = _launchctl("load", str(path))
    if result.returncode != 0:
        raise SetupError(f"Failed to load Launch Agent: {result.stderr.strip()}")
    log.info("launch agent loaded", label=LABEL)
    return path


def uninstall(home: Path | None = None) -> Path:
    """Unload and delete the LaunchAgent plist."""
    path = plist_path(home)
    if not path.exists():
        raise SetupError(f"Launch Agent {path} not found")

    _launchctl("unload", str(path))
    try:
        path.unlink()
    except OSError as e:
        raise SetupError(f"Failed to remove {path}: {e}") from e
    log.info("launch agent removed", path=str(path))
    return path
