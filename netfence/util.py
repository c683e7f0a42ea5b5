"""System helpers: file locks, interface checks, subprocess runs and YAML files."""

from __future__ import annotations

import fcntl
import os
import socket
import subprocess
from typing import Any

import yaml


class LockedFile:
    """An exclusively locked file; release it or use it as a context manager."""

    def __init__(self, fd: int) -> None:
        self._fd: int | None = fd

    def release(self) -> None:
        """Unlock and close the file; releasing twice does nothing."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        except OSError:
            pass
        os.close(fd)

    def __enter__(self) -> "LockedFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def acquire(path: str | os.PathLike[str]) -> LockedFile:
    """Open (creating if needed) and exclusively lock the file, blocking until free."""
    fd = os.open(path, os.O_CREAT | os.O_RDWR, 0o600)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
    except OSError:
        os.close(fd)
        raise
    return LockedFile(fd)


class InterfaceNotFoundError(LookupError):
    """Raised when a network interface does not exist."""

    def __init__(self, name: str, reason: str = "") -> None:
        message = f"interface {name!r} not found"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.name = name


def if_exists(name: str) -> None:
    """Raise InterfaceNotFoundError unless the named interface exists; empty names pass."""
    if not name:
        return
    try:
        socket.if_nametoindex(name)
    except OSError as exc:
        raise InterfaceNotFoundError(name, str(exc)) from exc


class CommandError(Exception):
    """Raised when a started program cannot run or exits unsuccessfully."""

    def __init__(self, message: str, stdout: str = "", stderr: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


class ShellRunner:
    """Runs external programs and collects their output."""

    def run(self, name: str, stdin: bytes | None, *args: str) -> tuple[str, str]:
        """Run a program with optional stdin; return (stdout, stderr)."""
        kwargs: dict[str, Any] = {"capture_output": True}
        if stdin is None:
            kwargs["stdin"] = subprocess.DEVNULL
        else:
            kwargs["input"] = stdin
        try:
            proc = subprocess.run([name, *args], **kwargs)
        except FileNotFoundError as exc:
            raise CommandError(f'exec: "{name}": executable file not found in $PATH') from exc
        except OSError as exc:
            raise CommandError(f"exec: {name}: {exc}") from exc
        stdout = proc.stdout.decode("utf-8", errors="replace")
        stderr = proc.stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise CommandError(f"exit status {proc.returncode}", stdout, stderr, proc.returncode)
        return stdout, stderr


def write_yaml(path: str | os.PathLike[str], data: Any) -> None:
    """Write data to a YAML file."""
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True, default_flow_style=False)


def read_yaml(path: str | os.PathLike[str]) -> Any:
    """Read and return the data of a YAML file."""
    with open(path, encoding="utf-8") as handle:
        return yaml.safe_load(handle)