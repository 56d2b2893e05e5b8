"""Shell runner used by the ``cmd`` action."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

LOGGER = logging.getLogger(__name__)

LineCallback = Callable[[str, str], None]

POSIX_SHELL = ("sh", "-c")
WINDOWS_SHELL = ("powershell", "/C")


def default_shell() -> Sequence[str]:
    return WINDOWS_SHELL if os.name == "nt" else POSIX_SHELL


def decode_line(raw: bytes) -> str:
    """Decode a line of process output, tolerating non UTF-8 consoles."""

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("gbk" if os.name == "nt" else "latin-1", errors="replace")
    return text.rstrip("\r\n")


@dataclass(frozen=True)
class RunnerResult:
    """Result returned after executing a command."""

    success: bool
    output: str
    return_code: int | None = None


class Runner(Protocol):
    """Protocol describing the runner interface used by ``cmd``."""

    def run(
        self,
        command: str,
        workspace_path: Path,
        env: Optional[Mapping[str, str]] = None,
        on_line: Optional[LineCallback] = None,
    ) -> RunnerResult:
        """Execute ``command`` inside the workspace and return the outcome."""


class ShellRunner:
    """Runner that executes a command string through the platform shell.

    Output is read line by line from both pipes while the process runs and
    handed to ``on_line`` as ``(stream, text)`` with stream ``out`` or ``err``.
    """

    def __init__(self, shell: Optional[Sequence[str]] = None) -> None:
        self._shell = list(shell) if shell else list(default_shell())

    @property
    def shell(self) -> List[str]:
        return list(self._shell)

    def build_command(self, command: str) -> List[str]:
        return [*self._shell, command]

    def run(
        self,
        command: str,
        workspace_path: Path,
        env: Optional[Mapping[str, str]] = None,
        on_line: Optional[LineCallback] = None,
    ) -> RunnerResult:
        logs: List[str] = []
        lock = threading.Lock()

        def collect(stream: str, text: str) -> None:
            with lock:
                logs.append(f"{text}\n")
            if on_line is not None:
                on_line(stream, text)

        process_env: Dict[str, str] = dict(os.environ)
        process_env.update(env or {})

        LOGGER.debug("Running %s in %s", command, workspace_path)
        try:
            process = subprocess.Popen(
                self.build_command(command),
                cwd=str(workspace_path),
                env=process_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
            LOGGER.exception("Shell %s could not start command %s", self._shell[0], command)
            collect("err", f"failed to start command: {exc}")
            return RunnerResult(success=False, output="".join(logs))

        readers = [
            threading.Thread(target=_pump, args=(process.stdout, "out", collect), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, "err", collect), daemon=True),
        ]
        for reader in readers:
            reader.start()
        try:
            return_code = process.wait()
        except KeyboardInterrupt:
            process.kill()
            raise
        finally:
            for reader in readers:
                reader.join()

        success = return_code == 0
        if not success:
            LOGGER.info("Command %s exited with code %s", command, return_code)
        return RunnerResult(
            success=success,
            output="".join(logs),
            return_code=return_code,
        )


def _pump(pipe: Optional[IO[bytes]], stream: str, collect: LineCallback) -> None:
    if pipe is None:
        return
    with pipe:
        for raw in iter(pipe.readline, b""):
            collect(stream, decode_line(raw))


__all__ = [
    "LineCallback",
    "POSIX_SHELL",
    "Runner",
    "RunnerResult",
    "ShellRunner",
    "WINDOWS_SHELL",
    "decode_line",
    "default_shell",
]
