from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# yt-dlp --dump-json emits a single line that easily exceeds asyncio's 64 KiB default.
_STREAM_LIMIT = 32 * 1024 * 1024


class CommandNotFoundError(Exception):
    def __init__(self, program: str) -> None:
        super().__init__(f"{program} not found on PATH")
        self.program = program


class CommandTimeoutError(Exception):
    def __init__(self, program: str, timeout: float) -> None:
        super().__init__(f"{program} did not finish within {timeout:g}s")
        self.program = program
        self.timeout = timeout


@dataclass(slots=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def is_available(program: str) -> bool:
    return shutil.which(program) is not None


async def run_command(
    cmd: Sequence[str],
    *,
    timeout: float | None = None,
    on_stdout_line: Callable[[str], None] | None = None,
) -> CommandResult:
    """Run ``cmd`` to completion and capture its output.

    The child is killed when the timeout expires or when the awaiting task is
    cancelled, so a dropped client never leaves a download or recognizer running.
    """
    program = cmd[0]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STREAM_LIMIT,
        )
    except FileNotFoundError as exc:
        raise CommandNotFoundError(program) from exc

    try:
        stdout, stderr = await asyncio.wait_for(_collect(proc, on_stdout_line), timeout)
    except asyncio.TimeoutError as exc:
        await _kill(proc)
        raise CommandTimeoutError(program, timeout or 0) from exc
    except asyncio.CancelledError:
        logger.info("Cancelled, killing %s (pid %s)", program, proc.pid)
        await _kill(proc)
        raise

    return CommandResult(returncode=proc.returncode or 0, stdout=stdout, stderr=stderr)


async def _collect(
    proc: asyncio.subprocess.Process,
    on_stdout_line: Callable[[str], None] | None,
) -> tuple[str, str]:
    if on_stdout_line is None:
        out, err = await proc.communicate()
        return _decode(out), _decode(err)

    stdout, stderr = proc.stdout, proc.stderr
    if stdout is None or stderr is None:
        raise RuntimeError("child process was started without output pipes")
    lines: list[str] = []

    async def pump_stdout() -> None:
        async for raw in stdout:
            line = _decode(raw)
            lines.append(line)
            on_stdout_line(line.rstrip("\r\n"))

    _, err = await asyncio.gather(pump_stdout(), stderr.read())
    await proc.wait()
    return "".join(lines), _decode(err)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")
