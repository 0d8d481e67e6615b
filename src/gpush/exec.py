"""Subprocess helpers for running external commands."""

from __future__ import annotations

import subprocess
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, Generic, Mapping, Protocol, TypeVar

ParsedT = TypeVar("ParsedT")

_READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout_seconds: float | None = None
    input_text: str | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess."""

    def run(self, request: CommandRequest) -> CommandResult | None:
        run_kwargs: dict[str, object] = {
            "cwd": request.cwd,
            "env": request.env,
            "check": False,
            "capture_output": True,
            "text": True,
        }
        if request.timeout_seconds is not None:
            run_kwargs["timeout"] = request.timeout_seconds
        if request.input_text is not None:
            run_kwargs["input"] = request.input_text
        try:
            completed = subprocess.run(list(request.argv), **run_kwargs)
        except FileNotFoundError:
            return None
        except subprocess.TimeoutExpired as exc:
            stdout = (exc.stdout or "") if isinstance(exc.stdout, str) else ""
            stderr = (exc.stderr or "") if isinstance(exc.stderr, str) else ""
            return CommandResult(
                argv=request.argv,
                returncode=124,
                stdout=stdout,
                stderr=stderr,
                timed_out=True,
            )

        stdout = completed.stdout if isinstance(completed.stdout, str) else ""
        stderr = completed.stderr if isinstance(completed.stderr, str) else ""
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=stdout,
            stderr=stderr,
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


@dataclass(frozen=True)
class CommandSpec(Generic[ParsedT]):
    """Typed command spec with a parser for command output."""

    request: CommandRequest
    parser: Callable[[CommandResult], ParsedT]
    context: str | None = None


@dataclass(eq=False)
class CommandExecutionError(RuntimeError):
    """Raised when command execution fails before parsing can occur."""

    request: CommandRequest | PipeRequest
    detail: str
    result: CommandResult | None = None

    def __str__(self) -> str:
        return self.detail


@dataclass(eq=False)
class CommandParseError(RuntimeError):
    """Raised when command output parsing fails."""

    request: CommandRequest | PipeRequest
    detail: str
    context: str | None = None

    def __str__(self) -> str:
        return self.detail


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def _missing_command_detail(argv: tuple[str, ...]) -> str:
    if not argv:
        return "missing required command"
    return f"missing required command: {argv[0]}"


def _command_failure_detail(argv: tuple[str, ...], output: str) -> str:
    command_text = " ".join(argv)
    output = output.strip()
    if output:
        return f"command failed: {command_text}\n{output}"
    return f"command failed: {command_text}"


def run_typed(spec: CommandSpec[ParsedT], *, runner: CommandRunner | None = None) -> ParsedT:
    """Execute a command and parse its successful output into a typed value."""
    result = run_with_runner(spec.request, runner=runner)
    if result is None:
        raise CommandExecutionError(
            request=spec.request,
            detail=_missing_command_detail(spec.request.argv),
        )
    if result.timed_out:
        raise CommandExecutionError(
            request=spec.request,
            result=result,
            detail=(
                f"command timed out after {spec.request.timeout_seconds:g}s: "
                f"{' '.join(spec.request.argv)}"
            ),
        )
    if result.returncode != 0:
        raise CommandExecutionError(
            request=spec.request,
            result=result,
            detail=_command_failure_detail(spec.request.argv, result.stderr or result.stdout or ""),
        )
    try:
        return spec.parser(result)
    except CommandParseError:
        raise
    except Exception as exc:
        context = f" ({spec.context})" if spec.context else ""
        raise CommandParseError(
            request=spec.request,
            detail=f"failed to parse command output{context}: {exc}",
            context=spec.context,
        ) from exc


@dataclass(frozen=True)
class PipeRequest:
    """Streaming command request.

    ``input_lines`` are written to the process (one per line) before any
    output is read; ``delimiter`` separates the records read back.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    input_lines: tuple[str, ...] | None = None
    delimiter: str = "\n"


class PipeReader:
    """Record reader over the stdout of a running process."""

    def __init__(self, stream: IO[bytes], delimiter: str) -> None:
        self._stream = stream
        self._delimiter = delimiter.encode("utf-8")
        self._buffer = b""
        self._eof = False

    def read_record(self) -> str | None:
        """Return the next record, or ``None`` once the stream is exhausted."""
        while True:
            index = self._buffer.find(self._delimiter)
            if index >= 0:
                record = self._buffer[:index]
                self._buffer = self._buffer[index + len(self._delimiter) :]
                return record.decode("utf-8", errors="replace")
            if self._eof:
                if not self._buffer:
                    return None
                record, self._buffer = self._buffer, b""
                return record.decode("utf-8", errors="replace")
            chunk = self._stream.read1(_READ_CHUNK_SIZE)  # type: ignore[attr-defined]
            if not chunk:
                self._eof = True
            else:
                self._buffer += chunk

    def drain(self) -> None:
        self._buffer = b""
        if self._eof:
            return
        while self._stream.read(_READ_CHUNK_SIZE):
            pass
        self._eof = True

    def __iter__(self) -> Iterator[str]:
        while True:
            record = self.read_record()
            if record is None:
                return
            yield record


@contextmanager
def open_pipe(request: PipeRequest) -> Iterator[PipeReader]:
    """Spawn a process and yield a reader over its output records.

    The process output is drained and the process reaped on every exit
    path. stderr is spooled to a temporary file so a chatty child cannot
    block on it while we read stdout. A non-zero exit raises
    ``CommandExecutionError`` unless another exception is already
    propagating out of the ``with`` block.
    """
    stderr_file = tempfile.TemporaryFile()
    try:
        process = subprocess.Popen(
            list(request.argv),
            cwd=request.cwd,
            env=request.env,
            stdin=subprocess.PIPE if request.input_lines is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=stderr_file,
        )
    except FileNotFoundError as exc:
        stderr_file.close()
        raise CommandExecutionError(
            request=request, detail=_missing_command_detail(request.argv)
        ) from exc

    assert process.stdout is not None
    reader = PipeReader(process.stdout, request.delimiter)
    completed = False
    try:
        if process.stdin is not None:
            payload = "".join(f"{line}\n" for line in request.input_lines or ())
            try:
                process.stdin.write(payload.encode("utf-8"))
            except BrokenPipeError:
                pass
            finally:
                try:
                    process.stdin.close()
                except BrokenPipeError:
                    pass
        yield reader
        completed = True
    finally:
        try:
            reader.drain()
            process.stdout.close()
            returncode = process.wait()
            stderr_file.seek(0)
            stderr = stderr_file.read().decode("utf-8", errors="replace")
        finally:
            stderr_file.close()
    if completed and returncode != 0:
        raise CommandExecutionError(
            request=request,
            detail=_command_failure_detail(request.argv, stderr),
            result=CommandResult(
                argv=request.argv, returncode=returncode, stdout="", stderr=stderr
            ),
        )
