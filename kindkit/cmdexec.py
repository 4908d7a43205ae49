"""Running external commands with captured, combined output."""

from __future__ import annotations

import io
import os
import shlex
import subprocess
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import IO, Any

from .errors import KindError, aggregate_concurrent

__all__ = [
    "RunError",
    "LocalCmd",
    "LocalCmder",
    "default_cmder",
    "command",
    "pretty_command",
    "run_error_for_error",
    "combined_output_lines",
    "output_lines",
    "output",
    "inherit_output",
    "run_with_stdout_reader",
    "run_with_stdin_writer",
]

_CHUNK = 64 * 1024


def pretty_command(name: str, *args: str) -> str:
    """Return the command as a line that could be pasted into a shell."""
    return " ".join(shlex.quote(part) for part in (name, *args))


class RunError(KindError):
    """An error running a command, with its captured combined output."""

    def __init__(
        self,
        command: list[str],
        output: bytes = b"",
        inner: BaseException | None = None,
    ) -> None:
        super().__init__("", cause=inner)
        self.command = list(command)
        self.output = bytes(output)
        self.inner = inner

    def __str__(self) -> str:
        return f'command "{self.pretty_command()}" failed with error: {self.inner}'

    def pretty_command(self) -> str:
        """Return the failed command as a line that could be pasted into a shell."""
        return pretty_command(self.command[0], *self.command[1:])


def run_error_for_error(err: BaseException | None) -> RunError | None:
    """Return the deepest RunError in err's cause chain, or None."""
    found = None
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        if isinstance(err, RunError):
            found = err
        err = err.cause if isinstance(err, KindError) else None
    return found


def _fileno(stream: Any) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _write(stream: Any, data: bytes) -> None:
    try:
        stream.write(data)
    except TypeError:
        stream.write(data.decode("utf-8", errors="replace"))


@dataclass
class _Capture:
    combined: bytearray = field(default_factory=bytearray)
    error: BaseException | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)

    def append(self, chunk: bytes) -> None:
        with self.lock:
            self.combined += chunk

    def record(self, exc: BaseException) -> None:
        with self.lock:
            if self.error is None:
                self.error = exc


def _pump(source: IO[bytes], target: Any, capture: _Capture) -> None:
    with source:
        while chunk := source.read1(_CHUNK):
            capture.append(chunk)
            if target is None:
                continue
            try:
                _write(target, chunk)
            except Exception as exc:  # noqa: BLE001 - reported as the run's error
                capture.record(exc)
                target = None


def _feed(source: Any, sink: IO[bytes], capture: _Capture) -> None:
    try:
        while chunk := source.read(_CHUNK):
            if isinstance(chunk, str):
                chunk = chunk.encode()
            sink.write(chunk)
    except BrokenPipeError:
        pass
    except Exception as exc:  # noqa: BLE001 - reported as the run's error
        capture.record(exc)
    finally:
        try:
            sink.close()
        except OSError:
            pass


class LocalCmd:
    """A command run on the local machine."""

    def __init__(self, name: str, *args: str) -> None:
        self.args = [name, *args]
        self._env: dict[str, str] | None = None
        self._stdin: Any = None
        self._stdout: Any = None
        self._stderr: Any = None

    def set_env(self, *args: str) -> LocalCmd:
        """Set the environment from "key=value" entries; none means inherit."""
        if not args:
            self._env = None
        else:
            env = {}
            for entry in args:
                key, _, value = entry.partition("=")
                env[key] = value
            self._env = env
        return self

    def set_stdin(self, stream: Any) -> LocalCmd:
        self._stdin = stream
        return self

    def set_stdout(self, stream: Any) -> LocalCmd:
        self._stdout = stream
        return self

    def set_stderr(self, stream: Any) -> LocalCmd:
        self._stderr = stream
        return self

    def run(self) -> None:
        """Run the command, raising RunError with the combined output on failure."""
        capture = _Capture()
        shared = self._stdout is self._stderr
        if self._stdin is None:
            stdin_arg: Any = subprocess.DEVNULL
        else:
            stdin_fd = _fileno(self._stdin)
            stdin_arg = stdin_fd if stdin_fd is not None else subprocess.PIPE
        try:
            proc = subprocess.Popen(
                self.args,
                stdin=stdin_arg,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if shared else subprocess.PIPE,
                env=self._env,
            )
        except OSError as exc:
            raise RunError(self.args, b"", exc) from exc

        threads = [
            threading.Thread(target=_pump, args=(proc.stdout, self._stdout, capture), daemon=True)
        ]
        if not shared:
            threads.append(
                threading.Thread(
                    target=_pump, args=(proc.stderr, self._stderr, capture), daemon=True
                )
            )
        if proc.stdin is not None:
            threads.append(
                threading.Thread(
                    target=_feed, args=(self._stdin, proc.stdin, capture), daemon=True
                )
            )
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        returncode = proc.wait()

        combined = bytes(capture.combined)
        if returncode != 0:
            inner: BaseException = subprocess.CalledProcessError(
                returncode, self.args, output=combined
            )
            raise RunError(self.args, combined, inner) from inner
        if capture.error is not None:
            raise RunError(self.args, combined, capture.error) from capture.error


class LocalCmder:
    """A factory of commands run on the local machine."""

    def command(self, name: str, *args: str) -> LocalCmd:
        return LocalCmd(name, *args)


default_cmder = LocalCmder()


def command(name: str, *args: str) -> LocalCmd:
    """Return a command from the default local commander."""
    return default_cmder.command(name, *args)


def _split_lines(data: bytes) -> list[str]:
    lines = data.decode("utf-8", errors="replace").split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


def combined_output_lines(cmd: LocalCmd) -> list[str]:
    """Run cmd and return the lines of its stdout and stderr together."""
    buffer = io.BytesIO()
    cmd.set_stdout(buffer)
    cmd.set_stderr(buffer)
    cmd.run()
    return _split_lines(buffer.getvalue())


def output_lines(cmd: LocalCmd) -> list[str]:
    """Run cmd and return the lines of its stdout."""
    return _split_lines(output(cmd))


def output(cmd: LocalCmd) -> bytes:
    """Run cmd and return its stdout."""
    buffer = io.BytesIO()
    cmd.set_stdout(buffer)
    cmd.run()
    return buffer.getvalue()


def inherit_output(cmd: LocalCmd) -> LocalCmd:
    """Send cmd's output to this process's stdout and stderr."""
    cmd.set_stderr(sys.stderr)
    cmd.set_stdout(sys.stdout)
    return cmd


def run_with_stdout_reader(cmd: LocalCmd, reader_func: Callable[[IO[bytes]], object]) -> None:
    """Run cmd while reader_func consumes its stdout through a pipe."""
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    writer = os.fdopen(write_fd, "wb", buffering=0)
    cmd.set_stdout(writer)

    def consume() -> None:
        with reader:
            reader_func(reader)

    def execute() -> None:
        with writer:
            cmd.run()

    aggregate_concurrent([consume, execute])


def run_with_stdin_writer(cmd: LocalCmd, writer_func: Callable[[IO[bytes]], object]) -> None:
    """Run cmd while writer_func produces its stdin through a pipe."""
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    writer = os.fdopen(write_fd, "wb", buffering=0)
    cmd.set_stdin(reader)

    def produce() -> None:
        with writer:
            writer_func(writer)

    def execute() -> None:
        with reader:
            cmd.run()

    aggregate_concurrent([produce, execute])