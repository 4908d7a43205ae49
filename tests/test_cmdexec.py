import io
import os
import subprocess
import sys

import pytest

from kindkit.cmdexec import (
    LocalCmder,
    RunError,
    combined_output_lines,
    command,
    inherit_output,
    output,
    output_lines,
    pretty_command,
    run_error_for_error,
    run_with_stdin_writer,
    run_with_stdout_reader,
)
from kindkit.errors import wrap


def py(code):
    return command(sys.executable, "-c", code)


def test_pretty_command_quotes_only_when_needed():
    assert pretty_command("ls", "-la", "/tmp") == "ls -la /tmp"
    assert pretty_command("echo", "hello world") == "echo 'hello world'"
    assert pretty_command("echo", "") == "echo ''"


def test_output_lines():
    lines = output_lines(py("print('a'); print('b')"))
    assert lines == ["a", "b"]


def test_output_returns_stdout_only():
    data = output(py("import sys; sys.stdout.write('visible'); sys.stderr.write('hidden')"))
    assert data == b"visible"


def test_combined_output_lines_keeps_order():
    code = (
        "import sys; sys.stdout.write('out\\n'); sys.stdout.flush(); "
        "sys.stderr.write('err\\n'); sys.stderr.flush()"
    )
    assert combined_output_lines(py(code)) == ["out", "err"]


def test_failing_command_raises_run_error():
    code = "import sys; print('boom'); sys.exit(3)"
    with pytest.raises(RunError) as excinfo:
        output_lines(py(code))
    err = excinfo.value
    assert err.command == [sys.executable, "-c", code]
    assert b"boom" in err.output
    assert isinstance(err.inner, subprocess.CalledProcessError)
    assert err.inner.returncode == 3
    assert str(err).startswith(f'command "{err.pretty_command()}" failed with error: ')
    assert err.cause is err.inner


def test_missing_executable_raises_run_error():
    with pytest.raises(RunError) as excinfo:
        command("kindkit-definitely-missing-binary").run()
    assert isinstance(excinfo.value.inner, FileNotFoundError)
    assert excinfo.value.command == ["kindkit-definitely-missing-binary"]


def test_separate_streams_capture_both_in_error_output():
    out, err = io.BytesIO(), io.BytesIO()
    code = (
        "import sys; sys.stdout.write('to-out'); sys.stderr.write('to-err'); sys.exit(1)"
    )
    cmd = py(code).set_stdout(out).set_stderr(err)
    with pytest.raises(RunError) as excinfo:
        cmd.run()
    assert out.getvalue() == b"to-out"
    assert err.getvalue() == b"to-err"
    assert b"to-out" in excinfo.value.output
    assert b"to-err" in excinfo.value.output


def test_stdin_from_bytes():
    cmd = py("import sys; sys.stdout.write(sys.stdin.read().upper())")
    cmd.set_stdin(io.BytesIO(b"abc"))
    assert output(cmd) == b"ABC"


def test_set_env():
    entries = [f"{key}={value}" for key, value in os.environ.items()]
    cmd = py("import os; print(os.environ['KINDKIT_SAMPLE'])")
    cmd.set_env(*entries, "KINDKIT_SAMPLE=a=b")
    assert output_lines(cmd) == ["a=b"]


def test_run_error_for_error():
    err = RunError(["false"], b"", None)
    assert run_error_for_error(wrap(wrap(err, "inner"), "outer")) is err
    assert run_error_for_error(err) is err
    assert run_error_for_error(ValueError("other")) is None
    assert run_error_for_error(None) is None


def test_inherit_output(capsys):
    cmd = py("print('inherited')")
    assert inherit_output(cmd) is cmd
    cmd.run()
    assert "inherited" in capsys.readouterr().out


def test_cmder_builds_command():
    cmd = LocalCmder().command(sys.executable, "-c", "print('made')")
    assert cmd.args == [sys.executable, "-c", "print('made')"]
    assert output_lines(cmd) == ["made"]


def test_run_with_stdout_reader():
    received = []

    def reader(stream):
        received.append(stream.read())

    result = run_with_stdout_reader(py("import sys; sys.stdout.write('data')"), reader)
    assert result is None
    assert received == [b"data"]


def test_run_with_stdout_reader_propagates_reader_error():
    def reader(stream):
        raise ValueError("bad reader")

    with pytest.raises(ValueError, match="bad reader"):
        run_with_stdout_reader(py("pass"), reader)


def test_run_with_stdin_writer():
    out = io.BytesIO()
    cmd = py("import sys; sys.stdout.write(sys.stdin.read().upper())").set_stdout(out)

    def writer(stream):
        stream.write(b"xyz")

    run_with_stdin_writer(cmd, writer)
    assert out.getvalue() == b"XYZ"