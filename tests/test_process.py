import logging
import subprocess
import sys

import pytest

from bundlekit.command import Command
from bundlekit.errors import CommandFailedError, SpawnError
from bundlekit.process import output_ok, piped


def test_capture_returns_exact_bytes_per_stream(py):
    script = (
        "import sys\n"
        "sys.stdout.write('one\\ntwo\\n')\n"
        "sys.stderr.write('warn\\n')\n"
    )
    out = output_ok(py(script))
    assert out.success
    assert out.returncode == 0
    assert out.stdout == b"one\ntwo\n"
    assert out.stderr == b"warn\n"


def test_capture_keeps_raw_line_endings_and_unterminated_tail(py):
    script = "import sys; sys.stdout.buffer.write(b'a  \\r\\nb\\tc\\nlast')"
    out = output_ok(py(script))
    assert out.stdout == b"a  \r\nb\tc\nlast"
    assert out.stderr == b""


def test_nonzero_exit_raises_with_capture_attached(py):
    script = "import sys; print('partial'); sys.stderr.write('boom\\n'); sys.exit(3)"
    cmd = py(script)
    with pytest.raises(CommandFailedError) as exc:
        output_ok(cmd)
    err = exc.value
    assert err.command == cmd
    assert err.returncode == 3
    assert f"failed to run {sys.executable}" in str(err)
    assert err.output.stdout == b"partial\n"
    assert err.output.stderr == b"boom\n"
    assert not err.output.success


def test_large_stderr_only_does_not_deadlock(py):
    # well past a typical 64KB pipe buffer
    script = (
        "import sys\n"
        "for i in range(20000):\n"
        "    sys.stderr.write('x' * 30 + '\\n')\n"
    )
    out = output_ok(py(script))
    assert out.stdout == b""
    assert out.stderr == (b"x" * 30 + b"\n") * 20000


def test_interleaved_streams_stay_separate(py):
    script = (
        "import sys\n"
        "for i in range(500):\n"
        "    sys.stdout.write(f'out {i}\\n'); sys.stdout.flush()\n"
        "    sys.stderr.write(f'err {i}\\n'); sys.stderr.flush()\n"
    )
    out = output_ok(py(script))
    assert out.stdout == "".join(f"out {i}\n" for i in range(500)).encode()
    assert out.stderr == "".join(f"err {i}\n" for i in range(500)).encode()


def test_missing_executable_is_a_spawn_error():
    cmd = Command("definitely-not-a-real-tool-7c1e", ("--version",))
    with pytest.raises(SpawnError) as exc:
        output_ok(cmd)
    assert exc.value.command == cmd
    assert isinstance(exc.value.cause, OSError)
    assert "definitely-not-a-real-tool-7c1e --version" in str(exc.value)


def test_repeated_runs_are_independent(py):
    cmd = py("print('same')")
    first = output_ok(cmd)
    second = output_ok(cmd)
    assert first.stdout == second.stdout == b"same\n"
    assert first is not second


def test_lines_are_logged_trimmed_and_tagged(py, caplog):
    script = "import sys; print('hello  '); sys.stderr.write('oops\\n')"
    cmd = py(script)
    with caplog.at_level(logging.DEBUG, logger="bundlekit"):
        output_ok(cmd)

    running = [r for r in caplog.records if getattr(r, "action", None) == "Running"]
    assert len(running) == 1
    assert cmd.display() in running[0].getMessage()

    stdout = [r.getMessage() for r in caplog.records if getattr(r, "action", None) == "stdout"]
    stderr = [r.getMessage() for r in caplog.records if getattr(r, "action", None) == "stderr"]
    assert stdout == ["hello"]
    assert stderr == ["oops"]
    assert all(r.levelno == logging.DEBUG for r in caplog.records)


def test_sink_sees_every_line_in_order(py):
    seen = []
    script = "for i in range(5): print(i)"
    output_ok(py(script), sink=lambda name, line: seen.append((name, line)))
    assert seen == [("stdout", f"{i}\n".encode()) for i in range(5)]


def test_capture_honours_cwd(py, tmp_path):
    out = output_ok(py("import os; print(os.getcwd())"), cwd=str(tmp_path))
    assert out.stdout_text().strip() == str(tmp_path.resolve())


def test_piped_forwards_output_without_capture(py, capfd):
    rc = piped(py("print('hello')"))
    assert rc == 0
    captured = capfd.readouterr()
    assert captured.out == "hello\n"


def test_piped_returns_failure_status(py, capfd):
    rc = piped(py("import sys; sys.stderr.write('bad\\n'); sys.exit(5)"))
    assert rc == 5
    assert capfd.readouterr().err == "bad\n"


def test_piped_missing_executable_is_a_spawn_error():
    with pytest.raises(SpawnError):
        piped(Command("definitely-not-a-real-tool-7c1e"))


def test_interrupted_wait_kills_the_child(py, monkeypatch):
    real_wait = subprocess.Popen.wait
    interrupted = []

    def wait(self, timeout=None):
        if not interrupted:
            interrupted.append(self)
            raise KeyboardInterrupt
        return real_wait(self, timeout)

    monkeypatch.setattr(subprocess.Popen, "wait", wait)
    with pytest.raises(KeyboardInterrupt):
        output_ok(py("import time; time.sleep(30)"))

    proc = interrupted[0]
    assert real_wait(proc, timeout=5) != 0
