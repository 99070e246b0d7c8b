import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

from .command import Command
from .errors import CommandFailedError, SpawnError
from .logstream import LineSink, drain_pair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapturedOutput:
    command: Command
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def stdout_text(self) -> str:
        return self.stdout.decode(errors="replace")

    def stderr_text(self) -> str:
        return self.stderr.decode(errors="replace")


def _trace(command: Command):
    logger.debug("Command `%s`", command.display(), extra={"action": "Running"})


def output_ok(
    command: Command,
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    sink: Optional[LineSink] = None,
) -> CapturedOutput:
    """
    Run `command` with both output streams captured.

    Returns the CapturedOutput when the process exits with status 0.
    Raises SpawnError if it cannot be started and CommandFailedError
    (carrying the full capture) on any other status.
    """
    _trace(command)
    try:
        proc = subprocess.Popen(
            command.argv(),
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnError(command, e) from e

    # drainers must be running before wait(), or a chatty child fills a pipe and stalls
    out, err = drain_pair(proc, sink)
    try:
        rc = proc.wait()
        output = CapturedOutput(
            command=command,
            returncode=rc,
            stdout=out.collect(),
            stderr=err.collect(),
        )
    except BaseException:
        proc.kill()
        raise
    if not output.success:
        raise CommandFailedError(command, output)
    return output


def piped(
    command: Command,
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    """
    Run `command` with its output going straight to our own stdout/stderr.
    Nothing is captured; the exit status is returned as-is.
    """
    _trace(command)
    sys.stdout.flush()
    sys.stderr.flush()

    out_fd = os.dup(1)
    err_fd = os.dup(2)
    try:
        proc = subprocess.Popen(command.argv(), cwd=cwd, env=env, stdout=out_fd, stderr=err_fd)
    except OSError as e:
        raise SpawnError(command, e) from e
    finally:
        os.close(out_fd)
        os.close(err_fd)
    return proc.wait()
