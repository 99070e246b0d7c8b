import logging
import os
import sys
from pathlib import Path

from .command import Command, load_command
from .db import create_schema, make_engine, record_output
from .errors import BundlerError, CommandFailedError, SpawnError
from .process import output_ok, piped
from .tools import ensure_tool, resolve_tool

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "bundlekit" / "tools"


class ActionFormatter(logging.Formatter):
    """Prefix records that carry an `action` (Running, stdout, stderr) with it."""

    def format(self, record):
        line = super().format(record)
        action = getattr(record, "action", None)
        if action:
            return f"{action:>8} {line}"
        return line


def setup_logging(level: str = "INFO"):
    handler = logging.StreamHandler()
    handler.setFormatter(ActionFormatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


def _persist(db_url: str, run_key: str, output):
    try:
        engine = make_engine(db_url)
        create_schema(engine)
        record_output(engine, run_key, output)
    except Exception as e:
        # the child's status still wins
        print(f"[bundlekit] failed to store logs: {e}", file=sys.stderr, flush=True)


def main():
    run_key = os.environ.get("RUN_KEY")
    command_json = os.environ.get("COMMAND_JSON")
    mode = os.environ.get("BUNDLEKIT_MODE", "capture").lower()
    db_url = os.environ.get("DATABASE_URL")
    log_level = os.environ.get("BUNDLEKIT_LOG_LEVEL", "INFO").upper()

    if not run_key or not command_json:
        print("Missing required envs: RUN_KEY, COMMAND_JSON", file=sys.stderr)
        sys.exit(2)
    if mode not in ("capture", "piped"):
        print(f"unsupported BUNDLEKIT_MODE: {mode}", file=sys.stderr)
        sys.exit(2)
    if not isinstance(logging.getLevelName(log_level), int):
        print(f"unsupported BUNDLEKIT_LOG_LEVEL: {log_level}", file=sys.stderr)
        sys.exit(2)

    setup_logging(log_level)

    try:
        command = load_command(command_json)
        program = resolve_tool(
            command.program,
            os.environ.get("TOOL_CACHE_DIR") or DEFAULT_CACHE_DIR,
            sha256=os.environ.get("TOOL_SHA256"),
            token=os.environ.get("TOOL_TOKEN"),
        )
        # bare names are looked up on PATH up front
        if program == os.path.basename(program):
            program = ensure_tool(program)
        command = Command(program, command.args)
    except BundlerError as e:
        print(f"[bundlekit] {e}", file=sys.stderr, flush=True)
        sys.exit(1)

    print(f"[bundlekit] {run_key}: launching {command.display()}", flush=True)

    if mode == "piped":
        try:
            rc = piped(command)
        except SpawnError as e:
            print(f"[bundlekit] {e}", file=sys.stderr, flush=True)
            sys.exit(1)
        if rc != 0:
            print(f"[bundlekit] process exited with {rc}", file=sys.stderr, flush=True)
        sys.exit(rc if rc >= 0 else 1)

    try:
        output = output_ok(command)
        rc = output.returncode
    except SpawnError as e:
        print(f"[bundlekit] {e}", file=sys.stderr, flush=True)
        sys.exit(1)
    except CommandFailedError as e:
        output = e.output
        rc = e.returncode
        print(f"[bundlekit] {e} (exit {rc})", file=sys.stderr, flush=True)
        if output.stderr:
            sys.stderr.write(output.stderr_text())
            sys.stderr.flush()

    if db_url:
        _persist(db_url, run_key, output)

    # a signal-killed child reports a negative status
    sys.exit(rc if rc >= 0 else 1)


if __name__ == "__main__":
    main()
