import json
import os
from dataclasses import dataclass, field
from typing import Sequence

from .errors import BundlerError


@dataclass(frozen=True)
class Command:
    program: str
    args: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "program", os.fspath(self.program))
        object.__setattr__(self, "args", tuple(os.fspath(a) for a in self.args))

    @classmethod
    def of(cls, argv: Sequence[str]) -> "Command":
        argv = list(argv)
        if not argv:
            raise BundlerError("empty command")
        return cls(argv[0], tuple(argv[1:]))

    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def display(self) -> str:
        # readability only, not shell-safe
        return " ".join(self.argv())


def load_command(json_text: str) -> Command:
    """
    Parse a command descriptor from JSON.
    Accepts {"program": "...", "args": [...]} or a bare ["prog", "arg", ...] list.
    """
    try:
        p = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise BundlerError(f"invalid command json: {e}") from e

    if isinstance(p, list):
        return Command.of([str(a) for a in p])

    if not isinstance(p, dict) or not p.get("program"):
        raise BundlerError("command json needs a 'program' field")

    args = p.get("args") or []
    if isinstance(args, str) or not isinstance(args, list):
        raise BundlerError("command 'args' must be a list")
    return Command(str(p["program"]), tuple(str(a) for a in args))
