class BundlerError(Exception):
    """Descriptive failure raised by bundler helpers."""


class SpawnError(BundlerError):
    """The executable could not be launched at all."""

    def __init__(self, command, cause: OSError):
        self.command = command
        self.cause = cause
        super().__init__(f"failed to spawn {command.display()}: {cause}")


class CommandFailedError(BundlerError):
    """
    The process ran but exited with a failure status.
    The full capture stays reachable through `.output`.
    """

    def __init__(self, command, output):
        self.command = command
        self.output = output
        super().__init__(f"failed to run {command.program}")

    @property
    def returncode(self) -> int:
        return self.output.returncode
