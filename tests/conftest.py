import sys

import pytest

from bundlekit.command import Command


@pytest.fixture
def py():
    """Build a Command that runs an inline Python script in a fresh interpreter."""
    def build(script: str) -> Command:
        return Command(sys.executable, ("-c", script))
    return build
