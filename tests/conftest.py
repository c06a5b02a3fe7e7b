import io
import threading

import pytest

from matrixci.model import ExitStatus
from matrixci.ui.console import Console, set_console


class RecordingExecutor:
    """Stub executor: records (channel, step) calls, fails the commands it is told to."""

    def __init__(self, fail=(), codes=None):
        self.fail = set(fail)
        self.codes = dict(codes or {})
        self.calls = []
        self._lock = threading.Lock()

    def run_step(self, step, instance):
        with self._lock:
            self.calls.append((instance.channel, step.name))
        key = (instance.channel, step.name)
        if key in self.codes:
            return ExitStatus(step=step.name, exit_code=self.codes[key])
        if step.name in self.fail or key in self.fail:
            return ExitStatus(step=step.name, exit_code=1, output="boom\n")
        return ExitStatus(step=step.name, exit_code=0)

    def steps_for(self, channel):
        return [name for ch, name in self.calls if ch == channel]


@pytest.fixture
def console():
    c = Console(stream=io.StringIO())
    set_console(c)
    return c


@pytest.fixture
def recorder():
    return RecordingExecutor
