"""
Workload and clock helpers for sampler and supervisor tests.
"""

import os
import stat
import sys
import textwrap
import threading
import time
from types import SimpleNamespace


class StepTime:
    """Time source that advances by ``step`` every time it is read.

    A RunClock built on it reports 1, 2, 3... elapsed seconds on successive
    reads, so every tick lands in a new whole second.
    """

    def __init__(self, start: float = 1000.0, step: float = 1.0):
        self.now = start
        self.step = step
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            value = self.now
            self.now += self.step
        return value


def make_tracked(output_dir, name="worker", pid=4242, returncode=None):
    """Stand-in for a TrackedProcess with just what a ProcessSampler reads."""
    return SimpleNamespace(
        pid=pid,
        returncode=returncode,
        display_name=name,
        output_file=os.path.join(str(output_dir), f"{name}_metrics.csv"),
    )


def write_workload(directory, name, sleep=30.0, exit_code=0, ignore_sigterm=False, ready_file=None):
    """
    Write an executable Python script that sleeps, then exits.

    The script is started with the run's address as its only argument, like
    a compiled workload would be. When ``ready_file`` is given the script
    creates it once its signal disposition is set up.

    Returns:
        Absolute path of the script.
    """
    path = os.path.join(str(directory), name)
    if ready_file is not None:
        ready_file = str(ready_file)
    body = textwrap.dedent(f"""\
        #!{sys.executable}
        import signal
        import sys
        import time
        if {ignore_sigterm!r}:
            signal.signal(signal.SIGTERM, signal.SIG_IGN)
        if {ready_file!r}:
            open({ready_file!r}, "w").close()
        time.sleep({sleep!r})
        sys.exit({exit_code!r})
        """)
    with open(path, 'w') as f:
        f.write(body)
    mode = os.stat(path).st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return os.path.abspath(path)


def read_rows(path):
    """Return (header, rows) of a metrics CSV as lists of strings."""
    with open(path) as f:
        lines = [line.rstrip('\n') for line in f]
    return lines[0].split(','), [line.split(',') for line in lines[1:]]


def wait_for(predicate, timeout=5.0, poll=0.01):
    """Poll ``predicate`` until it is true or ``timeout`` expires.

    Returns:
        The final value of ``predicate()``.
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(poll)
    return predicate()
