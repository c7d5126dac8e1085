"""
Running host tools.

Only the Lustre probe shells out (lfs --version). It goes through an Executor
so tests hand in canned RunResults and no real lfs is needed.
"""

import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Protocol

# lfs answers immediately or not at all
PROBE_TIMEOUT = 10


@dataclass
class RunResult:
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Executor(Protocol):
    """Runs a command, or pretends to."""

    def __call__(self, cmd: List[str], *, cwd: Optional[str] = None) -> RunResult:
        ...


def subprocess_executor(cmd: List[str], *, cwd: Optional[str] = None) -> RunResult:
    env = dict(os.environ, LC_ALL="C")
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, cwd=cwd, env=env, timeout=PROBE_TIMEOUT)
    except subprocess.TimeoutExpired:
        return RunResult(stdout="", stderr=f"{cmd[0]} timed out after {PROBE_TIMEOUT}s", returncode=-1)
    except OSError as e:
        # missing binary, not executable, chroot refused
        return RunResult(stdout="", stderr=str(e), returncode=127)
    return RunResult(stdout=proc.stdout or "", stderr=proc.stderr or "", returncode=proc.returncode)


def make_executor(host_root: str) -> Executor:
    """Executor for tools of the inspected host: chrooted when host_root isn't /."""
    root = os.path.abspath(host_root)

    def run(cmd: List[str], *, cwd: Optional[str] = None) -> RunResult:
        if root != "/":
            cmd = ["chroot", root] + list(cmd)
        return subprocess_executor(cmd, cwd=cwd)
    return run
