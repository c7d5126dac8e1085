from typing import Dict, List, Optional, Sequence, Tuple

import pytest

import clusterdf.inspectors.lustre as lustre_mod
from clusterdf.executor import RunResult
from clusterdf.lustreapi import RC_NO_DEVICE, RC_OK, TargetResult
from clusterdf.schema import LayoutInfo, TargetFamily, TargetStatfs


@pytest.fixture(autouse=True)
def _reset_lfs_cache():
    """Reset the global lfs probe cache between every test."""
    lustre_mod._lfs_available = None
    lustre_mod._lfs_version = None
    yield
    lustre_mod._lfs_available = None
    lustre_mod._lfs_version = None


def ok(uuid: str, blocks: int = 1000, bfree: int = 400, bavail: int = 300,
       files: int = 0, ffree: int = 0, bsize: int = 4096) -> TargetResult:
    """Successful target query."""
    return TargetResult(
        RC_OK,
        TargetStatfs(bsize=bsize, blocks=blocks, bfree=bfree, bavail=bavail, files=files, ffree=ffree),
        uuid,
    )


def code(rc: int, uuid: str = "") -> TargetResult:
    return TargetResult(rc, None, uuid)


class FakeClusterClient:
    """
    Scripted native client.

    targets maps a mount directory to per-family result lists; an index past
    the end of a list answers "no such device".
    """

    def __init__(
        self,
        instances: Sequence[Tuple[str, str]],
        targets: Dict[str, Dict[TargetFamily, List[TargetResult]]],
        layouts: Optional[Dict[str, LayoutInfo]] = None,
        unopenable: Sequence[str] = (),
    ) -> None:
        self.instances = list(instances)
        self.targets = targets
        self.layouts = layouts or {}
        self.unopenable = set(unopenable)
        self.calls: List[Tuple[str, TargetFamily, int]] = []
        self.opened: Dict[int, str] = {}
        self.closed: List[int] = []
        self._next_fd = 10

    def search_mounts(self, index: int) -> Optional[Tuple[str, str]]:
        if index < len(self.instances):
            return self.instances[index]
        return None

    def open_mount(self, mntdir: str) -> int:
        if mntdir in self.unopenable:
            raise PermissionError(13, "Permission denied", mntdir)
        fd = self._next_fd
        self._next_fd += 1
        self.opened[fd] = mntdir
        return fd

    def close_mount(self, fd: int) -> None:
        self.closed.append(fd)

    def target_statfs(self, fd: int, family: TargetFamily, index: int) -> TargetResult:
        mntdir = self.opened[fd]
        self.calls.append((mntdir, family, index))
        results = self.targets.get(mntdir, {}).get(family, [])
        if index < len(results):
            return results[index]
        return code(RC_NO_DEVICE)

    def fsname_of(self, path: str) -> Optional[str]:
        for mntdir, fsname in self.instances:
            if path == mntdir or path.startswith(mntdir.rstrip("/") + "/"):
                return fsname
        return None

    def layout_of(self, path: str) -> Optional[LayoutInfo]:
        return self.layouts.get(path)


def _lfs_executor(cmd, cwd=None):
    if cmd[:2] == ["lfs", "--version"]:
        return RunResult(stdout="lfs 2.15.4\n", stderr="", returncode=0)
    return RunResult(stdout="", stderr="unknown command", returncode=1)


def _no_lfs_executor(cmd, cwd=None):
    return RunResult(stdout="", stderr="Command not found", returncode=127)


@pytest.fixture
def lfs_executor():
    return _lfs_executor


@pytest.fixture
def no_lfs_executor():
    return _no_lfs_executor
