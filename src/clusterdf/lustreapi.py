"""
liblustreapi binding.

Only this module knows the native struct layouts. Callers get TargetStatfs and
LayoutInfo models through the ClusterClient protocol, which tests replace with
a scripted fake.
"""

import ctypes
import ctypes.util
import errno
import os
import sys
from typing import NamedTuple, Optional, Protocol, Tuple

from .schema import LayoutInfo, TargetFamily, TargetStatfs

_DEBUG = bool(os.environ.get("CLUSTERDF_DEBUG", ""))

# Index meaning "all targets"; no family has more.
LOV_ALL_STRIPES = 0xFFFF

LL_STATFS_LMV = 0x1  # metadata targets
LL_STATFS_LOV = 0x2  # object targets
LL_STATFS_NODELAY = 0x4

FAMILY_SELECTORS = {
    TargetFamily.MDT: LL_STATFS_LMV,
    TargetFamily.OST: LL_STATFS_LOV,
}

# Negative errno values returned by llapi_obd_fstatfs
RC_OK = 0
RC_NO_DEVICE = -errno.ENODEV
RC_TRY_AGAIN = -errno.EAGAIN
RC_NO_DATA = -errno.ENODATA

_PATH_MAX = 4096
_FSNAME_MAX = 256
_POOL_MAX = 16 + 1
_UUID_MAX = 40


def _debug(msg: str) -> None:
    if _DEBUG:
        print(f"[clusterdf] lustreapi: {msg}", file=sys.stderr)


class ObdStatfs(ctypes.Structure):
    _fields_ = [
        ("os_type", ctypes.c_uint64),
        ("os_blocks", ctypes.c_uint64),
        ("os_bfree", ctypes.c_uint64),
        ("os_bavail", ctypes.c_uint64),
        ("os_files", ctypes.c_uint64),
        ("os_ffree", ctypes.c_uint64),
        ("os_fsid", ctypes.c_uint8 * 40),
        ("os_bsize", ctypes.c_uint32),
        ("os_namelen", ctypes.c_uint32),
        ("os_maxbytes", ctypes.c_uint64),
        ("os_state", ctypes.c_uint32),
        ("os_fprecreated", ctypes.c_uint32),
        ("os_granted", ctypes.c_uint32),
        ("os_spare3", ctypes.c_uint32),
        ("os_spare4", ctypes.c_uint32),
        ("os_spare5", ctypes.c_uint32),
        ("os_spare6", ctypes.c_uint32),
        ("os_spare7", ctypes.c_uint32),
        ("os_spare8", ctypes.c_uint32),
        ("os_spare9", ctypes.c_uint32),
    ]


class ObdUuid(ctypes.Structure):
    _fields_ = [("uuid", ctypes.c_char * _UUID_MAX)]


def decode_statfs(raw: ObdStatfs) -> TargetStatfs:
    """The one conversion from the native layout."""
    return TargetStatfs(
        bsize=int(raw.os_bsize),
        blocks=int(raw.os_blocks),
        bfree=int(raw.os_bfree),
        bavail=int(raw.os_bavail),
        files=int(raw.os_files),
        ffree=int(raw.os_ffree),
    )


def decode_uuid(raw: ObdUuid) -> str:
    return raw.uuid.decode("utf-8", "replace")


class TargetResult(NamedTuple):
    """Outcome of one per-index statistics query."""

    rc: int
    statfs: Optional[TargetStatfs]
    uuid: str


class ClusterClient(Protocol):
    """The native operations discovery relies on."""

    def search_mounts(self, index: int) -> Optional[Tuple[str, str]]:
        """(mount directory, fsname) of the index-th mounted instance, None past the last."""
        ...

    def open_mount(self, mntdir: str) -> int:
        """File descriptor on the mount directory. Raises OSError."""
        ...

    def close_mount(self, fd: int) -> None:
        ...

    def target_statfs(self, fd: int, family: TargetFamily, index: int) -> TargetResult:
        ...

    def fsname_of(self, path: str) -> Optional[str]:
        """Lustre fsname of the filesystem holding path, None when it's not Lustre."""
        ...

    def layout_of(self, path: str) -> Optional[LayoutInfo]:
        ...


class LustreApi:
    """ClusterClient backed by liblustreapi through ctypes."""

    def __init__(self, lib: ctypes.CDLL) -> None:
        self._lib = lib
        self._declare()

    @classmethod
    def load(cls, path: Optional[str] = None) -> Optional["LustreApi"]:
        """Load the library, None when it isn't installed."""
        path = path or os.environ.get("CLUSTERDF_LUSTREAPI") or ctypes.util.find_library("lustreapi")
        if not path:
            _debug("liblustreapi not found")
            return None
        try:
            return cls(ctypes.CDLL(path, use_errno=True))
        except (OSError, AttributeError) as e:
            _debug(f"can't load {path}: {e}")
            return None

    def _declare(self) -> None:
        lib = self._lib
        lib.llapi_search_mounts.argtypes = [ctypes.c_char_p, ctypes.c_int, ctypes.c_char_p, ctypes.c_char_p]
        lib.llapi_search_mounts.restype = ctypes.c_int
        lib.llapi_obd_fstatfs.argtypes = [
            ctypes.c_int,
            ctypes.c_uint32,
            ctypes.c_uint32,
            ctypes.POINTER(ObdStatfs),
            ctypes.POINTER(ObdUuid),
        ]
        lib.llapi_obd_fstatfs.restype = ctypes.c_int
        lib.llapi_get_fsname.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_size_t]
        lib.llapi_get_fsname.restype = ctypes.c_int
        lib.llapi_layout_get_by_path.argtypes = [ctypes.c_char_p, ctypes.c_uint32]
        lib.llapi_layout_get_by_path.restype = ctypes.c_void_p
        lib.llapi_layout_stripe_count_get.argtypes = [ctypes.c_void_p, ctypes.POINTER(ctypes.c_uint64)]
        lib.llapi_layout_stripe_count_get.restype = ctypes.c_int
        lib.llapi_layout_stripe_size_get.argtypes = [ctypes.c_void_p, ctypes.POINTER(ctypes.c_uint64)]
        lib.llapi_layout_stripe_size_get.restype = ctypes.c_int
        lib.llapi_layout_pool_name_get.argtypes = [ctypes.c_void_p, ctypes.c_char_p, ctypes.c_size_t]
        lib.llapi_layout_pool_name_get.restype = ctypes.c_int
        lib.llapi_layout_mirror_count_get.argtypes = [ctypes.c_void_p, ctypes.POINTER(ctypes.c_uint16)]
        lib.llapi_layout_mirror_count_get.restype = ctypes.c_int
        lib.llapi_layout_free.argtypes = [ctypes.c_void_p]
        lib.llapi_layout_free.restype = None

    def search_mounts(self, index: int) -> Optional[Tuple[str, str]]:
        mntdir = ctypes.create_string_buffer(_PATH_MAX)
        fsname = ctypes.create_string_buffer(_FSNAME_MAX)
        rc = self._lib.llapi_search_mounts(b"", index, mntdir, fsname)
        if rc != 0:
            return None
        return mntdir.value.decode(errors="replace"), fsname.value.decode(errors="replace")

    def open_mount(self, mntdir: str) -> int:
        return os.open(mntdir, os.O_RDONLY | os.O_DIRECTORY)

    def close_mount(self, fd: int) -> None:
        os.close(fd)

    def target_statfs(self, fd: int, family: TargetFamily, index: int) -> TargetResult:
        stat_buf = ObdStatfs()
        uuid_buf = ObdUuid()
        rc = self._lib.llapi_obd_fstatfs(
            fd, FAMILY_SELECTORS[family], index, ctypes.byref(stat_buf), ctypes.byref(uuid_buf)
        )
        statfs = decode_statfs(stat_buf) if rc == RC_OK else None
        return TargetResult(rc=rc, statfs=statfs, uuid=decode_uuid(uuid_buf))

    def fsname_of(self, path: str) -> Optional[str]:
        fsname = ctypes.create_string_buffer(_FSNAME_MAX)
        rc = self._lib.llapi_get_fsname(os.fsencode(path), fsname, _FSNAME_MAX)
        if rc != 0:
            return None
        return fsname.value.decode(errors="replace")

    def layout_of(self, path: str) -> Optional[LayoutInfo]:
        layout = self._lib.llapi_layout_get_by_path(os.fsencode(path), 0)
        if not layout:
            _debug(f"no layout for {path}")
            return None
        try:
            info = LayoutInfo()
            count = ctypes.c_uint64()
            if self._lib.llapi_layout_stripe_count_get(layout, ctypes.byref(count)) == 0:
                info.stripe_count = int(count.value)
            size = ctypes.c_uint64()
            if self._lib.llapi_layout_stripe_size_get(layout, ctypes.byref(size)) == 0:
                info.stripe_size = int(size.value)
            pool = ctypes.create_string_buffer(_POOL_MAX)
            if self._lib.llapi_layout_pool_name_get(layout, pool, _POOL_MAX) == 0 and pool.value:
                info.pool_name = pool.value.decode(errors="replace")
            mirrors = ctypes.c_uint16()
            if self._lib.llapi_layout_mirror_count_get(layout, ctypes.byref(mirrors)) == 0:
                info.mirror_count = int(mirrors.value)
            return info
        finally:
            self._lib.llapi_layout_free(layout)
