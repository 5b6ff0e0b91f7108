# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import errno
import io
import logging
import os
import select
import shutil
import stat
import tempfile
import time
from dataclasses import dataclass, field
from typing import IO, Any, List, Mapping, Optional, Tuple

from ...config import DEFAULT_TEMP_MAX_MEMORY
from ...domain.errors import InvalidArgumentError
from ...domain.kinds import ResourceKind, classify
from ...domain.models import (
    FilterDirection,
    FilterPosition,
    LockMode,
    PathDescriptor,
    StatSnapshot,
)
from ...ports.filesystem import FilesystemPort
from ...ports.filters import StreamFilter
from ..filters.builtin import FilterRegistry, default_registry

try:
    import fcntl as _fcntl  # POSIX only
except ImportError:
    _fcntl = None

logger = logging.getLogger(__name__)

_CHUNK = 8192

_MODE_FLAGS = {
    "r": os.O_RDONLY,
    "r+": os.O_RDWR,
    "w": os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
    "w+": os.O_RDWR | os.O_CREAT | os.O_TRUNC,
    "a": os.O_WRONLY | os.O_CREAT | os.O_APPEND,
    "a+": os.O_RDWR | os.O_CREAT | os.O_APPEND,
    "x": os.O_WRONLY | os.O_CREAT | os.O_EXCL,
    "x+": os.O_RDWR | os.O_CREAT | os.O_EXCL,
    "c": os.O_WRONLY | os.O_CREAT,
    "c+": os.O_RDWR | os.O_CREAT,
}

_STDIO = {"stdin": (0, "rb"), "stdout": (1, "wb"), "stderr": (2, "wb")}
_SCHEMES = {"memory", "temp", "fd", "file", *_STDIO}


def _normalise_mode(mode: str) -> str:
    key = (mode or "").replace("b", "").replace("t", "")
    if key not in _MODE_FLAGS:
        raise InvalidArgumentError(f"Invalid open mode: {mode!r}")
    return key


def _fileio_mode(key: str) -> str:
    if key.endswith("+"):
        return "r+b"
    return "rb" if key == "r" else "wb"


@dataclass
class _Slot:
    attachment: "FilterAttachment"
    instance: StreamFilter


@dataclass
class LocalHandle:
    """An open location served by LocalFS."""

    uri: str
    mode: str
    raw: IO[bytes]
    wrapper: str
    fd: Optional[int] = None
    regular: bool = False
    eof: bool = False
    blocking: bool = True
    timeout: Optional[float] = None
    timed_out: bool = False
    locked: Optional[LockMode] = None
    closed: bool = False
    pending: bytearray = field(default_factory=bytearray)
    read_slots: List[_Slot] = field(default_factory=list)
    write_slots: List[_Slot] = field(default_factory=list)

    @property
    def seekable(self) -> bool:
        if self.closed:
            return False
        return self.wrapper in ("memory", "temp") or self.raw.seekable()

    @property
    def writable(self) -> bool:
        if self.closed:
            return False
        return self.wrapper in ("memory", "temp") or self.raw.writable()


@dataclass(eq=False)
class FilterAttachment:
    """Provider-side record of one filter attached to one handle."""

    handle: LocalHandle
    name: str
    direction: FilterDirection
    params: Any = None
    attached: bool = True


@dataclass
class _DirHandle:
    path: str
    entries: List[str]
    position: int = 0


class LocalFS(FilesystemPort):
    """
    FilesystemPort backed by the local OS.

    Besides plain paths (and ``file://`` URIs) it serves ``memory://``,
    ``temp://``, ``stdin://``, ``stdout://``, ``stderr://`` and ``fd://N``.
    Descriptors it did not open itself are never closed by it.

    Read filters transform bytes as they arrive, so the handle keeps a
    read-ahead of filtered bytes. ``tell_handle`` and the rewind a write
    performs over that read-ahead count filtered bytes; positions are exact
    only for filters that keep the length of their input (rot13, case
    folding). Seeking discards the read-ahead and restarts every read filter.
    """

    def __init__(
        self,
        filter_registry: Optional[FilterRegistry] = None,
        temp_max_memory: int = DEFAULT_TEMP_MAX_MEMORY,
    ) -> None:
        self._filters = filter_registry or default_registry
        self._temp_max_memory = int(temp_max_memory)

    # --- helpers ------------------------------------------------------------

    @staticmethod
    def _split(path: str) -> Tuple[Optional[str], str]:
        scheme = PathDescriptor(path).scheme
        if scheme is None:
            return None, path
        rest = path.split("://", 1)[1]
        if scheme == "file":
            return None, rest
        return scheme, rest

    @staticmethod
    def _stdio_fd(scheme: str, rest: str) -> Optional[int]:
        if scheme in _STDIO:
            return _STDIO[scheme][0]
        if scheme == "fd":
            try:
                return int(rest)
            except ValueError as e:
                raise InvalidArgumentError(f"Invalid descriptor URI: fd://{rest}") from e
        return None

    @staticmethod
    def _memory_snapshot(size: int) -> StatSnapshot:
        now = time.time()
        return StatSnapshot(
            mode=stat.S_IFREG | 0o666,
            size=size,
            uid=0,
            gid=0,
            atime=now,
            mtime=now,
            ctime=now,
            inode=0,
            device=0,
            nlink=1,
        )

    def _require_fd(self, handle: LocalHandle, what: str) -> int:
        if handle.fd is None:
            raise io.UnsupportedOperation(f"{handle.wrapper} streams do not support {what}")
        return handle.fd

    def _wait(self, handle: LocalHandle, *, write: bool) -> None:
        if handle.timeout is None or handle.fd is None or handle.regular:
            return
        if not write and handle.pending:
            return
        fds = [handle.fd]
        if write:
            ready = select.select([], fds, [], handle.timeout)[1]
        else:
            ready = select.select(fds, [], [], handle.timeout)[0]
        handle.timed_out = not ready
        if not ready:
            raise TimeoutError(errno.ETIMEDOUT, f"I/O on {handle.uri} timed out")

    @staticmethod
    def _run(slots: List[_Slot], data: bytes) -> bytes:
        for slot in slots:
            if not data:
                break
            data = slot.instance.filter(data)
        return data

    def _reset_read_filters(self, handle: LocalHandle) -> None:
        handle.pending.clear()
        for slot in handle.read_slots:
            slot.instance = self._filters.create(slot.attachment.name, slot.attachment.params)

    # --- metadata -----------------------------------------------------------

    def stat_path(self, path: str) -> StatSnapshot:
        scheme, rest = self._split(path)
        if scheme is None:
            return StatSnapshot.from_os(os.stat(rest))
        fd = self._stdio_fd(scheme, rest)
        if fd is not None:
            return StatSnapshot.from_os(os.fstat(fd))
        raise FileNotFoundError(errno.ENOENT, "No filesystem entry for stream", path)

    def lstat_path(self, path: str) -> StatSnapshot:
        scheme, rest = self._split(path)
        if scheme is None:
            return StatSnapshot.from_os(os.lstat(rest))
        return self.stat_path(path)

    def stat_handle(self, handle: LocalHandle) -> StatSnapshot:
        if handle.fd is not None:
            return StatSnapshot.from_os(os.fstat(handle.fd))
        pos = handle.raw.tell()
        size = handle.raw.seek(0, os.SEEK_END)
        handle.raw.seek(pos)
        return self._memory_snapshot(size)

    def query_type(self, path: str) -> Optional[ResourceKind]:
        scheme, rest = self._split(path)
        if scheme is None or scheme not in _SCHEMES:
            return None
        if scheme in ("memory", "temp"):
            # In-memory streams fstat as regular files.
            return ResourceKind.FILE
        fd = self._stdio_fd(scheme, rest)
        return classify(os.fstat(fd).st_mode)

    def exists(self, path: str) -> bool:
        scheme, rest = self._split(path)
        if scheme is None:
            return os.path.lexists(rest)
        return scheme in _SCHEMES

    def is_local(self, path: str) -> bool:
        scheme, _ = self._split(path)
        return scheme is None or scheme in _SCHEMES

    # --- handles ------------------------------------------------------------

    def open_handle(self, path: str, mode: str, options: Mapping[str, Any]) -> LocalHandle:
        key = _normalise_mode(mode)
        scheme, rest = self._split(path)

        if scheme == "memory":
            handle = LocalHandle(uri=path, mode=mode, raw=io.BytesIO(), wrapper="memory")
        elif scheme == "temp":
            max_memory = int(options.get("max_memory", self._temp_max_memory))
            raw = tempfile.SpooledTemporaryFile(max_size=max_memory, mode="w+b")
            handle = LocalHandle(uri=path, mode=mode, raw=raw, wrapper="temp")  # type: ignore[arg-type]
        elif scheme in _STDIO or scheme == "fd":
            fd = self._stdio_fd(scheme, rest)
            fio_mode = _STDIO[scheme][1] if scheme in _STDIO else _fileio_mode(key)
            raw = io.FileIO(fd, fio_mode, closefd=False)
            handle = LocalHandle(uri=path, mode=mode, raw=raw, wrapper="stdio", fd=fd)
        elif scheme is None:
            permissions = int(options.get("permissions", 0o666))
            fd = os.open(rest, _MODE_FLAGS[key], permissions)
            try:
                raw = io.FileIO(fd, _fileio_mode(key), closefd=True)
            except Exception:
                os.close(fd)
                raise
            handle = LocalHandle(
                uri=path,
                mode=mode,
                raw=raw,
                wrapper="plainfile",
                fd=fd,
                regular=stat.S_ISREG(os.fstat(fd).st_mode),
            )
        else:
            raise InvalidArgumentError(f'Unsupported stream scheme "{scheme}://"')

        logger.debug("Opened %s (%s) as %s", path, mode, handle.wrapper)
        return handle

    def close_handle(self, handle: LocalHandle) -> bool:
        if handle.closed:
            return False
        # Filters nobody detached still get their residue flushed.
        for slot in list(handle.write_slots) + list(handle.read_slots):
            self.detach_filter(slot.attachment)
        try:
            if handle.locked is not None and handle.fd is not None and _fcntl is not None:
                _fcntl.flock(handle.fd, _fcntl.LOCK_UN)
            handle.raw.close()
        except OSError as e:
            logger.warning("LocalFS.close_handle: closing %s failed: %s", handle.uri, e)
            return False
        handle.closed = True
        handle.locked = None
        handle.pending.clear()
        logger.debug("Closed %s", handle.uri)
        return True

    def read_handle(self, handle: LocalHandle, size: int) -> bytes:
        if size < 0:
            chunks = []
            while True:
                chunk = self.read_handle(handle, _CHUNK)
                if not chunk:
                    break
                chunks.append(chunk)
            return b"".join(chunks)
        if size == 0:
            return b""

        self._wait(handle, write=False)
        if not handle.read_slots and not handle.pending:
            data = handle.raw.read(size)
            if data is None:  # non-blocking, nothing ready
                return b""
            if not data or (handle.seekable and len(data) < size):
                handle.eof = True
            return data

        raw_eof = False
        while len(handle.pending) < size:
            chunk = handle.raw.read(max(size - len(handle.pending), 1))
            if chunk is None:
                break
            if not chunk:
                raw_eof = True
                break
            handle.pending += self._run(handle.read_slots, chunk)
            if not handle.seekable and handle.pending:
                break
        out = bytes(handle.pending[:size])
        del handle.pending[:size]
        if raw_eof and not handle.pending:
            handle.eof = True
        return out

    def read_line_handle(self, handle: LocalHandle, limit: Optional[int] = None) -> bytes:
        if limit is not None and limit <= 0:
            return b""

        self._wait(handle, write=False)
        if not handle.read_slots and not handle.pending:
            line = handle.raw.readline(-1 if limit is None else limit)
            if line is None:
                return b""
            if not line.endswith(b"\n") and (limit is None or len(line) < limit):
                handle.eof = True
            return line

        while True:
            nl = handle.pending.find(b"\n")
            if nl >= 0 and (limit is None or nl < limit):
                cut = nl + 1
                break
            if limit is not None and len(handle.pending) >= limit:
                cut = limit
                break
            chunk = handle.raw.read(_CHUNK)
            if not chunk:
                if chunk is not None:
                    handle.eof = True
                cut = len(handle.pending) if limit is None else min(limit, len(handle.pending))
                break
            handle.pending += self._run(handle.read_slots, chunk)
        line = bytes(handle.pending[:cut])
        del handle.pending[:cut]
        return line

    def write_handle(self, handle: LocalHandle, data: bytes) -> int:
        self._wait(handle, write=True)
        if handle.pending:
            if handle.seekable:
                handle.raw.seek(max(handle.raw.tell() - len(handle.pending), 0))
            self._reset_read_filters(handle)
        handle.eof = False

        if not handle.write_slots:
            written = handle.raw.write(data)
            return 0 if written is None else written

        out = self._run(handle.write_slots, data)
        written = handle.raw.write(out) if out else 0
        written = 0 if written is None else written
        # Filtered output may differ in length; report input consumed when
        # everything made it out, otherwise the raw count so the short write shows.
        return len(data) if written == len(out) else written

    def seek_handle(self, handle: LocalHandle, offset: int, whence: int) -> int:
        if whence == os.SEEK_CUR and handle.pending:
            offset -= len(handle.pending)
        position = handle.raw.seek(offset, whence)
        self._reset_read_filters(handle)
        handle.eof = False
        return position

    def tell_handle(self, handle: LocalHandle) -> int:
        return max(handle.raw.tell() - len(handle.pending), 0)

    def is_eof_handle(self, handle: LocalHandle) -> bool:
        return handle.eof

    def flush_handle(self, handle: LocalHandle) -> None:
        handle.raw.flush()

    def truncate_handle(self, handle: LocalHandle, size: int) -> None:
        if size < 0:
            raise InvalidArgumentError(f"Negative truncate size: {size}")
        handle.raw.truncate(size)

    def supports_lock(self, handle: LocalHandle) -> bool:
        return _fcntl is not None and handle.fd is not None

    def lock_handle(self, handle: LocalHandle, mode: LockMode, blocking: bool = True) -> bool:
        fd = self._require_fd(handle, "locking")
        if _fcntl is None:
            raise io.UnsupportedOperation("advisory locking is not available on this platform")
        op = _fcntl.LOCK_EX if mode == LockMode.EXCLUSIVE else _fcntl.LOCK_SH
        if not blocking:
            op |= _fcntl.LOCK_NB
        try:
            _fcntl.flock(fd, op)
        except BlockingIOError:
            return False
        handle.locked = mode
        return True

    def unlock_handle(self, handle: LocalHandle) -> None:
        fd = self._require_fd(handle, "locking")
        if _fcntl is None:
            raise io.UnsupportedOperation("advisory locking is not available on this platform")
        _fcntl.flock(fd, _fcntl.LOCK_UN)
        handle.locked = None

    def set_blocking_handle(self, handle: LocalHandle, blocking: bool) -> None:
        fd = self._require_fd(handle, "blocking mode")
        os.set_blocking(fd, blocking)
        handle.blocking = blocking

    def set_timeout_handle(self, handle: LocalHandle, seconds: Optional[float]) -> bool:
        handle.timeout = seconds
        handle.timed_out = False
        return handle.fd is not None

    def is_atty_handle(self, handle: LocalHandle) -> bool:
        return handle.raw.isatty()

    def handle_metadata(self, handle: LocalHandle) -> dict:
        return {
            "uri": handle.uri,
            "mode": handle.mode,
            "wrapper_type": handle.wrapper,
            "seekable": handle.seekable,
            "eof": handle.eof,
            "blocked": handle.blocking,
            "timed_out": handle.timed_out,
            "timeout": handle.timeout,
            "unread_bytes": len(handle.pending),
            "locked": handle.locked.value if handle.locked else None,
            "read_filters": [s.attachment.name for s in handle.read_slots],
            "write_filters": [s.attachment.name for s in handle.write_slots],
        }

    # --- filters ------------------------------------------------------------

    def attach_filter(
        self,
        handle: LocalHandle,
        name: str,
        direction: FilterDirection,
        params: Any = None,
        position: FilterPosition = FilterPosition.APPEND,
    ) -> FilterAttachment:
        if handle.closed:
            raise ValueError("Cannot attach a filter to a closed handle")
        direction = FilterDirection(direction)
        if not direction:
            raise InvalidArgumentError("Filter direction must include READ or WRITE")

        attachment = FilterAttachment(handle, name, direction, params)
        for single, slots in (
            (FilterDirection.READ, handle.read_slots),
            (FilterDirection.WRITE, handle.write_slots),
        ):
            if not direction & single:
                continue
            slot = _Slot(attachment, self._filters.create(name, params))
            if position == FilterPosition.PREPEND:
                slots.insert(0, slot)
            else:
                slots.append(slot)
        logger.debug("Attached filter %s (%s) to %s", name, position.value, handle.uri)
        return attachment

    def detach_filter(self, ref: FilterAttachment) -> bool:
        if not ref.attached:
            return False
        ref.attached = False
        handle = ref.handle

        for i, slot in enumerate(handle.write_slots):
            if slot.attachment is ref:
                del handle.write_slots[i]
                residue = self._run(handle.write_slots[i:], slot.instance.flush())
                if residue and handle.writable:
                    handle.raw.write(residue)
                break
        for i, slot in enumerate(handle.read_slots):
            if slot.attachment is ref:
                del handle.read_slots[i]
                handle.pending += self._run(handle.read_slots[i:], slot.instance.flush())
                break
        logger.debug("Detached filter %s from %s", ref.name, handle.uri)
        return True

    # --- directories --------------------------------------------------------

    def open_dir_handle(self, path: str) -> _DirHandle:
        return _DirHandle(path, [".", ".."] + self.list_dir(path))

    def read_dir_handle(self, handle: _DirHandle) -> Optional[str]:
        if handle.position >= len(handle.entries):
            return None
        entry = handle.entries[handle.position]
        handle.position += 1
        return entry

    def rewind_dir_handle(self, handle: _DirHandle) -> None:
        handle.entries = [".", ".."] + self.list_dir(handle.path)
        handle.position = 0

    def close_dir_handle(self, handle: _DirHandle) -> bool:
        handle.entries = []
        handle.position = 0
        return True

    def list_dir(self, path: str) -> List[str]:
        return sorted(os.listdir(self._split(path)[1]))

    # --- path mutation ------------------------------------------------------

    def rename_path(self, old: str, new: str) -> bool:
        os.rename(self._split(old)[1], self._split(new)[1])
        return True

    def delete_path(self, path: str) -> bool:
        target = self._split(path)[1]
        if stat.S_ISDIR(os.lstat(target).st_mode):
            shutil.rmtree(target)
        else:
            os.unlink(target)
        return True

    def copy_path(self, src: str, dst: str) -> bool:
        src, dst = self._split(src)[1], self._split(dst)[1]
        if os.path.isdir(src) and not os.path.islink(src):
            shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(src, dst, follow_symlinks=False)
        return True

    def make_dir(self, path: str, permissions: int = 0o777, parents: bool = True) -> bool:
        target = self._split(path)[1]
        if os.path.lexists(target):
            return False
        if parents:
            os.makedirs(target, permissions)
        else:
            os.mkdir(target, permissions)
        return True

    def make_fifo(self, path: str, permissions: int = 0o644) -> bool:
        target = self._split(path)[1]
        if os.path.lexists(target):
            return False
        os.mkfifo(target, permissions)
        return True

    def make_symlink(self, path: str, target: str) -> bool:
        link = self._split(path)[1]
        if os.path.lexists(link):
            return False
        os.symlink(target, link)
        return True

    def read_link(self, path: str) -> str:
        return os.readlink(self._split(path)[1])

    def chmod(self, path: str, mode: int) -> bool:
        os.chmod(self._split(path)[1], mode)
        return True

    def chown(self, path: str, uid: int = -1, gid: int = -1) -> bool:
        os.chown(self._split(path)[1], uid, gid)
        return True

    def touch(self, path: str, mtime: Optional[float] = None, atime: Optional[float] = None) -> bool:
        target = self._split(path)[1]
        if not os.path.lexists(target):
            with open(target, "ab"):
                pass
        if mtime is None:
            os.utime(target, None)
        else:
            os.utime(target, (mtime if atime is None else atime, mtime))
        return True

    def real_path(self, path: str) -> Optional[str]:
        target = self._split(path)[1]
        if not os.path.exists(target):
            return None
        return os.path.realpath(target)

    def access(self, path: str, mode: int) -> bool:
        return os.access(self._split(path)[1], mode)

    def disk_usage(self, path: str) -> Tuple[int, int, int]:
        usage = shutil.disk_usage(self._split(path)[1])
        return usage.total, usage.used, usage.free

    def put_contents(self, path: str, data: bytes, append: bool = False) -> int:
        with open(self._split(path)[1], "ab" if append else "wb") as f:
            return f.write(data)

    def get_contents(self, path: str, offset: int = 0, max_length: Optional[int] = None) -> bytes:
        with open(self._split(path)[1], "rb") as f:
            if offset:
                f.seek(offset)
            return f.read(-1 if max_length is None else max_length)
