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

import csv
import io
import logging
import sys
from typing import Any, BinaryIO, Iterable, Iterator, List, Mapping, Optional, Union

from ..adapters.filesystem import default_filesystem
from ..config import Settings
from ..domain.errors import LockError
from ..domain.kinds import ResourceKind
from ..domain.models import (
    FilterDirection,
    LockMode,
    PathDescriptor,
    StatSnapshot,
    Whence,
)
from ..ports.filesystem import FilesystemPort, Handle
from .filter_chain import FilterChain, FilterEntry
from .lifecycle import CloseResult, HandleLifecycle, OpenPolicy
from .scan_format import scan
from .type_resolver import TypeResolver

logger = logging.getLogger(__name__)

_CHUNK = 65536


class Streamable:
    """
    Handle-backed I/O shared by Stream, StandardFile and Pipe.

    Subclasses set ``_descriptor`` and ``_fs`` and call ``_init_stream``.
    Every operation below goes through ``HandleLifecycle.require_open`` first,
    so under the explicit policy nothing reaches the provider until ``open()``.
    """

    _descriptor: PathDescriptor
    _fs: FilesystemPort
    encoding = "utf-8"

    def _init_stream(self, policy: Union[OpenPolicy, str], default_mode: str) -> None:
        self._default_mode = default_mode
        self._lifecycle: HandleLifecycle[Handle] = HandleLifecycle(
            self._acquire,
            self._fs.close_handle,
            describe=lambda: self._descriptor.path,
            policy=OpenPolicy(policy),
        )
        self._filters = FilterChain(self._fs, self._lifecycle)

    def _acquire(self, mode: Optional[str], options: Optional[Mapping[str, Any]]) -> Handle:
        mode = mode or self._descriptor.mode or self._default_mode
        merged = {**self._descriptor.options, **(options or {})}
        return self._fs.open_handle(self._descriptor.path, mode, merged)

    def _require(self, operation: str) -> Handle:
        return self._lifecycle.require_open(operation)

    # --- lifecycle ----------------------------------------------------------

    def open(self, mode: Optional[str] = None, options: Optional[Mapping[str, Any]] = None) -> Handle:
        return self._lifecycle.open(mode, options)

    def close(self) -> CloseResult:
        return self._lifecycle.close()

    def is_open(self) -> bool:
        return self._lifecycle.is_open

    @property
    def handle(self) -> Optional[Handle]:
        return self._lifecycle.handle

    @property
    def open_policy(self) -> OpenPolicy:
        return self._lifecycle.policy

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- filters ------------------------------------------------------------

    @property
    def filters(self) -> FilterChain:
        return self._filters

    def append_filter(
        self, name: str, direction: FilterDirection = FilterDirection.READ, params: Any = None
    ) -> FilterEntry:
        return self._filters.append(name, direction, params)

    def prepend_filter(
        self, name: str, direction: FilterDirection = FilterDirection.READ, params: Any = None
    ) -> FilterEntry:
        return self._filters.prepend(name, direction, params)

    def get_filter(self, name: str) -> Optional[FilterEntry]:
        return self._filters.get(name)

    def remove_filter(self, name: str) -> bool:
        return self._filters.remove(name)

    # --- reading ------------------------------------------------------------

    def read(self, length: int) -> bytes:
        """Up to ``length`` bytes; fewer (possibly none) at end of stream."""
        handle = self._require("read")
        return self._fs.read_handle(handle, length)

    def read_byte(self) -> Optional[bytes]:
        """One byte, or None at end of stream (so b"\\x00" stays distinguishable)."""
        handle = self._require("read_byte")
        data = self._fs.read_handle(handle, 1)
        return data if data else None

    def read_line(self, max_bytes: Optional[int] = None) -> bytes:
        handle = self._require("read_line")
        return self._fs.read_line_handle(handle, max_bytes)

    def read_until(self, length: int, ending: Union[bytes, str] = b"") -> Optional[bytes]:
        """
        Read up to ``length`` bytes, stopping at ``ending``.

        The delimiter is consumed but not returned. None when nothing could be
        read because the stream is at its end.
        """
        handle = self._require("read_until")
        if isinstance(ending, str):
            ending = ending.encode(self.encoding)
        if not ending:
            data = self._fs.read_handle(handle, length)
            return data if data or not self._fs.is_eof_handle(handle) else None

        buf = bytearray()
        while len(buf) < length:
            byte = self._fs.read_handle(handle, 1)
            if not byte:
                break
            buf += byte
            if buf.endswith(ending):
                return bytes(buf[: -len(ending)])
        if not buf and self._fs.is_eof_handle(handle):
            return None
        return bytes(buf)

    def read_all(self, max_length: Optional[int] = None, offset: Optional[int] = None) -> bytes:
        """Remaining contents (from ``offset`` if given), at most ``max_length`` bytes."""
        handle = self._require("read_all")
        if offset is not None:
            self._fs.seek_handle(handle, offset, Whence.START)
        return self._fs.read_handle(handle, -1 if max_length is None else max_length)

    def read_record(self, delimiter: str = ",", quote: str = '"', escape: str = "\\") -> List[str]:
        """
        Decode one delimited record.

        A quoted field may span several lines. A blank line, or nothing left
        to read, gives an empty list; use ``is_end_of_file()`` to tell them apart.
        """
        handle = self._require("read_record")

        def lines() -> Iterator[str]:
            while True:
                line = self._fs.read_line_handle(handle, None)
                if not line:
                    return
                yield line.decode(self.encoding)

        reader = csv.reader(
            lines(), delimiter=delimiter, quotechar=quote, escapechar=escape or None
        )
        try:
            return next(reader)
        except StopIteration:
            return []

    def parse(self, fmt: str) -> Optional[List[Any]]:
        """
        Read one line and parse it scanf-style, e.g. ``parse("%s %d")``.

        Returns the converted values (None for conversions that did not
        match), or None when the stream was already at its end.
        """
        handle = self._require("parse")
        line = self._fs.read_line_handle(handle, None)
        if not line and self._fs.is_eof_handle(handle):
            return None
        return scan(fmt, line.decode(self.encoding))

    def is_end_of_file(self) -> bool:
        handle = self._require("is_end_of_file")
        return self._fs.is_eof_handle(handle)

    # --- writing ------------------------------------------------------------

    def write(self, data: Union[bytes, bytearray, memoryview, str]) -> int:
        """Write once; the returned count may be short and is not retried."""
        handle = self._require("write")
        if isinstance(data, str):
            data = data.encode(self.encoding)
        return self._fs.write_handle(handle, bytes(data))

    def write_record(
        self,
        fields: Iterable[Any],
        delimiter: str = ",",
        quote: str = '"',
        escape: str = "\\",
        eol: str = "\n",
    ) -> int:
        """Encode ``fields`` as one delimited line and write it."""
        handle = self._require("write_record")
        buf = io.StringIO()
        writer = csv.writer(
            buf,
            delimiter=delimiter,
            quotechar=quote,
            escapechar=escape or None,
            lineterminator=eol,
        )
        writer.writerow(["" if f is None else f for f in fields])
        return self._fs.write_handle(handle, buf.getvalue().encode(self.encoding))

    def flush(self) -> None:
        handle = self._require("flush")
        self._fs.flush_handle(handle)

    def truncate(self, size: int) -> None:
        handle = self._require("truncate")
        self._fs.truncate_handle(handle, size)

    # --- positioning --------------------------------------------------------

    def seek(self, offset: int, whence: Union[Whence, int] = Whence.START) -> int:
        handle = self._require("seek")
        return self._fs.seek_handle(handle, offset, int(Whence(whence)))

    def tell(self) -> int:
        handle = self._require("tell")
        return self._fs.tell_handle(handle)

    def rewind(self) -> int:
        handle = self._require("rewind")
        return self._fs.seek_handle(handle, 0, Whence.START)

    # --- handle control -----------------------------------------------------

    def lock(self, mode: Union[LockMode, str] = LockMode.EXCLUSIVE, blocking: bool = True) -> bool:
        """
        Take an advisory lock on the handle.

        With ``blocking=False`` a conflicting holder raises LockError instead
        of waiting.
        """
        handle = self._require("lock")
        mode = LockMode(mode)
        if not self._fs.lock_handle(handle, mode, blocking):
            logger.warning("Lock conflict on %s (%s)", self.path, mode.value)
            raise LockError(f'"{self.path}" is already locked by another holder')
        return True

    def unlock(self) -> bool:
        handle = self._require("unlock")
        self._fs.unlock_handle(handle)
        return True

    def supports_lock(self) -> bool:
        handle = self._require("supports_lock")
        return self._fs.supports_lock(handle)

    def set_blocking(self, blocking: bool) -> bool:
        handle = self._require("set_blocking")
        self._fs.set_blocking_handle(handle, bool(blocking))
        return True

    def set_timeout(self, seconds: float, microseconds: int = 0) -> bool:
        """
        Apply an I/O timeout to blocking reads and writes on this handle.

        Returns False for handles that never block (memory streams); the value
        is stored either way and lasts until changed or the handle closes.
        """
        handle = self._require("set_timeout")
        return self._fs.set_timeout_handle(handle, seconds + microseconds / 1_000_000)

    def is_atty(self) -> bool:
        handle = self._require("is_atty")
        return self._fs.is_atty_handle(handle)

    def is_local(self) -> bool:
        return self._fs.is_local(self._descriptor.path)

    def metadata(self) -> dict:
        handle = self._require("metadata")
        return self._fs.handle_metadata(handle)

    def handle_stat(self) -> StatSnapshot:
        handle = self._require("handle_stat")
        return self._fs.stat_handle(handle)

    # --- bulk transfer ------------------------------------------------------

    def copy_into(self, other: "Streamable", length: Optional[int] = None, offset: Optional[int] = None) -> int:
        """
        Copy up to ``length`` bytes (everything if None) into another open
        stream. Returns the count actually written, which is short at end of
        stream or when the destination accepts less.
        """
        handle = self._require("copy_into")
        other._require("write")
        if offset is not None:
            self._fs.seek_handle(handle, offset, Whence.START)

        total = 0
        remaining = length
        while remaining is None or remaining > 0:
            size = _CHUNK if remaining is None else min(_CHUNK, remaining)
            chunk = self._fs.read_handle(handle, size)
            if not chunk:
                break
            written = other.write(chunk)
            total += written
            if written < len(chunk):
                break
            if remaining is not None:
                remaining -= len(chunk)
        return total

    def pass_thru(self, out: Optional[BinaryIO] = None) -> int:
        """Write everything left in the stream to ``out`` (stdout by default)."""
        handle = self._require("pass_thru")
        out = out if out is not None else sys.stdout.buffer
        total = 0
        while True:
            chunk = self._fs.read_handle(handle, _CHUNK)
            if not chunk:
                break
            out.write(chunk)
            total += len(chunk)
        out.flush()
        return total

    @property
    def path(self) -> str:
        return self._descriptor.path


class Stream(Streamable):
    """
    A byte stream over any location the provider serves: plain paths,
    ``memory://``, ``temp://``, ``stdin://``, ``fd://N``...

    >>> with Stream("memory://") as s:
    ...     s.write(b"write")
    ...     s.rewind()
    ...     s.read_line()
    """

    def __init__(
        self,
        path: str,
        mode: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
        *,
        fs: Optional[FilesystemPort] = None,
        policy: Optional[Union[OpenPolicy, str]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or Settings.from_env()
        self._descriptor = PathDescriptor(path, mode, dict(options or {}))
        self._fs = fs or default_filesystem(settings)
        self._resolver = TypeResolver(self._fs)
        self._stat: Optional[StatSnapshot] = None
        self._init_stream(policy or settings.open_policy, settings.default_mode)

    @property
    def descriptor(self) -> PathDescriptor:
        return self._descriptor

    @property
    def mode(self) -> Optional[str]:
        return self._descriptor.mode

    @property
    def options(self) -> Mapping[str, Any]:
        return self._descriptor.options

    @property
    def kind(self) -> ResourceKind:
        return self._resolver.resolve_from_path(self.path)

    def is_file(self) -> bool:
        return self.kind == ResourceKind.FILE

    def is_dir(self) -> bool:
        return self.kind == ResourceKind.DIRECTORY

    def is_link(self) -> bool:
        return self.kind == ResourceKind.LINK

    def is_pipe(self) -> bool:
        return self.kind == ResourceKind.PIPE

    def is_char(self) -> bool:
        return self.kind == ResourceKind.CHAR_DEVICE

    def is_block(self) -> bool:
        return self.kind == ResourceKind.BLOCK_DEVICE

    def stat(self) -> StatSnapshot:
        """Stat of the open handle, cached until ``clear_stat_cache()``."""
        handle = self._require("stat")
        if self._stat is None:
            self._stat = self._fs.stat_handle(handle)
        return self._stat

    def clear_stat_cache(self) -> None:
        self._stat = None

    def resource_type(self) -> str:
        """What serves the open handle: plainfile, memory, temp or stdio."""
        return self.metadata()["wrapper_type"]

    def close(self) -> CloseResult:
        self._stat = None
        return super().close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"Stream({self.path!r}, {state})"
