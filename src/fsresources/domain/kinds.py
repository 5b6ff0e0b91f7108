# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import stat
from enum import Enum


class ResourceKind(str, Enum):
    """What a path points at, derived from the format bits of a stat mode."""

    FILE = "file"
    DIRECTORY = "dir"
    LINK = "link"
    PIPE = "fifo"
    CHAR_DEVICE = "char"
    BLOCK_DEVICE = "block"
    SOCKET = "socket"
    UNKNOWN = "unknown"


# Format-bit mask (S_IFMT in <sys/stat.h>).
_FORMAT_MASK = 0o170000

_KIND_BY_FORMAT = {
    stat.S_IFIFO: ResourceKind.PIPE,
    stat.S_IFCHR: ResourceKind.CHAR_DEVICE,
    stat.S_IFDIR: ResourceKind.DIRECTORY,
    stat.S_IFBLK: ResourceKind.BLOCK_DEVICE,
    stat.S_IFREG: ResourceKind.FILE,
    stat.S_IFLNK: ResourceKind.LINK,
    stat.S_IFSOCK: ResourceKind.SOCKET,
}


def classify(mode_bits: int) -> ResourceKind:
    """
    Map a POSIX mode word (or just its format bits) to a ResourceKind.

    Permission bits are masked off first, so both ``st_mode`` and
    ``stat.S_IFMT(st_mode)`` are accepted. Every integer maps to exactly one
    kind; patterns that match no known format give ``UNKNOWN``.
    """
    return _KIND_BY_FORMAT.get(int(mode_bits) & _FORMAT_MASK, ResourceKind.UNKNOWN)
