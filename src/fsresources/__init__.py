# Licensed under the Apache License, Version 2.0
"""
Object wrappers for files, directories, links, named pipes and byte streams.

    from fsresources import Stream

    with Stream("memory://") as s:
        s.write(b"hello")
"""

from .adapters.filters import register_filter
from .config import Settings
from .domain import (
    FilterDirection,
    InvalidArgumentError,
    LockError,
    LockMode,
    OpenError,
    PreconditionViolation,
    ResourceError,
    ResourceKind,
    StatSnapshot,
    Whence,
)
from .services import (
    CloseResult,
    Directory,
    File,
    Link,
    OpenPolicy,
    Pipe,
    StandardFile,
    Stream,
    build_resource,
)

__version__ = "0.1.0"

__all__ = [
    "CloseResult",
    "Directory",
    "File",
    "FilterDirection",
    "InvalidArgumentError",
    "Link",
    "LockError",
    "LockMode",
    "OpenError",
    "OpenPolicy",
    "Pipe",
    "PreconditionViolation",
    "ResourceError",
    "ResourceKind",
    "Settings",
    "StandardFile",
    "StatSnapshot",
    "Stream",
    "Whence",
    "build_resource",
    "register_filter",
]
