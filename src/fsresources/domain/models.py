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

import os
from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import Any, Mapping, Optional

from .kinds import ResourceKind, classify


@dataclass(frozen=True)
class PathDescriptor:
    """A path (or stream URI) plus the open mode and provider options bound to it."""

    path: str
    mode: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def scheme(self) -> Optional[str]:
        """URI scheme (``memory`` for ``memory://``), or None for plain paths."""
        head, sep, _ = self.path.partition("://")
        if not sep or not head or os.sep in head:
            return None
        return head.lower()


@dataclass(frozen=True)
class StatSnapshot:
    """
    Point-in-time copy of OS metadata for one path.

    Snapshots are never refreshed; a resource keeps one until
    ``clear_stat_cache()`` is called.
    """

    mode: int
    size: int
    uid: int
    gid: int
    atime: float
    mtime: float
    ctime: float
    inode: int
    device: int
    nlink: int

    @classmethod
    def from_os(cls, st: os.stat_result) -> "StatSnapshot":
        return cls(
            mode=st.st_mode,
            size=st.st_size,
            uid=st.st_uid,
            gid=st.st_gid,
            atime=st.st_atime,
            mtime=st.st_mtime,
            ctime=st.st_ctime,
            inode=st.st_ino,
            device=st.st_dev,
            nlink=st.st_nlink,
        )

    @property
    def kind(self) -> ResourceKind:
        return classify(self.mode)

    @property
    def permissions(self) -> int:
        return self.mode & 0o7777

    def as_dict(self) -> dict:
        return {
            "mode": self.mode,
            "size": self.size,
            "uid": self.uid,
            "gid": self.gid,
            "atime": self.atime,
            "mtime": self.mtime,
            "ctime": self.ctime,
            "inode": self.inode,
            "device": self.device,
            "nlink": self.nlink,
            "kind": self.kind.value,
        }


class FilterDirection(IntFlag):
    READ = 1
    WRITE = 2
    BOTH = READ | WRITE


class FilterPosition(str, Enum):
    PREPEND = "prepend"
    APPEND = "append"


class Whence(IntEnum):
    START = os.SEEK_SET
    CURRENT = os.SEEK_CUR
    END = os.SEEK_END


class LockMode(str, Enum):
    SHARED = "shared"
    EXCLUSIVE = "exclusive"
