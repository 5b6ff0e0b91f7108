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

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Tuple

from ..domain.kinds import ResourceKind
from ..domain.models import FilterDirection, FilterPosition, LockMode, StatSnapshot

# Handles and filter refs are opaque to callers: whatever the provider returns
# is handed back to it unchanged.
Handle = Any
FilterRef = Any


class FilesystemPort(ABC):
    """
    Abstract interface for the OS primitives resources are built on.

    Failures surface as OSError subclasses (FileNotFoundError,
    PermissionError, FileExistsError, ...) and are never retried here.
    """

    # --- metadata -----------------------------------------------------------

    @abstractmethod
    def stat_path(self, path: str) -> StatSnapshot:
        """Return metadata for a path, following symlinks."""
        raise NotImplementedError

    @abstractmethod
    def lstat_path(self, path: str) -> StatSnapshot:
        """Return metadata for a path without following a final symlink."""
        raise NotImplementedError

    @abstractmethod
    def stat_handle(self, handle: "Handle") -> StatSnapshot:
        """Return metadata for an open handle (fstat, or synthesised for memory streams)."""
        raise NotImplementedError

    @abstractmethod
    def query_type(self, path: str) -> Optional[ResourceKind]:
        """
        Directly report the kind of a stream-style location (``memory://``,
        ``fd://3``...). Return None for plain paths so callers fall back to stat.
        """
        raise NotImplementedError

    @abstractmethod
    def exists(self, path: str) -> bool:
        """True if something (including a dangling symlink) is at path."""
        raise NotImplementedError

    @abstractmethod
    def is_local(self, path: str) -> bool:
        """True if the location is served without network transport."""
        raise NotImplementedError

    # --- handles ------------------------------------------------------------

    @abstractmethod
    def open_handle(self, path: str, mode: str, options: Mapping[str, Any]) -> Handle:
        raise NotImplementedError

    @abstractmethod
    def close_handle(self, handle: Handle) -> bool:
        raise NotImplementedError

    @abstractmethod
    def read_handle(self, handle: Handle, size: int) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def read_line_handle(self, handle: Handle, limit: Optional[int] = None) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def write_handle(self, handle: Handle, data: bytes) -> int:
        """Write once and return the count accepted (may be short)."""
        raise NotImplementedError

    @abstractmethod
    def seek_handle(self, handle: Handle, offset: int, whence: int) -> int:
        raise NotImplementedError

    @abstractmethod
    def tell_handle(self, handle: Handle) -> int:
        raise NotImplementedError

    @abstractmethod
    def is_eof_handle(self, handle: Handle) -> bool:
        raise NotImplementedError

    @abstractmethod
    def flush_handle(self, handle: Handle) -> None:
        raise NotImplementedError

    @abstractmethod
    def truncate_handle(self, handle: Handle, size: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def supports_lock(self, handle: Handle) -> bool:
        raise NotImplementedError

    @abstractmethod
    def lock_handle(self, handle: Handle, mode: LockMode, blocking: bool = True) -> bool:
        """Acquire an advisory lock; False when a non-blocking request conflicts."""
        raise NotImplementedError

    @abstractmethod
    def unlock_handle(self, handle: Handle) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_blocking_handle(self, handle: Handle, blocking: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_timeout_handle(self, handle: Handle, seconds: Optional[float]) -> bool:
        """Store an I/O timeout; False if this kind of handle never blocks."""
        raise NotImplementedError

    @abstractmethod
    def is_atty_handle(self, handle: Handle) -> bool:
        raise NotImplementedError

    @abstractmethod
    def handle_metadata(self, handle: Handle) -> dict:
        raise NotImplementedError

    # --- filters ------------------------------------------------------------

    @abstractmethod
    def attach_filter(
        self,
        handle: Handle,
        name: str,
        direction: FilterDirection,
        params: Any = None,
        position: FilterPosition = FilterPosition.APPEND,
    ) -> FilterRef:
        raise NotImplementedError

    @abstractmethod
    def detach_filter(self, ref: FilterRef) -> bool:
        """Detach a filter; False if it was already detached."""
        raise NotImplementedError

    # --- directories --------------------------------------------------------

    @abstractmethod
    def open_dir_handle(self, path: str) -> Handle:
        raise NotImplementedError

    @abstractmethod
    def read_dir_handle(self, handle: Handle) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def rewind_dir_handle(self, handle: Handle) -> None:
        raise NotImplementedError

    @abstractmethod
    def close_dir_handle(self, handle: Handle) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_dir(self, path: str) -> List[str]:
        raise NotImplementedError

    # --- path mutation ------------------------------------------------------

    @abstractmethod
    def rename_path(self, old: str, new: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete_path(self, path: str) -> bool:
        """Delete a file, link, pipe or (recursively) a directory."""
        raise NotImplementedError

    @abstractmethod
    def copy_path(self, src: str, dst: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def make_dir(self, path: str, permissions: int = 0o777, parents: bool = True) -> bool:
        raise NotImplementedError

    @abstractmethod
    def make_fifo(self, path: str, permissions: int = 0o644) -> bool:
        raise NotImplementedError

    @abstractmethod
    def make_symlink(self, path: str, target: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def read_link(self, path: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def chmod(self, path: str, mode: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def chown(self, path: str, uid: int = -1, gid: int = -1) -> bool:
        raise NotImplementedError

    @abstractmethod
    def touch(self, path: str, mtime: Optional[float] = None, atime: Optional[float] = None) -> bool:
        raise NotImplementedError

    @abstractmethod
    def real_path(self, path: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def access(self, path: str, mode: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def disk_usage(self, path: str) -> Tuple[int, int, int]:
        """Return (total, used, free) bytes for the filesystem holding path."""
        raise NotImplementedError

    @abstractmethod
    def put_contents(self, path: str, data: bytes, append: bool = False) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_contents(self, path: str, offset: int = 0, max_length: Optional[int] = None) -> bytes:
        raise NotImplementedError
