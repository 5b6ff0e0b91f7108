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

import configparser
import logging
import mimetypes
import os
import sys
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Union

from ..adapters.filesystem import default_filesystem
from ..config import Settings
from ..domain.errors import InvalidArgumentError
from ..domain.kinds import ResourceKind
from ..domain.models import PathDescriptor, StatSnapshot
from ..ports.filesystem import FilesystemPort, Handle
from .lifecycle import CloseResult, HandleLifecycle, OpenPolicy
from .stream import Streamable
from .type_resolver import TypeResolver

logger = logging.getLogger(__name__)


class FileResource:
    """
    Base for anything that lives at a filesystem path.

    Metadata comes from one cached StatSnapshot. The cache is only dropped by
    ``clear_stat_cache()`` or by this object's own mutating calls; changes
    made by anyone else stay invisible until then.
    """

    def __init__(
        self,
        path: str,
        *,
        fs: Optional[FilesystemPort] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or Settings.from_env()
        self._fs = fs or default_filesystem(self._settings)
        self._resolver = TypeResolver(self._fs)
        self._descriptor = PathDescriptor(path)
        self._stat: Optional[StatSnapshot] = None

    @property
    def path(self) -> str:
        return self._descriptor.path

    @property
    def descriptor(self) -> PathDescriptor:
        return self._descriptor

    @property
    def kind(self) -> ResourceKind:
        return self._resolver.resolve_from_path(self.path)

    def _set_path(self, path: str) -> None:
        d = self._descriptor
        self._descriptor = PathDescriptor(path, d.mode, d.options)
        self._stat = None

    # --- metadata -----------------------------------------------------------

    def _load_stat(self) -> StatSnapshot:
        return self._fs.stat_path(self.path)

    def stat(self) -> StatSnapshot:
        if self._stat is None:
            self._stat = self._load_stat()
        return self._stat

    def clear_stat_cache(self) -> None:
        self._stat = None

    def size(self) -> int:
        return self.stat().size

    def permissions(self) -> int:
        return self.stat().permissions

    def owner_id(self) -> int:
        return self.stat().uid

    def group_id(self) -> int:
        return self.stat().gid

    def inode(self) -> int:
        return self.stat().inode

    def last_access_time(self) -> float:
        return self.stat().atime

    def last_modified(self) -> float:
        return self.stat().mtime

    def inode_change_time(self) -> float:
        return self.stat().ctime

    def is_readable(self) -> bool:
        return self._fs.access(self.path, os.R_OK)

    def is_writable(self) -> bool:
        return self._fs.access(self.path, os.W_OK)

    def is_executable(self) -> bool:
        return self._fs.access(self.path, os.X_OK)

    # --- path helpers -------------------------------------------------------

    def real_path(self) -> Optional[str]:
        return self._fs.real_path(self.path)

    def parent_path(self, levels: int = 1) -> str:
        if levels < 1:
            raise InvalidArgumentError("levels must be >= 1")
        parent = self.path
        for _ in range(levels):
            stripped = parent.rstrip(os.sep)
            if not stripped:
                return os.sep
            parent = os.path.dirname(stripped) or "."
        return parent

    def name(self, suffix: Optional[str] = None) -> str:
        base = os.path.basename(self.path.rstrip(os.sep))
        if suffix and base.endswith(suffix) and base != suffix:
            base = base[: -len(suffix)]
        return base

    def path_info(self) -> Dict[str, str]:
        base = self.name()
        stem, ext = os.path.splitext(base)
        info = {"dirname": self.parent_path(), "basename": base, "filename": stem}
        if ext:
            info["extension"] = ext[1:]
        return info

    # --- mutation -----------------------------------------------------------

    def change_mode(self, mode: int) -> bool:
        self._stat = None
        return self._fs.chmod(self.path, mode)

    def change_owner(self, owner: Union[int, str]) -> bool:
        import pwd

        uid = pwd.getpwnam(owner).pw_uid if isinstance(owner, str) else int(owner)
        self._stat = None
        return self._fs.chown(self.path, uid, -1)

    def change_group(self, group: Union[int, str]) -> bool:
        import grp

        gid = grp.getgrnam(group).gr_gid if isinstance(group, str) else int(group)
        self._stat = None
        return self._fs.chown(self.path, -1, gid)

    def touch(self, mtime: Optional[float] = None, atime: Optional[float] = None) -> bool:
        self._stat = None
        return self._fs.touch(self.path, mtime, atime)

    def rename(self, new_name: str) -> bool:
        """
        Rename within the same parent directory.

        The resource keeps its old path unless the provider confirms the rename.
        """
        new_path = os.path.join(os.path.dirname(self.path), new_name)
        if not self._fs.rename_path(self.path, new_path):
            return False
        logger.debug("Renamed %s -> %s", self.path, new_path)
        self._set_path(new_path)
        return True

    def move(self, to_dir: str) -> bool:
        if not self._is_directory(to_dir):
            raise InvalidArgumentError(f'Invalid directory "{to_dir}"')
        new_path = os.path.join(to_dir, self.name())
        if not self._fs.rename_path(self.path, new_path):
            return False
        logger.debug("Moved %s -> %s", self.path, new_path)
        self._set_path(new_path)
        return True

    def copy(self, dest: str) -> bool:
        return self._fs.copy_path(self.path, dest)

    def delete(self) -> bool:
        self._stat = None
        deleted = self._fs.delete_path(self.path)
        if deleted:
            logger.debug("Deleted %s", self.path)
        return deleted

    def _is_directory(self, path: str) -> bool:
        return self._fs.exists(path) and self._fs.stat_path(path).kind is ResourceKind.DIRECTORY

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"


class File(FileResource):
    """
    Untyped wrapper for any path, stream URIs included.

    Use ``build()`` to get the kind-specific wrapper.
    """

    def type(self) -> ResourceKind:
        return self.kind

    def is_file(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.FILE)

    def is_dir(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.DIRECTORY)

    def is_link(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.LINK)

    def is_pipe(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.PIPE)

    def is_char(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.CHAR_DEVICE)

    def is_block(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.BLOCK_DEVICE)

    def is_socket(self) -> bool:
        return self._resolver.is_kind(self.path, ResourceKind.SOCKET)

    def build(self) -> Optional[FileResource]:
        return build_resource(self.path, fs=self._fs, settings=self._settings)


def build_resource(
    path: str,
    *,
    fs: Optional[FilesystemPort] = None,
    settings: Optional[Settings] = None,
) -> Optional[FileResource]:
    """
    Wrap an existing path in the class matching its kind.

    None for stream URIs and for kinds with no dedicated wrapper (devices,
    sockets). Missing paths raise FileNotFoundError.
    """
    if PathDescriptor(path).scheme is not None:
        return None
    settings = settings or Settings.from_env()
    fs = fs or default_filesystem(settings)
    kind = TypeResolver(fs).resolve_from_path(path)
    wrapper = _WRAPPERS.get(kind)
    if wrapper is None:
        return None
    return wrapper(path, fs=fs, settings=settings)


def _check_kind(fs: FilesystemPort, path: str, kind: ResourceKind, label: str) -> None:
    if not TypeResolver(fs).is_kind(path, kind):
        raise InvalidArgumentError(f"Invalid path : path to {label} expected.")


class StandardFile(FileResource, Streamable):
    """
    A regular file, created empty on construction when missing.

    Streaming calls (read, write, lock...) need ``open()`` first unless the
    resource was built with ``policy="auto"``.
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
        FileResource.__init__(self, path, fs=fs, settings=settings)
        self._descriptor = PathDescriptor(path, mode, dict(options or {}))
        if not self._fs.exists(path):
            self.create(path, fs=self._fs)
        else:
            _check_kind(self._fs, path, ResourceKind.FILE, "standard file")
        self._init_stream(policy or self._settings.open_policy, self._settings.default_mode)

    @classmethod
    def create(cls, path: str, *, fs: Optional[FilesystemPort] = None) -> bool:
        """Create an empty file. False when something already exists at path."""
        fs = fs or default_filesystem()
        if fs.exists(path):
            return False
        return fs.touch(path)

    @classmethod
    def is_valid(cls, path: str, *, fs: Optional[FilesystemPort] = None) -> bool:
        return TypeResolver(fs or default_filesystem()).is_kind(path, ResourceKind.FILE)

    def extension(self) -> str:
        return self.path_info().get("extension", "")

    def mime_type(self) -> str:
        mime, _ = mimetypes.guess_type(self.path)
        return mime or "application/octet-stream"

    def put_contents(self, data: Union[bytes, str], append: bool = False) -> int:
        if isinstance(data, str):
            data = data.encode(self.encoding)
        self._stat = None
        return self._fs.put_contents(self.path, data, append)

    def get_contents(self, offset: int = 0, max_length: Optional[int] = None) -> bytes:
        return self._fs.get_contents(self.path, offset, max_length)

    def print_contents(self, out: Optional[BinaryIO] = None) -> int:
        """Write the whole file to ``out`` (stdout by default) without opening a handle."""
        data = self.get_contents()
        out = out if out is not None else sys.stdout.buffer
        out.write(data)
        out.flush()
        return len(data)

    def parse_ini(self, sections: bool = True) -> Dict[str, Any]:
        """
        Parse the file as INI.

        With ``sections=False`` keys from every section are merged into one
        flat mapping (later sections win).
        """
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str  # keep key case
        parser.read_string(self.get_contents().decode(self.encoding), source=self.path)
        parsed = {name: dict(parser.items(name, raw=True)) for name in parser.sections()}
        if sections:
            return parsed
        flat: Dict[str, Any] = {}
        for values in parsed.values():
            flat.update(values)
        return flat

    def truncate(self, size: int) -> None:
        self._stat = None
        super().truncate(size)

    def delete(self) -> bool:
        self.close()
        return super().delete()


class Directory(FileResource):
    """
    A directory, created (with parents) on construction when missing.

    ``open()``/``read()``/``rewind()``/``close()`` walk the entries one at a
    time; ``.`` and ``..`` come first, then names in sorted order.
    """

    def __init__(
        self,
        path: str,
        *,
        fs: Optional[FilesystemPort] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(path, fs=fs, settings=settings)
        if not self._fs.exists(path):
            self.create(path, fs=self._fs)
        else:
            _check_kind(self._fs, path, ResourceKind.DIRECTORY, "directory")
        self._lifecycle: HandleLifecycle[Handle] = HandleLifecycle(
            lambda mode, options: self._fs.open_dir_handle(self.path),
            self._fs.close_dir_handle,
            describe=lambda: self.path,
        )

    @classmethod
    def create(
        cls,
        path: str,
        permissions: int = 0o777,
        parents: bool = True,
        *,
        fs: Optional[FilesystemPort] = None,
    ) -> bool:
        fs = fs or default_filesystem()
        return fs.make_dir(path, permissions, parents)

    @classmethod
    def is_valid(cls, path: str, *, fs: Optional[FilesystemPort] = None) -> bool:
        return TypeResolver(fs or default_filesystem()).is_kind(path, ResourceKind.DIRECTORY)

    # --- entry handle -------------------------------------------------------

    def open(self) -> Handle:
        return self._lifecycle.open()

    def close(self) -> CloseResult:
        return self._lifecycle.close()

    def is_open(self) -> bool:
        return self._lifecycle.is_open

    @property
    def handle(self) -> Optional[Handle]:
        return self._lifecycle.handle

    def read(self) -> Optional[str]:
        """Next entry name, or None when exhausted."""
        return self._fs.read_dir_handle(self._lifecycle.require_open("read"))

    def rewind(self) -> None:
        self._fs.rewind_dir_handle(self._lifecycle.require_open("rewind"))

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- listing ------------------------------------------------------------

    def scan(self) -> List[str]:
        return [".", ".."] + self._fs.list_dir(self.path)

    def files(self) -> List[FileResource]:
        """Typed wrappers for every entry; entries with no dedicated class get a File."""
        found: List[FileResource] = []
        for name in self._fs.list_dir(self.path):
            child = os.path.join(self.path, name)
            resource = build_resource(child, fs=self._fs, settings=self._settings)
            found.append(resource if resource is not None else File(child, fs=self._fs, settings=self._settings))
        return found

    def disk_free_space(self) -> int:
        return self._fs.disk_usage(self.path)[2]

    def disk_total_space(self) -> int:
        return self._fs.disk_usage(self.path)[0]

    # --- mutation -----------------------------------------------------------

    def copy(self, dest: str) -> bool:
        """Copy the contents into ``dest``, which must already be a directory."""
        if not self._is_directory(dest):
            raise InvalidArgumentError(f'Invalid directory "{dest}"')
        return self._fs.copy_path(self.path, dest)

    def delete(self) -> bool:
        self.close()
        return super().delete()


class Link(FileResource):
    """A symbolic link. Metadata describes the link itself, not its target."""

    def __init__(
        self,
        path: str,
        target: Optional[str] = None,
        *,
        fs: Optional[FilesystemPort] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(path, fs=fs, settings=settings)
        if not self._fs.exists(path):
            if target is None:
                raise InvalidArgumentError(f'No link at "{path}" and no target given to create one')
            self.create(path, target, fs=self._fs)
        else:
            _check_kind(self._fs, path, ResourceKind.LINK, "link")

    @classmethod
    def create(cls, path: str, target: str, *, fs: Optional[FilesystemPort] = None) -> bool:
        fs = fs or default_filesystem()
        return fs.make_symlink(path, target)

    @classmethod
    def is_valid(cls, path: str, *, fs: Optional[FilesystemPort] = None) -> bool:
        return TypeResolver(fs or default_filesystem()).is_kind(path, ResourceKind.LINK)

    def _load_stat(self) -> StatSnapshot:
        return self._fs.lstat_path(self.path)

    def link_info(self) -> int:
        return self.stat().device

    def target_path(self) -> str:
        return self._fs.read_link(self.path)

    def target_file(self) -> Optional[FileResource]:
        target = self.target_path()
        if not os.path.isabs(target):
            target = os.path.join(os.path.dirname(self.path), target)
        return build_resource(target, fs=self._fs, settings=self._settings)


class Pipe(FileResource, Streamable):
    """A named pipe (FIFO), created on construction when missing."""

    def __init__(
        self,
        path: str,
        permissions: int = 0o644,
        mode: Optional[str] = None,
        *,
        fs: Optional[FilesystemPort] = None,
        policy: Optional[Union[OpenPolicy, str]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        FileResource.__init__(self, path, fs=fs, settings=settings)
        self._descriptor = PathDescriptor(path, mode)
        if not self._fs.exists(path):
            self.create(path, permissions, fs=self._fs)
        else:
            _check_kind(self._fs, path, ResourceKind.PIPE, "pipe file")
        self._init_stream(policy or self._settings.open_policy, self._settings.default_mode)

    @classmethod
    def create(cls, path: str, permissions: int = 0o644, *, fs: Optional[FilesystemPort] = None) -> bool:
        """Make the FIFO. False when something already exists at path."""
        fs = fs or default_filesystem()
        return fs.make_fifo(path, permissions)

    @classmethod
    def is_valid(cls, path: str, *, fs: Optional[FilesystemPort] = None) -> bool:
        return TypeResolver(fs or default_filesystem()).is_kind(path, ResourceKind.PIPE)

    def delete(self) -> bool:
        self.close()
        return super().delete()


_WRAPPERS = {
    ResourceKind.FILE: StandardFile,
    ResourceKind.DIRECTORY: Directory,
    ResourceKind.LINK: Link,
    ResourceKind.PIPE: Pipe,
}
