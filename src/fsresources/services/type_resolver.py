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

import logging

from ..domain.kinds import ResourceKind, classify
from ..ports.filesystem import FilesystemPort

logger = logging.getLogger(__name__)


class TypeResolver:
    """
    Works out what a path points at.

    Stream-style locations (``memory://``, ``fd://3``...) are asked directly
    through ``FilesystemPort.query_type``; everything else is classified from
    ``lstat`` mode bits, so a symlink resolves to LINK rather than to its target.

    Stat failures (FileNotFoundError, PermissionError) propagate; UNKNOWN only
    ever means "stat worked but the format bits are not recognised".
    """

    classify = staticmethod(classify)

    def __init__(self, fs: FilesystemPort) -> None:
        self._fs = fs

    def resolve_from_path(self, path: str) -> ResourceKind:
        kind = self._fs.query_type(path)
        if kind is not None:
            return kind
        kind = classify(self._fs.lstat_path(path).mode)
        logger.debug("TypeResolver: %s is %s", path, kind.value)
        return kind

    def is_kind(self, path: str, kind: ResourceKind) -> bool:
        """False when nothing exists at path."""
        if not self._fs.exists(path):
            return False
        return self.resolve_from_path(path) == kind
