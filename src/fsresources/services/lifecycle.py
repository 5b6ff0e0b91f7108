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

import logging
from enum import Enum
from typing import Any, Callable, Generic, List, Mapping, Optional, TypeVar

from ..domain.errors import OpenError, PreconditionViolation

logger = logging.getLogger(__name__)

H = TypeVar("H")

Acquire = Callable[[Optional[str], Optional[Mapping[str, Any]]], H]


class OpenPolicy(str, Enum):
    """
    EXPLICIT: handle-consuming calls before ``open()`` raise PreconditionViolation.
    AUTO: the first such call opens the handle with the default mode, so OS
    errors surface from that call instead.
    """

    EXPLICIT = "explicit"
    AUTO = "auto"


class CloseResult(str, Enum):
    CLOSED = "closed"
    NOT_OPEN = "not_open"
    FAILED = "failed"


class HandleLifecycle(Generic[H]):
    """
    Closed/open state machine around one exclusively owned handle.

    - ``open`` is idempotent: while open it returns the same handle and never
      acquires a second one.
    - ``close`` runs the release hooks (filter teardown) newest first, then
      releases the handle and forgets it. Closing while closed is a no-op that
      reports ``CloseResult.NOT_OPEN``.
    - ``require_open`` guards every handle-consuming operation.

    Not thread-safe: one owner thread per instance.
    """

    def __init__(
        self,
        acquire: Acquire,
        release: Callable[[H], bool],
        *,
        describe: Callable[[], str],
        policy: OpenPolicy = OpenPolicy.EXPLICIT,
    ) -> None:
        self._acquire = acquire
        self._release = release
        self._describe = describe
        self.policy = OpenPolicy(policy)
        self._handle: Optional[H] = None
        self._release_hooks: List[Callable[[], None]] = []

    @property
    def handle(self) -> Optional[H]:
        return self._handle

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def add_release_hook(self, hook: Callable[[], None]) -> None:
        self._release_hooks.append(hook)

    def open(self, mode: Optional[str] = None, options: Optional[Mapping[str, Any]] = None) -> H:
        if self._handle is not None:
            return self._handle
        try:
            handle = self._acquire(mode, options)
        except OSError as e:
            raise OpenError(self._describe(), mode, e.strerror or str(e)) from e
        self._handle = handle
        logger.debug("Opened handle for %s", self._describe())
        return handle

    def close(self) -> CloseResult:
        handle = self._handle
        if handle is None:
            return CloseResult.NOT_OPEN
        try:
            for hook in reversed(self._release_hooks):
                hook()
        finally:
            released = self._release(handle)
            if released:
                self._handle = None
        if not released:
            logger.warning("HandleLifecycle.close: release failed for %s", self._describe())
            return CloseResult.FAILED
        logger.debug("Closed handle for %s", self._describe())
        return CloseResult.CLOSED

    def require_open(self, operation: str) -> H:
        if self._handle is not None:
            return self._handle
        if self.policy is OpenPolicy.AUTO:
            return self.open()
        raise PreconditionViolation(operation)
