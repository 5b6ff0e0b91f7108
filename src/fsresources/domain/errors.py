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

from typing import Optional

# Provider failures are the built-in OSError subclasses, re-exported under
# the names callers reach for.
NotFoundError = FileNotFoundError
PermissionDeniedError = PermissionError
AlreadyExistsError = FileExistsError


class ResourceError(Exception):
    """Base exception for domain-specific errors."""


class PreconditionViolation(ResourceError, RuntimeError):
    """A handle-consuming operation was called while no handle is open."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f'Method "{operation}" requires an open handle. Run "open" first.'
        )
        self.operation = operation


class InvalidArgumentError(ResourceError, ValueError):
    """Wrong resource kind, bad mode string, unknown filter or scheme, etc."""


class OpenError(ResourceError):
    """The provider could not acquire a handle for a path."""

    def __init__(self, path: str, mode: Optional[str], reason: str = "") -> None:
        message = f'Could not open resource "{path}"'
        if mode:
            message += f" with mode {mode!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.path = path
        self.mode = mode


class LockError(ResourceError):
    """A non-blocking advisory lock request conflicted with another holder."""


class ConfigurationError(ResourceError):
    """Unusable environment configuration."""
