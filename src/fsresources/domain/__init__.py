from .errors import (
    AlreadyExistsError,
    ConfigurationError,
    InvalidArgumentError,
    LockError,
    NotFoundError,
    OpenError,
    PermissionDeniedError,
    PreconditionViolation,
    ResourceError,
)
from .kinds import ResourceKind, classify
from .models import (
    FilterDirection,
    FilterPosition,
    LockMode,
    PathDescriptor,
    StatSnapshot,
    Whence,
)

__all__ = [
    "AlreadyExistsError",
    "ConfigurationError",
    "FilterDirection",
    "FilterPosition",
    "InvalidArgumentError",
    "LockError",
    "LockMode",
    "NotFoundError",
    "OpenError",
    "PathDescriptor",
    "PermissionDeniedError",
    "PreconditionViolation",
    "ResourceError",
    "ResourceKind",
    "StatSnapshot",
    "Whence",
    "classify",
]
