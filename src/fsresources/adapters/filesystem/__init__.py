from typing import Optional

from ...config import Settings
from .local_fs import FilterAttachment, LocalFS, LocalHandle


def default_filesystem(settings: Optional[Settings] = None) -> LocalFS:
    """The provider used when a resource is built without an explicit one."""
    settings = settings or Settings.from_env()
    return LocalFS(temp_max_memory=settings.temp_max_memory)


__all__ = ["FilterAttachment", "LocalFS", "LocalHandle", "default_filesystem"]
