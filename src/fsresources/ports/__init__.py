from .filesystem import FilesystemPort, FilterRef, Handle
from .filters import FilterFactory, StreamFilter

__all__ = ["FilesystemPort", "FilterFactory", "FilterRef", "Handle", "StreamFilter"]
