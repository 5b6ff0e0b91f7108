from .type_resolver import TypeResolver
from .lifecycle import CloseResult, HandleLifecycle, OpenPolicy
from .filter_chain import FilterChain, FilterEntry
from .stream import Stream, Streamable
from .resources import (
    Directory,
    File,
    FileResource,
    Link,
    Pipe,
    StandardFile,
    build_resource,
)


__all__ = [
    'TypeResolver',
    'CloseResult',
    'HandleLifecycle',
    'OpenPolicy',
    'FilterChain',
    'FilterEntry',
    'Stream',
    'Streamable',
    'Directory',
    'File',
    'FileResource',
    'Link',
    'Pipe',
    'StandardFile',
    'build_resource',
]
