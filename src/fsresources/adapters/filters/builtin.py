# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import base64
import logging
import zlib
from typing import Any, Dict, List, Optional

from ...domain.errors import InvalidArgumentError
from ...ports.filters import FilterFactory, StreamFilter

logger = logging.getLogger(__name__)

_ROT13 = bytes.maketrans(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz",
    b"NOPQRSTUVWXYZABCDEFGHIJKLMnopqrstuvwxyzabcdefghijklm",
)


class Rot13Filter:
    def __init__(self, params: Any = None) -> None:
        pass

    def filter(self, data: bytes) -> bytes:
        return data.translate(_ROT13)

    def flush(self) -> bytes:
        return b""


class UpperCaseFilter:
    def __init__(self, params: Any = None) -> None:
        pass

    def filter(self, data: bytes) -> bytes:
        return data.upper()

    def flush(self) -> bytes:
        return b""


class LowerCaseFilter:
    def __init__(self, params: Any = None) -> None:
        pass

    def filter(self, data: bytes) -> bytes:
        return data.lower()

    def flush(self) -> bytes:
        return b""


class Base64EncodeFilter:
    """Encodes in 3-byte groups; the trailing partial group is emitted on flush."""

    def __init__(self, params: Any = None) -> None:
        self._pending = b""

    def filter(self, data: bytes) -> bytes:
        data = self._pending + data
        cut = len(data) - len(data) % 3
        self._pending = data[cut:]
        return base64.b64encode(data[:cut])

    def flush(self) -> bytes:
        tail, self._pending = self._pending, b""
        return base64.b64encode(tail)


class Base64DecodeFilter:
    def __init__(self, params: Any = None) -> None:
        self._pending = b""

    def filter(self, data: bytes) -> bytes:
        data = self._pending + b"".join(data.split())
        cut = len(data) - len(data) % 4
        self._pending = data[cut:]
        return base64.b64decode(data[:cut])

    def flush(self) -> bytes:
        tail, self._pending = self._pending, b""
        if not tail:
            return b""
        # Tolerate missing padding on the final group.
        return base64.b64decode(tail + b"=" * (-len(tail) % 4))


def _level(params: Any) -> int:
    if params is None:
        return -1
    if isinstance(params, dict):
        params = params.get("level", -1)
    try:
        level = int(params)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Invalid zlib level: {params!r}") from e
    if not -1 <= level <= 9:
        raise InvalidArgumentError(f"Invalid zlib level: {level}")
    return level


class DeflateFilter:
    """Raw DEFLATE (no zlib header), matching zlib.deflate stream filters."""

    def __init__(self, params: Any = None) -> None:
        self._obj = zlib.compressobj(_level(params), zlib.DEFLATED, -zlib.MAX_WBITS)

    def filter(self, data: bytes) -> bytes:
        return self._obj.compress(data)

    def flush(self) -> bytes:
        return self._obj.flush()


class InflateFilter:
    def __init__(self, params: Any = None) -> None:
        self._obj = zlib.decompressobj(-zlib.MAX_WBITS)

    def filter(self, data: bytes) -> bytes:
        return self._obj.decompress(data)

    def flush(self) -> bytes:
        return self._obj.flush()


class FilterRegistry:
    """Registry of stream filter factories keyed by filter name."""

    def __init__(self) -> None:
        self._factories: Dict[str, FilterFactory] = {}
        self._register_default_filters()

    def _register_default_filters(self) -> None:
        self.register("string.rot13", Rot13Filter)
        self.register("string.toupper", UpperCaseFilter)
        self.register("string.tolower", LowerCaseFilter)
        self.register("convert.base64-encode", Base64EncodeFilter)
        self.register("convert.base64-decode", Base64DecodeFilter)
        self.register("zlib.deflate", DeflateFilter)
        self.register("zlib.inflate", InflateFilter)

    def register(self, name: str, factory: FilterFactory) -> bool:
        """Register a filter factory. Returns False if the name is taken."""
        if not name or name in self._factories:
            return False
        self._factories[name] = factory
        logger.debug("Registered stream filter %s", name)
        return True

    def unregister(self, name: str) -> bool:
        return self._factories.pop(name, None) is not None

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(self, name: str, params: Any = None) -> StreamFilter:
        factory: Optional[FilterFactory] = self._factories.get(name)
        if factory is None:
            raise InvalidArgumentError(f'Unable to locate filter "{name}"')
        return factory(params)


default_registry = FilterRegistry()


def register_filter(name: str, factory: FilterFactory) -> bool:
    """Register a filter in the process-wide registry used by LocalFS."""
    return default_registry.register(name, factory)
