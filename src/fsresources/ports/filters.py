# Licensed under the Apache License, Version 2.0
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol


class StreamFilter(Protocol):
    """
    A transform applied to bytes in flight.

    One instance serves one direction of one handle, so implementations may
    keep state between calls.
    """

    def filter(self, data: bytes) -> bytes:
        """Transform a chunk; may hold bytes back until more input arrives."""
        ...

    def flush(self) -> bytes:
        """Emit whatever is held back. Called once, when the filter is detached."""
        return b""


FilterFactory = Callable[[Optional[Any]], StreamFilter]
