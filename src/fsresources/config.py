# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .domain.errors import ConfigurationError

DEFAULT_TEMP_MAX_MEMORY = 2 << 20  # 2 MiB
_POLICIES = ("explicit", "auto")


@dataclass(frozen=True)
class Settings:
    """
    Process-level defaults, read from ``FSRES_*`` environment variables.

    Constructor arguments on streams and resources always win over these.
    """

    log_level: str = "INFO"
    open_policy: str = "explicit"
    default_mode: str = "r+"
    temp_max_memory: int = DEFAULT_TEMP_MAX_MEMORY

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        policy = env.get("FSRES_OPEN_POLICY", cls.open_policy).strip().lower()
        if policy not in _POLICIES:
            raise ConfigurationError(
                f"FSRES_OPEN_POLICY must be one of {', '.join(_POLICIES)}, got {policy!r}"
            )

        raw_max = env.get("FSRES_TEMP_MAX_MEMORY")
        try:
            temp_max = int(raw_max) if raw_max else cls.temp_max_memory
        except ValueError as e:
            raise ConfigurationError(f"FSRES_TEMP_MAX_MEMORY must be an integer: {raw_max!r}") from e
        if temp_max < 0:
            raise ConfigurationError("FSRES_TEMP_MAX_MEMORY must be >= 0")

        return cls(
            log_level=env.get("FSRES_LOG_LEVEL", cls.log_level).upper(),
            open_policy=policy,
            default_mode=env.get("FSRES_DEFAULT_MODE", cls.default_mode) or cls.default_mode,
            temp_max_memory=temp_max,
        )
