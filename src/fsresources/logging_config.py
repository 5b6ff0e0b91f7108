# Licensed under the Apache License, Version 2.0
import logging
import os
from typing import Optional

def setup_logging(level_name: Optional[str] = None) -> None:
    level_name = (level_name or os.getenv("FSRES_LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt)
