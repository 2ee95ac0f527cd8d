from __future__ import annotations

import logging
import os
from typing import Any

logger = logging.getLogger("cloudbox")


def debug(message: str, *args: Any) -> None:
    """Trace request lifecycle events when ``DEBUG`` mentions ``cloudbox``."""
    debug_env = os.getenv("DEBUG", "")
    if "cloudbox" in debug_env:
        print(f"cloudbox: {message}", *args)


__all__ = ["debug", "logger"]
