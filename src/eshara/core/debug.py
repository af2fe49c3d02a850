"""Debug switch shared by scheduling and logging."""
from __future__ import annotations

import os

DEBUG_ENV_VAR = "ESHARA_DEBUG"


def debug_enabled() -> bool:
    """Return True when ESHARA_DEBUG is '1' or 'true' (any case)."""
    value = os.getenv(DEBUG_ENV_VAR, "")
    return value.strip().lower() in ("1", "true")
