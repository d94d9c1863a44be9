"""Global configuration constants for the context service registry."""

from __future__ import annotations

import os
from typing import Final


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


# Read-side isinstance check on retrieved services
STRICT_TYPE_CHECKS: Final = _env_flag("CTXSERVICE_STRICT_TYPES", True)
LOG_LEVEL: Final = os.environ.get("CTXSERVICE_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT: Final = "%(asctime)s %(levelname)s %(name)s: %(message)s"
