"""Access to the INVENTORY_IMPORT settings block with defaults."""
from __future__ import annotations

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "DEFAULT_SUBNET": "255.255.255.0",
    "MAX_UPLOAD_BYTES": 10 * 1024 * 1024,
    "NORMALIZE_MACHINE_IDS": False,
    "HISTORY_LIMIT": 5,
    "REMOTE_TIMEOUT": 30.0,
}


def import_setting(name: str) -> Any:
    """Return one INVENTORY_IMPORT value, falling back to DEFAULTS."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown inventory setting: {name}")
    configured = getattr(settings, "INVENTORY_IMPORT", None) or {}
    return configured.get(name, DEFAULTS[name])
