"""IPv4 helpers shared by the parser, the duplicate checks and the store."""
from __future__ import annotations

import re

# Leading zeros are allowed ("010.031.141.216"); normalize_ip strips them.
_IPV4_RE = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)


def is_valid_ipv4(value: str) -> bool:
    """Check a dotted-quad IPv4 address."""
    if not value:
        return False
    return bool(_IPV4_RE.match(value.strip()))


def normalize_ip(value: str) -> str:
    """
    Canonical form used for every address comparison.

    Each dot segment is re-rendered as its integer value, so
    "010.031.141.216" and "10.31.141.216" compare equal. Anything that is not
    four numeric segments is only trimmed. Applying it twice is a no-op.
    """
    trimmed = (value or "").strip()
    parts = trimmed.split(".")
    if len(parts) != 4 or not all(part.isascii() and part.isdigit() for part in parts):
        return trimmed
    return ".".join(str(int(part)) for part in parts)
