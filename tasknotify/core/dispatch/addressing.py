# tasknotify/core/dispatch/addressing.py
"""
Phone-number normalization for the WhatsApp channel.

The agent and ``wa.me`` links both expect bare international digits
(``919876543210``), without ``+``, spaces or a ``whatsapp:`` prefix.
"""
from __future__ import annotations

import re

from tasknotify.core.dispatch.errors import InvalidAddress

DEFAULT_ROUTING_PREFIX = "91"
LOCAL_NUMBER_LENGTH = 10

_NON_DIGITS = re.compile(r"\D")


def normalize_address(
    raw: str | None,
    *,
    default_prefix: str = DEFAULT_ROUTING_PREFIX,
    local_length: int = LOCAL_NUMBER_LENGTH,
) -> str:
    """Turn a raw contact number into a routable digit string.

    - every non-digit character is removed
    - leading zeros (trunk ``0`` or international ``00``) are dropped
    - a bare local subscriber number gets ``default_prefix`` prepended

    ``default_prefix`` must be non-empty digits without a leading zero,
    otherwise a second pass would not return the same value.

    Raises:
        InvalidAddress: nothing routable is left.
    """
    digits = _NON_DIGITS.sub("", raw or "").lstrip("0")

    if not digits:
        raise InvalidAddress(f"no digits in address {raw!r}")

    if len(digits) == local_length:
        digits = f"{default_prefix}{digits}"

    return digits


def is_normalized(address: str) -> bool:
    """Cheap check used by channels that receive already-normalized input."""
    return bool(address) and address.isdigit() and not address.startswith("0")


def mask_address(address: str | None) -> str:
    """Mask phone number for logging: 919876543210 -> 9198***3210"""
    if not address:
        return "***"
    clean = address.replace("whatsapp:", "").strip()
    if len(clean) <= 6:
        return "***"
    return f"{clean[:4]}***{clean[-4:]}"
