"""
Request dependencies shared by the HTTP routers.
"""

from __future__ import annotations

import re

from fastapi import Header

from livestylist.errors import InvalidDeviceIdError

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_device_id(value: str | None) -> bool:
    return bool(value) and UUID_PATTERN.match(value) is not None  # type: ignore[arg-type]


async def require_device_id(
    x_device_id: str | None = Header(default=None, alias="X-Device-ID"),
) -> str:
    """The caller's device id, from the X-Device-ID header (must be a UUID)."""
    if not is_device_id(x_device_id):
        raise InvalidDeviceIdError()
    return x_device_id  # type: ignore[return-value]
