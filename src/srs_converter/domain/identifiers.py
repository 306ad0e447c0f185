"""Time-ordered opaque identifiers for universal entities.

Universal ids are ULIDs rendered in UUID form, so the leading 48 bits carry
the creation time in Unix milliseconds.
"""

import os
import uuid

from ulid import ULID


def generate_srs_id(timestamp_ms: int | None = None) -> str:
    """Generate a new universal id, optionally pinned to a given millisecond."""
    if timestamp_ms is None:
        return str(ULID().to_uuid())
    return str(ULID.from_bytes(timestamp_ms.to_bytes(6, "big") + os.urandom(10)).to_uuid())


def extract_timestamp(identifier: str) -> int:
    """
    Return the millisecond timestamp embedded in a universal id.

    Ids generated within the same millisecond yield the same value.

    Raises:
        ValueError: if the identifier is not a UUID-shaped string.
    """
    return ULID.from_uuid(uuid.UUID(identifier)).milliseconds
