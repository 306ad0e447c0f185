"""Service for mapping identities between universal and vendor packages."""

import logging
import secrets
import time
from collections.abc import Iterable, Mapping

from srs_converter.domain.constants import MAX_VENDOR_ID, ORIGINAL_ID_KEY
from srs_converter.domain.identifiers import extract_timestamp

logger = logging.getLogger(__name__)

_BASE91_TABLE = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "!#$%&()*+,-./:;<=>?@[]^_`{|}~"
)


class IdentityExhaustedError(ValueError):
    """Raised when no free vendor id is left above the requested one."""


def guid64() -> str:
    """Generate a random 64-bit note guid, base91 encoded like Anki does."""
    num = secrets.randbits(64)
    chars = []
    while num:
        num, rem = divmod(num, len(_BASE91_TABLE))
        chars.append(_BASE91_TABLE[rem])
    return "".join(reversed(chars)) or _BASE91_TABLE[0]


def parse_original_id(extension: Mapping[str, str] | None) -> int | None:
    """Return the stored vendor id when it parses as a positive integer."""
    if not extension:
        return None
    raw = extension.get(ORIGINAL_ID_KEY)
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparseable {ORIGINAL_ID_KEY}={raw!r}")
        return None
    if value <= 0 or value > MAX_VENDOR_ID:
        return None
    return value


def timestamp_fallback(identifier: str) -> int:
    """
    Vendor id derived from the millisecond embedded in a universal id.

    Ids that do not decode fall back to the current time.
    """
    try:
        return extract_timestamp(identifier)
    except ValueError:
        logger.warning(f"Could not extract a timestamp from id {identifier!r}; using current time")
        return int(time.time() * 1000)


class VendorIdAllocator:
    """
    Hands out unique vendor ids for one entity kind within one conversion.

    Ids stored under ``originalId`` are reserved up front so they always win;
    fallback ids then probe upward by one until a free id is found. Probing
    never wraps: passing the SQLite INTEGER maximum raises
    ``IdentityExhaustedError``.
    """

    def __init__(self, kind: str, taken: Iterable[int] = ()):
        self.kind = kind
        self._used: set[int] = set(taken)
        self._reserved: set[int] = set()

    def reserve(self, extensions: Iterable[Mapping[str, str] | None]) -> None:
        for extension in extensions:
            original = parse_original_id(extension)
            if original is not None:
                self._reserved.add(original)

    def allocate(self, extension: Mapping[str, str] | None, fallback: int) -> int:
        original = parse_original_id(extension)
        if original is not None and original not in self._used:
            self._used.add(original)
            return original
        if original is not None:
            logger.info(f"{self.kind} id {original} already used; allocating a fresh one")

        candidate = max(fallback, 1)
        while candidate in self._used or candidate in self._reserved:
            candidate += 1
        if candidate > MAX_VENDOR_ID:
            raise IdentityExhaustedError(
                f"No free {self.kind} id available at or above {fallback}"
            )
        self._used.add(candidate)
        return candidate

    def __contains__(self, vendor_id: int) -> bool:
        return vendor_id in self._used
