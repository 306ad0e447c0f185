"""
The ``meta`` member: a one-field protobuf message carrying the export version.

Only field 1 (varint) is meaningful; other fields are skipped.
"""

from srs_converter.domain.constants import EXPORT_VERSION


class MetaDecodeError(ValueError):
    """Raised when the meta member is not a well-formed message."""


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise MetaDecodeError("Truncated varint in meta member")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise MetaDecodeError("Varint too long in meta member")


def _write_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_version(data: bytes) -> int | None:
    """Return the version field, or ``None`` when the message omits it."""
    pos = 0
    version = None
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        field_number, wire_type = key >> 3, key & 0x07
        if wire_type == 0:
            value, pos = _read_varint(data, pos)
            if field_number == 1:
                version = value
        elif wire_type == 2:
            length, pos = _read_varint(data, pos)
            pos += length
        elif wire_type == 1:
            pos += 8
        elif wire_type == 5:
            pos += 4
        else:
            raise MetaDecodeError(f"Unsupported wire type {wire_type} in meta member")
        if pos > len(data):
            raise MetaDecodeError("Truncated field in meta member")
    return version


def encode_version(version: int = EXPORT_VERSION) -> bytes:
    return b"\x08" + _write_varint(version)
