import pytest

from srs_converter.infrastructure.anki.meta import MetaDecodeError, decode_version, encode_version


def test_encode_legacy_version():
    assert encode_version() == b"\x08\x02"


def test_decode_legacy_version():
    assert decode_version(b"\x08\x02") == 2


def test_multi_byte_varint():
    assert decode_version(encode_version(300)) == 300
    assert encode_version(300) == b"\x08\xac\x02"


def test_empty_message_has_no_version():
    assert decode_version(b"") is None


def test_unknown_fields_are_skipped():
    # field 2 (length-delimited "ab"), then field 1 = 2
    assert decode_version(b"\x12\x02ab\x08\x02") == 2


@pytest.mark.parametrize(
    "data",
    [
        b"\x08",  # value missing
        b"\x08\x80",  # continuation bit with no next byte
        b"\x12\x05ab",  # length runs past the end
        b"\x0b",  # wire type 3 (group start)
    ],
)
def test_malformed_messages_raise(data):
    with pytest.raises(MetaDecodeError):
        decode_version(data)
