import hashlib
import html
import re
from collections.abc import Iterable

from srs_converter.domain.constants import CHECKSUM_HEX_DIGITS, FIELD_SEPARATOR

# ---------- Field blob ----------


def split_fields(blob: str) -> list[str]:
    return blob.split(FIELD_SEPARATOR)


def join_fields(values: Iterable[str]) -> str:
    return FIELD_SEPARATOR.join(values)


# ---------- Sort field & checksum ----------

_IMG_TAG = re.compile(r"<img[^>]*?src=[\"']?([^\"'>\s]+)[\"']?[^>]*>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)


def strip_html_preserving_media_filenames(text: str) -> str:
    """Strip markup, replacing <img> tags by their file name so images still sort."""
    out = _HTML_COMMENT.sub("", text)
    out = _IMG_TAG.sub(lambda m: f" {m.group(1)} ", out)
    out = _HTML_TAG.sub("", out)
    return html.unescape(out).strip()


def sort_field(first_value: str) -> str:
    return strip_html_preserving_media_filenames(first_value)


def field_checksum(first_value: str) -> int:
    """
    Duplicate-detection checksum of a note.

    First 8 hex digits of the SHA-1 of the stripped sort field, as an integer.
    """
    digest = hashlib.sha1(sort_field(first_value).encode("utf-8")).hexdigest()
    return int(digest[:CHECKSUM_HEX_DIGITS], 16)


# ---------- Cloze ----------

# {{c0::...}} is not a cloze deletion; numbering starts at 1.
_CLOZE_MARKER = re.compile(r"\{\{c(\d+)::")


def analyze_cloze_ordinals(text: str) -> list[int]:
    """Sorted, unique 0-based card ordinals produced by the cloze markers in ``text``."""
    numbers = {int(m.group(1)) for m in _CLOZE_MARKER.finditer(text)}
    return sorted(n - 1 for n in numbers if n >= 1)


# ---------- Media references ----------

_SOUND_REF = re.compile(r"\[sound:([^\]]+)\]")


def find_media_references(text: str) -> list[str]:
    """File names referenced by <img src=...> tags and [sound:...] tags, in order of appearance."""
    found: list[str] = []
    for match in _IMG_TAG.finditer(text):
        found.append(html.unescape(match.group(1)))
    for match in _SOUND_REF.finditer(text):
        found.append(match.group(1))
    return list(dict.fromkeys(found))


# ---------- Tags ----------


def parse_tags(raw: str) -> list[str]:
    return [tag for tag in raw.split() if tag]


def format_tags(tags: Iterable[str]) -> str:
    """Anki stores tags space separated with a leading and trailing space."""
    ordered = sorted(set(tags))
    if not ordered:
        return ""
    return f" {' '.join(ordered)} "
