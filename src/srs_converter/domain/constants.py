"""Centralized constants for srs-converter.

All magic numbers and format markers live here so every layer imports
from a single source of truth.
"""

# ---------- Vendor container ----------
VALID_FILE_EXTENSIONS = (".apkg", ".colpkg")
META_MEMBER = "meta"
MEDIA_MEMBER = "media"
DATABASE_MEMBER = "collection.anki21"
REQUIRED_MEMBERS = (META_MEMBER, MEDIA_MEMBER, DATABASE_MEMBER)

# Legacy export generation written with "Support older Anki versions".
EXPORT_VERSION = 2
DB_VERSION = 11

ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06")
SQLITE_MAGIC = b"SQLite format 3\x00"
REQUIRED_TABLES = ("col", "notes", "cards", "revlog", "graves")

# ---------- Field blob ----------
FIELD_SEPARATOR = "\x1f"
CHECKSUM_HEX_DIGITS = 8

# ---------- Identity ----------
ORIGINAL_ID_KEY = "originalId"
MAX_VENDOR_ID = 2**63 - 1  # SQLite INTEGER upper bound
DEFAULT_DECK_ID = 1

# ---------- Extension map keys ----------
GUID_KEY = "guid"
PLUGIN_DATA_KEY = "pluginData"
ORIGINAL_DECK_KEY = "originalDeckId"
CLOZE_ORDINAL_KEY = "clozeOrdinal"
NOTE_TYPE_DATA_KEY = "ankiNoteTypeData"
TEMPLATE_DATA_KEY = "ankiTemplateData"
REVIEW_DETAIL_KEYS = ("ivl", "lastIvl", "factor", "time", "type")

# ---------- Messages ----------
PREVIEW_TRUNCATE_LEN = 50
REEXPORT_HINT = "Please re-export the deck from Anki and try again."
