# Domain Anki Package
from .models import (
    AnkiCard,
    AnkiCollection,
    AnkiDeck,
    AnkiField,
    AnkiNote,
    AnkiNoteType,
    AnkiReview,
    AnkiTemplate,
    Ease,
    NoteTypeKind,
    VendorTable,
)
from .ports import MemberNotFoundError, PackageSource

__all__ = [
    "AnkiCard",
    "AnkiCollection",
    "AnkiDeck",
    "AnkiField",
    "AnkiNote",
    "AnkiNoteType",
    "AnkiReview",
    "AnkiTemplate",
    "Ease",
    "NoteTypeKind",
    "VendorTable",
    "MemberNotFoundError",
    "PackageSource",
]
