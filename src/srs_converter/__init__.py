"""
srs-converter: convert flashcard packages between Anki legacy exports
(.apkg / .colpkg) and a vendor-neutral SRS package model.
"""

from .application.config import ConversionOptions, ConverterConfig, ErrorHandling, resolve_config
from .application.conversion import anki_to_srs, load_anki_export, srs_to_anki
from .application.issues import (
    ConversionIssue,
    ConversionResult,
    ConversionStatus,
    IssueCollector,
    IssueContext,
    ItemType,
    Severity,
)
from .domain.models import (
    ReviewScore,
    SrsCard,
    SrsDeck,
    SrsField,
    SrsIntegrityError,
    SrsNote,
    SrsNoteType,
    SrsPackage,
    SrsReview,
    SrsTemplate,
    create_card,
    create_complete_deck,
    create_deck,
    create_note,
    create_note_type,
    create_review,
)
from .domain.templates import BUILTIN_NOTE_TYPES
from .infrastructure.anki import AnkiPackage

__all__ = [
    "AnkiPackage",
    "BUILTIN_NOTE_TYPES",
    "ConversionIssue",
    "ConversionOptions",
    "ConversionResult",
    "ConversionStatus",
    "ConverterConfig",
    "ErrorHandling",
    "IssueCollector",
    "IssueContext",
    "ItemType",
    "ReviewScore",
    "Severity",
    "SrsCard",
    "SrsDeck",
    "SrsField",
    "SrsIntegrityError",
    "SrsNote",
    "SrsNoteType",
    "SrsPackage",
    "SrsReview",
    "SrsTemplate",
    "anki_to_srs",
    "create_card",
    "create_complete_deck",
    "create_deck",
    "create_note",
    "create_note_type",
    "create_review",
    "load_anki_export",
    "resolve_config",
    "srs_to_anki",
]
