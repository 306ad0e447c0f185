"""
Built-in universal note types.

A process-wide read-only table: entries are frozen dataclasses and the
registry is a ``MappingProxyType``, so it is safe to share across
conversions.
"""

from types import MappingProxyType

from .models import SrsField, SrsNoteType, SrsTemplate

BASIC = SrsNoteType(
    id="019343de-833d-736d-bcda-a75874b2e5a8",
    name="Basic (srs-converter)",
    fields=(SrsField(0, "Question"), SrsField(1, "Answer")),
    templates=(
        SrsTemplate(0, "Question > Answer", "{{Question}}", "{{Answer}}"),
    ),
)

BASIC_AND_REVERSE = SrsNoteType(
    id="019343de-833d-736d-bcda-a97a136df584",
    name="Basic and reverse (srs-converter)",
    fields=(SrsField(0, "Front"), SrsField(1, "Back")),
    templates=(
        SrsTemplate(0, "Front > Back", "{{Front}}", "{{Back}}"),
        SrsTemplate(1, "Back > Front", "{{Back}}", "{{Front}}"),
    ),
)

CLOZE = SrsNoteType(
    id="019343de-833d-736d-bcda-af3d2c567ea3",
    name="Cloze (srs-converter)",
    fields=(SrsField(0, "Text"), SrsField(1, "Back Extra")),
    templates=(
        SrsTemplate(0, "Cloze", "{{cloze:Text}}", "{{cloze:Text}}<br>\n{{Back Extra}}"),
    ),
)

BUILTIN_NOTE_TYPES = MappingProxyType(
    {
        "basic": BASIC,
        "basic_and_reverse": BASIC_AND_REVERSE,
        "cloze": CLOZE,
    }
)
