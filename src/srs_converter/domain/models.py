"""
Universal (vendor-neutral) SRS domain model.

Entities are immutable dataclasses created through the ``create_*``
constructors, which validate shape. The ``SrsPackage`` aggregate owns all
entities and validates cross-entity references at insertion time, so
dependencies must be added first (deck/note type, then note, card, review).
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from .identifiers import generate_srs_id


class SrsIntegrityError(ValueError):
    """Raised when an entity's shape or references are invalid."""


class ReviewScore(IntEnum):
    AGAIN = 1
    HARD = 2
    NORMAL = 3
    EASY = 4


@dataclass(frozen=True)
class SrsDeck:
    """
    A collection of notes.

    Attributes:
        id: Time-ordered opaque identifier.
        name: Display name, e.g. "Spanish::Verbs".
        description: Free text shown to the learner.
        config: Free-form configuration carried across formats.
        extension: Format-specific leftovers (string to string).
    """

    id: str
    name: str
    description: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)
    extension: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SrsField:
    id: int
    name: str
    description: str = ""


@dataclass(frozen=True)
class SrsTemplate:
    """One card-generation rule of a note type."""

    id: int
    name: str
    question_template: str
    answer_template: str
    extension: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SrsNoteType:
    """
    Schema shared by many notes: ordered fields plus card templates.

    Field and template ids are small integers scoped to the note type.
    """

    id: str
    name: str
    fields: tuple[SrsField, ...]
    templates: tuple[SrsTemplate, ...]
    extension: Mapping[str, str] = field(default_factory=dict)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def template_ids(self) -> tuple[int, ...]:
        return tuple(t.id for t in self.templates)

    @property
    def is_cloze(self) -> bool:
        return any(
            "{{cloze:" in t.question_template or "{{cloze:" in t.answer_template
            for t in self.templates
        )

    def template_position(self, template_id: int) -> int | None:
        for position, template in enumerate(self.templates):
            if template.id == template_id:
                return position
        return None


@dataclass(frozen=True)
class SrsNote:
    """
    A content unit holding ordered field values for a note type.

    Attributes:
        field_values: (field name, value) pairs in the note type's field order.
        created_at: Unix milliseconds, if known.
        modified_at: Unix milliseconds, if known.
    """

    id: str
    note_type_id: str
    deck_id: str
    field_values: tuple[tuple[str, str], ...]
    tags: frozenset[str] = frozenset()
    created_at: int | None = None
    modified_at: int | None = None
    extension: Mapping[str, str] = field(default_factory=dict)

    @property
    def values(self) -> list[str]:
        return [value for _, value in self.field_values]


@dataclass(frozen=True)
class SrsCard:
    """One reviewable Note x Template instance. Scheduling is opaque here."""

    id: str
    note_id: str
    template_id: int
    scheduling: Mapping[str, int] = field(default_factory=dict)
    extension: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SrsReview:
    """One historical grading event. ``timestamp`` is Unix milliseconds."""

    id: str
    card_id: str
    timestamp: int
    score: ReviewScore
    extension: Mapping[str, str] = field(default_factory=dict)


# ---------- Constructors ----------


def _string_map(values: Mapping[str, Any] | None, owner: str) -> dict[str, str]:
    result = dict(values or {})
    for key, value in result.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise SrsIntegrityError(
                f"{owner} extension entries must map strings to strings, got {key!r}: {value!r}"
            )
    return result


def create_deck(
    name: str,
    description: str = "",
    config: Mapping[str, Any] | None = None,
    extension: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsDeck:
    if not name:
        raise SrsIntegrityError("Deck name must not be empty")
    return SrsDeck(
        id=id or generate_srs_id(),
        name=name,
        description=description,
        config=dict(config or {}),
        extension=_string_map(extension, "Deck"),
    )


def create_note_type(
    name: str,
    fields: Iterable[SrsField],
    templates: Iterable[SrsTemplate],
    extension: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsNoteType:
    """Create a note type after checking field/template id and name uniqueness."""
    field_tuple = tuple(fields)
    template_tuple = tuple(templates)

    if not field_tuple:
        raise SrsIntegrityError(f"Note type '{name}' must define at least one field")
    if not template_tuple:
        raise SrsIntegrityError(f"Note type '{name}' must define at least one template")

    field_ids = [f.id for f in field_tuple]
    if len(set(field_ids)) != len(field_ids):
        raise SrsIntegrityError(f"Note type '{name}' has duplicate field ids: {field_ids}")
    field_names = [f.name for f in field_tuple]
    if len(set(field_names)) != len(field_names):
        raise SrsIntegrityError(f"Note type '{name}' has duplicate field names: {field_names}")
    template_ids = [t.id for t in template_tuple]
    if len(set(template_ids)) != len(template_ids):
        raise SrsIntegrityError(
            f"Note type '{name}' has duplicate template ids: {template_ids}"
        )

    return SrsNoteType(
        id=id or generate_srs_id(),
        name=name,
        fields=field_tuple,
        templates=template_tuple,
        extension=_string_map(extension, "Note type"),
    )


def create_note(
    note_type: SrsNoteType,
    deck_id: str,
    field_values: Iterable[tuple[str, str]],
    tags: Iterable[str] = (),
    created_at: int | None = None,
    modified_at: int | None = None,
    extension: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsNote:
    """
    Create a note for ``note_type``.

    The field names must be exactly the note type's field names, in the
    note type's declared order.
    """
    pairs = tuple((str(name), str(value)) for name, value in field_values)
    names = tuple(name for name, _ in pairs)

    if len(set(names)) != len(names):
        raise SrsIntegrityError(f"Duplicate field names in note: {list(names)}")
    if names != note_type.field_names:
        raise SrsIntegrityError(
            f"Field names {list(names)} do not match note type '{note_type.name}' "
            f"fields {list(note_type.field_names)} exactly"
        )

    return SrsNote(
        id=id or generate_srs_id(),
        note_type_id=note_type.id,
        deck_id=deck_id,
        field_values=pairs,
        tags=frozenset(tags),
        created_at=created_at,
        modified_at=modified_at,
        extension=_string_map(extension, "Note"),
    )


def create_card(
    note_id: str,
    template_id: int,
    scheduling: Mapping[str, int] | None = None,
    extension: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsCard:
    if template_id < 0:
        raise SrsIntegrityError(f"Invalid template id {template_id}")
    return SrsCard(
        id=id or generate_srs_id(),
        note_id=note_id,
        template_id=template_id,
        scheduling=dict(scheduling or {}),
        extension=_string_map(extension, "Card"),
    )


def create_review(
    card_id: str,
    timestamp: int,
    score: ReviewScore | int,
    extension: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsReview:
    try:
        review_score = ReviewScore(score)
    except ValueError as e:
        raise SrsIntegrityError(
            f"Invalid review score {score!r}. "
            "Valid scores are 1 (Again), 2 (Hard), 3 (Normal), 4 (Easy)."
        ) from e
    return SrsReview(
        id=id or generate_srs_id(),
        card_id=card_id,
        timestamp=timestamp,
        score=review_score,
        extension=_string_map(extension, "Review"),
    )


# ---------- Aggregate ----------


class SrsPackage:
    """
    A complete universal package.

    Owns every entity exclusively. ``add_*`` fails fast on duplicate ids and
    dangling references.
    """

    def __init__(self) -> None:
        self._decks: dict[str, SrsDeck] = {}
        self._note_types: dict[str, SrsNoteType] = {}
        self._notes: dict[str, SrsNote] = {}
        self._cards: dict[str, SrsCard] = {}
        self._reviews: dict[str, SrsReview] = {}

    def __repr__(self) -> str:
        return (
            f"SrsPackage(decks={len(self._decks)}, note_types={len(self._note_types)}, "
            f"notes={len(self._notes)}, cards={len(self._cards)}, reviews={len(self._reviews)})"
        )

    # Accessors

    def get_decks(self) -> tuple[SrsDeck, ...]:
        return tuple(self._decks.values())

    def get_note_types(self) -> tuple[SrsNoteType, ...]:
        return tuple(self._note_types.values())

    def get_notes(self) -> tuple[SrsNote, ...]:
        return tuple(self._notes.values())

    def get_cards(self) -> tuple[SrsCard, ...]:
        return tuple(self._cards.values())

    def get_reviews(self) -> tuple[SrsReview, ...]:
        return tuple(self._reviews.values())

    def get_deck(self, deck_id: str) -> SrsDeck | None:
        return self._decks.get(deck_id)

    def get_note_type(self, note_type_id: str) -> SrsNoteType | None:
        return self._note_types.get(note_type_id)

    def get_note(self, note_id: str) -> SrsNote | None:
        return self._notes.get(note_id)

    def get_card(self, card_id: str) -> SrsCard | None:
        return self._cards.get(card_id)

    # Mutators

    def add_deck(self, deck: SrsDeck) -> None:
        if deck.id in self._decks:
            raise SrsIntegrityError(f"Deck {deck.id} already exists.")
        self._decks[deck.id] = deck

    def add_note_type(self, note_type: SrsNoteType) -> None:
        if note_type.id in self._note_types:
            raise SrsIntegrityError(f"Note type {note_type.id} already exists.")
        self._note_types[note_type.id] = note_type

    def add_note(self, note: SrsNote) -> None:
        if note.id in self._notes:
            raise SrsIntegrityError(f"Note {note.id} already exists.")
        note_type = self._note_types.get(note.note_type_id)
        if note_type is None:
            raise SrsIntegrityError(f"Note type {note.note_type_id} does not exist.")
        if note.deck_id not in self._decks:
            raise SrsIntegrityError(f"Deck {note.deck_id} does not exist.")
        if tuple(name for name, _ in note.field_values) != note_type.field_names:
            raise SrsIntegrityError(
                f"Note {note.id} fields do not match note type '{note_type.name}'."
            )
        self._notes[note.id] = note

    def add_card(self, card: SrsCard) -> None:
        if card.id in self._cards:
            raise SrsIntegrityError(f"Card {card.id} already exists.")
        note = self._notes.get(card.note_id)
        if note is None:
            raise SrsIntegrityError(f"Note {card.note_id} does not exist.")
        note_type = self._note_types[note.note_type_id]
        if card.template_id not in note_type.template_ids:
            raise SrsIntegrityError(
                f"Invalid template ID {card.template_id} for note type '{note_type.name}'."
            )
        self._cards[card.id] = card

    def add_review(self, review: SrsReview) -> None:
        if review.id in self._reviews:
            raise SrsIntegrityError(f"Review {review.id} already exists.")
        if review.card_id not in self._cards:
            raise SrsIntegrityError(f"Card {review.card_id} does not exist.")
        self._reviews[review.id] = review

    def remove_unused(self) -> None:
        """Drop decks and note types that no note references."""
        used_decks = {note.deck_id for note in self._notes.values()}
        used_note_types = {note.note_type_id for note in self._notes.values()}
        self._decks = {k: v for k, v in self._decks.items() if k in used_decks}
        self._note_types = {k: v for k, v in self._note_types.items() if k in used_note_types}

    def check_integrity(self) -> list[str]:
        """Return every referential-integrity violation (empty when consistent)."""
        problems: list[str] = []
        for note in self._notes.values():
            note_type = self._note_types.get(note.note_type_id)
            if note_type is None:
                problems.append(f"Note {note.id} references missing note type {note.note_type_id}")
            elif tuple(name for name, _ in note.field_values) != note_type.field_names:
                problems.append(f"Note {note.id} fields do not match note type {note_type.id}")
            if note.deck_id not in self._decks:
                problems.append(f"Note {note.id} references missing deck {note.deck_id}")
        for card in self._cards.values():
            note = self._notes.get(card.note_id)
            if note is None:
                problems.append(f"Card {card.id} references missing note {card.note_id}")
                continue
            note_type = self._note_types.get(note.note_type_id)
            if note_type is not None and card.template_id not in note_type.template_ids:
                problems.append(f"Card {card.id} references invalid template {card.template_id}")
        for review in self._reviews.values():
            if review.card_id not in self._cards:
                problems.append(f"Review {review.id} references missing card {review.card_id}")
        return problems


# ---------- Builders ----------


def create_complete_deck(
    deck: Mapping[str, Any],
    note_types: Iterable[Mapping[str, Any]],
) -> SrsPackage:
    """
    Build a whole package from one nested description.

    ``deck`` holds ``create_deck`` keyword arguments. Each note type mapping
    holds either ``note_type`` (an ``SrsNoteType``) or ``create_note_type``
    keyword arguments, plus ``notes``: mappings of ``create_note`` keyword
    arguments with optional ``cards``, each with optional ``reviews``.
    """
    package = SrsPackage()
    srs_deck = create_deck(**deck)
    package.add_deck(srs_deck)

    for entry in note_types:
        note_type = entry.get("note_type")
        if note_type is None:
            note_type = create_note_type(
                **{k: v for k, v in entry.items() if k not in ("notes", "note_type")}
            )
        if package.get_note_type(note_type.id) is None:
            package.add_note_type(note_type)

        for note_entry in entry.get("notes", []):
            note_args = {k: v for k, v in note_entry.items() if k != "cards"}
            note = create_note(note_type, srs_deck.id, **note_args)
            package.add_note(note)

            for card_entry in note_entry.get("cards", []):
                card_args = {k: v for k, v in card_entry.items() if k != "reviews"}
                card = create_card(note.id, **card_args)
                package.add_card(card)

                for review_entry in card_entry.get("reviews", []):
                    package.add_review(create_review(card.id, **review_entry))

    return package
