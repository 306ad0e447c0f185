"""
Universal → Vendor conversion.

Builds a fresh vendor package from the defaults and fills it from an
``SrsPackage``. Vendor ids come from ``VendorIdAllocator``: stored
``originalId`` values first, then the timestamp embedded in the universal id.
"""

import json
import logging
import time
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from srs_converter.application.config import ConversionOptions, ConverterConfig
from srs_converter.application.id_service import (
    IdentityExhaustedError,
    VendorIdAllocator,
    guid64,
    timestamp_fallback,
)
from srs_converter.application.issues import ConversionResult, IssueCollector, ItemType
from srs_converter.application.utils.text import (
    analyze_cloze_ordinals,
    field_checksum,
    format_tags,
    join_fields,
    sort_field,
)
from srs_converter.domain.anki.defaults import (
    CLOZE_CSS,
    default_deck,
    default_deck_extra,
    default_field_extra,
    default_note_type_extra,
    default_template_extra,
)
from srs_converter.domain.anki.models import (
    AnkiCard,
    AnkiDeck,
    AnkiField,
    AnkiNote,
    AnkiNoteType,
    AnkiReview,
    AnkiTemplate,
    Ease,
    NoteTypeKind,
)
from srs_converter.domain.constants import (
    CLOZE_ORDINAL_KEY,
    DEFAULT_DECK_ID,
    FIELD_SEPARATOR,
    GUID_KEY,
    NOTE_TYPE_DATA_KEY,
    ORIGINAL_DECK_KEY,
    PLUGIN_DATA_KEY,
    PREVIEW_TRUNCATE_LEN,
    TEMPLATE_DATA_KEY,
)
from srs_converter.domain.models import (
    ReviewScore,
    SrsCard,
    SrsNote,
    SrsNoteType,
    SrsPackage,
)
from srs_converter.infrastructure.anki.package import AnkiPackage

logger = logging.getLogger(__name__)

SCORE_TO_EASE = {
    ReviewScore.AGAIN: Ease.AGAIN,
    ReviewScore.HARD: Ease.HARD,
    ReviewScore.NORMAL: Ease.GOOD,
    ReviewScore.EASY: Ease.EASY,
}

# Scheduling keys restored onto vendor cards. Filtered-deck state is not
# carried back: cards always land in their home deck.
RESTORED_SCHEDULING_KEYS = tuple(
    key for key in AnkiCard.SCHEDULING_KEYS if key not in ("odid", "odue")
)


@dataclass
class _NoteSlot:
    vendor_id: int
    deck_id: int
    note: SrsNote
    note_type: SrsNoteType
    mod: int


def _load_json_object(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed stored vendor data: {raw[:PREVIEW_TRUNCATE_LEN]!r}")
        return {}
    return value if isinstance(value, dict) else {}


def _int_value(extension: Mapping[str, str], key: str, default: int = 0) -> int:
    try:
        return int(extension.get(key, default))
    except (TypeError, ValueError):
        return default


class SrsToAnkiConverter:
    """Converts an ``SrsPackage`` into a new ``AnkiPackage``. The input is not modified."""

    def __init__(
        self,
        options: ConversionOptions | None = None,
        config: ConverterConfig | None = None,
    ):
        self.options = options or ConversionOptions()
        self.config = config

    def convert(self, package: SrsPackage) -> ConversionResult[AnkiPackage]:
        collector = IssueCollector(self.options)

        base = AnkiPackage.from_default(self.options, self.config)
        if not base.ok or base.data is None:
            collector.add_issues(base.issues)
            return collector.create_failure_result()

        anki_package = base.data
        collector.add_issues(base.issues)
        anki_package.remove_deck(DEFAULT_DECK_ID)

        deck_ids = self._convert_decks(package, anki_package, collector)
        note_type_ids = self._convert_note_types(package, anki_package, deck_ids, collector)
        note_slots = self._convert_notes(package, anki_package, deck_ids, note_type_ids, collector)
        card_ids = self._convert_cards(package, anki_package, deck_ids, note_slots, collector)
        self._convert_reviews(package, anki_package, card_ids, collector)
        self._finish_collection(anki_package, deck_ids, note_type_ids)

        result = collector.create_result(anki_package)
        if not result.ok:
            result.issues.extend(anki_package.cleanup())
        else:
            logger.info(f"Converted {package!r} to {anki_package!r}")
        return result

    # ---------- Decks & note types ----------

    def _convert_decks(
        self, package: SrsPackage, anki_package: AnkiPackage, collector: IssueCollector
    ) -> dict[str, int]:
        decks = package.get_decks()
        allocator = VendorIdAllocator("deck")
        allocator.reserve(d.extension for d in decks)

        deck_ids: dict[str, int] = {}
        for deck in decks:
            try:
                vendor_id = allocator.allocate(deck.extension, timestamp_fallback(deck.id))
            except IdentityExhaustedError as e:
                collector.add_error(f"Cannot convert deck '{deck.name}': {e}", ItemType.DECK, deck)
                continue

            extra = default_deck_extra()
            extra.update(deck.config)
            anki_package.add_deck(
                AnkiDeck(id=vendor_id, name=deck.name, desc=deck.description, extra=extra)
            )
            deck_ids[deck.id] = vendor_id

        if not deck_ids:
            # A collection always needs at least one deck.
            anki_package.add_deck(default_deck())
        return deck_ids

    def _convert_note_types(
        self,
        package: SrsPackage,
        anki_package: AnkiPackage,
        deck_ids: dict[str, int],
        collector: IssueCollector,
    ) -> dict[str, int]:
        note_types = package.get_note_types()
        allocator = VendorIdAllocator("note type")
        allocator.reserve(nt.extension for nt in note_types)
        first_deck = next(iter(deck_ids.values()), DEFAULT_DECK_ID)

        note_type_ids: dict[str, int] = {}
        for note_type in note_types:
            try:
                vendor_id = allocator.allocate(note_type.extension, timestamp_fallback(note_type.id))
            except IdentityExhaustedError as e:
                collector.add_error(
                    f"Cannot convert note type '{note_type.name}': {e}",
                    ItemType.NOTE_TYPE,
                    note_type,
                )
                continue

            stored = _load_json_object(note_type.extension.get(NOTE_TYPE_DATA_KEY))
            extra = default_note_type_extra()
            if note_type.is_cloze:
                extra["css"] = CLOZE_CSS
            extra.update(stored)
            if extra.get("did") not in deck_ids.values():
                extra["did"] = first_deck

            fields = [
                AnkiField(
                    name=field.name,
                    ord=position,
                    extra={**default_field_extra(), "description": field.description},
                )
                for position, field in enumerate(note_type.fields)
            ]
            templates = [
                AnkiTemplate(
                    name=template.name,
                    ord=position,
                    qfmt=template.question_template,
                    afmt=template.answer_template,
                    extra={
                        **default_template_extra(),
                        **_load_json_object(template.extension.get(TEMPLATE_DATA_KEY)),
                    },
                )
                for position, template in enumerate(note_type.templates)
            ]
            anki_package.add_note_type(
                AnkiNoteType(
                    id=vendor_id,
                    name=note_type.name,
                    kind=NoteTypeKind.CLOZE if note_type.is_cloze else NoteTypeKind.STANDARD,
                    flds=fields,
                    tmpls=templates,
                    extra=extra,
                )
            )
            note_type_ids[note_type.id] = vendor_id
        return note_type_ids

    # ---------- Notes ----------

    def _convert_notes(
        self,
        package: SrsPackage,
        anki_package: AnkiPackage,
        deck_ids: dict[str, int],
        note_type_ids: dict[str, int],
        collector: IssueCollector,
    ) -> dict[str, _NoteSlot]:
        notes = package.get_notes()
        allocator = VendorIdAllocator("note")
        allocator.reserve(n.extension for n in notes)

        slots: dict[str, _NoteSlot] = {}
        for note in notes:
            note_type_id = note_type_ids.get(note.note_type_id)
            if note_type_id is None:
                collector.add_note_error(
                    f"Cannot convert note {note.id} because its note type {note.note_type_id} "
                    "was not converted. This note will be skipped.",
                    note,
                )
                continue
            deck_id = deck_ids.get(note.deck_id)
            if deck_id is None:
                collector.add_note_error(
                    f"Cannot convert note {note.id} because its deck {note.deck_id} was not "
                    "converted. This note will be skipped.",
                    note,
                )
                continue

            separated = [name for name, value in note.field_values if FIELD_SEPARATOR in value]
            if separated:
                collector.add_note_error(
                    f"Cannot convert note {note.id} because field(s) {', '.join(separated)} "
                    "contain the Anki field separator (U+001F). This note will be skipped.",
                    note,
                )
                continue

            try:
                vendor_id = allocator.allocate(note.extension, timestamp_fallback(note.id))
            except IdentityExhaustedError as e:
                collector.add_note_error(f"Cannot convert note {note.id}: {e}", note)
                continue

            values = note.values
            first_value = values[0] if values else ""
            mod = note.modified_at // 1000 if note.modified_at is not None else int(time.time())
            anki_package.add_note(
                AnkiNote(
                    id=vendor_id,
                    guid=note.extension.get(GUID_KEY) or guid64(),
                    mid=note_type_id,
                    mod=mod,
                    usn=0,
                    tags=format_tags(note.tags),
                    flds=join_fields(values),
                    sfld=sort_field(first_value),
                    csum=field_checksum(first_value),
                    data=note.extension.get(PLUGIN_DATA_KEY, ""),
                )
            )
            for tag in note.tags:
                anki_package.collection.tags.setdefault(tag, 0)
            slots[note.id] = _NoteSlot(
                vendor_id, deck_id, note, package.get_note_type(note.note_type_id), mod
            )
        return slots

    # ---------- Cards ----------

    @staticmethod
    def _match_cloze_cards(
        ordinals: list[int], cards: list[SrsCard]
    ) -> tuple[list[tuple[int, SrsCard | None]], list[SrsCard]]:
        remaining = list(cards)
        matched: dict[int, SrsCard] = {}
        for ordinal in ordinals:
            for card in remaining:
                if card.extension.get(CLOZE_ORDINAL_KEY) == str(ordinal):
                    matched[ordinal] = card
                    remaining.remove(card)
                    break
        # Cards without a recorded ordinal fill the free slots in order.
        for ordinal in ordinals:
            if ordinal in matched:
                continue
            for card in remaining:
                if CLOZE_ORDINAL_KEY not in card.extension:
                    matched[ordinal] = card
                    remaining.remove(card)
                    break
        return [(ordinal, matched.get(ordinal)) for ordinal in ordinals], remaining

    @staticmethod
    def _match_template_cards(
        note_type: SrsNoteType, cards: list[SrsCard]
    ) -> tuple[list[tuple[int, SrsCard | None]], list[SrsCard]]:
        remaining = list(cards)
        slots: list[tuple[int, SrsCard | None]] = []
        for position, template in enumerate(note_type.templates):
            match = next((c for c in remaining if c.template_id == template.id), None)
            if match is not None:
                remaining.remove(match)
            slots.append((position, match))
        return slots, remaining

    def _convert_cards(
        self,
        package: SrsPackage,
        anki_package: AnkiPackage,
        deck_ids: dict[str, int],
        note_slots: dict[str, _NoteSlot],
        collector: IssueCollector,
    ) -> dict[str, int]:
        cards = package.get_cards()
        allocator = VendorIdAllocator("card")
        allocator.reserve(c.extension for c in cards)
        vendor_deck_ids = set(deck_ids.values())

        cards_by_note: dict[str, list[SrsCard]] = defaultdict(list)
        for card in cards:
            cards_by_note[card.note_id].append(card)

        card_ids: dict[str, int] = {}
        for note_id, slot in note_slots.items():
            note_cards = cards_by_note.pop(note_id, [])
            if slot.note_type.is_cloze:
                # Ordinals already recorded on cards keep their slot even without a marker.
                ordinals = set(analyze_cloze_ordinals(join_fields(slot.note.values)))
                ordinals.update(
                    int(c.extension[CLOZE_ORDINAL_KEY])
                    for c in note_cards
                    if c.extension.get(CLOZE_ORDINAL_KEY, "").isdigit()
                )
                matches, leftovers = self._match_cloze_cards(sorted(ordinals) or [0], note_cards)
            else:
                matches, leftovers = self._match_template_cards(slot.note_type, note_cards)

            for card in leftovers:
                collector.add_card_error(
                    f"Card {card.id} of note {note_id} does not correspond to any card the note "
                    "generates in Anki. This card will be skipped.",
                    card,
                )

            for ordinal, card in matches:
                scheduling: dict[str, int] = {}
                if card is not None:
                    try:
                        scheduling = {
                            key: int(card.scheduling[key])
                            for key in RESTORED_SCHEDULING_KEYS
                            if key in card.scheduling
                        }
                    except (TypeError, ValueError) as e:
                        # The slot still gets a fresh card; the universal card is dropped.
                        collector.add_card_error(
                            f"Card {card.id} of note {note_id} has a non-integer scheduling "
                            f"value ({e}). This card will be skipped.",
                            card,
                        )
                        card = None

                extension = card.extension if card is not None else None
                fallback = timestamp_fallback(card.id if card is not None else slot.note.id)
                try:
                    vendor_id = allocator.allocate(extension, fallback)
                except IdentityExhaustedError as e:
                    collector.add_card_error(
                        f"Cannot create card {ordinal} of note {note_id}: {e}",
                        card,
                    )
                    continue

                deck_id = slot.deck_id
                data = ""
                if card is not None:
                    original_deck = _int_value(card.extension, ORIGINAL_DECK_KEY)
                    if original_deck in vendor_deck_ids:
                        deck_id = original_deck
                    data = card.extension.get(PLUGIN_DATA_KEY, "")
                    card_ids[card.id] = vendor_id

                anki_package.add_card(
                    AnkiCard(
                        id=vendor_id,
                        nid=slot.vendor_id,
                        did=deck_id,
                        ord=ordinal,
                        mod=slot.mod,
                        usn=0,
                        data=data,
                        **scheduling,
                    )
                )

        for note_id, orphans in cards_by_note.items():
            for card in orphans:
                collector.add_card_error(
                    f"Cannot convert card {card.id} because its note {note_id} was not "
                    "converted. This card will be skipped.",
                    card,
                )
        return card_ids

    # ---------- Reviews ----------

    def _convert_reviews(
        self,
        package: SrsPackage,
        anki_package: AnkiPackage,
        card_ids: dict[str, int],
        collector: IssueCollector,
    ) -> None:
        reviews = package.get_reviews()
        allocator = VendorIdAllocator("review")
        allocator.reserve(r.extension for r in reviews)

        for review in reviews:
            card_id = card_ids.get(review.card_id)
            if card_id is None:
                collector.add_review_error(
                    f"Cannot convert review {review.id} because card {review.card_id} was not "
                    "converted. This review will be skipped.",
                    review,
                )
                continue
            try:
                vendor_id = allocator.allocate(review.extension, review.timestamp)
            except IdentityExhaustedError as e:
                collector.add_review_error(f"Cannot convert review {review.id}: {e}", review)
                continue

            anki_package.add_review(
                AnkiReview(
                    id=vendor_id,
                    cid=card_id,
                    usn=0,
                    ease=SCORE_TO_EASE[review.score],
                    ivl=_int_value(review.extension, "ivl"),
                    last_ivl=_int_value(review.extension, "lastIvl"),
                    factor=_int_value(review.extension, "factor"),
                    time=_int_value(review.extension, "time"),
                    type=_int_value(review.extension, "type"),
                )
            )

    @staticmethod
    def _finish_collection(
        anki_package: AnkiPackage, deck_ids: dict[str, int], note_type_ids: dict[str, int]
    ) -> None:
        config = anki_package.get_config()
        if deck_ids:
            first_deck = next(iter(deck_ids.values()))
            config["curDeck"] = first_deck
            config["activeDecks"] = [first_deck]
        if note_type_ids:
            config["curModel"] = next(iter(note_type_ids.values()))
