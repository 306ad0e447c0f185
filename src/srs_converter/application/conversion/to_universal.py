"""
Vendor → Universal conversion.

Reads every table through the ``PackageSource`` port and rebuilds the
entity graph in dependency order: decks and note types, then notes, cards
and reviews. Per-item defects are reported and the item is skipped.
"""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass

from srs_converter.application.config import ConversionOptions
from srs_converter.application.issues import ConversionResult, IssueCollector, ItemType
from srs_converter.application.utils.text import (
    analyze_cloze_ordinals,
    find_media_references,
    parse_tags,
    split_fields,
)
from srs_converter.domain.anki.models import (
    AnkiCard,
    AnkiNote,
    AnkiNoteType,
    Ease,
    VendorTable,
)
from srs_converter.domain.anki.ports import PackageSource
from srs_converter.domain.constants import (
    CLOZE_ORDINAL_KEY,
    GUID_KEY,
    NOTE_TYPE_DATA_KEY,
    ORIGINAL_DECK_KEY,
    ORIGINAL_ID_KEY,
    PLUGIN_DATA_KEY,
    REVIEW_DETAIL_KEYS,
    TEMPLATE_DATA_KEY,
)
from srs_converter.domain.models import (
    ReviewScore,
    SrsField,
    SrsIntegrityError,
    SrsNote,
    SrsNoteType,
    SrsPackage,
    SrsTemplate,
    create_card,
    create_deck,
    create_note,
    create_note_type,
    create_review,
)
from srs_converter.infrastructure.anki.database import AnkiDatabaseError

logger = logging.getLogger(__name__)

EASE_TO_SCORE = {
    Ease.AGAIN: ReviewScore.AGAIN,
    Ease.HARD: ReviewScore.HARD,
    Ease.GOOD: ReviewScore.NORMAL,
    Ease.EASY: ReviewScore.EASY,
}

# Card data Anki writes for cards without scheduler payload.
EMPTY_CARD_DATA = ("", "{}")


@dataclass
class _ConvertedNote:
    note: SrsNote
    note_type: SrsNoteType
    vendor: AnkiNote
    vendor_note_type: AnkiNoteType
    deck_id: int


class AnkiToSrsConverter:
    """
    Converts a vendor package into an ``SrsPackage``.

    Every universal entity gets a fresh id; the vendor id is kept under
    ``originalId`` so the reverse direction can reuse it.
    """

    def __init__(self, options: ConversionOptions | None = None):
        self.options = options or ConversionOptions()

    def convert(self, source: PackageSource) -> ConversionResult[SrsPackage]:
        collector = IssueCollector(self.options)

        try:
            decks = source.query_all(VendorTable.DECKS)
            note_types = source.query_all(VendorTable.NOTE_TYPES)
            notes = source.query_all(VendorTable.NOTES)
            cards = source.query_all(VendorTable.CARDS)
            reviews = source.query_all(VendorTable.REVLOG)
        except AnkiDatabaseError as e:
            collector.add_critical(
                "The Anki database could not be loaded, so conversion to SRS format is not "
                f"possible. {e.message}"
            )
            return collector.create_failure_result()

        package = SrsPackage()
        deck_map = self._convert_decks(decks, package, collector)
        note_type_map = self._convert_note_types(note_types, package, collector)

        available_media = self._available_media(source)
        note_map = self._convert_notes(
            notes, cards, deck_map, note_type_map, available_media, package, collector
        )
        card_map = self._convert_cards(cards, deck_map, note_map, package, collector)
        self._convert_reviews(reviews, card_map, package, collector)

        package.remove_unused()
        logger.info(f"Converted Anki package to {package!r}")
        return collector.create_result(package)

    # ---------- Decks & note types ----------

    def _convert_decks(self, decks, package: SrsPackage, collector: IssueCollector) -> dict[int, str]:
        deck_map: dict[int, str] = {}
        for deck in decks:
            try:
                srs_deck = create_deck(
                    name=deck.name,
                    description=deck.desc,
                    config=deck.extra,
                    extension={ORIGINAL_ID_KEY: str(deck.id)},
                )
                package.add_deck(srs_deck)
            except SrsIntegrityError as e:
                collector.add_error(
                    f"Cannot convert deck {deck.id}: {e}. This deck will be skipped.",
                    ItemType.DECK,
                    deck,
                )
                continue
            deck_map[deck.id] = srs_deck.id
        return deck_map

    def _convert_note_types(
        self, note_types, package: SrsPackage, collector: IssueCollector
    ) -> dict[int, tuple[SrsNoteType, AnkiNoteType]]:
        note_type_map: dict[int, tuple[SrsNoteType, AnkiNoteType]] = {}
        for anki_note_type in note_types:
            fields = [
                SrsField(id=f.ord, name=f.name, description=f.extra.get("description") or "")
                for f in anki_note_type.ordered_fields()
            ]
            templates = [
                SrsTemplate(
                    id=t.ord,
                    name=t.name,
                    question_template=t.qfmt,
                    answer_template=t.afmt,
                    extension={TEMPLATE_DATA_KEY: json.dumps(t.extra)},
                )
                for t in anki_note_type.ordered_templates()
            ]
            try:
                srs_note_type = create_note_type(
                    name=anki_note_type.name,
                    fields=fields,
                    templates=templates,
                    extension={
                        ORIGINAL_ID_KEY: str(anki_note_type.id),
                        NOTE_TYPE_DATA_KEY: json.dumps(anki_note_type.extra),
                    },
                )
                package.add_note_type(srs_note_type)
            except SrsIntegrityError as e:
                collector.add_error(
                    f"Cannot convert note type {anki_note_type.id} ('{anki_note_type.name}'): {e}. "
                    "Notes of this type will be skipped.",
                    ItemType.NOTE_TYPE,
                    anki_note_type,
                )
                continue
            note_type_map[anki_note_type.id] = (srs_note_type, anki_note_type)
        return note_type_map

    # ---------- Notes ----------

    @staticmethod
    def _available_media(source: PackageSource) -> set[str]:
        members = source.list_members()
        return {name for short_id, name in source.media_mapping().items() if short_id in members}

    def _convert_notes(
        self,
        notes: list[AnkiNote],
        cards: list[AnkiCard],
        deck_map: dict[int, str],
        note_type_map: dict[int, tuple[SrsNoteType, AnkiNoteType]],
        available_media: set[str],
        package: SrsPackage,
        collector: IssueCollector,
    ) -> dict[int, _ConvertedNote]:
        cards_by_note: dict[int, list[AnkiCard]] = defaultdict(list)
        for card in cards:
            cards_by_note[card.nid].append(card)

        note_map: dict[int, _ConvertedNote] = {}
        for note in notes:
            entry = note_type_map.get(note.mid)
            if entry is None:
                collector.add_note_error(
                    f"Note {note.id} is invalid: its note type {note.mid} does not exist in the "
                    "package. This note will be skipped.",
                    note,
                )
                continue
            srs_note_type, anki_note_type = entry

            values = split_fields(note.flds)
            if len(values) != len(srs_note_type.fields):
                collector.add_note_error(
                    f"Note {note.id} has {len(values)} field values but its note type "
                    f"'{srs_note_type.name}' defines {len(srs_note_type.fields)} fields. "
                    "This note will be skipped.",
                    note,
                )
                continue

            note_cards = cards_by_note.get(note.id)
            if not note_cards:
                collector.add_note_error(
                    f"Note {note.id} has no cards, so its deck cannot be determined. "
                    "This note will be skipped.",
                    note,
                )
                continue

            vendor_deck_id = next(
                (c.home_deck_id for c in note_cards if c.home_deck_id in deck_map), None
            )
            if vendor_deck_id is None:
                collector.add_note_error(
                    f"Note {note.id} only has cards in a non-existent deck "
                    f"({note_cards[0].home_deck_id}). This note will be skipped.",
                    note,
                )
                continue

            extension = {ORIGINAL_ID_KEY: str(note.id), GUID_KEY: note.guid}
            if note.data:
                extension[PLUGIN_DATA_KEY] = note.data

            try:
                srs_note = create_note(
                    srs_note_type,
                    deck_map[vendor_deck_id],
                    zip(srs_note_type.field_names, values),
                    tags=parse_tags(note.tags),
                    created_at=note.id,
                    modified_at=note.mod * 1000,
                    extension=extension,
                )
                package.add_note(srs_note)
            except SrsIntegrityError as e:
                collector.add_note_error(
                    f"Cannot convert note {note.id}: {e}. This note will be skipped.", note
                )
                continue

            for filename in find_media_references(note.flds):
                if filename not in available_media:
                    collector.add_warning(
                        f"Note {note.id} references media file '{filename}', which is not "
                        "included in the package.",
                        ItemType.MEDIA,
                        note,
                    )

            note_map[note.id] = _ConvertedNote(
                srs_note, srs_note_type, note, anki_note_type, vendor_deck_id
            )
        return note_map

    # ---------- Cards ----------

    def _convert_cards(
        self,
        cards: list[AnkiCard],
        deck_map: dict[int, str],
        note_map: dict[int, _ConvertedNote],
        package: SrsPackage,
        collector: IssueCollector,
    ) -> dict[int, str]:
        card_map: dict[int, str] = {}
        for card in cards:
            if card.id is None:
                collector.add_card_error("Card id is undefined. This card will be skipped.", card)
                continue

            converted = note_map.get(card.nid)
            if converted is None:
                collector.add_card_error(
                    f"Skipping orphan card {card.id}: its note {card.nid} does not exist or "
                    "was not converted.",
                    card,
                )
                continue

            if card.home_deck_id not in deck_map:
                collector.add_card_error(
                    f"Card {card.id} references non-existent deck {card.home_deck_id}. "
                    "This card will be skipped.",
                    card,
                )
                continue

            extension = {ORIGINAL_ID_KEY: str(card.id)}
            if card.data not in EMPTY_CARD_DATA:
                extension[PLUGIN_DATA_KEY] = card.data
            if card.home_deck_id != converted.deck_id:
                extension[ORIGINAL_DECK_KEY] = str(card.home_deck_id)

            note_type = converted.note_type
            if converted.vendor_note_type.is_cloze:
                template_id = note_type.templates[0].id
                extension[CLOZE_ORDINAL_KEY] = str(card.ord)
                ordinals = analyze_cloze_ordinals(converted.vendor.flds)
                if card.ord not in ordinals and (ordinals or card.ord != 0):
                    collector.add_warning(
                        f"Card {card.id} has cloze ordinal {card.ord + 1}, but note {card.nid} "
                        "contains no matching cloze deletion.",
                        ItemType.CARD,
                        card,
                    )
            else:
                if card.ord not in note_type.template_ids:
                    collector.add_card_error(
                        f"Card {card.id} references template ordinal {card.ord}, but note type "
                        f"'{note_type.name}' only has {len(note_type.templates)} template(s). "
                        "This card will be skipped.",
                        card,
                    )
                    continue
                template_id = card.ord

            try:
                srs_card = create_card(
                    converted.note.id,
                    template_id,
                    scheduling=card.scheduling(),
                    extension=extension,
                )
                package.add_card(srs_card)
            except SrsIntegrityError as e:
                collector.add_card_error(
                    f"Cannot convert card {card.id}: {e}. This card will be skipped.", card
                )
                continue
            card_map[card.id] = srs_card.id
        return card_map

    # ---------- Reviews ----------

    def _convert_reviews(
        self,
        reviews,
        card_map: dict[int, str],
        package: SrsPackage,
        collector: IssueCollector,
    ) -> None:
        for review in reviews:
            if review.id is None:
                collector.add_review_error(
                    "Review id is undefined. This review will be skipped.", review
                )
                continue

            score = EASE_TO_SCORE.get(review.ease)
            if score is None:
                collector.add_review_error(
                    f"Unknown review score {review.ease} in review {review.id}. Valid scores are "
                    "1 (Again), 2 (Hard), 3 (Good), 4 (Easy). This review will be skipped.",
                    review,
                )
                continue

            card_id = card_map.get(review.cid)
            if card_id is None:
                collector.add_review_error(
                    f"Review {review.id} references non-existent card {review.cid}. "
                    "This review will be skipped.",
                    review,
                )
                continue

            row = review.to_row()
            extension = {ORIGINAL_ID_KEY: str(review.id)}
            extension.update({key: str(row[key]) for key in REVIEW_DETAIL_KEYS})
            package.add_review(create_review(card_id, review.id, score, extension=extension))
