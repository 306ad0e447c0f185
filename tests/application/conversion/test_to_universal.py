import json

import pytest

from srs_converter.application.config import ConversionOptions, ErrorHandling
from srs_converter.application.conversion import AnkiToSrsConverter, anki_to_srs
from srs_converter.application.issues import ConversionStatus, ItemType, Severity
from srs_converter.domain.anki.models import AnkiTemplate
from srs_converter.domain.models import ReviewScore
from srs_converter.infrastructure.anki.database import AnkiDatabaseError
from srs_converter.infrastructure.anki.memory import InMemorySource

from conftest import (
    CLOZE_NT_ID,
    DECK_ID,
    anki_basic_note_type,
    anki_card,
    anki_cloze_note_type,
    anki_collection,
    anki_deck,
    anki_note,
    anki_review,
)

STRICT = ConversionOptions(error_handling=ErrorHandling.STRICT)


def convert(source, options=None):
    return AnkiToSrsConverter(options).convert(source)


# ---------- Happy path ----------


def test_sample_source_converts_completely(sample_source):
    result = anki_to_srs(sample_source)

    assert result.status == ConversionStatus.SUCCESS
    assert result.issues == []
    package = result.data
    assert len(package.get_decks()) == 1
    assert len(package.get_note_types()) == 1
    assert len(package.get_notes()) == 3
    assert len(package.get_cards()) == 3
    assert len(package.get_reviews()) == 2
    assert package.check_integrity() == []


def test_deck_mapping(sample_source):
    deck = anki_to_srs(sample_source).data.get_decks()[0]
    assert deck.name == "Spanish"
    assert deck.extension == {"originalId": str(DECK_ID)}
    assert deck.config["conf"] == 1


def test_note_type_mapping(sample_source):
    note_type = anki_to_srs(sample_source).data.get_note_types()[0]
    assert note_type.name == "Basic"
    assert note_type.field_names == ("Front", "Back")
    assert note_type.template_ids == (0,)
    assert note_type.templates[0].question_template == "{{Front}}"
    assert note_type.extension["originalId"] == str(anki_basic_note_type().id)
    assert json.loads(note_type.extension["ankiNoteTypeData"])["sortf"] == 0
    assert "ankiTemplateData" in note_type.templates[0].extension


def test_note_mapping(sample_source):
    package = anki_to_srs(sample_source).data
    note = next(n for n in package.get_notes() if n.extension["originalId"] == "1700000001000")
    assert note.field_values == (("Front", "hola"), ("Back", "hello"))
    assert note.tags == frozenset({"greeting", "spanish"})
    assert note.extension["guid"] == "guid1700000001000"
    assert note.created_at == 1700000001000
    assert note.modified_at == 1700000000 * 1000
    assert note.deck_id == package.get_decks()[0].id
    assert "pluginData" not in note.extension


def test_card_and_review_mapping(sample_source):
    package = anki_to_srs(sample_source).data
    card = next(c for c in package.get_cards() if c.extension["originalId"] == "1700000001001")
    assert card.template_id == 0
    assert card.scheduling["ivl"] == 3
    assert card.scheduling["reps"] == 2

    reviews = sorted(package.get_reviews(), key=lambda r: r.timestamp)
    assert [r.score for r in reviews] == [ReviewScore.AGAIN, ReviewScore.NORMAL]
    assert all(r.card_id == card.id for r in reviews)
    assert reviews[0].timestamp == 1700000005000
    assert reviews[0].extension == {
        "originalId": "1700000005000",
        "ivl": "1",
        "lastIvl": "0",
        "factor": "2500",
        "time": "4000",
        "type": "0",
    }


def test_note_plugin_data_is_kept():
    note = anki_note(1, ["a", "b"])
    note.data = '{"addon": true}'
    source = InMemorySource(anki_collection(), [note], [anki_card(2, 1)])
    srs_note = convert(source).data.get_notes()[0]
    assert srs_note.extension["pluginData"] == '{"addon": true}'


def test_unused_decks_and_note_types_are_dropped():
    collection = anki_collection(
        decks=[anki_deck(), anki_deck(99, "Empty")],
        note_types=[anki_basic_note_type(), anki_cloze_note_type()],
    )
    source = InMemorySource(collection, [anki_note(1, ["a", "b"])], [anki_card(2, 1)])
    package = convert(source).data
    assert [d.name for d in package.get_decks()] == ["Spanish"]
    assert [nt.name for nt in package.get_note_types()] == ["Basic"]


# ---------- Notes ----------


class TestNoteDefects:
    """Each defective note is skipped with one note-scoped error."""

    def test_unknown_note_type_best_effort(self):
        notes = [
            anki_note(1, ["a", "1"]),
            anki_note(2, ["b", "2"], mid=424242),
            anki_note(3, ["c", "3"]),
        ]
        cards = [anki_card(11, 1), anki_card(13, 3)]
        result = convert(InMemorySource(anki_collection(), notes, cards))

        assert result.status == ConversionStatus.PARTIAL
        note_errors = result.issues_of(Severity.ERROR, ItemType.NOTE)
        assert len(note_errors) == 1
        assert "note type 424242 does not exist" in note_errors[0].message
        assert note_errors[0].context.original_data.id == 2
        assert len(result.data.get_notes()) == 2
        assert result.data.check_integrity() == []

    def test_unknown_note_type_strict(self):
        notes = [
            anki_note(1, ["a", "1"]),
            anki_note(2, ["b", "2"], mid=424242),
            anki_note(3, ["c", "3"]),
        ]
        cards = [anki_card(11, 1), anki_card(13, 3)]
        result = convert(InMemorySource(anki_collection(), notes, cards), STRICT)

        assert result.status == ConversionStatus.FAILURE
        assert result.data is None

    def test_field_count_mismatch(self):
        source = InMemorySource(anki_collection(), [anki_note(1, ["a", "b", "c"])], [anki_card(2, 1)])
        result = convert(source)
        assert "has 3 field values" in result.issues_of(item_type=ItemType.NOTE)[0].message
        assert result.data.get_notes() == ()
        assert result.data.check_integrity() == []

    def test_note_without_cards(self):
        result = convert(InMemorySource(anki_collection(), [anki_note(1, ["a", "b"])]))
        assert "has no cards" in result.issues_of(item_type=ItemType.NOTE)[0].message
        assert result.data.check_integrity() == []

    def test_note_with_cards_only_in_missing_deck(self):
        source = InMemorySource(
            anki_collection(), [anki_note(1, ["a", "b"])], [anki_card(2, 1, did=777)]
        )
        result = convert(source)
        messages = [i.message for i in result.issues]
        assert any("only has cards in a non-existent deck (777)" in m for m in messages)
        assert any("orphan card 2" in m for m in messages)
        assert result.data.check_integrity() == []


def test_missing_media_reference_is_a_warning():
    note = anki_note(1, ['<img src="gone.png">', "[sound:here.mp3]"])
    source = InMemorySource(
        anki_collection(), [note], [anki_card(2, 1)], media={"here.mp3": b"mp3"}
    )
    result = convert(source)
    assert result.status == ConversionStatus.SUCCESS
    warnings = result.issues_of(Severity.WARNING, ItemType.MEDIA)
    assert len(warnings) == 1
    assert "'gone.png'" in warnings[0].message


# ---------- Cards ----------


class TestCards:
    """Card placement, cloze ordinals and card-level defects."""

    def test_card_without_id(self):
        source = InMemorySource(
            anki_collection(), [anki_note(1, ["a", "b"])], [anki_card(2, 1), anki_card(None, 1)]
        )
        result = convert(source)
        errors = result.issues_of(Severity.ERROR, ItemType.CARD)
        assert [e.message for e in errors] == ["Card id is undefined. This card will be skipped."]
        assert len(result.data.get_cards()) == 1
        assert result.data.check_integrity() == []

    def test_orphan_card(self):
        source = InMemorySource(
            anki_collection(), [anki_note(1, ["a", "b"])], [anki_card(2, 1), anki_card(3, 99)]
        )
        result = convert(source)
        assert result.status == ConversionStatus.PARTIAL
        assert result.issues[0].message.startswith("Skipping orphan card 3")
        assert result.data.check_integrity() == []

    def test_card_in_missing_deck_is_skipped_when_note_survives(self):
        source = InMemorySource(
            anki_collection(),
            [anki_note(1, ["a", "b"])],
            [anki_card(2, 1), anki_card(3, 1, did=555)],
        )
        result = convert(source)
        assert len(result.data.get_notes()) == 1
        assert "references non-existent deck 555" in result.issues[0].message
        assert result.data.check_integrity() == []

    def test_template_ordinal_out_of_range(self):
        source = InMemorySource(
            anki_collection(), [anki_note(1, ["a", "b"])], [anki_card(2, 1), anki_card(3, 1, ord=4)]
        )
        result = convert(source)
        assert "template ordinal 4" in result.issues_of(item_type=ItemType.CARD)[0].message
        assert result.data.check_integrity() == []

    def test_filtered_deck_card_uses_home_deck(self):
        collection = anki_collection(decks=[anki_deck(), anki_deck(50, "Filtered")])
        source = InMemorySource(
            collection, [anki_note(1, ["a", "b"])], [anki_card(2, 1, did=50, odid=DECK_ID)]
        )
        package = convert(source).data
        note = package.get_notes()[0]
        assert package.get_deck(note.deck_id).name == "Spanish"
        assert "originalDeckId" not in package.get_cards()[0].extension

    def test_card_in_other_deck_records_original_deck(self):
        basic_reverse = anki_basic_note_type()
        basic_reverse.tmpls.append(
            AnkiTemplate("Card 2", 1, "{{Back}}", "{{Front}}")
        )
        collection = anki_collection(
            decks=[anki_deck(), anki_deck(60, "Other")], note_types=[basic_reverse]
        )
        source = InMemorySource(
            collection,
            [anki_note(1, ["a", "b"])],
            [anki_card(2, 1), anki_card(3, 1, did=60, ord=1)],
        )
        package = convert(source).data
        second = next(c for c in package.get_cards() if c.template_id == 1)
        assert second.extension["originalDeckId"] == "60"

    def test_cloze_cards_share_template_and_keep_ordinal(self):
        collection = anki_collection(note_types=[anki_cloze_note_type()])
        note = anki_note(1, ["{{c1::uno}} {{c2::dos}}", ""], mid=CLOZE_NT_ID)
        source = InMemorySource(collection, [note], [anki_card(2, 1, ord=0), anki_card(3, 1, ord=1)])
        result = convert(source)

        assert result.status == ConversionStatus.SUCCESS
        cards = result.data.get_cards()
        assert {c.template_id for c in cards} == {0}
        assert sorted(c.extension["clozeOrdinal"] for c in cards) == ["0", "1"]

    def test_cloze_card_without_marker_warns(self):
        collection = anki_collection(note_types=[anki_cloze_note_type()])
        note = anki_note(1, ["{{c1::uno}}", ""], mid=CLOZE_NT_ID)
        source = InMemorySource(collection, [note], [anki_card(2, 1, ord=0), anki_card(3, 1, ord=4)])
        result = convert(source)

        assert result.status == ConversionStatus.SUCCESS
        assert len(result.data.get_cards()) == 2
        warning = result.issues_of(Severity.WARNING, ItemType.CARD)[0]
        assert "cloze ordinal 5" in warning.message
        assert result.data.check_integrity() == []


# ---------- Reviews ----------


def test_review_defects_are_dropped():
    source = InMemorySource(
        anki_collection(),
        [anki_note(1, ["a", "b"])],
        [anki_card(2, 1)],
        [anki_review(10, 2, ease=999), anki_review(None, 2)],
    )
    result = convert(source)

    assert result.status == ConversionStatus.PARTIAL
    assert result.data.get_reviews() == ()
    messages = [i.message.lower() for i in result.issues_of(Severity.ERROR, ItemType.REVIEW)]
    assert len(messages) == 2
    assert "unknown review score" in messages[0]
    assert "review id is undefined" in messages[1]
    assert result.data.check_integrity() == []


def test_review_of_skipped_card():
    source = InMemorySource(
        anki_collection(),
        [anki_note(1, ["a", "b"])],
        [anki_card(2, 1)],
        [anki_review(10, 404)],
    )
    result = convert(source)
    assert "references non-existent card 404" in result.issues[0].message


# ---------- Source failures ----------


class _BrokenSource(InMemorySource):
    def query_all(self, table: str) -> list:
        raise AnkiDatabaseError("corrupted", "The 'notes' table cannot be read.")


def test_unreadable_source_is_critical():
    result = convert(_BrokenSource(anki_collection()))
    assert result.status == ConversionStatus.FAILURE
    assert result.issues[0].severity == Severity.CRITICAL
    assert "could not be loaded" in result.issues[0].message


@pytest.mark.parametrize("options", [None, STRICT])
def test_clean_source_succeeds_in_both_modes(sample_source, options):
    assert convert(sample_source, options).status == ConversionStatus.SUCCESS
