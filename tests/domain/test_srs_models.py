import pytest

from srs_converter.domain.models import (
    ReviewScore,
    SrsField,
    SrsIntegrityError,
    SrsPackage,
    SrsTemplate,
    create_card,
    create_complete_deck,
    create_deck,
    create_note,
    create_note_type,
    create_review,
)
from srs_converter.domain.templates import BASIC, BASIC_AND_REVERSE, CLOZE


@pytest.fixture
def package():
    pkg = SrsPackage()
    deck = create_deck("Spanish")
    pkg.add_deck(deck)
    pkg.add_note_type(BASIC)
    return pkg, deck


# ---------- Constructors ----------


def test_create_deck_generates_id_and_copies_config():
    config = {"conf": 1}
    deck = create_deck("Spanish", "desc", config=config)
    config["conf"] = 2
    assert deck.id
    assert deck.config == {"conf": 1}
    assert deck.description == "desc"


def test_create_deck_rejects_empty_name():
    with pytest.raises(SrsIntegrityError):
        create_deck("")


def test_extension_must_be_string_to_string():
    with pytest.raises(SrsIntegrityError, match="strings to strings"):
        create_deck("Spanish", extension={"originalId": 5})


def test_create_note_type_rejects_duplicate_field_names():
    with pytest.raises(SrsIntegrityError, match="duplicate field names"):
        create_note_type(
            "Dup",
            [SrsField(0, "Front"), SrsField(1, "Front")],
            [SrsTemplate(0, "Card 1", "{{Front}}", "{{Front}}")],
        )


def test_create_note_type_rejects_duplicate_template_ids():
    with pytest.raises(SrsIntegrityError, match="duplicate template ids"):
        create_note_type(
            "Dup",
            [SrsField(0, "Front")],
            [SrsTemplate(0, "A", "{{Front}}", ""), SrsTemplate(0, "B", "{{Front}}", "")],
        )


def test_create_note_type_requires_fields_and_templates():
    with pytest.raises(SrsIntegrityError):
        create_note_type("Empty", [], [SrsTemplate(0, "A", "", "")])
    with pytest.raises(SrsIntegrityError):
        create_note_type("Empty", [SrsField(0, "Front")], [])


def test_create_note_requires_exact_field_order():
    with pytest.raises(SrsIntegrityError, match="do not match"):
        create_note(BASIC, "deck", [("Answer", "a"), ("Question", "q")])


def test_create_note_rejects_missing_field():
    with pytest.raises(SrsIntegrityError):
        create_note(BASIC, "deck", [("Question", "q")])


def test_create_note_keeps_values_in_order():
    note = create_note(BASIC, "deck", [("Question", "q"), ("Answer", "a")], tags=["x", "x"])
    assert note.values == ["q", "a"]
    assert note.tags == frozenset({"x"})


def test_create_review_validates_score():
    assert create_review("card", 1000, 4).score == ReviewScore.EASY
    with pytest.raises(SrsIntegrityError, match="Invalid review score"):
        create_review("card", 1000, 5)


def test_create_card_rejects_negative_template():
    with pytest.raises(SrsIntegrityError):
        create_card("note", -1)


def test_cloze_detection():
    assert CLOZE.is_cloze
    assert not BASIC.is_cloze
    assert BASIC_AND_REVERSE.template_position(1) == 1
    assert BASIC_AND_REVERSE.template_position(7) is None


# ---------- Aggregate ----------


def test_add_note_requires_existing_deck_and_note_type(package):
    pkg, deck = package
    orphan = create_note(BASIC, "missing-deck", [("Question", "q"), ("Answer", "a")])
    with pytest.raises(SrsIntegrityError, match="Deck missing-deck does not exist"):
        pkg.add_note(orphan)

    other_type = create_note(BASIC_AND_REVERSE, deck.id, [("Front", "f"), ("Back", "b")])
    with pytest.raises(SrsIntegrityError, match="Note type"):
        pkg.add_note(other_type)


def test_duplicate_ids_are_rejected(package):
    pkg, deck = package
    with pytest.raises(SrsIntegrityError, match="already exists"):
        pkg.add_deck(deck)
    with pytest.raises(SrsIntegrityError, match="already exists"):
        pkg.add_note_type(BASIC)


def test_card_template_must_exist(package):
    pkg, deck = package
    note = create_note(BASIC, deck.id, [("Question", "q"), ("Answer", "a")])
    pkg.add_note(note)
    with pytest.raises(SrsIntegrityError, match="Invalid template ID 3"):
        pkg.add_card(create_card(note.id, 3))


def test_review_requires_card(package):
    pkg, _ = package
    with pytest.raises(SrsIntegrityError, match="Card nope does not exist"):
        pkg.add_review(create_review("nope", 1, ReviewScore.NORMAL))


def test_remove_unused_drops_unreferenced_decks_and_note_types(package):
    pkg, deck = package
    pkg.add_deck(create_deck("Unused"))
    pkg.add_note_type(CLOZE)
    pkg.add_note(create_note(BASIC, deck.id, [("Question", "q"), ("Answer", "a")]))

    pkg.remove_unused()

    assert [d.name for d in pkg.get_decks()] == ["Spanish"]
    assert pkg.get_note_types() == (BASIC,)


def test_check_integrity_is_empty_for_consistent_package(package):
    pkg, deck = package
    note = create_note(BASIC, deck.id, [("Question", "q"), ("Answer", "a")])
    pkg.add_note(note)
    card = create_card(note.id, 0)
    pkg.add_card(card)
    pkg.add_review(create_review(card.id, 1, ReviewScore.AGAIN))
    assert pkg.check_integrity() == []


# ---------- Builders ----------


def test_create_complete_deck_builds_nested_entities():
    pkg = create_complete_deck(
        {"name": "Test Deck"},
        [
            {
                "note_type": BASIC,
                "notes": [
                    {
                        "field_values": [("Question", "q1"), ("Answer", "a1")],
                        "cards": [{"template_id": 0, "reviews": [{"timestamp": 1, "score": 3}]}],
                    },
                    {"field_values": [("Question", "q2"), ("Answer", "a2")]},
                ],
            },
            {
                "name": "Custom",
                "fields": [SrsField(0, "Only")],
                "templates": [SrsTemplate(0, "Card", "{{Only}}", "{{Only}}")],
                "notes": [{"field_values": [("Only", "x")], "cards": [{"template_id": 0}]}],
            },
        ],
    )

    assert len(pkg.get_decks()) == 1
    assert len(pkg.get_note_types()) == 2
    assert len(pkg.get_notes()) == 3
    assert len(pkg.get_cards()) == 2
    assert pkg.get_reviews()[0].score == ReviewScore.NORMAL
    assert pkg.check_integrity() == []
