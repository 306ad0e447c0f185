from srs_converter.domain.anki.defaults import default_collection, default_config, default_deck_extra
from srs_converter.domain.anki.models import AnkiCard, AnkiDeck, AnkiNoteType, AnkiReview


class TestVendorRecords:
    """JSON and row mapping of the vendor records."""

    def test_deck_json_keeps_unknown_keys(self):
        deck = AnkiDeck.from_json({"id": 5, "name": "A", "desc": "d", "dyn": 0, "custom": [1]})
        assert deck.extra == {"dyn": 0, "custom": [1]}
        assert deck.to_json() == {"id": 5, "name": "A", "desc": "d", "dyn": 0, "custom": [1]}

    def test_note_type_json_defaults_ords_to_position(self):
        nt = AnkiNoteType.from_json(
            {
                "id": 9,
                "name": "Basic",
                "type": 0,
                "flds": [{"name": "Front"}, {"name": "Back", "ord": 1, "font": "Arial"}],
                "tmpls": [{"name": "Card 1", "qfmt": "{{Front}}", "afmt": "{{Back}}"}],
                "css": ".card {}",
            }
        )
        assert [f.ord for f in nt.flds] == [0, 1]
        assert nt.flds[1].extra == {"font": "Arial"}
        assert nt.tmpls[0].ord == 0
        assert nt.extra == {"css": ".card {}"}
        assert not nt.is_cloze
        assert nt.to_json()["type"] == 0

    def test_ordered_fields_sort_by_ord(self):
        nt = AnkiNoteType.from_json(
            {"id": 1, "name": "X", "flds": [{"name": "B", "ord": 1}, {"name": "A", "ord": 0}]}
        )
        assert [f.name for f in nt.ordered_fields()] == ["A", "B"]

    def test_card_home_deck_prefers_original_deck(self):
        assert AnkiCard(id=1, nid=1, did=5, ord=0).home_deck_id == 5
        assert AnkiCard(id=1, nid=1, did=5, ord=0, odid=3).home_deck_id == 3

    def test_card_scheduling_keys(self):
        scheduling = AnkiCard(id=1, nid=1, did=1, ord=0, ivl=7, factor=2500).scheduling()
        assert scheduling["ivl"] == 7
        assert scheduling["factor"] == 2500
        assert "data" not in scheduling
        assert "nid" not in scheduling

    def test_review_row_uses_vendor_column_name(self):
        row = AnkiReview(id=1, cid=2, last_ivl=4).to_row()
        assert row["lastIvl"] == 4
        assert "last_ivl" not in row


def test_defaults_are_fresh_copies():
    first = default_config()
    first["curDeck"] = 99
    assert default_config()["curDeck"] == 1

    extra = default_deck_extra()
    extra["newToday"].append(5)
    assert default_deck_extra()["newToday"] == [0, 0]


def test_default_collection_has_default_deck():
    collection = default_collection()
    assert collection.ver == 11
    assert list(collection.decks) == ["1"]
    assert collection.decks["1"].name == "Default"
    assert collection.models == {}
