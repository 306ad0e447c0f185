import io
import json
import zipfile
from pathlib import Path

import pytest

from srs_converter.application.config import ConverterConfig
from srs_converter.application.utils.text import field_checksum, join_fields, sort_field
from srs_converter.domain.anki.defaults import (
    default_collection,
    default_deck_extra,
    default_note_type_extra,
)
from srs_converter.domain.anki.models import (
    AnkiCard,
    AnkiCollection,
    AnkiDeck,
    AnkiField,
    AnkiNote,
    AnkiNoteType,
    AnkiReview,
    AnkiTemplate,
    NoteTypeKind,
)
from srs_converter.infrastructure.anki.database import AnkiDatabase
from srs_converter.infrastructure.anki.memory import InMemorySource
from srs_converter.infrastructure.anki.meta import encode_version

DECK_ID = 1700000000001
BASIC_NT_ID = 1700000000100
CLOZE_NT_ID = 1700000000200


# ---------- Vendor record builders ----------


def anki_deck(deck_id: int = DECK_ID, name: str = "Spanish", desc: str = "") -> AnkiDeck:
    return AnkiDeck(id=deck_id, name=name, desc=desc, extra=default_deck_extra())


def anki_basic_note_type(note_type_id: int = BASIC_NT_ID) -> AnkiNoteType:
    return AnkiNoteType(
        id=note_type_id,
        name="Basic",
        kind=NoteTypeKind.STANDARD,
        flds=[AnkiField("Front", 0, {"font": "Arial"}), AnkiField("Back", 1, {"font": "Arial"})],
        tmpls=[AnkiTemplate("Card 1", 0, "{{Front}}", "{{FrontSide}}<hr id=answer>{{Back}}")],
        extra=default_note_type_extra(),
    )


def anki_cloze_note_type(note_type_id: int = CLOZE_NT_ID) -> AnkiNoteType:
    return AnkiNoteType(
        id=note_type_id,
        name="Cloze",
        kind=NoteTypeKind.CLOZE,
        flds=[AnkiField("Text", 0), AnkiField("Back Extra", 1)],
        tmpls=[AnkiTemplate("Cloze", 0, "{{cloze:Text}}", "{{cloze:Text}}<br>{{Back Extra}}")],
        extra=default_note_type_extra(),
    )


def anki_note(note_id: int, values: list[str], mid: int = BASIC_NT_ID, tags: str = "") -> AnkiNote:
    return AnkiNote(
        id=note_id,
        guid=f"guid{note_id}",
        mid=mid,
        mod=1700000000,
        usn=0,
        tags=tags,
        flds=join_fields(values),
        sfld=sort_field(values[0]),
        csum=field_checksum(values[0]),
    )


def anki_card(card_id: int | None, nid: int, did: int = DECK_ID, ord: int = 0, **kwargs) -> AnkiCard:
    return AnkiCard(id=card_id, nid=nid, did=did, ord=ord, **kwargs)


def anki_review(review_id: int | None, cid: int, ease: int = 3, **kwargs) -> AnkiReview:
    return AnkiReview(id=review_id, cid=cid, ease=ease, **kwargs)


def anki_collection(
    decks: list[AnkiDeck] | None = None, note_types: list[AnkiNoteType] | None = None
) -> AnkiCollection:
    collection = default_collection()
    collection.decks = {str(d.id): d for d in (decks if decks is not None else [anki_deck()])}
    collection.models = {
        str(nt.id): nt for nt in (note_types if note_types is not None else [anki_basic_note_type()])
    }
    return collection


def build_apkg(
    work_dir: Path,
    collection: AnkiCollection | None = None,
    notes=(),
    cards=(),
    reviews=(),
    media: dict[str, bytes] | None = None,
    overrides: dict[str, bytes | None] | None = None,
) -> bytes:
    """
    Zip a legacy export in memory.

    ``overrides`` replaces member payloads; a ``None`` payload drops the member.
    """
    work_dir.mkdir(parents=True, exist_ok=True)
    db_path = work_dir / "collection.anki21"
    AnkiDatabase.create(
        db_path, collection or anki_collection(), list(notes), list(cards), list(reviews)
    ).close()

    media = media or {}
    members: dict[str, bytes] = {
        "meta": encode_version(2),
        "media": json.dumps({str(i): name for i, name in enumerate(media)}).encode(),
        "collection.anki21": db_path.read_bytes(),
    }
    for i, payload in enumerate(media.values()):
        members[str(i)] = payload
    for name, payload in (overrides or {}).items():
        if payload is None:
            members.pop(name, None)
        else:
            members[name] = payload

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, payload in members.items():
            zf.writestr(name, payload)
    return buf.getvalue()


# ---------- Fixtures ----------


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() and clears SRSCONV_* so no user config leaks in."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr("srs_converter.application.config.CONFIG_FILES", [])
    for var in ("SRSCONV_ERROR_HANDLING", "SRSCONV_TEMP_ROOT", "SRSCONV_TEMP_PREFIX"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def config(tmp_path, mock_home):
    """Config whose working directories live under tmp_path/work."""
    return ConverterConfig(temp_root=tmp_path / "work")


@pytest.fixture
def work_root(config) -> Path:
    return config.temp_root


@pytest.fixture
def sample_source():
    """Three basic notes in one deck, one card each, two reviews on the first card."""
    notes = [
        anki_note(1700000001000, ["hola", "hello"], tags=" greeting spanish "),
        anki_note(1700000002000, ["adiós", "goodbye"]),
        anki_note(1700000003000, ["gato", "cat"]),
    ]
    cards = [
        anki_card(1700000001001, 1700000001000, ivl=3, factor=2500, reps=2),
        anki_card(1700000002001, 1700000002000),
        anki_card(1700000003001, 1700000003000),
    ]
    reviews = [
        anki_review(1700000005000, 1700000001001, ease=1, ivl=1, last_ivl=0, factor=2500, time=4000),
        anki_review(1700000006000, 1700000001001, ease=3, ivl=3, last_ivl=1, factor=2500, time=2500),
    ]
    return InMemorySource(anki_collection(), notes, cards, reviews)


@pytest.fixture
def apkg_factory(tmp_path):
    """Returns build_apkg bound to a scratch directory."""
    counter = iter(range(1000))

    def _build(**kwargs) -> bytes:
        return build_apkg(tmp_path / f"apkg-{next(counter)}", **kwargs)

    return _build
