"""
Domain models for the Anki legacy package tables.

These are plain records mirroring the denormalized vendor rows, with no I/O.
Deck and note type definitions live as JSON inside the ``col`` row; the
``extra`` mappings keep every JSON key this code does not interpret so that
writing a record back loses nothing.
"""

from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any


class Ease(IntEnum):
    """Answer button recorded in the revlog."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class NoteTypeKind(IntEnum):
    STANDARD = 0
    CLOZE = 1


class VendorTable:
    """Table names understood by ``PackageSource.query_all``."""

    COLLECTION = "col"
    DECKS = "decks"
    NOTE_TYPES = "note_types"
    NOTES = "notes"
    CARDS = "cards"
    REVLOG = "revlog"

    ALL = (COLLECTION, DECKS, NOTE_TYPES, NOTES, CARDS, REVLOG)


@dataclass
class AnkiDeck:
    id: int
    name: str
    desc: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AnkiDeck":
        rest = {k: v for k, v in data.items() if k not in ("id", "name", "desc")}
        return cls(id=int(data["id"]), name=str(data.get("name", "")), desc=data.get("desc") or "", extra=rest)

    def to_json(self) -> dict[str, Any]:
        return {**self.extra, "id": self.id, "name": self.name, "desc": self.desc}


@dataclass
class AnkiField:
    name: str
    ord: int
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any], position: int) -> "AnkiField":
        rest = {k: v for k, v in data.items() if k not in ("name", "ord")}
        ordinal = data.get("ord")
        return cls(name=str(data["name"]), ord=position if ordinal is None else int(ordinal), extra=rest)

    def to_json(self) -> dict[str, Any]:
        return {**self.extra, "name": self.name, "ord": self.ord}


@dataclass
class AnkiTemplate:
    name: str
    ord: int
    qfmt: str
    afmt: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any], position: int) -> "AnkiTemplate":
        rest = {k: v for k, v in data.items() if k not in ("name", "ord", "qfmt", "afmt")}
        ordinal = data.get("ord")
        return cls(
            name=str(data["name"]),
            ord=position if ordinal is None else int(ordinal),
            qfmt=data.get("qfmt") or "",
            afmt=data.get("afmt") or "",
            extra=rest,
        )

    def to_json(self) -> dict[str, Any]:
        return {**self.extra, "name": self.name, "ord": self.ord, "qfmt": self.qfmt, "afmt": self.afmt}


@dataclass
class AnkiNoteType:
    """
    A note type ("model") definition from ``col.models``.

    Attributes:
        kind: 0 = standard, 1 = cloze.
        flds: Fields; their ``ord`` is the position inside the note blob.
        tmpls: Templates; their ``ord`` is the card ordinal.
    """

    id: int
    name: str
    kind: int = NoteTypeKind.STANDARD
    flds: list[AnkiField] = field(default_factory=list)
    tmpls: list[AnkiTemplate] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_cloze(self) -> bool:
        return self.kind == NoteTypeKind.CLOZE

    def ordered_fields(self) -> list[AnkiField]:
        return sorted(self.flds, key=lambda f: f.ord)

    def ordered_templates(self) -> list[AnkiTemplate]:
        return sorted(self.tmpls, key=lambda t: t.ord)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AnkiNoteType":
        rest = {k: v for k, v in data.items() if k not in ("id", "name", "type", "flds", "tmpls")}
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            kind=int(data.get("type") or NoteTypeKind.STANDARD),
            flds=[AnkiField.from_json(f, i) for i, f in enumerate(data.get("flds") or [])],
            tmpls=[AnkiTemplate.from_json(t, i) for i, t in enumerate(data.get("tmpls") or [])],
            extra=rest,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "type": self.kind,
            "flds": [f.to_json() for f in self.flds],
            "tmpls": [t.to_json() for t in self.tmpls],
        }


@dataclass
class AnkiNote:
    """
    A row of the ``notes`` table.

    Attributes:
        flds: Field values joined by the U+001F separator.
        sfld: Sort field, derived from the first value.
        csum: Checksum of the sort field.
        tags: Space separated, padded with spaces (" a b ").
        data: Unused by Anki itself; add-ons keep payloads here.
    """

    id: int
    guid: str
    mid: int
    mod: int
    usn: int
    tags: str
    flds: str
    sfld: str
    csum: int
    flags: int = 0
    data: str = ""

    def to_row(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnkiCard:
    """
    A row of the ``cards`` table.

    ``ord`` is the template ordinal (cloze ordinal for cloze note types).
    ``odid`` is the home deck while the card sits in a filtered deck.
    """

    id: int | None
    nid: int
    did: int
    ord: int
    mod: int = 0
    usn: int = 0
    type: int = 0
    queue: int = 0
    due: int = 0
    ivl: int = 0
    factor: int = 0
    reps: int = 0
    lapses: int = 0
    left: int = 0
    odue: int = 0
    odid: int = 0
    flags: int = 0
    data: str = ""

    SCHEDULING_KEYS = (
        "type", "queue", "due", "ivl", "factor", "reps", "lapses", "left", "odue", "odid", "flags",
    )

    @property
    def home_deck_id(self) -> int:
        return self.odid or self.did

    def scheduling(self) -> dict[str, int]:
        return {key: int(getattr(self, key)) for key in self.SCHEDULING_KEYS}

    def to_row(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnkiReview:
    """
    A row of the ``revlog`` table. ``id`` is the review time in epoch ms.
    """

    id: int | None
    cid: int
    usn: int = 0
    ease: int = Ease.GOOD
    ivl: int = 0
    last_ivl: int = 0
    factor: int = 0
    time: int = 0
    type: int = 0

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["lastIvl"] = row.pop("last_ivl")
        return row


@dataclass
class AnkiCollection:
    """
    The singleton ``col`` row with its JSON columns decoded.
    """

    id: int = 1
    crt: int = 0
    mod: int = 0
    scm: int = 0
    ver: int = 11
    dty: int = 0
    usn: int = 0
    ls: int = 0
    conf: dict[str, Any] = field(default_factory=dict)
    models: dict[str, AnkiNoteType] = field(default_factory=dict)
    decks: dict[str, AnkiDeck] = field(default_factory=dict)
    dconf: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, Any] = field(default_factory=dict)
