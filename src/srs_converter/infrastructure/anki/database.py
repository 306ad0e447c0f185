"""
SQLite store of a legacy collection (``collection.anki21``, schema 11).

Reads the denormalized tables into the typed records of
``srs_converter.domain.anki.models`` and writes a fresh database from them.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from srs_converter.domain.anki.models import (
    AnkiCard,
    AnkiCollection,
    AnkiDeck,
    AnkiNote,
    AnkiNoteType,
    AnkiReview,
)
from srs_converter.domain.constants import REQUIRED_TABLES, SQLITE_MAGIC

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE cards (
  id integer PRIMARY KEY,
  nid integer NOT NULL,
  did integer NOT NULL,
  ord integer NOT NULL,
  mod integer NOT NULL,
  usn integer NOT NULL,
  type integer NOT NULL,
  queue integer NOT NULL,
  due integer NOT NULL,
  ivl integer NOT NULL,
  factor integer NOT NULL,
  reps integer NOT NULL,
  lapses integer NOT NULL,
  left integer NOT NULL,
  odue integer NOT NULL,
  odid integer NOT NULL,
  flags integer NOT NULL,
  data text NOT NULL
);
CREATE TABLE col (
  id integer PRIMARY KEY,
  crt integer NOT NULL,
  mod integer NOT NULL,
  scm integer NOT NULL,
  ver integer NOT NULL,
  dty integer NOT NULL,
  usn integer NOT NULL,
  ls integer NOT NULL,
  conf text NOT NULL,
  models text NOT NULL,
  decks text NOT NULL,
  dconf text NOT NULL,
  tags text NOT NULL
);
CREATE TABLE graves (
  usn integer NOT NULL,
  oid integer NOT NULL,
  type integer NOT NULL
);
CREATE TABLE notes (
  id integer PRIMARY KEY,
  guid text NOT NULL,
  mid integer NOT NULL,
  mod integer NOT NULL,
  usn integer NOT NULL,
  tags text NOT NULL,
  flds text NOT NULL,
  sfld integer NOT NULL,
  csum integer NOT NULL,
  flags integer NOT NULL,
  data text NOT NULL
);
CREATE TABLE revlog (
  id integer PRIMARY KEY,
  cid integer NOT NULL,
  usn integer NOT NULL,
  ease integer NOT NULL,
  ivl integer NOT NULL,
  lastIvl integer NOT NULL,
  factor integer NOT NULL,
  time integer NOT NULL,
  type integer NOT NULL
);
CREATE INDEX ix_cards_nid ON cards (nid);
CREATE INDEX ix_cards_sched ON cards (did, queue, due);
CREATE INDEX ix_cards_usn ON cards (usn);
CREATE INDEX ix_notes_csum ON notes (csum);
CREATE INDEX ix_notes_usn ON notes (usn);
CREATE INDEX ix_revlog_cid ON revlog (cid);
CREATE INDEX ix_revlog_usn ON revlog (usn);
"""

_NOTE_COLUMNS = ("id", "guid", "mid", "mod", "usn", "tags", "flds", "sfld", "csum", "flags", "data")
_CARD_COLUMNS = (
    "id", "nid", "did", "ord", "mod", "usn", "type", "queue", "due", "ivl", "factor",
    "reps", "lapses", "left", "odue", "odid", "flags", "data",
)
_REVLOG_COLUMNS = ("id", "cid", "usn", "ease", "ivl", "lastIvl", "factor", "time", "type")


class AnkiDatabaseError(Exception):
    """
    Raised when the collection database cannot be used.

    Attributes:
        kind: One of ``empty``, ``truncated``, ``invalid_header``, ``corrupted``,
            ``missing_tables``, ``invalid_collection``.
        missing_tables: Populated for ``missing_tables``.
    """

    def __init__(self, kind: str, message: str, missing_tables: list[str] | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.missing_tables = missing_tables or []


def _unicase(a: str, b: str) -> int:
    a, b = a.casefold(), b.casefold()
    return (a > b) - (a < b)


def _connect(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.create_collation("unicase", _unicase)
    return conn


class AnkiDatabase:
    """
    Thin wrapper over a ``collection.anki21`` file.

    Usage:
        with AnkiDatabase.from_file(path) as db:
            db.validate_schema()
            collection = db.load_collection()
    """

    def __init__(self, path: Path, conn: sqlite3.Connection):
        self.path = path
        self._conn: sqlite3.Connection | None = conn

    def __enter__(self) -> "AnkiDatabase":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise AnkiDatabaseError("corrupted", f"Database {self.path} is closed.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ---------- Opening ----------

    @classmethod
    def from_file(cls, path: Path) -> "AnkiDatabase":
        """
        Open an existing database after checking its header.

        Raises:
            AnkiDatabaseError: if the file is empty, too small, not SQLite or unopenable.
        """
        path = Path(path)
        with path.open("rb") as f:
            header = f.read(len(SQLITE_MAGIC))

        if not header:
            raise AnkiDatabaseError("empty", "The database file is empty (0 bytes).")
        if len(header) < len(SQLITE_MAGIC):
            raise AnkiDatabaseError(
                "truncated", "The database file is too small to be a valid SQLite database."
            )
        if header != SQLITE_MAGIC:
            raise AnkiDatabaseError(
                "invalid_header", "The file is not a valid SQLite database (invalid header)."
            )

        try:
            conn = _connect(path)
        except sqlite3.Error as e:
            raise AnkiDatabaseError(
                "corrupted", f"The database file is corrupted and cannot be opened: {e}"
            ) from e
        return cls(path, conn)

    @classmethod
    def create(
        cls,
        path: Path,
        collection: AnkiCollection,
        notes: list[AnkiNote],
        cards: list[AnkiCard],
        reviews: list[AnkiReview],
    ) -> "AnkiDatabase":
        """Write a new database holding exactly the given rows."""
        path = Path(path)
        if path.exists():
            path.unlink()
        conn = _connect(path)
        conn.execute("PRAGMA page_size = 512")
        conn.executescript(SCHEMA_SQL)
        db = cls(path, conn)
        with conn:
            db._insert_collection(collection)
            conn.executemany(
                f"INSERT INTO notes ({', '.join(_NOTE_COLUMNS)}) "
                f"VALUES ({', '.join(':' + c for c in _NOTE_COLUMNS)})",
                [note.to_row() for note in notes],
            )
            conn.executemany(
                f"INSERT INTO cards ({', '.join(_CARD_COLUMNS)}) "
                f"VALUES ({', '.join(':' + c for c in _CARD_COLUMNS)})",
                [card.to_row() for card in cards],
            )
            conn.executemany(
                f"INSERT INTO revlog ({', '.join(_REVLOG_COLUMNS)}) "
                f"VALUES ({', '.join(':' + c for c in _REVLOG_COLUMNS)})",
                [review.to_row() for review in reviews],
            )
        logger.debug(
            f"Wrote {path.name}: {len(notes)} notes, {len(cards)} cards, {len(reviews)} reviews"
        )
        return db

    def _insert_collection(self, collection: AnkiCollection) -> None:
        self.conn.execute(
            "INSERT INTO col (id, crt, mod, scm, ver, dty, usn, ls, conf, models, decks, dconf, tags) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                collection.id,
                collection.crt,
                collection.mod,
                collection.scm,
                collection.ver,
                collection.dty,
                collection.usn,
                collection.ls,
                json.dumps(collection.conf),
                json.dumps({key: model.to_json() for key, model in collection.models.items()}),
                json.dumps({key: deck.to_json() for key, deck in collection.decks.items()}),
                json.dumps(collection.dconf),
                json.dumps(collection.tags),
            ),
        )

    # ---------- Validation ----------

    def validate_schema(self) -> None:
        """
        Raises:
            AnkiDatabaseError: if the database is unreadable or lacks a required table.
        """
        try:
            rows = self.conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError(
                "corrupted", f"The database is corrupted and cannot be read: {e}"
            ) from e

        existing = {row[0] for row in rows}
        missing = [table for table in REQUIRED_TABLES if table not in existing]
        if missing:
            missing_list = ", ".join(f"'{t}'" for t in missing)
            raise AnkiDatabaseError(
                "missing_tables",
                f"The database is missing required tables: {missing_list}. "
                "This may indicate a corrupted or incompatible database.",
                missing,
            )

    # ---------- Reading ----------

    def load_collection(self) -> AnkiCollection:
        """
        Decode the singleton ``col`` row.

        Raises:
            AnkiDatabaseError: if the row is absent or its JSON columns do not parse.
        """
        try:
            row = self.conn.execute("SELECT * FROM col LIMIT 1").fetchone()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError(
                "corrupted", f"The collection row cannot be read: {e}"
            ) from e
        if row is None:
            raise AnkiDatabaseError("invalid_collection", "The database has no collection row.")

        try:
            models: dict[str, Any] = json.loads(row["models"] or "{}")
            decks: dict[str, Any] = json.loads(row["decks"] or "{}")
            return AnkiCollection(
                id=row["id"],
                crt=row["crt"],
                mod=row["mod"],
                scm=row["scm"],
                ver=row["ver"],
                dty=row["dty"],
                usn=row["usn"],
                ls=row["ls"],
                conf=json.loads(row["conf"] or "{}"),
                models={key: AnkiNoteType.from_json(value) for key, value in models.items()},
                decks={key: AnkiDeck.from_json(value) for key, value in decks.items()},
                dconf=json.loads(row["dconf"] or "{}"),
                tags=json.loads(row["tags"] or "{}"),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AnkiDatabaseError(
                "invalid_collection", f"The collection row is malformed: {e}"
            ) from e

    def _fetch(self, table: str, columns: tuple[str, ...]) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(f"SELECT {', '.join(columns)} FROM {table}").fetchall()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError("corrupted", f"The '{table}' table cannot be read: {e}") from e

    def load_notes(self) -> list[AnkiNote]:
        rows = self._fetch("notes", _NOTE_COLUMNS)
        notes = []
        for row in rows:
            data = dict(row)
            # The sfld column has integer affinity; numeric sort fields come back as numbers.
            data["sfld"] = str(data["sfld"])
            notes.append(AnkiNote(**data))
        return notes

    def load_cards(self) -> list[AnkiCard]:
        rows = self._fetch("cards", _CARD_COLUMNS)
        return [AnkiCard(**dict(row)) for row in rows]

    def load_reviews(self) -> list[AnkiReview]:
        rows = self._fetch("revlog", _REVLOG_COLUMNS)
        reviews = []
        for row in rows:
            data = dict(row)
            data["last_ivl"] = data.pop("lastIvl")
            reviews.append(AnkiReview(**data))
        return reviews
