"""
AnkiPackage: the in-memory vendor package.

Owns a temporary working directory for media payloads and export staging.
The directory lives from construction until ``cleanup()``; cleanup failures
are reported as warning issues and never raised.
"""

import json
import logging
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO

from srs_converter.application.config import ConversionOptions, ConverterConfig
from srs_converter.application.issues import (
    ConversionIssue,
    ConversionResult,
    IssueCollector,
    IssueContext,
    Severity,
)
from srs_converter.domain.anki.defaults import default_collection
from srs_converter.domain.anki.models import (
    AnkiCard,
    AnkiCollection,
    AnkiDeck,
    AnkiNote,
    AnkiNoteType,
    AnkiReview,
    VendorTable,
)
from srs_converter.domain.anki.ports import MemberNotFoundError, PackageSource
from srs_converter.domain.constants import (
    DATABASE_MEMBER,
    EXPORT_VERSION,
    MEDIA_MEMBER,
    META_MEMBER,
)

from .database import AnkiDatabase
from .meta import encode_version

logger = logging.getLogger(__name__)

MEDIA_DIR = "media-files"

CLEANUP_WARNING = (
    "Could not clean up temporary files after conversion. "
    "This does not affect your converted data."
)


class MediaFileError(Exception):
    """Raised when a media file cannot be added to the package."""


def make_work_dir(config: ConverterConfig | None = None) -> Path:
    config = config or ConverterConfig()
    if config.temp_root is not None:
        config.temp_root.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=config.temp_prefix, dir=config.temp_root))


def remove_directory(path: Path) -> list[ConversionIssue]:
    """Delete a working directory, reporting failure as a warning issue."""
    if not path.exists():
        return []
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
        return [
            ConversionIssue(
                severity=Severity.WARNING,
                message=CLEANUP_WARNING,
                context=IssueContext(original_data=e),
            )
        ]
    logger.debug(f"Removed working directory {path}")
    return []


class AnkiPackage(PackageSource):
    """
    A legacy vendor package held in memory.

    Attributes:
        work_dir: Temporary directory owned by this package.
        collection: The decoded ``col`` row (decks, note types, config).
    """

    def __init__(
        self,
        work_dir: Path,
        collection: AnkiCollection,
        notes: list[AnkiNote] | None = None,
        cards: list[AnkiCard] | None = None,
        reviews: list[AnkiReview] | None = None,
    ):
        self.work_dir = Path(work_dir)
        self.collection = collection
        self._notes: list[AnkiNote] = list(notes or [])
        self._cards: list[AnkiCard] = list(cards or [])
        self._reviews: list[AnkiReview] = list(reviews or [])
        # short id ("0", "1", ...) -> filename; payloads live in media_dir/<short id>
        self._media: dict[str, str] = {}
        self._cleaned_up = False
        self.media_dir.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return (
            f"AnkiPackage(work_dir={self.work_dir}, decks={len(self.collection.decks)}, "
            f"note_types={len(self.collection.models)}, notes={len(self._notes)}, "
            f"cards={len(self._cards)}, reviews={len(self._reviews)}, media={len(self._media)})"
        )

    def __enter__(self) -> "AnkiPackage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()

    @property
    def media_dir(self) -> Path:
        return self.work_dir / MEDIA_DIR

    # ---------- Construction ----------

    @classmethod
    def from_default(
        cls,
        options: ConversionOptions | None = None,
        config: ConverterConfig | None = None,
    ) -> ConversionResult["AnkiPackage"]:
        """An empty package holding only the default deck and configuration."""
        collector = IssueCollector(options)
        try:
            work_dir = make_work_dir(config)
        except OSError as e:
            collector.add_critical(
                "Cannot proceed with conversion because the temporary working directory "
                f"could not be created. {e}."
            )
            return collector.create_failure_result()

        return collector.create_result(cls(work_dir, default_collection()))

    @classmethod
    def from_source(cls, source: PackageSource, work_dir: Path) -> "AnkiPackage":
        """Copy every table and media payload of ``source`` into a new package."""
        collection = source.query_all(VendorTable.COLLECTION)[0]
        package = cls(
            work_dir,
            collection,
            notes=source.query_all(VendorTable.NOTES),
            cards=source.query_all(VendorTable.CARDS),
            reviews=source.query_all(VendorTable.REVLOG),
        )

        members = source.list_members()
        for short_id, filename in source.media_mapping().items():
            if short_id not in members:
                # Reported during validation.
                continue
            with source.open_media_stream(filename) as stream:
                with (package.media_dir / short_id).open("wb") as out:
                    shutil.copyfileobj(stream, out)
            package._media[short_id] = filename

        logger.debug(f"Loaded {package!r}")
        return package

    # ---------- PackageSource ----------

    def list_members(self) -> set[str]:
        return set(self._media)

    def read_member(self, name: str) -> bytes:
        if name not in self._media:
            raise MemberNotFoundError(name)
        return (self.media_dir / name).read_bytes()

    def query_all(self, table: str) -> list:
        if table == VendorTable.COLLECTION:
            return [self.collection]
        if table == VendorTable.DECKS:
            return self.get_decks()
        if table == VendorTable.NOTE_TYPES:
            return self.get_note_types()
        if table == VendorTable.NOTES:
            return self.get_notes()
        if table == VendorTable.CARDS:
            return self.get_cards()
        if table == VendorTable.REVLOG:
            return self.get_reviews()
        raise ValueError(f"Unknown table: {table}")

    def media_mapping(self) -> dict[str, str]:
        return dict(self._media)

    def open_media_stream(self, filename: str) -> BinaryIO:
        return self.open_media_file(filename)

    # ---------- Records ----------

    def get_decks(self) -> list[AnkiDeck]:
        return list(self.collection.decks.values())

    def get_note_types(self) -> list[AnkiNoteType]:
        return list(self.collection.models.values())

    def get_notes(self) -> list[AnkiNote]:
        return list(self._notes)

    def get_cards(self) -> list[AnkiCard]:
        return list(self._cards)

    def get_reviews(self) -> list[AnkiReview]:
        return list(self._reviews)

    def get_config(self) -> dict:
        return self.collection.conf

    def add_deck(self, deck: AnkiDeck) -> None:
        self.collection.decks[str(deck.id)] = deck

    def remove_deck(self, deck_id: int) -> None:
        """
        Raises:
            KeyError: if no deck has this id.
        """
        if str(deck_id) not in self.collection.decks:
            raise KeyError(f"Deck with ID {deck_id} does not exist")
        del self.collection.decks[str(deck_id)]

    def add_note_type(self, note_type: AnkiNoteType) -> None:
        self.collection.models[str(note_type.id)] = note_type

    def add_note(self, note: AnkiNote) -> None:
        self._notes.append(note)

    def add_card(self, card: AnkiCard) -> None:
        self._cards.append(card)

    def add_review(self, review: AnkiReview) -> None:
        self._reviews.append(review)

    # ---------- Media ----------

    def _short_id(self, filename: str) -> str:
        for short_id, name in self._media.items():
            if name == filename:
                return short_id
        raise MemberNotFoundError(f"Media file '{filename}' not found in package")

    def list_media_files(self) -> list[str]:
        return list(self._media.values())

    def get_media_file_size(self, filename: str) -> int:
        """
        Raises:
            MemberNotFoundError: if the package has no such file.
        """
        return (self.media_dir / self._short_id(filename)).stat().st_size

    def open_media_file(self, filename: str) -> BinaryIO:
        """
        Open a media payload for reading. The caller closes the stream.

        Raises:
            MemberNotFoundError: if the package has no such file.
        """
        return (self.media_dir / self._short_id(filename)).open("rb")

    def add_media_file(self, filename: str, source: Path | str | bytes | BinaryIO) -> str:
        """
        Add a media file from a path, raw bytes or a binary stream.

        Returns the short id the file is stored under.

        Raises:
            MediaFileError: on a duplicate name or an unreadable source.
        """
        if filename in self._media.values():
            raise MediaFileError(f"Media file '{filename}' already exists in package")

        numeric_ids = [int(k) for k in self._media if k.isdigit()]
        short_id = str(max(numeric_ids) + 1 if numeric_ids else 0)
        target = self.media_dir / short_id

        try:
            if isinstance(source, bytes):
                target.write_bytes(source)
            elif isinstance(source, (str, Path)):
                shutil.copyfile(source, target)
            else:
                with target.open("wb") as out:
                    shutil.copyfileobj(source, out)
        except OSError as e:
            target.unlink(missing_ok=True)
            raise MediaFileError(f"Failed to add media file '{filename}': {e}") from e

        self._media[short_id] = filename
        logger.debug(f"Added media file {filename} as {short_id}")
        return short_id

    def remove_media_file(self, filename: str) -> None:
        """
        Raises:
            MemberNotFoundError: if the package has no such file.
        """
        short_id = self._short_id(filename)
        (self.media_dir / short_id).unlink(missing_ok=True)
        del self._media[short_id]

    # ---------- Export & lifecycle ----------

    def to_anki_export(self, path: Path | str) -> Path:
        """
        Write the package as a legacy (generation 2) export.

        ``collection.anki21`` is deflated; ``media``, ``meta`` and the media
        payloads are stored uncompressed.
        """
        if self._cleaned_up:
            raise RuntimeError("Package contents are no longer available after cleanup()")
        if not str(path).strip():
            raise ValueError("Export filepath cannot be empty")

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix="export-", dir=self.work_dir))
        try:
            (staging / META_MEMBER).write_bytes(encode_version(EXPORT_VERSION))
            (staging / MEDIA_MEMBER).write_text(json.dumps(self._media, indent=2), encoding="utf-8")
            db = AnkiDatabase.create(
                staging / DATABASE_MEMBER, self.collection, self._notes, self._cards, self._reviews
            )
            db.close()

            with zipfile.ZipFile(path, "w") as zf:
                zf.write(staging / DATABASE_MEMBER, DATABASE_MEMBER, compress_type=zipfile.ZIP_DEFLATED)
                zf.write(staging / MEDIA_MEMBER, MEDIA_MEMBER, compress_type=zipfile.ZIP_STORED)
                zf.write(staging / META_MEMBER, META_MEMBER, compress_type=zipfile.ZIP_STORED)
                for short_id in self._media:
                    zf.write(self.media_dir / short_id, short_id, compress_type=zipfile.ZIP_STORED)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Exported {self!r} to {path}")
        return path

    def to_bytes(self) -> bytes:
        """The export as bytes, for callers that do not want a file."""
        staging = Path(tempfile.mkdtemp(prefix="bytes-", dir=self.work_dir))
        try:
            return self.to_anki_export(staging / "package.apkg").read_bytes()
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def cleanup(self) -> list[ConversionIssue]:
        """Release the working directory. Safe to call more than once."""
        if self._cleaned_up:
            return []
        self._cleaned_up = True
        return remove_directory(self.work_dir)
