"""
ApkgArchive: a PackageSource over an export staged in a working directory.

The container is unzipped into the directory by the validator; this adapter
only reads what is already there.
"""

import logging
from pathlib import Path
from typing import BinaryIO

from srs_converter.domain.anki.models import AnkiCollection, VendorTable
from srs_converter.domain.anki.ports import MemberNotFoundError, PackageSource
from srs_converter.domain.constants import DATABASE_MEMBER

from .database import AnkiDatabase

logger = logging.getLogger(__name__)


class ApkgArchive(PackageSource):
    """
    A validated legacy export extracted to ``work_dir``.

    Holds an open database connection until ``close()``.
    """

    def __init__(
        self,
        work_dir: Path,
        members: set[str],
        media_map: dict[str, str],
        database: AnkiDatabase | None = None,
    ):
        self.work_dir = work_dir
        self._members = set(members)
        self._media_map = dict(media_map)
        self._database = database
        self._collection: AnkiCollection | None = None

    def __enter__(self) -> "ApkgArchive":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def database(self) -> AnkiDatabase:
        if self._database is None:
            self._database = AnkiDatabase.from_file(self.work_dir / DATABASE_MEMBER)
        return self._database

    def collection(self) -> AnkiCollection:
        if self._collection is None:
            self._collection = self.database.load_collection()
        return self._collection

    def close(self) -> None:
        if self._database is not None:
            self._database.close()
            self._database = None

    def list_members(self) -> set[str]:
        return set(self._members)

    def read_member(self, name: str) -> bytes:
        if name not in self._members:
            raise MemberNotFoundError(name)
        return (self.work_dir / name).read_bytes()

    def query_all(self, table: str) -> list:
        if table == VendorTable.COLLECTION:
            return [self.collection()]
        if table == VendorTable.DECKS:
            return list(self.collection().decks.values())
        if table == VendorTable.NOTE_TYPES:
            return list(self.collection().models.values())
        if table == VendorTable.NOTES:
            return self.database.load_notes()
        if table == VendorTable.CARDS:
            return self.database.load_cards()
        if table == VendorTable.REVLOG:
            return self.database.load_reviews()
        raise ValueError(f"Unknown table: {table}")

    def media_mapping(self) -> dict[str, str]:
        return dict(self._media_map)

    def open_media_stream(self, filename: str) -> BinaryIO:
        for short_id, name in self._media_map.items():
            if name == filename and short_id in self._members:
                return (self.work_dir / short_id).open("rb")
        raise MemberNotFoundError(filename)
