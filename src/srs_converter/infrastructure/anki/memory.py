"""In-memory PackageSource, used for freshly created packages and in tests."""

import copy
import io
from collections.abc import Iterable, Mapping
from typing import BinaryIO

from srs_converter.domain.anki.models import (
    AnkiCard,
    AnkiCollection,
    AnkiNote,
    AnkiReview,
    VendorTable,
)
from srs_converter.domain.anki.ports import MemberNotFoundError, PackageSource


class InMemorySource(PackageSource):
    def __init__(
        self,
        collection: AnkiCollection,
        notes: Iterable[AnkiNote] = (),
        cards: Iterable[AnkiCard] = (),
        reviews: Iterable[AnkiReview] = (),
        media: Mapping[str, bytes] | None = None,
    ):
        self._collection = copy.deepcopy(collection)
        self._notes = list(notes)
        self._cards = list(cards)
        self._reviews = list(reviews)
        # filename -> payload; short ids follow insertion order
        self._media = dict(media or {})
        self._media_map = {str(i): name for i, name in enumerate(self._media)}

    def list_members(self) -> set[str]:
        return set(self._media_map)

    def read_member(self, name: str) -> bytes:
        filename = self._media_map.get(name)
        if filename is None:
            raise MemberNotFoundError(name)
        return self._media[filename]

    def query_all(self, table: str) -> list:
        if table == VendorTable.COLLECTION:
            return [copy.deepcopy(self._collection)]
        if table == VendorTable.DECKS:
            return copy.deepcopy(list(self._collection.decks.values()))
        if table == VendorTable.NOTE_TYPES:
            return copy.deepcopy(list(self._collection.models.values()))
        if table == VendorTable.NOTES:
            return copy.deepcopy(self._notes)
        if table == VendorTable.CARDS:
            return copy.deepcopy(self._cards)
        if table == VendorTable.REVLOG:
            return copy.deepcopy(self._reviews)
        raise ValueError(f"Unknown table: {table}")

    def media_mapping(self) -> dict[str, str]:
        return dict(self._media_map)

    def open_media_stream(self, filename: str) -> BinaryIO:
        if filename not in self._media:
            raise MemberNotFoundError(filename)
        return io.BytesIO(self._media[filename])
