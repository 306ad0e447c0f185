"""
Boundary checks for a raw legacy export, run before any row is converted.

Each failed check records one or more critical issues and stops; nothing is
converted from a container that fails here.
"""

import io
import json
import logging
import zipfile
import zlib
from pathlib import Path
from typing import Any

from srs_converter.domain.constants import (
    DATABASE_MEMBER,
    DB_VERSION,
    EXPORT_VERSION,
    MEDIA_MEMBER,
    META_MEMBER,
    REEXPORT_HINT,
    REQUIRED_MEMBERS,
    VALID_FILE_EXTENSIONS,
    ZIP_SIGNATURES,
)
from srs_converter.infrastructure.anki.archive import ApkgArchive
from srs_converter.infrastructure.anki.database import AnkiDatabase, AnkiDatabaseError
from srs_converter.infrastructure.anki.meta import MetaDecodeError, decode_version

from .issues import IssueCollector, ItemType

logger = logging.getLogger(__name__)


def json_type_name(value: Any) -> str:
    """Name a decoded JSON value the way the JSON grammar does."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def has_valid_extension(path: Path | str) -> bool:
    return str(path).lower().endswith(VALID_FILE_EXTENSIONS)


class ContainerValidator:
    """
    Runs the ordered container checks and stages a valid export in ``work_dir``.

    Usage:
        validator = ContainerValidator(collector, work_dir)
        archive = validator.validate(data)
        if archive is None:
            ...  # collector holds the critical issue(s)
    """

    def __init__(self, collector: IssueCollector, work_dir: Path):
        self.collector = collector
        self.work_dir = work_dir

    def validate(self, data: bytes) -> ApkgArchive | None:
        if not data:
            self.collector.add_critical(f"The Anki export file is empty (0 bytes). {REEXPORT_HINT}")
            return None

        if not data.startswith(ZIP_SIGNATURES):
            self.collector.add_critical(
                "The file is not a valid ZIP archive. "
                "Make sure the file is an Anki export (.apkg or .colpkg) exported from Anki."
            )
            return None

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                bad_member = zf.testzip()
                if bad_member is not None:
                    raise zipfile.BadZipFile(f"CRC mismatch in member '{bad_member}'")
                members = {name for name in zf.namelist() if not name.endswith("/")}

                missing = [m for m in REQUIRED_MEMBERS if m not in members]
                for member in missing:
                    self.collector.add_critical(
                        f"The Anki export is missing the required '{member}' file. {REEXPORT_HINT}"
                    )
                if missing:
                    return None

                meta_bytes = zf.read(META_MEMBER)
                media_bytes = zf.read(MEDIA_MEMBER)
                if not self._check_meta(meta_bytes):
                    return None
                media_map = self._check_media_mapping(media_bytes)
                if media_map is None:
                    return None

                self.work_dir.mkdir(parents=True, exist_ok=True)
                zf.extractall(self.work_dir)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError) as e:
            logger.debug(f"Unreadable ZIP container: {e}")
            self.collector.add_critical(
                "The ZIP archive is truncated or corrupted and cannot be read. "
                "Please re-download or re-export the file."
            )
            return None

        archive = self._check_database(members, media_map)
        if archive is None:
            return None

        for short_id, filename in media_map.items():
            if short_id not in members:
                self.collector.add_warning(
                    f"Media file '{filename}' is listed in the media mapping as '{short_id}' "
                    "but is missing from the archive.",
                    ItemType.MEDIA,
                    {short_id: filename},
                )

        return archive

    def _check_meta(self, meta_bytes: bytes) -> bool:
        try:
            version = decode_version(meta_bytes)
        except MetaDecodeError as e:
            self.collector.add_critical(f"The 'meta' file is corrupted: {e}. {REEXPORT_HINT}")
            return False

        if version != EXPORT_VERSION:
            self.collector.add_critical(
                f"Unsupported Anki export package version: {version}. "
                'Make sure to check "Support older Anki versions" in the Anki export dialog.'
            )
            return False
        return True

    def _check_media_mapping(self, media_bytes: bytes) -> dict[str, str] | None:
        try:
            parsed = json.loads(media_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            self.collector.add_critical(
                f"The media file mapping contains invalid JSON and cannot be parsed. {REEXPORT_HINT}"
            )
            return None

        if not isinstance(parsed, dict):
            self.collector.add_critical(
                "The media file mapping has an invalid structure: "
                f"expected an object but found {json_type_name(parsed)}. {REEXPORT_HINT}"
            )
            return None

        valid = True
        for key, value in parsed.items():
            if not isinstance(value, str):
                self.collector.add_critical(
                    f"The media file mapping has an invalid entry '{key}': "
                    f"found {json_type_name(value)} instead of string. {REEXPORT_HINT}"
                )
                valid = False
        return parsed if valid else None

    def _check_database(self, members: set[str], media_map: dict[str, str]) -> ApkgArchive | None:
        try:
            database = AnkiDatabase.from_file(self.work_dir / DATABASE_MEMBER)
        except AnkiDatabaseError as e:
            self.collector.add_critical(f"{e.message} {REEXPORT_HINT}")
            return None

        archive = ApkgArchive(self.work_dir, members, media_map, database)
        try:
            database.validate_schema()
            collection = archive.collection()
        except AnkiDatabaseError as e:
            archive.close()
            self.collector.add_critical(f"{e.message} {REEXPORT_HINT}")
            return None

        if collection.ver != DB_VERSION:
            archive.close()
            self.collector.add_critical(
                f"This Anki file uses database version {collection.ver}, which is not supported. "
                "Please export your deck from a compatible Anki version."
            )
            return None

        return archive
