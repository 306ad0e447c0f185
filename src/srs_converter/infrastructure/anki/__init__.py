from .archive import ApkgArchive
from .database import AnkiDatabase, AnkiDatabaseError
from .memory import InMemorySource
from .package import AnkiPackage, MediaFileError

__all__ = [
    "AnkiDatabase",
    "AnkiDatabaseError",
    "AnkiPackage",
    "ApkgArchive",
    "InMemorySource",
    "MediaFileError",
]
