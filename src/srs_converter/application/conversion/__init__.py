# Application Conversion Package
from .service import anki_to_srs, load_anki_export, srs_to_anki
from .to_anki import SrsToAnkiConverter
from .to_universal import AnkiToSrsConverter

__all__ = [
    "AnkiToSrsConverter",
    "SrsToAnkiConverter",
    "anki_to_srs",
    "load_anki_export",
    "srs_to_anki",
]
