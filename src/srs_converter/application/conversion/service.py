"""
Public entry points of the conversion engine.

Coordinates container validation, loading the vendor package and running the
converters. Every entry point returns a ``ConversionResult``; none raises for
bad input.
"""

import logging
from pathlib import Path
from typing import BinaryIO

from srs_converter.application.config import ConversionOptions, ConverterConfig, resolve_config
from srs_converter.application.issues import ConversionResult, IssueCollector
from srs_converter.application.validation import ContainerValidator, has_valid_extension
from srs_converter.domain.anki.ports import PackageSource
from srs_converter.domain.constants import VALID_FILE_EXTENSIONS
from srs_converter.domain.models import SrsPackage
from srs_converter.infrastructure.anki.database import AnkiDatabaseError
from srs_converter.infrastructure.anki.package import AnkiPackage, make_work_dir, remove_directory

from .to_anki import SrsToAnkiConverter
from .to_universal import AnkiToSrsConverter

logger = logging.getLogger(__name__)

IMPORT_DIR = "import"


def _read_source(
    source: Path | str | bytes | BinaryIO, collector: IssueCollector
) -> bytes | None:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not has_valid_extension(path):
            collector.add_critical(
                f"Invalid file extension. Expected one of: {', '.join(VALID_FILE_EXTENSIONS)}."
            )
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            collector.add_critical(f"The Anki export file could not be read: {e}.")
            return None
    data = source.read()
    if not isinstance(data, (bytes, bytearray)):
        collector.add_critical(
            f"The Anki export stream returned {type(data).__name__} instead of bytes. "
            "Open the file in binary mode."
        )
        return None
    return bytes(data)


def load_anki_export(
    source: Path | str | bytes | BinaryIO,
    options: ConversionOptions | None = None,
    config: ConverterConfig | None = None,
) -> ConversionResult[AnkiPackage]:
    """
    Validate a legacy export and load it into an ``AnkiPackage``.

    Args:
        source: A path to an ``.apkg``/``.colpkg`` file, its bytes, or a binary stream.
        options: Conversion options; best-effort by default.
        config: Settings for the working directory; resolved from env/TOML if omitted.

    Returns:
        ``failure`` with the critical issue(s) when a container check fails,
        otherwise the loaded package. The caller owns it and must call
        ``cleanup()`` (or use it as a context manager).
    """
    config = config or resolve_config()
    options = options or ConversionOptions.from_config(config)
    collector = IssueCollector(options)

    data = _read_source(source, collector)
    if data is None:
        return collector.create_failure_result()

    try:
        work_dir = make_work_dir(config)
    except OSError as e:
        collector.add_critical(
            "Cannot proceed with conversion because the temporary working directory "
            f"could not be created. {e}."
        )
        return collector.create_failure_result()

    import_dir = work_dir / IMPORT_DIR
    archive = ContainerValidator(collector, import_dir).validate(data)
    if archive is None:
        collector.add_issues(remove_directory(work_dir))
        return collector.create_failure_result()

    try:
        with archive:
            package = AnkiPackage.from_source(archive, work_dir)
    except AnkiDatabaseError as e:
        collector.add_critical(
            f"The Anki export file could not be read and may be corrupted. {e.message}"
        )
        collector.add_issues(remove_directory(work_dir))
        return collector.create_failure_result()

    collector.add_issues(remove_directory(import_dir))
    result = collector.create_result(package)
    if not result.ok:
        result.issues.extend(package.cleanup())
    return result


def anki_to_srs(
    package: PackageSource, options: ConversionOptions | None = None
) -> ConversionResult[SrsPackage]:
    """Convert a loaded vendor package (or any ``PackageSource``) to an ``SrsPackage``."""
    return AnkiToSrsConverter(options).convert(package)


def srs_to_anki(
    package: SrsPackage,
    options: ConversionOptions | None = None,
    config: ConverterConfig | None = None,
) -> ConversionResult[AnkiPackage]:
    """
    Convert an ``SrsPackage`` to a new vendor package.

    On ``failure`` the half-built package has already been cleaned up.
    """
    return SrsToAnkiConverter(options, config).convert(package)
