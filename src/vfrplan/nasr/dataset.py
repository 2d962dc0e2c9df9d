"""One-call loading of a NASR archive into records, warnings and an index.

This composes the archive reader, the parser and the index build, and closes
the archive on every path, including cancellation and errors.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from vfrplan.archive.reader import open_archive
from vfrplan.core.config import EngineSettings
from vfrplan.core.errors import ParseWarning
from vfrplan.core.tasks import CancelToken
from vfrplan.index.facility_index import FacilityIndex
from vfrplan.nasr.parser import NasrParser
from vfrplan.nasr.records import FacilityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NasrDataset:
    """A loaded NASR archive.

    Attributes:
        source: Display name of the archive.
        records: Parsed records in file order.
        warnings: Rows that were skipped.
        index: Index built over the records.
    """

    source: str
    records: tuple[FacilityRecord, ...]
    warnings: tuple[ParseWarning, ...]
    index: FacilityIndex


def load_nasr_archive(
    source: str | Path | bytes | BinaryIO,
    settings: EngineSettings | None = None,
    cancel: CancelToken | None = None,
) -> NasrDataset:
    """Open, parse and index a NASR subscription archive.

    Args:
        source: Archive path, bytes, or binary stream.
        settings: Engine settings; defaults when None.
        cancel: Optional cancellation token.

    Returns:
        The loaded dataset.

    Raises:
        IoError: If the file cannot be read.
        CorruptArchive: If the archive is not a zip or is damaged.
        UnsupportedSchema: If the archive is not a NASR CSV subscription.
        OperationCancelled: If the cancel token fires.
    """
    settings = settings or EngineSettings()

    with open_archive(source) as handle:
        result = NasrParser(encoding=settings.nasr_encoding, cancel=cancel).parse(handle)
        name = handle.name

    if cancel is not None:
        cancel.raise_if_cancelled()

    index = FacilityIndex.build(result.records, settings)
    logger.info("Loaded %d NASR records from %s (%d warnings)", len(result.records), name, len(result.warnings))
    return NasrDataset(name, tuple(result.records), tuple(result.warnings), index)
