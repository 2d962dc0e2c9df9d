"""Error kinds raised by the data engine.

Every fatal path raises a specific subclass of VFRPlanError so the
presentation layer can decide how to surface it. Row-level NASR problems are
not exceptions; they are returned as ParseWarning values alongside the
records that did parse.

Typical usage example:
    from vfrplan.core.errors import CorruptArchive, UnsupportedSchema

    try:
        dataset = load_nasr_archive("28DaySubscription.zip")
    except UnsupportedSchema as e:
        show_error(f"Not a NASR subscription: {e}")
    except CorruptArchive as e:
        show_error(f"Archive rejected: {e}")
"""

from dataclasses import dataclass
from pathlib import Path


class VFRPlanError(Exception):
    """Base class for all engine errors."""


class IoError(VFRPlanError):
    """Raised when a file or stream cannot be read.

    Attributes:
        path: The offending path, if known.
    """

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        self.path = str(path) if path is not None else None
        if self.path:
            message = f"{message}: {self.path}"
        super().__init__(message)


class CorruptArchive(VFRPlanError):
    """Raised when a zip container is malformed or a member fails to decompress."""


class NotAZip(CorruptArchive):
    """Raised when the input is not a zip container at all."""


class ArchiveClosed(VFRPlanError):
    """Raised when an operation is attempted on a closed archive handle."""


class MemberNotFound(VFRPlanError):
    """Raised when a named member does not exist in an archive."""


class UnsupportedSchema(VFRPlanError):
    """Raised when a NASR archive lacks a required layout member or column."""


class MissingGeoreference(VFRPlanError):
    """Raised when a chart raster carries no usable georeferencing."""


class UnsupportedProjection(VFRPlanError):
    """Raised when a chart projection cannot be inverted analytically."""


class ChartNotLoaded(VFRPlanError):
    """Raised when a view operation targets a chart slot with no chart in it."""


class OperationCancelled(VFRPlanError):
    """Raised inside a background job when its cancel token fires."""


@dataclass(frozen=True)
class ParseWarning:
    """A malformed NASR row that was skipped.

    Attributes:
        member: Archive member the row came from (e.g. "APT_BASE.csv").
        line: 1-based source line number of the row.
        message: What was wrong with the row.
    """

    member: str
    line: int
    message: str

    def __str__(self) -> str:
        return f"{self.member}:{self.line}: {self.message}"
