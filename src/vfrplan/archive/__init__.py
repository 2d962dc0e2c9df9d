"""Zip archive access for chart packages and NASR subscriptions.

Typical usage:
    from vfrplan.archive import ArchiveKind, identify, open_archive

    with open_archive(path) as handle:
        if identify(handle).kind is ArchiveKind.NASR:
            ...
"""

from vfrplan.archive.reader import ArchiveContents, ArchiveHandle, ArchiveKind, identify, open_archive

__all__ = [
    "ArchiveContents",
    "ArchiveHandle",
    "ArchiveKind",
    "identify",
    "open_archive",
]
