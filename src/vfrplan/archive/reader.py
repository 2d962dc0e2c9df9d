"""Zip archive access without extracting to disk.

Both input products (chart packages and NASR subscriptions) are zip files.
This module opens them from a path, raw bytes, or a binary stream and hands
out member streams. NASR subscriptions store their CSV data as a zip inside
the zip, which ``open_nested`` reads into memory.

Typical usage example:
    from vfrplan.archive.reader import open_archive

    with open_archive("28DaySubscription_Effective_2024-01-25.zip") as handle:
        for name in handle.list_members():
            print(name)
"""

import io
import logging
import re
import zipfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import BinaryIO, TextIO

from vfrplan.core.errors import ArchiveClosed, CorruptArchive, IoError, MemberNotFound, NotAZip

logger = logging.getLogger(__name__)

# Errors zipfile and zlib raise while decompressing a damaged member.
_DECODE_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError)


class ArchiveHandle:
    """An opened zip container.

    The handle owns the underlying file (or memory buffer) until close().
    Every operation after close() raises ArchiveClosed.

    Examples:
        >>> handle = open_archive(data)
        >>> handle.has_member("APT_BASE.csv")
        True
        >>> handle.close()
    """

    def __init__(
        self,
        zip_file: zipfile.ZipFile,
        name: str,
        parent: "ArchiveHandle | None" = None,
        owned_stream: BinaryIO | None = None,
    ) -> None:
        """Wrap an open ZipFile. Use open_archive() rather than calling this directly."""
        self._zip: zipfile.ZipFile | None = zip_file
        self._owned_stream = owned_stream
        self._name = name
        self._parent = parent
        self._children: list[ArchiveHandle] = []

    @property
    def name(self) -> str:
        """Display name: the file path, or the member name for nested archives."""
        return self._name

    @property
    def closed(self) -> bool:
        return self._zip is None

    def _require_open(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveClosed(f"Archive is closed: {self._name}")
        return self._zip

    def list_members(self) -> list[str]:
        """Return the names of all file members (directories excluded)."""
        zip_file = self._require_open()
        return [info.filename for info in zip_file.infolist() if not info.is_dir()]

    def has_member(self, name: str) -> bool:
        zip_file = self._require_open()
        try:
            zip_file.getinfo(name)
        except KeyError:
            return False
        return True

    def find_members(self, pattern: str) -> list[str]:
        """Return members whose base name fully matches a regex, ignoring case.

        Args:
            pattern: Regular expression matched against the last path component.

        Returns:
            Matching member names in archive order.

        Examples:
            >>> handle.find_members(r".*_CSV\\.zip")
            ['CSV_Data/25_Jan_2024_CSV.zip']
        """
        regex = re.compile(pattern, re.IGNORECASE)
        return [name for name in self.list_members() if regex.fullmatch(PurePosixPath(name).name)]

    def member_stream(self, name: str) -> BinaryIO:
        """Open a member for streaming reads.

        Reads from the returned stream may raise zipfile.BadZipFile on a CRC
        mismatch; wrap them with ``reading()`` to get CorruptArchive instead.

        Raises:
            MemberNotFound: If the member does not exist.
            ArchiveClosed: If the handle has been closed.
        """
        zip_file = self._require_open()
        try:
            return zip_file.open(name)
        except KeyError as e:
            raise MemberNotFound(f"{name} not found in {self._name}") from e
        except _DECODE_ERRORS as e:
            raise CorruptArchive(f"Unable to read {name} in {self._name}: {e}") from e

    def read_member(self, name: str) -> bytes:
        """Read a whole member into memory.

        Raises:
            MemberNotFound: If the member does not exist.
            CorruptArchive: If the member fails to decompress.
        """
        with self.member_stream(name) as stream, self.reading(name):
            return stream.read()

    @contextmanager
    def reading(self, name: str) -> Iterator[None]:
        """Translate decompression errors raised inside the block into CorruptArchive."""
        try:
            yield
        except _DECODE_ERRORS as e:
            raise CorruptArchive(f"Unable to read {name} in {self._name}: {e}") from e

    @contextmanager
    def open_text(self, name: str, encoding: str = "utf-8-sig") -> Iterator[TextIO]:
        """Open a member as text, undecodable bytes replaced.

        Raises:
            MemberNotFound: If the member does not exist.
            CorruptArchive: If the member fails to decompress while reading.
        """
        stream = self.member_stream(name)
        text = io.TextIOWrapper(stream, encoding=encoding, errors="replace", newline="")
        try:
            with self.reading(name):
                yield text
        finally:
            text.close()

    def open_nested(self, name: str) -> "ArchiveHandle":
        """Open a zip stored as a member of this archive.

        The nested archive is read into memory and closed with its parent.

        Raises:
            MemberNotFound: If the member does not exist.
            NotAZip: If the member is not a zip file.
            CorruptArchive: If either archive is damaged.
        """
        data = self.read_member(name)
        child = _open_zip(io.BytesIO(data), name, parent=self)
        self._children.append(child)
        return child

    def close(self) -> None:
        """Release the archive and any nested archives. Idempotent."""
        if self._zip is None:
            return

        for child in self._children:
            child.close()
        self._children.clear()

        self._zip.close()
        self._zip = None
        if self._owned_stream is not None:
            self._owned_stream.close()
            self._owned_stream = None
        logger.debug("Closed archive %s", self._name)

    def __enter__(self) -> "ArchiveHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"ArchiveHandle({self._name!r}, {state})"


def _open_zip(
    stream: BinaryIO, name: str, parent: ArchiveHandle | None = None, owned: bool = False
) -> ArchiveHandle:
    if not zipfile.is_zipfile(stream):
        raise NotAZip(f"Not a zip file: {name}")
    stream.seek(0)

    try:
        zip_file = zipfile.ZipFile(stream)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise CorruptArchive(f"Unable to read zip file {name}: {e}") from e

    return ArchiveHandle(zip_file, name, parent, owned_stream=stream if owned else None)


def open_archive(source: str | Path | bytes | BinaryIO, name: str | None = None) -> ArchiveHandle:
    """Open a zip archive.

    Args:
        source: A filesystem path, the archive bytes, or a seekable binary stream.
        name: Display name used in errors; defaults to the path or "<memory>".

    Returns:
        An open ArchiveHandle. Use it as a context manager to guarantee release.

    Raises:
        IoError: If the path cannot be opened or read.
        NotAZip: If the input is not a zip container.
        CorruptArchive: If the zip directory is malformed.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return _open_zip(io.BytesIO(bytes(source)), name or "<memory>")

    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise IoError("File not found", path)
        try:
            stream = path.open("rb")
        except OSError as e:
            raise IoError(f"Unable to open file ({e.strerror})", path) from e

        try:
            handle = _open_zip(stream, name or str(path), owned=True)
        except OSError as e:
            stream.close()
            raise IoError(f"Unable to read file ({e.strerror})", path) from e
        except CorruptArchive:
            stream.close()
            raise
        logger.info("Opened archive %s", path)
        return handle

    return _open_zip(source, name or getattr(source, "name", "<stream>"))


class ArchiveKind(Enum):
    """What a zip archive contains."""

    CHART = "chart"
    NASR = "nasr"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ArchiveContents:
    """Result of classifying an archive.

    Attributes:
        kind: Chart package, NASR subscription, or unknown.
        charts: GeoTIFF members, those with a world file listed first.
        nasr_members: Members holding NASR CSV data: "" for the top level,
            otherwise the name of a nested CSV zip.
    """

    kind: ArchiveKind
    charts: tuple[str, ...] = field(default_factory=tuple)
    nasr_members: tuple[str, ...] = field(default_factory=tuple)


_TIFF_PATTERN = r".*\.tiff?"
_CSV_ZIP_PATTERN = r".*_CSV\.zip"
_APT_BASE_PATTERN = r"APT_BASE\.csv"


def identify(handle: ArchiveHandle) -> ArchiveContents:
    """Classify an archive as a chart package, a NASR subscription, or neither.

    A chart package holds GeoTIFF images, normally each with a ``.tfw`` world
    file beside it. A NASR subscription holds ``APT_BASE.csv`` at the top
    level or inside a nested ``*_CSV.zip``.
    """
    nasr: list[str] = []
    if handle.find_members(_APT_BASE_PATTERN):
        nasr.append("")
    nasr.extend(handle.find_members(_CSV_ZIP_PATTERN))
    if nasr:
        return ArchiveContents(ArchiveKind.NASR, nasr_members=tuple(nasr))

    members = {name.lower() for name in handle.list_members()}
    with_world: list[str] = []
    without_world: list[str] = []
    for tif in handle.find_members(_TIFF_PATTERN):
        stem = tif.rsplit(".", 1)[0]
        if f"{stem}.tfw".lower() in members:
            with_world.append(tif)
        else:
            without_world.append(tif)

    if with_world or without_world:
        return ArchiveContents(ArchiveKind.CHART, charts=tuple(with_world + without_world))

    return ArchiveContents(ArchiveKind.UNKNOWN)
