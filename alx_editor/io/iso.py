"""
GameCube disc image access.

Handles:
* disc header and file-system table (FST) parsing
* loading the main executable (``Start.dol``) into memory
* reading files by logical path, expanding AKLZ containers
* staging in-place replacements and committing them on save
"""
from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from ..core.config import COMPRESSED_EXTENSIONS, DOL_PATH
from ..core.errors import CorruptData, IoError, NotAGameImage
from ..core.region import GameVersion, detect_version
from ..logs.logging import get_logger
from . import aklz

HEADER_INFO_OFFSET = 0x420
GAME_ID_SIZE = 6
TITLE_OFFSET = 0x20
TITLE_SIZE = 0x3E0
FST_ENTRY_SIZE = 0xC

DOL_HEADER_SIZE = 0x100
DOL_TEXT_SECTIONS = 7
DOL_DATA_SECTIONS = 11
DOL_SECTION_OFFSETS = 0x00
DOL_SECTION_SIZES = 0x90

_LOGGER = get_logger("iso")


@dataclass(frozen=True)
class FileEntry:
    path: str
    offset: int
    size: int

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        name = self.name
        return name[name.rfind(".") :].lower() if "." in name else ""


def dol_size(header: bytes) -> int:
    """Size of a DOL image: the furthest end of its 18 text and data sections."""
    if len(header) < DOL_HEADER_SIZE:
        raise NotAGameImage("executable header is truncated")
    sections = DOL_TEXT_SECTIONS + DOL_DATA_SECTIONS
    offsets = struct.unpack_from(f">{sections}I", header, DOL_SECTION_OFFSETS)
    sizes = struct.unpack_from(f">{sections}I", header, DOL_SECTION_SIZES)
    end = 0
    for offset, size in zip(offsets, sizes):
        if size:
            end = max(end, offset + size)
    return end


def parse_fst(fst: bytes, disc_size: int | None = None) -> dict[str, FileEntry]:
    """
    Decode a file-system table into ``{lower-case path: FileEntry}``.

    Entry 0 is the root directory; its third word is the total entry count.
    Directory entries store the index one past their last child, file
    entries store the disc offset and size. Names live in the string table
    that follows the entries.
    """
    if len(fst) < FST_ENTRY_SIZE:
        raise NotAGameImage("file-system table is truncated")
    root_flags = fst[0]
    count = struct.unpack_from(">I", fst, 8)[0]
    table_size = count * FST_ENTRY_SIZE
    if root_flags != 1 or count == 0 or table_size > len(fst):
        raise NotAGameImage("file-system table is malformed")
    strings = fst[table_size:]

    def name_at(name_offset: int) -> str:
        if name_offset >= len(strings):
            raise NotAGameImage(f"file-system name offset 0x{name_offset:X} is out of range")
        end = strings.find(b"\x00", name_offset)
        raw = strings[name_offset : end if end >= 0 else len(strings)]
        return raw.decode("shift_jis", errors="replace")

    files: dict[str, FileEntry] = {}
    dir_stack: list[tuple[int, str]] = []
    prefix = ""
    index = 1
    while index < count:
        while dir_stack and index >= dir_stack[-1][0]:
            dir_stack.pop()
            prefix = dir_stack[-1][1] if dir_stack else ""
        base = index * FST_ENTRY_SIZE
        flags = fst[base]
        name_offset = struct.unpack_from(">I", fst, base)[0] & 0xFFFFFF
        value, extent = struct.unpack_from(">II", fst, base + 4)
        name = name_at(name_offset)
        if flags == 0:
            if disc_size is not None and value + extent > disc_size:
                raise NotAGameImage(f"{prefix}{name} lies outside the disc image")
            path = f"{prefix}{name}"
            files[path.lower()] = FileEntry(path, value, extent)
        else:
            if extent <= index or extent > count:
                raise NotAGameImage(f"directory {prefix}{name} has an invalid end index {extent}")
            prefix = f"{prefix}{name}/"
            dir_stack.append((extent, prefix))
        index += 1
    return files


class GameImage:
    """An opened disc image with its executable held in memory."""

    def __init__(
        self,
        path: Path,
        handle: BinaryIO,
        game_id: str,
        title: str,
        dol_offset: int,
        dol: bytearray,
        files: dict[str, FileEntry],
    ) -> None:
        self._path = path
        self._handle: BinaryIO | None = handle
        self.game_id = game_id
        self.title = title
        self.version: GameVersion | None = detect_version(game_id)
        self._dol_offset = dol_offset
        self._dol = dol
        self._dol_dirty = False
        self._files = files
        self._staged: dict[str, bytes] = {}

    # ------------------------------------------------------------------
    # Opening / closing
    # ------------------------------------------------------------------
    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "GameImage":
        disc_path = Path(path)
        try:
            handle = disc_path.open("rb")
        except OSError as exc:
            raise IoError(f"Unable to open disc image ({exc.strerror or exc})", str(disc_path)) from exc
        try:
            image = cls._load(disc_path, handle)
        except BaseException:
            handle.close()
            raise
        _LOGGER.info(
            "Opened %s (%s, %s): %d files, executable %d bytes",
            disc_path.name,
            image.game_id,
            image.version.label if image.version else "unknown version",
            len(image._files),
            len(image._dol),
        )
        return image

    @classmethod
    def _load(cls, disc_path: Path, handle: BinaryIO) -> "GameImage":
        try:
            disc_size = os.fstat(handle.fileno()).st_size
            header = _read_at(handle, 0, HEADER_INFO_OFFSET + 12)
            if len(header) < HEADER_INFO_OFFSET + 12:
                raise NotAGameImage(f"{disc_path.name} is too small to be a disc image")
            dol_offset, fst_offset, fst_size = struct.unpack_from(">III", header, HEADER_INFO_OFFSET)
            if fst_offset == 0 or fst_size == 0 or fst_offset + fst_size > disc_size:
                raise NotAGameImage(f"{disc_path.name} has no readable file-system table")
            files = parse_fst(_read_at(handle, fst_offset, fst_size), disc_size)
            if dol_offset == 0 or dol_offset + DOL_HEADER_SIZE > disc_size:
                raise NotAGameImage(f"{disc_path.name} has no {DOL_PATH}")
            size = dol_size(_read_at(handle, dol_offset, DOL_HEADER_SIZE))
            if size < DOL_HEADER_SIZE or dol_offset + size > disc_size:
                raise NotAGameImage(f"{DOL_PATH} in {disc_path.name} has an invalid section table")
            dol = bytearray(_read_at(handle, dol_offset, size))
        except OSError as exc:
            raise IoError(f"Unable to read disc image ({exc.strerror or exc})", str(disc_path)) from exc
        game_id = header[:GAME_ID_SIZE].decode("ascii", errors="replace")
        title = header[TITLE_OFFSET : TITLE_OFFSET + TITLE_SIZE].split(b"\x00", 1)[0].decode("shift_jis", errors="replace")
        return cls(disc_path, handle, game_id, title, dol_offset, dol, files)

    def close(self) -> None:
        """Release the disc handle and drop any unsaved changes."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        if self._staged or self._dol_dirty:
            _LOGGER.info("Discarding unsaved changes to %s", self._path.name)
        self._staged.clear()
        self._dol_dirty = False

    def __enter__(self) -> "GameImage":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._handle is None

    @property
    def dirty(self) -> bool:
        return self._dol_dirty or bool(self._staged)

    def _require_handle(self) -> BinaryIO:
        if self._handle is None:
            raise IoError("Disc image is closed", str(self._path))
        return self._handle

    # ------------------------------------------------------------------
    # File-system lookups
    # ------------------------------------------------------------------
    @property
    def dol_offset(self) -> int:
        return self._dol_offset

    @property
    def dol(self) -> bytes:
        return bytes(self._dol)

    def files(self) -> list[FileEntry]:
        return sorted(self._files.values(), key=lambda entry: entry.path.lower())

    def find_files(self, pattern: str) -> list[FileEntry]:
        """Files whose path contains ``pattern`` (case-insensitive), sorted by path."""
        needle = pattern.lower()
        return [entry for entry in self.files() if needle in entry.path.lower()]

    def entry(self, path: str) -> FileEntry:
        key = path.strip("/").lower()
        if key == DOL_PATH.lower():
            return FileEntry(DOL_PATH, self._dol_offset, len(self._dol))
        try:
            return self._files[key]
        except KeyError:
            raise IoError("No such file on disc", path) from None

    def has_file(self, path: str) -> bool:
        key = path.strip("/").lower()
        return key == DOL_PATH.lower() or key in self._files

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def read_raw_file(self, path: str) -> bytes:
        """Return a file's stored bytes, including pending staged content."""
        entry = self.entry(path)
        if entry.path == DOL_PATH:
            return bytes(self._dol)
        staged = self._staged.get(entry.path.lower())
        if staged is not None:
            return staged
        try:
            data = _read_at(self._require_handle(), entry.offset, entry.size)
        except OSError as exc:
            raise IoError(f"Unable to read file ({exc.strerror or exc})", entry.path) from exc
        if len(data) != entry.size:
            raise CorruptData(f"file is truncated: {len(data)} of {entry.size} bytes", offset=entry.offset, source=entry.path)
        return data

    def is_compressed(self, path: str) -> bool:
        entry = self.entry(path)
        if entry.extension not in COMPRESSED_EXTENSIONS:
            return False
        return aklz.is_aklz(self.read_raw_file(path)[: aklz.HEADER_SIZE])

    def read_file(self, path: str) -> bytes:
        """Return a file's contents, expanded when it is an AKLZ container."""
        entry = self.entry(path)
        data = self.read_raw_file(path)
        if entry.extension in COMPRESSED_EXTENSIONS and aklz.is_aklz(data):
            return aklz.decompress(data, source=entry.path)
        return data

    def read_executable(self, offset: int, size: int) -> bytes:
        if offset < 0 or size < 0 or offset + size > len(self._dol):
            raise CorruptData(
                f"range of {size} bytes exceeds {DOL_PATH} ({len(self._dol)} bytes)", offset=offset, source=DOL_PATH
            )
        return bytes(self._dol[offset : offset + size])

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def patch_executable(self, offset: int, data: bytes) -> None:
        """Overwrite ``data`` into the in-memory executable. The buffer length never changes."""
        end = offset + len(data)
        if offset < 0 or end > len(self._dol):
            raise CorruptData(
                f"patch of {len(data)} bytes exceeds {DOL_PATH} ({len(self._dol)} bytes)", offset=offset, source=DOL_PATH
            )
        if self._dol[offset:end] == data:
            return
        self._dol[offset:end] = data
        self._dol_dirty = True

    def stage_file(self, path: str, data: bytes, compress: bool = False) -> int:
        """
        Buffer replacement contents for a file until ``save``.

        The encoded payload must fit the file's existing slot on disc; files
        are never relocated. Returns the payload size.
        """
        entry = self.entry(path)
        if entry.path == DOL_PATH:
            raise IoError(f"{DOL_PATH} is modified through patch_executable", path)
        payload = aklz.compress(data) if compress else bytes(data)
        if len(payload) > entry.size:
            raise CorruptData(
                f"new contents need {len(payload)} bytes but the file slot holds {entry.size}",
                offset=entry.offset,
                source=entry.path,
            )
        self._staged[entry.path.lower()] = payload
        _LOGGER.debug("Staged %s: %d of %d bytes", entry.path, len(payload), entry.size)
        return len(payload)

    def staged_files(self) -> list[str]:
        return sorted(self._files[key].path for key in self._staged)

    def save(self) -> None:
        """
        Write the executable and every staged file back into their disc ranges.

        Nothing else on the disc is touched. The write is not transactional:
        an I/O failure leaves the ranges written so far in place.
        """
        self._require_handle()
        if not self.dirty:
            _LOGGER.info("No changes to save for %s", self._path.name)
            return
        current = DOL_PATH
        try:
            with self._path.open("r+b") as handle:
                if self._dol_dirty:
                    handle.seek(self._dol_offset)
                    handle.write(self._dol)
                for key, payload in sorted(self._staged.items()):
                    entry = self._files[key]
                    current = entry.path
                    handle.seek(entry.offset)
                    handle.write(payload.ljust(entry.size, b"\x00"))
                handle.flush()
        except OSError as exc:
            raise IoError(f"Unable to write {current} ({exc.strerror or exc})", str(self._path)) from exc
        _LOGGER.info(
            "Saved %s: executable %s, %d staged file(s)",
            self._path.name,
            "rewritten" if self._dol_dirty else "unchanged",
            len(self._staged),
        )
        self._dol_dirty = False
        self._staged.clear()
        self._reopen()

    def _reopen(self) -> None:
        # the read handle buffers disc bytes from before the save
        stale = self._require_handle()
        try:
            self._handle = self._path.open("rb")
        except OSError as exc:
            self._handle = None
            raise IoError(f"Unable to reopen disc image ({exc.strerror or exc})", str(self._path)) from exc
        finally:
            stale.close()


def _read_at(handle: BinaryIO, offset: int, size: int) -> bytes:
    handle.seek(offset)
    return handle.read(size)


__all__ = [
    "FileEntry",
    "GameImage",
    "dol_size",
    "parse_fst",
    "HEADER_INFO_OFFSET",
]
