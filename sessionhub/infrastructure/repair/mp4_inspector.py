"""Read-only inspection of ISO base media (MP4) containers.

A file is "fast-start" when its ``moov`` index box precedes the ``mdat``
media box, which lets browsers begin playback before the download ends.
"""

import struct
from pathlib import Path
from typing import (
    BinaryIO,
    List,
    NamedTuple,
    Optional,
)

HEAD_FRACTION = 0.10
SCAN_CHUNK_SIZE = 1024 * 1024


class Box(NamedTuple):
    """A top-level box: four character type, file offset and total size."""

    type: str
    offset: int
    size: int


def _read_header(fh: BinaryIO, offset: int, file_size: int) -> Optional[Box]:
    fh.seek(offset)
    header = fh.read(8)
    if len(header) < 8:
        return None
    size, raw_type = struct.unpack(">I4s", header)
    if size == 1:
        extended = fh.read(8)
        if len(extended) < 8:
            return None
        size = struct.unpack(">Q", extended)[0]
    elif size == 0:
        size = file_size - offset
    if size < 8 or offset + size > file_size:
        return None
    return Box(raw_type.decode("latin-1"), offset, size)


def read_top_level_boxes(path: Path) -> List[Box]:
    """Walk the top-level boxes of a file.

    Stops at the first malformed header, so a truncated or non-MP4 file
    yields the boxes parsed up to that point.
    """
    boxes: List[Box] = []
    file_size = path.stat().st_size
    offset = 0
    with open(path, "rb") as fh:
        while offset < file_size:
            box = _read_header(fh, offset, file_size)
            if box is None:
                break
            boxes.append(box)
            offset += box.size
    return boxes


def index_precedes_media(path: Path) -> Optional[bool]:
    """Whether ``moov`` comes before ``mdat``; None if either box is missing."""
    offsets = {}
    for box in read_top_level_boxes(path):
        offsets.setdefault(box.type, box.offset)
    if "moov" not in offsets or "mdat" not in offsets:
        return None
    return offsets["moov"] < offsets["mdat"]


def find_moov_offset(path: Path) -> Optional[int]:
    """Byte offset of the first ``moov`` marker, found by a raw scan."""
    marker = b"moov"
    position = 0
    tail = b""
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(SCAN_CHUNK_SIZE)
            if not chunk:
                return None
            window = tail + chunk
            found = window.find(marker)
            if found != -1:
                return position - len(tail) + found
            tail = window[-(len(marker) - 1):]
            position += len(chunk)


def moov_within_head(path: Path, fraction: float = HEAD_FRACTION) -> bool:
    """Whether the raw ``moov`` marker sits within the leading ``fraction`` of the file."""
    file_size = path.stat().st_size
    offset = find_moov_offset(path)
    if offset is None or file_size == 0:
        return False
    return offset <= file_size * fraction


def is_fast_start(path: Path) -> bool:
    """Whether the file can be left as is.

    The box walk decides whenever it finds both boxes. Only when it cannot
    does a raw ``moov`` marker within the head of the file count, since
    media payload may contain those bytes by chance.
    """
    walk = index_precedes_media(path)
    if walk is not None:
        return walk
    return moov_within_head(path)


def read_duration_seconds(path: Path) -> Optional[int]:
    """Duration from the ``mvhd`` box, rounded to whole seconds."""
    moov = next((b for b in read_top_level_boxes(path) if b.type == "moov"), None)
    if moov is None:
        return None

    with open(path, "rb") as fh:
        offset = moov.offset + 8
        end = moov.offset + moov.size
        while offset < end:
            child = _read_header(fh, offset, end)
            if child is None:
                return None
            if child.type == "mvhd":
                # Header size depends on whether the box used a 64-bit size
                fh.seek(child.offset + (16 if child.size > 0xFFFFFFFF else 8))
                version = fh.read(4)[0]
                if version == 1:
                    fh.seek(16, 1)
                    timescale, duration = struct.unpack(">IQ", fh.read(12))
                else:
                    fh.seek(8, 1)
                    timescale, duration = struct.unpack(">II", fh.read(8))
                if not timescale:
                    return None
                return round(duration / timescale)
            offset += child.size
    return None
