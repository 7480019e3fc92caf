#!/usr/bin/env python3
"""Locate, extract and re-import DDS textures embedded in game containers.

The containers handled here (``.bin``, ``.dat``, ``.sti``, ``.jmb`` and
``.gm2`` files pulled out of the game's RSL archives) carry no trustworthy
resource table.  Everything is driven by magic bytes and a few header
heuristics instead:

```
python dds_extractor.py extract <directory>
python dds_extractor.py import <directory>
python dds_extractor.py extract-hashed <directory>
python dds_extractor.py hash <file>
```

*extract* copies everything from the first ``DDS |`` signature to the end of
each container into ``<name>_extracted.dds``.  *import* performs the reverse
splice, keeping every byte before the texture untouched.  *extract-hashed*
names the extracted texture after its content fingerprint
(``WWWWxHHHH_digest``), the same name texture replacement folders use.

The remaining modes cover the less common workflows: splitting concatenated
archives into numbered DDS files, stripping the trailer from No More Heroes
``.bin`` textures before renaming them to their fingerprint, converting
GameCube style CMPR payloads into standard DXT1 DDS files and reversing the
word order of big-endian dumps.
"""

from __future__ import annotations

import argparse
import enum
import mmap
import os
import shutil
import struct
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, List, Sequence, Tuple

Image = None
PIL_AVAILABLE = False
try:  # pragma: no cover - Pillow availability depends on the environment.
    from PIL import Image

    PIL_AVAILABLE = True
except Exception:  # pragma: no cover - Pillow availability depends on the environment.
    pass

DDS_MAGIC = b"DDS "
# "DDS " followed by the low byte of the 124 byte header size.
DDS_MAGIC_PATTERN = b"DDS |"
GCT0_TAG = b"GCT0"
K7TX_TAG = b"K7TX"
NULL_TAG = b"\x00\x00\x00\x00"
JMB_HEADER_PATTERN = b"\x00\x00\x00\x00\x06\x00\x00\x00"
ARCHIVE_STOP_PATTERN = b"\x00\x00\x00\x00\x06\x00\x00\x00"
ARCHIVE_PREFIX_SIZE = 72

TEXTURE_HEADER_SIZE = 0x40
SPECIAL_IMAGE_TYPE = 0x06
NMH_TRAILER_SIZE = 16
MAX_DISPLAY_DIMENSION = 10000

HASH_SEED = 0xDEADBEEF
HASH_C1 = 0xCC9E2D51
HASH_C2 = 0x1B873593
HASH_MIX_ADD = 0xFADDAF14
HASH_FMIX1 = 0x85EBCA6B
HASH_FMIX2 = 0xC2B2AE35
HASH_SAMPLE_DIVISOR = 0x40
UINT32_MASK = 0xFFFFFFFF

DXT1_BLOCK_SIZE = 8
DDPF_FOURCC = 0x4
DDSD_FLAGS = 0x00081007  # CAPS | HEIGHT | WIDTH | PIXELFORMAT | LINEARSIZE
DDSCAPS_TEXTURE = 0x1000
# magic, size, flags, height, width, linear size, depth, mip count, reserved1,
# pixel format (size, flags, fourcc, bit count, 4 masks), caps 1-4, reserved2
DDS_HEADER_STRUCT = struct.Struct("<4s7I44sII4s5I5I")

SUPPORTED_EXTENSIONS = frozenset({".bin", ".dat", ".sti", ".jmb", ".gm2"})

# Files above this size will be memory-mapped instead of fully loaded into RAM.
MEMORY_MAP_THRESHOLD = int(
    os.environ.get("DDS_EXTRACTOR_MEMORY_MAP_THRESHOLD", 256 * 1024 * 1024)
)


class DDSExtractorError(RuntimeError):
    """Raised when a single file cannot be processed."""


class UnopenableFileError(DDSExtractorError):
    """Raised when a path cannot be opened, read or written."""


class SignatureNotFoundError(DDSExtractorError):
    """Raised when the locator exhausts a stream without a match."""


class TruncatedReadError(DDSExtractorError):
    """Raised when fewer bytes are available than a header declares."""


class HeaderDialect(enum.Enum):
    NONE = "none"
    FIXED_OFFSET = "fixed-offset"
    TAGGED = "tagged"
    SECONDARY_WRAPPED = "secondary-wrapped"

    @property
    def byteorder(self) -> str:
        return "big" if self is HeaderDialect.TAGGED else "little"


class ExtractorMode(enum.Enum):
    EXTRACT = "extract"
    EXTRACT_HASHED = "extract-hashed"
    IMPORT = "import"
    EXTRACT_ARCHIVE = "extract-archive"
    NMH_FIX_AND_HASH = "fix-and-hash"
    BIN_TO_DDS = "bin-to-dds"
    BIG_TO_LITTLE_ENDIAN = "big-to-little"


@dataclass(frozen=True)
class HeaderMatch:
    dialect: HeaderDialect
    offset: int


@dataclass(frozen=True)
class Fingerprint:
    """Content fingerprint of a texture payload."""

    width: int
    height: int
    digest: int
    dialect: HeaderDialect = HeaderDialect.NONE
    start: int = 0
    length: int = 0

    @property
    def name(self) -> str | None:
        """Return ``WWWWxHHHH_digest`` or ``None`` when the size is unknown."""

        if 0 < self.width < MAX_DISPLAY_DIMENSION and 0 < self.height < MAX_DISPLAY_DIMENSION:
            return f"{self.width:04d}x{self.height:04d}_{self.digest:x}"
        return None


@dataclass(frozen=True)
class ResourceExtent:
    """A texture found in an archive.

    ``start_offset`` points at the signature, ``prefix_offset`` at the first
    byte of the header block kept in front of it.
    """

    start_offset: int
    end_offset: int
    prefix_offset: int

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset


@dataclass(frozen=True)
class SpliceResult:
    source: Path
    target: Path
    offset: int
    length: int
    fingerprint: Fingerprint | None = None


@dataclass(frozen=True)
class OperationResult:
    path: Path
    status: str
    message: str


def _read_container_bytes(path: Path) -> bytes | mmap.mmap:
    """Return the bytes for ``path`` using a memory map when appropriate."""

    try:
        size = path.stat().st_size
        if size and size >= max(0, MEMORY_MAP_THRESHOLD):
            flags = os.O_RDONLY
            # Windows requires the O_BINARY flag to avoid implicit newline conversion.
            flags |= getattr(os, "O_BINARY", 0)
            fd = os.open(path, flags)
            try:
                return mmap.mmap(fd, length=0, access=mmap.ACCESS_READ)
            finally:
                os.close(fd)
        return path.read_bytes()
    except OSError as exc:
        raise UnopenableFileError(f"unable to read {path}: {exc}") from exc


def _release_buffer(buffer: object) -> None:
    """Release buffers that expose a ``close`` method (e.g. memory maps)."""

    close = getattr(buffer, "close", None)
    if callable(close):
        try:
            close()
        except Exception:  # pragma: no cover - best-effort cleanup
            pass


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _write_bytes_atomic(
    path: Path,
    chunks: Iterable[bytes],
    *,
    chunk_size: int = 2 * 1024 * 1024,
) -> int:
    """Write *chunks* to a temporary file and move it over *path*.

    The destination keeps its previous contents unless every chunk was
    written and flushed.  An existing destination keeps its permission bits.
    Returns the number of bytes written.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    try:
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
    except OSError as exc:
        raise UnopenableFileError(f"unable to write {path}: {exc}") from exc

    temp_path = Path(temp_name)
    written = 0
    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in chunks:
                for start in range(0, len(chunk), chunk_size):
                    handle.write(chunk[start : start + chunk_size])
                written += len(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except OSError as exc:
        _discard(temp_path)
        raise UnopenableFileError(f"unable to write {path}: {exc}") from exc
    except BaseException:
        _discard(temp_path)
        raise
    return written


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise TruncatedReadError(f"expected {size} bytes, got {len(data)}")
    return data


def _read_uint(data: bytes | mmap.mmap, offset: int, size: int, byteorder: str) -> int:
    """Decode an unsigned ``size`` byte integer at ``offset``."""

    raw = data[offset : offset + size]
    if len(raw) != size:
        raise TruncatedReadError(
            f"need {size} bytes at offset {offset}, only {len(raw)} available"
        )
    return int.from_bytes(raw, byteorder)


def find_pattern(
    stream: BinaryIO,
    signature: bytes = DDS_MAGIC_PATTERN,
    *,
    chunk_size: int = 1024,
) -> int | None:
    """Return the absolute offset of the first ``signature`` in ``stream``.

    The stream is consumed from its current position in ``chunk_size`` reads.
    The last ``len(signature) - 1`` bytes of each read are carried over so a
    signature straddling two reads is still found.  Returns ``None`` once the
    stream is exhausted.
    """

    if not signature:
        raise ValueError("signature must not be empty")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    overlap = len(signature) - 1
    position = stream.tell()
    tail = b""
    while True:
        data = stream.read(chunk_size)
        if not data:
            return None

        window = tail + data
        index = window.find(signature)
        if index != -1:
            return position - len(tail) + index

        position += len(data)
        tail = window[-overlap:] if overlap else b""


def find_pattern_in_bytes(
    data: bytes | bytearray | mmap.mmap,
    signature: bytes = DDS_MAGIC_PATTERN,
    start: int = 0,
) -> int | None:
    """Return the offset of ``signature`` in ``data`` at or after ``start``."""

    if not signature:
        raise ValueError("signature must not be empty")
    index = data.find(signature, start)
    return None if index == -1 else index


def locate_resource(path: Path, signature: bytes = DDS_MAGIC_PATTERN) -> int:
    """Return the offset of ``signature`` in the file at ``path``."""

    try:
        with path.open("rb") as handle:
            offset = find_pattern(handle, signature)
    except OSError as exc:
        raise UnopenableFileError(f"unable to read {path}: {exc}") from exc
    if offset is None:
        raise SignatureNotFoundError(f"DDS pattern not found in {path}")
    return offset


def _rotl32(value: int, count: int) -> int:
    value &= UINT32_MASK
    return ((value << count) | (value >> (32 - count))) & UINT32_MASK


def _mix_word(word: int) -> int:
    return (_rotl32(word * HASH_C1, 15) * HASH_C2) & UINT32_MASK


def compute_digest(window: bytes | bytearray | mmap.mmap, byteorder: str = "little") -> int:
    """Return the sampled 32-bit digest of ``window``.

    Only every ``max(words // 64, 1)``-th word goes through the mix step so
    huge payloads hash in constant time.  Words are decoded in ``byteorder``;
    the 1-3 trailing bytes are always assembled least significant byte first.
    """

    if byteorder not in ("little", "big"):
        raise ValueError(f"unsupported byte order: {byteorder}")

    size = len(window)
    word_count = size // 4
    stride = max(word_count // HASH_SAMPLE_DIVISOR, 1)
    word_struct = struct.Struct("<I" if byteorder == "little" else ">I")

    digest = HASH_SEED
    for index in range(0, word_count, stride):
        (word,) = word_struct.unpack_from(window, index * 4)
        digest = _rotl32(digest ^ _mix_word(word), 13)
        digest = ((digest + HASH_MIX_ADD) * 5) & UINT32_MASK

    tail = int.from_bytes(window[word_count * 4 :], "little")
    if tail:
        digest ^= _mix_word(tail)

    digest ^= size & UINT32_MASK
    digest = (((digest >> 16) ^ digest) * HASH_FMIX1) & UINT32_MASK
    digest = (((digest >> 13) ^ digest) * HASH_FMIX2) & UINT32_MASK
    return (digest >> 16) ^ digest


def detect_header(data: bytes | mmap.mmap, extension: str) -> HeaderMatch | None:
    """Guess where a texture header starts based on the file extension."""

    suffix = extension.lower()
    if suffix == ".bin":
        return HeaderMatch(HeaderDialect.FIXED_OFFSET, 0)
    if suffix == ".jmb":
        offset = find_pattern_in_bytes(data, JMB_HEADER_PATTERN)
        if offset is not None:
            return HeaderMatch(HeaderDialect.FIXED_OFFSET, offset)
    elif suffix == ".sti":
        offset = find_pattern_in_bytes(data, GCT0_TAG)
        if offset is not None:
            return HeaderMatch(HeaderDialect.TAGGED, offset)
    return None


def fingerprint_bytes(data: bytes | mmap.mmap, extension: str = "") -> Fingerprint:
    """Return the fingerprint of a container's texture payload.

    A recognised header is trusted only when its resource-start pointer is
    ``0x40``.  Anything else falls back to hashing the whole buffer without
    dimensions, so the result then carries no display name.
    """

    match = detect_header(data, extension)
    if match is None or len(data) <= match.offset + TEXTURE_HEADER_SIZE:
        return Fingerprint(0, 0, compute_digest(data), HeaderDialect.NONE, 0, len(data))

    byteorder = match.dialect.byteorder
    width = _read_uint(data, match.offset + 8, 2, byteorder)
    height = _read_uint(data, match.offset + 10, 2, byteorder)
    texture_start = _read_uint(data, match.offset + 0x10, 4, byteorder)
    if texture_start != TEXTURE_HEADER_SIZE:
        return Fingerprint(0, 0, compute_digest(data), HeaderDialect.NONE, 0, len(data))

    dialect = match.dialect
    start = match.offset + texture_start
    end = len(data)
    if data[start : start + 4] == K7TX_TAG and end - start >= 8:
        declared = _read_uint(data, start + 4, 4, byteorder)
        start += 8
        end = min(end, start + declared)
        dialect = HeaderDialect.SECONDARY_WRAPPED

    digest = compute_digest(data[start:end], byteorder)
    return Fingerprint(width, height, digest, dialect, start, end - start)


def fingerprint_file(path: Path) -> Fingerprint:
    """Return the fingerprint for the container stored at ``path``."""

    data = _read_container_bytes(path)
    try:
        return fingerprint_bytes(data, path.suffix)
    finally:
        _release_buffer(data)


def extracted_resource_path(container_path: Path) -> Path:
    return container_path.with_name(f"{container_path.stem}_extracted.dds")


def splice_resource(original: bytes | mmap.mmap, offset: int, replacement: bytes) -> bytes:
    """Return ``original`` with ``replacement`` written at ``offset``.

    The texture inside a container has no declared length, so the old texture
    is taken to end at ``offset + len(replacement)`` in ``original``.  The
    bytes after that point follow the replacement unchanged.
    """

    if offset < 0 or offset > len(original):
        raise ValueError(f"offset {offset} outside of a {len(original)} byte buffer")
    return b"".join(
        (original[:offset], replacement, original[offset + len(replacement) :])
    )


def extract_resource(
    container_path: Path,
    output_path: Path | None = None,
    *,
    hashed: bool = False,
) -> SpliceResult:
    """Copy the embedded DDS texture of ``container_path`` into its own file."""

    offset = locate_resource(container_path)
    try:
        with container_path.open("rb") as handle:
            expected = os.fstat(handle.fileno()).st_size - offset
            handle.seek(offset)
            payload = _read_exact(handle, expected)
    except OSError as exc:
        raise UnopenableFileError(f"unable to read {container_path}: {exc}") from exc

    fingerprint = None
    if output_path is None:
        output_path = extracted_resource_path(container_path)
        if hashed:
            fingerprint = fingerprint_file(container_path)
            if fingerprint.name is not None:
                output_path = container_path.with_name(f"{fingerprint.name}.dds")

    _write_bytes_atomic(output_path, [payload])
    return SpliceResult(container_path, output_path, offset, len(payload), fingerprint)


def reimport_resource(container_path: Path, resource_path: Path) -> SpliceResult:
    """Write the texture stored in ``resource_path`` back into its container.

    The container is read completely before anything is written, and the new
    contents replace it in a single atomic move.
    """

    original = _read_container_bytes(container_path)
    try:
        offset = find_pattern_in_bytes(original, DDS_MAGIC_PATTERN)
        if offset is None:
            raise SignatureNotFoundError(
                f"DDS pattern not found in original file: {container_path}"
            )
        try:
            replacement = resource_path.read_bytes()
        except OSError as exc:
            raise UnopenableFileError(f"unable to read {resource_path}: {exc}") from exc
        patched = splice_resource(original, offset, replacement)
    finally:
        _release_buffer(original)

    _write_bytes_atomic(container_path, [patched])
    return SpliceResult(resource_path, container_path, offset, len(replacement))


def split_archive(data: bytes | mmap.mmap) -> List[ResourceExtent]:
    """Return the extents of every DDS texture in a concatenated archive.

    Each texture keeps up to ``ARCHIVE_PREFIX_SIZE`` header bytes in front of
    its ``DDS `` magic, never reaching back past the previous texture, and
    ends at the next ``ARCHIVE_STOP_PATTERN``.  A texture without a
    terminator runs to the end of the data and ends the scan.
    """

    extents: List[ResourceExtent] = []
    cursor = 0
    while True:
        magic_offset = find_pattern_in_bytes(data, DDS_MAGIC, cursor)
        if magic_offset is None:
            break

        prefix = max(cursor, magic_offset - ARCHIVE_PREFIX_SIZE)
        stop = find_pattern_in_bytes(
            data, ARCHIVE_STOP_PATTERN, magic_offset + len(DDS_MAGIC)
        )
        end = len(data) if stop is None else stop
        extents.append(ResourceExtent(magic_offset, end, prefix))
        if stop is None:
            break
        cursor = stop
    return extents


def extract_archive_textures(path: Path, output_dir: Path | None = None) -> List[Path]:
    """Split ``path`` into ``extracted_NNN.dds`` files inside ``output_dir``."""

    if output_dir is None:
        output_dir = path.parent / f"{path.stem}_textures"

    data = _read_container_bytes(path)
    try:
        extents = split_archive(data)
        if not extents:
            raise SignatureNotFoundError(f"no DDS textures found in {path}")
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise UnopenableFileError(f"unable to create {output_dir}: {exc}") from exc

        written: List[Path] = []
        for index, extent in enumerate(extents):
            target = output_dir / f"extracted_{index:03d}.dds"
            _write_bytes_atomic(target, [data[extent.prefix_offset : extent.end_offset]])
            written.append(target)
        return written
    finally:
        _release_buffer(data)


def _swap_alternate_bits(value: int) -> int:
    return ((value & 0xAA) >> 1) | ((value & 0x55) << 1)


def _reverse_bits(value: int) -> int:
    result = 0
    for _ in range(8):
        result = (result << 1) | (value & 1)
        value >>= 1
    return result


# CMPR stores the 2-bit texel indices most significant pair first, DXT1 the
# other way round.  Swapping the bits of every pair and then reversing the
# byte flips the pair order while keeping each index intact.
CMPR_INDEX_TABLE = bytes(_reverse_bits(_swap_alternate_bits(value)) for value in range(256))


def swap_cmpr_colors(data: bytearray) -> None:
    """Fix endpoint endianness and index bit order of every block in place."""

    for offset in range(0, len(data) - DXT1_BLOCK_SIZE + 1, DXT1_BLOCK_SIZE):
        data[offset], data[offset + 1] = data[offset + 1], data[offset]
        data[offset + 2], data[offset + 3] = data[offset + 3], data[offset + 2]
        data[offset + 4 : offset + 8] = data[offset + 4 : offset + 8].translate(
            CMPR_INDEX_TABLE
        )


def _tile_order(width_blocks: int, height_blocks: int) -> List[int]:
    """Map each source block (2x2 tile order) to its row-major destination.

    Odd grids are padded to even dimensions in the source layout; padding
    blocks map to ``-1``.
    """

    padded_width = width_blocks + (width_blocks & 1)
    padded_height = height_blocks + (height_blocks & 1)
    order: List[int] = []
    for row in range(0, padded_height, 2):
        for column in range(0, padded_width, 2):
            for y, x in ((row, column), (row, column + 1), (row + 1, column), (row + 1, column + 1)):
                inside = x < width_blocks and y < height_blocks
                order.append(y * width_blocks + x if inside else -1)
    return order


def deinterleave_blocks(
    blocks: Sequence[bytes], width_blocks: int, height_blocks: int
) -> List[bytes]:
    """Regroup blocks stored as 2x2 tiles into plain row-major order."""

    order = _tile_order(width_blocks, height_blocks)
    if len(blocks) < len(order):
        raise TruncatedReadError(
            f"expected {len(order)} blocks for a {width_blocks}x{height_blocks} grid, "
            f"got {len(blocks)}"
        )
    result: List[bytes] = [b""] * (width_blocks * height_blocks)
    for source, destination in enumerate(order):
        if destination >= 0:
            result[destination] = blocks[source]
    return result


def interleave_blocks(
    blocks: Sequence[bytes],
    width_blocks: int,
    height_blocks: int,
    padding: bytes = bytes(DXT1_BLOCK_SIZE),
) -> List[bytes]:
    """Inverse of :func:`deinterleave_blocks`."""

    if len(blocks) < width_blocks * height_blocks:
        raise TruncatedReadError(
            f"expected {width_blocks * height_blocks} blocks, got {len(blocks)}"
        )
    return [
        blocks[destination] if destination >= 0 else padding
        for destination in _tile_order(width_blocks, height_blocks)
    ]


def is_transcodable(width: int, height: int) -> bool:
    return width > 0 and height > 0 and width % 4 == 0 and height % 4 == 0


def cmpr_payload_size(width: int, height: int) -> int:
    """Return the stored size of a CMPR payload, padded to whole 8x8 tiles."""

    width_blocks = (width + 3) // 4
    height_blocks = (height + 3) // 4
    return (
        (width_blocks + (width_blocks & 1))
        * (height_blocks + (height_blocks & 1))
        * DXT1_BLOCK_SIZE
    )


def cmpr_to_dxt1(data: bytes, width: int, height: int) -> bytes:
    """Convert a CMPR payload to DXT1 block layout.

    Dimensions that are not multiples of 4 are not supported; the payload is
    then returned unchanged.
    """

    if not is_transcodable(width, height):
        return bytes(data)

    buffer = bytearray(data)
    swap_cmpr_colors(buffer)
    blocks = [
        bytes(buffer[offset : offset + DXT1_BLOCK_SIZE])
        for offset in range(0, len(buffer) - DXT1_BLOCK_SIZE + 1, DXT1_BLOCK_SIZE)
    ]
    return b"".join(deinterleave_blocks(blocks, width // 4, height // 4))


def build_dds_header(
    width: int,
    height: int,
    linear_size: int,
    fourcc: bytes = b"DXT1",
) -> bytes:
    """Return a 128 byte DDS header for a single compressed surface."""

    return DDS_HEADER_STRUCT.pack(
        DDS_MAGIC,
        124,
        DDSD_FLAGS,
        height,
        width,
        linear_size,
        0,  # depth
        0,  # mip map count
        bytes(44),
        32,
        DDPF_FOURCC,
        fourcc,
        0,
        0,
        0,
        0,
        0,
        DDSCAPS_TEXTURE,
        0,
        0,
        0,
        0,
    )


def render_preview(dds_path: Path, png_path: Path) -> Path:
    """Decode ``dds_path`` with Pillow and save it as a PNG."""

    if not PIL_AVAILABLE:
        raise DDSExtractorError("Pillow is required to render previews")
    try:
        with Image.open(dds_path) as image:
            image.save(png_path, format="PNG")
    except OSError as exc:
        raise UnopenableFileError(f"unable to render {dds_path}: {exc}") from exc
    return png_path


def transcode_gct0_file(
    path: Path,
    output_path: Path | None = None,
    *,
    preview: bool = False,
) -> Path | None:
    """Convert a GCT0 CMPR texture into a DXT1 DDS file.

    Returns ``None`` when the file does not hold a convertible CMPR texture.
    """

    data = _read_container_bytes(path)
    try:
        if len(data) < TEXTURE_HEADER_SIZE:
            raise TruncatedReadError(
                f"{path} is too small for a texture header ({len(data)} bytes)"
            )
        if data[:4] not in (GCT0_TAG, NULL_TAG):
            return None

        image_type = data[7]
        width = _read_uint(data, 8, 2, "big")
        height = _read_uint(data, 10, 2, "big")
        if image_type == SPECIAL_IMAGE_TYPE or not is_transcodable(width, height):
            return None

        linear_size = width * height // 2
        stored_size = cmpr_payload_size(width, height)
        payload = data[TEXTURE_HEADER_SIZE : TEXTURE_HEADER_SIZE + stored_size]
        if len(payload) != stored_size:
            raise TruncatedReadError(
                f"{path} needs {stored_size} payload bytes, found {len(payload)}"
            )
    finally:
        _release_buffer(data)

    converted = cmpr_to_dxt1(payload, width, height)
    if output_path is None:
        output_path = path.with_suffix(".dds")
    _write_bytes_atomic(output_path, [build_dds_header(width, height, linear_size), converted])

    if preview:
        render_preview(output_path, output_path.with_suffix(".png"))
    return output_path


def convert_endianness(
    input_path: Path,
    output_path: Path | None = None,
    *,
    word_size: int = 4,
) -> Path:
    """Reverse the byte order of every ``word_size`` word of ``input_path``."""

    if word_size <= 0:
        raise ValueError("word_size must be positive")
    if output_path is None:
        output_path = input_path.with_name(f"{input_path.stem}_le.bin")

    data = _read_container_bytes(input_path)
    try:
        swapped = b"".join(
            data[offset : offset + word_size][::-1]
            for offset in range(0, len(data), word_size)
        )
    finally:
        _release_buffer(data)

    _write_bytes_atomic(output_path, [swapped])
    return output_path


def fix_and_rename(path: Path) -> Path:
    """Strip the No More Heroes trailer from ``path`` and rename it to its fingerprint."""

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise UnopenableFileError(f"unable to read {path}: {exc}") from exc
    if len(data) < NMH_TRAILER_SIZE:
        raise TruncatedReadError(
            f"{path} is shorter than the {NMH_TRAILER_SIZE} byte trailer"
        )

    trimmed = data[: len(data) - NMH_TRAILER_SIZE]
    name = fingerprint_bytes(trimmed, path.suffix).name
    if name is None:
        raise DDSExtractorError(f"no texture dimensions found in {path}; file left untouched")

    target = path.with_name(f"{name}{path.suffix}")
    if target != path and target.exists():
        raise DDSExtractorError(f"cannot rename {path}: {target} already exists")

    # The source only goes away once the trimmed copy is in place.
    _write_bytes_atomic(target, [trimmed])
    if target != path:
        try:
            shutil.copymode(path, target)
            path.unlink()
        except OSError as exc:
            raise UnopenableFileError(f"unable to remove {path}: {exc}") from exc
    return target


def iter_container_files(
    directory: Path,
    extensions: Iterable[str] = SUPPORTED_EXTENSIONS,
) -> List[Path]:
    """Return every supported container below ``directory`` in a stable order."""

    wanted = {extension.lower() for extension in extensions}
    return sorted(
        candidate
        for candidate in directory.rglob("*")
        if candidate.is_file() and candidate.suffix.lower() in wanted
    )


def process_file(path: Path, mode: ExtractorMode, *, preview: bool = False) -> OperationResult:
    """Run ``mode`` on ``path`` and describe the outcome."""

    if mode in (ExtractorMode.EXTRACT, ExtractorMode.EXTRACT_HASHED):
        result = extract_resource(path, hashed=mode is ExtractorMode.EXTRACT_HASHED)
        message = f"DDS pattern found at position {result.offset}, extracted to {result.target}"
        if mode is ExtractorMode.EXTRACT_HASHED and (
            result.fingerprint is None or result.fingerprint.name is None
        ):
            message += " (no fingerprint name available)"
        return OperationResult(path, "success", message)

    if mode is ExtractorMode.IMPORT:
        resource_path = extracted_resource_path(path)
        if not resource_path.exists():
            return OperationResult(path, "skipped", f"no {resource_path.name} next to container")
        result = reimport_resource(path, resource_path)
        return OperationResult(
            path, "success", f"re-imported {result.length} bytes at position {result.offset}"
        )

    if mode is ExtractorMode.EXTRACT_ARCHIVE:
        written = extract_archive_textures(path)
        return OperationResult(
            path, "success", f"extracted {len(written)} texture(s) to {written[0].parent}"
        )

    if mode is ExtractorMode.NMH_FIX_AND_HASH:
        target = fix_and_rename(path)
        return OperationResult(path, "success", f"trimmed and renamed to {target.name}")

    if mode is ExtractorMode.BIN_TO_DDS:
        output = transcode_gct0_file(path, preview=preview)
        if output is None:
            return OperationResult(path, "skipped", "not a convertible CMPR texture")
        return OperationResult(path, "success", f"converted to {output}")

    if mode is ExtractorMode.BIG_TO_LITTLE_ENDIAN:
        output = convert_endianness(path)
        return OperationResult(path, "success", f"converted to {output}")

    raise ValueError(f"unsupported mode: {mode}")


def process_directory(
    directory: Path,
    mode: ExtractorMode,
    *,
    extensions: Iterable[str] = SUPPORTED_EXTENSIONS,
    preview: bool = False,
) -> List[OperationResult]:
    """Apply ``mode`` to every container below ``directory``.

    A failure on one file is recorded and the run continues with the next.
    """

    results: List[OperationResult] = []
    for path in iter_container_files(directory, extensions):
        try:
            results.append(process_file(path, mode, preview=preview))
        except DDSExtractorError as exc:
            results.append(OperationResult(path, "error", str(exc)))
    return results


def summarise_results(results: Sequence[OperationResult]) -> Tuple[int, int, int]:
    """Return ``(succeeded, skipped, failed)`` counts."""

    succeeded = sum(1 for result in results if result.status == "success")
    skipped = sum(1 for result in results if result.status == "skipped")
    return succeeded, skipped, len(results) - succeeded - skipped


def build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract, re-import and fingerprint DDS textures embedded in game containers"
    )
    subparsers = parser.add_subparsers(dest="command")

    mode_help = {
        ExtractorMode.EXTRACT: "extract the embedded DDS texture of every container",
        ExtractorMode.EXTRACT_HASHED: "extract textures named after their content fingerprint",
        ExtractorMode.IMPORT: "re-import <name>_extracted.dds files into their containers",
        ExtractorMode.EXTRACT_ARCHIVE: "split concatenated archives into numbered DDS files",
        ExtractorMode.NMH_FIX_AND_HASH: "strip the 16 byte trailer and rename to the fingerprint",
        ExtractorMode.BIN_TO_DDS: "convert GCT0 CMPR textures into DXT1 DDS files",
        ExtractorMode.BIG_TO_LITTLE_ENDIAN: "reverse the byte order of every 32-bit word",
    }
    for mode, help_text in mode_help.items():
        mode_parser = subparsers.add_parser(mode.value, help=help_text)
        mode_parser.add_argument("directory", type=Path, help="directory to process recursively")
        if mode is ExtractorMode.BIN_TO_DDS:
            mode_parser.add_argument(
                "--preview",
                action="store_true",
                help="also render a PNG preview of each converted texture (requires Pillow)",
            )

    hash_parser = subparsers.add_parser("hash", help="print the content fingerprint of a file")
    hash_parser.add_argument("file", type=Path, help="container or texture file")

    return parser


def _prompt_arguments() -> List[str]:
    modes = ", ".join(mode.value for mode in ExtractorMode)
    mode = input(f"Please specify the mode that the tool should run in ({modes}): ").strip()
    directory = input("Please specify the path you want the tool to work in: ").strip()
    return [mode, directory]


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_cli()
    arguments = list(sys.argv[1:] if argv is None else argv)
    if not arguments:
        arguments = _prompt_arguments()
    args = parser.parse_args(arguments)

    if args.command is None:
        parser.error("a mode is required")

    if args.command == "hash":
        try:
            fingerprint = fingerprint_file(args.file)
        except DDSExtractorError as exc:
            raise SystemExit(f"[!] {exc}") from exc
        name = fingerprint.name or "(no dimensions)"
        print(f"{args.file}: {name} digest={fingerprint.digest:x} dialect={fingerprint.dialect.value}")
        return 0

    mode = ExtractorMode(args.command)
    if not args.directory.is_dir():
        raise SystemExit(f"[!] directory not found: {args.directory}")

    results = process_directory(args.directory, mode, preview=getattr(args, "preview", False))
    for result in results:
        marker = {"success": "[OK]", "skipped": "[--]"}.get(result.status, "[!]")
        print(f"{marker} {result.path}: {result.message}")

    succeeded, skipped, failed = summarise_results(results)
    print(f"Processed {len(results)} file(s): {succeeded} ok, {skipped} skipped, {failed} failed")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
