"""
Tile layer payload decoding (and encoding)

=============================================================================
DATA ENCODINGS
=============================================================================

A <data> element stores the GIDs of a layer in one of three ways:

1. XML (plain, deprecated):
   <data>
       <tile gid="1"/><tile gid="2"/><tile gid="3"/>...
   </data>
   The document parser hands us the list of gid attributes.

2. CSV:
   <data encoding="csv">
       1,2,3,4,5,
       6,7,8,9,10
   </data>
   Everything except digits and commas is ignored.

3. Base64:
   <data encoding="base64">
       AQAAAAIAAAADAAAABAAAAAUAAAAGAAAABwAAAA==
   </data>
   Packed little-endian uint32 values, optionally compressed.

=============================================================================
COMPRESSION (with Base64 only)
=============================================================================

- gzip: whole-stream gzip (RFC 1952)
- zlib: whole-stream zlib (RFC 1950)

Any other tag raises UnsupportedCompression. A compression on a csv or
xml layer is not part of the format and is rejected the same way.

=============================================================================
ORDER
=============================================================================

Payloads list tiles row by row. The k-th value lands at
(col = k % cols, row = k // cols) in the column-major Grid.
=============================================================================
"""

import base64
import binascii
import enum
import gzip
import io
import logging
import zlib
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .errors import (DecodeError, LengthMismatch, MalformedPayload,
                     UnsupportedCompression, UnsupportedEncoding)
from .gid import GID_MAX
from .grid import Grid

logger = logging.getLogger(__name__)

Payload = Union[str, bytes, bytearray, memoryview, Sequence[int]]


# =============================================================================
# TAGS
# =============================================================================

class Encoding(enum.Enum):
    PLAIN = ""
    CSV = "csv"
    BASE64 = "base64"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> 'Encoding':
        """Map the `encoding` attribute; absent means plain XML tiles."""
        try:
            return cls(tag or "")
        except ValueError:
            raise UnsupportedEncoding(tag) from None


class Compression(enum.Enum):
    NONE = ""
    GZIP = "gzip"
    ZLIB = "zlib"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> 'Compression':
        try:
            return cls(tag or "")
        except ValueError:
            raise UnsupportedCompression(tag) from None


@dataclass(frozen=True)
class DecodeRequest:
    """Everything needed to turn one layer payload into one Grid."""
    encoding: Encoding
    compression: Compression
    payload: Payload
    cols: int
    rows: int

    @classmethod
    def from_tags(cls, encoding: Optional[str], compression: Optional[str],
                  payload: Payload, cols: int, rows: int) -> 'DecodeRequest':
        """Build a request from the raw <data> attribute strings."""
        enc = Encoding.from_tag(encoding)
        comp = Compression.from_tag(compression)
        return cls(enc, comp, payload, cols, rows)


# =============================================================================
# DECODING
# =============================================================================

def decode(request: DecodeRequest) -> Grid:
    """
    Decode a layer payload into a column-major Grid.

    Raises:
    -------
    UnsupportedCompression : compression used outside base64
    MalformedPayload : base64, decompression or integer parsing failed
    LengthMismatch : payload does not hold exactly cols * rows GIDs
    DecodeError : cols or rows is not positive
    """
    cols, rows = request.cols, request.rows
    if cols <= 0 or rows <= 0:
        raise DecodeError(f"grid dimensions must be positive, got {cols}x{rows}")

    cells = Grid.allocate(cols, rows)

    if request.encoding is Encoding.BASE64:
        values = _decode_binary(request.payload, request.compression,
                                cols * rows)
    else:
        if request.compression is not Compression.NONE:
            raise UnsupportedCompression(request.compression.value,
                                         request.encoding.value)
        if request.encoding is Encoding.CSV:
            values = _decode_csv(request.payload)
        else:
            values = _decode_plain(request.payload)

    want = cols * rows
    if len(values) != want:
        raise LengthMismatch(len(values), want)

    # row-major payload -> [col][row] buffer
    cells.reshape(cols, rows)[:, :] = values.reshape(rows, cols).T
    logger.debug("decoded %dx%d grid (encoding=%r, compression=%r)",
                 cols, rows, request.encoding.value, request.compression.value)
    return Grid(cols, rows, cells)


def _decode_binary(payload: Payload, compression: Compression,
                   want: int) -> np.ndarray:
    """
    Base64 text (or raw bytes) -> optional inflate -> little-endian uint32.

    Parameters:
    -----------
    payload : str or bytes-like
        Base64 text as found in the document, or already decoded bytes
    compression : Compression
        Whole-stream codec applied before base64
    want : int
        Expected GID count, reported when bytes are left over
    """
    if isinstance(payload, str):
        # Tiled wraps base64 text across lines; whitespace is not data
        text = "".join(payload.split())
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedPayload("invalid base64 data", exc) from exc
    elif isinstance(payload, (bytes, bytearray, memoryview)):
        raw = bytes(payload)
    else:
        raise MalformedPayload(
            f"base64 payload must be text or bytes, not {type(payload).__name__}")

    if compression is Compression.GZIP:
        raw = _inflate_gzip(raw)
    elif compression is Compression.ZLIB:
        raw = _inflate_zlib(raw)

    count, remainder = divmod(len(raw), 4)
    if remainder:
        raise LengthMismatch(count, want, remainder)
    return np.frombuffer(raw, dtype='<u4').astype(np.uint32)


def _inflate_gzip(raw: bytes) -> bytes:
    try:
        with gzip.GzipFile(fileobj=io.BytesIO(raw), mode='rb') as stream:
            return stream.read()
    except (OSError, EOFError, zlib.error) as exc:
        raise MalformedPayload("gzip decompression failed", exc) from exc


def _inflate_zlib(raw: bytes) -> bytes:
    """Inflate one complete zlib stream; trailing bytes are an error."""
    stream = zlib.decompressobj()
    try:
        data = stream.decompress(raw) + stream.flush()
    except zlib.error as exc:
        raise MalformedPayload("zlib decompression failed", exc) from exc
    if not stream.eof:
        raise MalformedPayload("zlib stream is truncated")
    if stream.unused_data:
        raise MalformedPayload(
            f"{len(stream.unused_data)} bytes of trailing data after zlib stream")
    return data


def _decode_csv(payload: Payload) -> np.ndarray:
    """Comma separated decimal GIDs; anything but digits and commas is dropped."""
    if not isinstance(payload, str):
        raise MalformedPayload(
            f"csv payload must be text, not {type(payload).__name__}")
    # keep only ASCII digits and the delimiter
    clean = "".join(ch for ch in payload if ch == ',' or '0' <= ch <= '9')
    gids = []
    for token in clean.split(','):
        if not token:
            raise MalformedPayload(f"invalid integer token {token!r} in csv data")
        try:
            gid = int(token)
        except ValueError as exc:
            # digit-only tokens still fail past the int string length limit
            raise MalformedPayload(
                f"invalid integer token {token[:20]!r}... in csv data", exc) from exc
        if gid > GID_MAX:
            raise MalformedPayload(f"csv value {token[:20]!r} does not fit in 32 bits")
        gids.append(gid)
    return np.array(gids, dtype=np.uint32)


def _decode_plain(payload: Payload) -> np.ndarray:
    if isinstance(payload, (str, bytes, bytearray, memoryview)):
        raise MalformedPayload(
            f"plain payload must be a list of GIDs, not {type(payload).__name__}")
    gids = []
    for pos, gid in enumerate(payload):
        if isinstance(gid, bool) or not isinstance(gid, (int, np.integer)):
            raise MalformedPayload(f"tile {pos} has non-integer gid {gid!r}")
        if not 0 <= gid <= GID_MAX:
            raise MalformedPayload(f"tile {pos} gid {gid} does not fit in 32 bits")
        gids.append(int(gid))
    return np.array(gids, dtype=np.uint32)


# =============================================================================
# ENCODING
# =============================================================================

def encode_csv(values: Sequence[int], cols: int) -> str:
    """
    Format row-major GIDs the way Tiled writes csv layers:
    one row per line, every line but the last ending in a comma.
    """
    lines = []
    for start in range(0, len(values), cols):
        lines.append(','.join(str(int(gid)) for gid in values[start:start + cols]))
    return '\n' + ',\n'.join(lines) + '\n'


def encode_base64(values: Sequence[int],
                  compression: Union[Compression, str, None] = None) -> str:
    """Pack row-major GIDs as little-endian uint32, compress, then base64."""
    if not isinstance(compression, Compression):
        compression = Compression.from_tag(compression)

    raw = np.asarray(values, dtype='<u4').tobytes()
    if compression is Compression.ZLIB:
        raw = zlib.compress(raw)
    elif compression is Compression.GZIP:
        raw = gzip.compress(raw)
    return base64.b64encode(raw).decode('ascii')
