"""Exceptions raised while decoding and querying tile layers."""

from typing import Optional


class TmxError(Exception):
    """Base class for every error raised by tmxgrid."""


class DecodeError(TmxError, ValueError):
    """A layer payload could not be turned into a grid."""


class UnsupportedEncoding(DecodeError):
    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"layer encoding '{tag}' is not supported")


class UnsupportedCompression(DecodeError):
    def __init__(self, tag: str, encoding: Optional[str] = None):
        self.tag = tag
        self.encoding = encoding
        if encoding is None:
            msg = f"layer compression '{tag}' is not supported"
        else:
            msg = (f"layer compression '{tag}' is not supported "
                   f"with encoding '{encoding}'")
        super().__init__(msg)


class MalformedPayload(DecodeError):
    """
    Base64, decompression or integer parsing failed.

    `cause` is the codec's own exception when there is one; it is also
    chained as __cause__ by the code that raises this error.
    """

    def __init__(self, detail: str, cause: Optional[BaseException] = None):
        self.detail = detail
        self.cause = cause
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)


class LengthMismatch(DecodeError):
    def __init__(self, got: int, want: int, trailing: int = 0):
        self.got = got
        self.want = want
        self.trailing = trailing
        msg = f"wrong number of GIDs: got {got}, wanted {want}"
        if trailing:
            msg += f" ({trailing} trailing bytes)"
        super().__init__(msg)


class OutOfBounds(TmxError, IndexError):
    def __init__(self, col: int, row: int, cols: int, rows: int):
        self.col = col
        self.row = row
        self.cols = cols
        self.rows = rows
        super().__init__(
            f"cell ({col}, {row}) is outside the {cols}x{rows} grid")


class GridNotDecoded(TmxError):
    """A layer was queried before its data was decoded."""
