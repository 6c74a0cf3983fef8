"""Per-layer tile data: raw <data> attributes plus the decoded grid."""

import enum
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional

from . import codecs
from .errors import DecodeError, GridNotDecoded
from .gid import GID
from .grid import Grid

logger = logging.getLogger(__name__)


class DecodeState(enum.Enum):
    NOT_DECODED = "not-decoded"
    DECODED = "decoded"
    FAILED = "failed"


@dataclass
class LayerData:
    """
    Tile layer data storage.

    Holds the <data> element exactly as read from the document, and the
    Grid it decodes to. Decoding happens once: later calls return the cached
    grid, or re-raise the cached error if the first attempt failed.

    ==========================================================================
    FIELDS
    ==========================================================================

    encoding:    "csv", "base64" or None (XML <tile> children)
    compression: "gzip", "zlib" or None
    raw_data:    text content of <data> (csv / base64 payload)
    tiles:       gid attributes of the <tile> children, in document order

    ==========================================================================
    """
    encoding: Optional[str] = None
    compression: Optional[str] = None
    raw_data: str = ""
    tiles: List[int] = field(default_factory=list)
    state: DecodeState = field(default=DecodeState.NOT_DECODED, init=False)
    _grid: Optional[Grid] = field(default=None, init=False, repr=False, compare=False)
    _error: Optional[DecodeError] = field(default=None, init=False, repr=False, compare=False)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerData':
        """Read a <data> element without decoding it."""
        return cls(
            encoding=elem.get('encoding') or None,
            compression=elem.get('compression') or None,
            raw_data=elem.text or "",
            # <tile/> without a gid is an empty cell
            tiles=[int(tile.get('gid', 0)) for tile in elem.findall('tile')],
        )

    def decode(self, cols: int, rows: int) -> Grid:
        """
        Decode the payload into a cols x rows grid.

        Parameters:
        -----------
        cols, rows : int
            Map dimensions in tiles

        Returns:
        --------
        Grid : the decoded grid (the cached one if already decoded)

        Raises:
        -------
        DecodeError : the payload is invalid; the error is cached and raised
                      again on every later call
        """
        if self.state is DecodeState.DECODED:
            return self._grid
        if self.state is DecodeState.FAILED:
            raise self._error

        payload = self.raw_data
        if not self.encoding:
            payload = self.tiles

        try:
            request = codecs.DecodeRequest.from_tags(
                self.encoding, self.compression, payload, cols, rows)
            grid = codecs.decode(request)
        except DecodeError as exc:
            self.state = DecodeState.FAILED
            self._error = exc
            logger.error("Layer data decode failed (encoding=%r, compression=%r): %s",
                         self.encoding, self.compression, exc)
            raise

        self._grid = grid
        self.state = DecodeState.DECODED
        return grid

    @property
    def decoded(self) -> bool:
        """True once decode() has succeeded."""
        return self.state is DecodeState.DECODED

    @property
    def grid(self) -> Grid:
        """
        The decoded grid.

        Raises:
        -------
        GridNotDecoded : decode() has not run, or it failed
        """
        if self.state is DecodeState.FAILED:
            raise GridNotDecoded(f"layer data failed to decode: {self._error}")
        if self.state is not DecodeState.DECODED:
            raise GridNotDecoded("layer data has not been decoded")
        return self._grid

    def identifier_at(self, col: int, row: int) -> GID:
        """Raw GID at (col, row); see Grid.identifier_at."""
        return self.grid.identifier_at(col, row)

    def tile_index_at(self, col: int, row: int) -> int:
        return self.grid.tile_index_at(col, row)
