"""
Decoded tile grid of a single layer

=============================================================================
STORAGE
=============================================================================

The grid is a flat numpy uint32 buffer in COLUMN-MAJOR order:

    index = col * rows + row

    cols=3, rows=2          buffer
    +----+----+----+        +----+----+----+----+----+----+
    | a  | b  | c  |  --->  | a  | d  | b  | e  | c  | f  |
    +----+----+----+        +----+----+----+----+----+----+
    | d  | e  | f  |         col 0     col 1     col 2
    +----+----+----+

TMX payloads list tiles row by row (left to right, top to bottom), so the
decoder transposes while filling. The buffer is made read-only once it is
wrapped in a Grid.
=============================================================================
"""

from typing import List

import numpy as np

from .errors import OutOfBounds
from .gid import GID


class Grid:
    """Immutable cols x rows table of GIDs, indexed [col][row]."""

    __hash__ = None

    def __init__(self, cols: int, rows: int, cells: np.ndarray):
        if cells.shape != (cols * rows,):
            raise ValueError(
                f"grid buffer has shape {cells.shape}, expected ({cols * rows},)")
        self.cols = cols
        self.rows = rows
        # private copy: views of the caller's array would still be writable
        self._cells = np.array(cells, dtype=np.uint32, copy=True)
        self._cells.flags.writeable = False

    @staticmethod
    def allocate(cols: int, rows: int) -> np.ndarray:
        """Zeroed flat buffer for a cols x rows grid."""
        return np.zeros(cols * rows, dtype=np.uint32)

    def __len__(self) -> int:
        return self.cols * self.rows

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (self.cols == other.cols and self.rows == other.rows
                and np.array_equal(self._cells, other._cells))

    def __repr__(self) -> str:
        return f"Grid(cols={self.cols}, rows={self.rows})"

    @property
    def cells(self) -> np.ndarray:
        """Read-only (cols, rows) view, indexed [col, row]."""
        return self._cells.reshape(self.cols, self.rows)

    def _offset(self, col: int, row: int) -> int:
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            raise OutOfBounds(col, row, self.cols, self.rows)
        return col * self.rows + row

    def identifier_at(self, col: int, row: int) -> GID:
        """Raw GID at (col, row), flip flags intact."""
        return GID(int(self._cells[self._offset(col, row)]))

    def tile_index_at(self, col: int, row: int) -> int:
        """GID at (col, row) with the flip flags cleared."""
        return int(self.identifier_at(col, row).index())

    def to_list(self) -> List[int]:
        """All GIDs in row-major document order, as stored in TMX files."""
        return self.cells.T.ravel().tolist()
