"""
Global tile identifiers (GIDs) and their flip flags

=============================================================================
BIT LAYOUT
=============================================================================

Every cell of a tile layer stores a 32-bit unsigned GID. Tiled packs the
tile orientation into the three highest bits:

    bit 31     bit 30     bit 29     bits 28..0
    +------+   +------+   +------+   +---------------------------+
    |  H   |   |  V   |   |  D   |   |       tile index          |
    +------+   +------+   +------+   +---------------------------+
    horizontal vertical   diagonal   0 = empty cell

The flags are independent: any of the 8 combinations is valid. A diagonal
flip combined with a horizontal or vertical flip is how Tiled expresses
90 degree rotations.

The flags must be cleared before the value is used to look up a tileset.
=============================================================================
"""

from typing import Tuple


FLAG_HORIZONTAL_FLIP = 1 << 31
FLAG_VERTICAL_FLIP = 1 << 30
FLAG_DIAGONAL_FLIP = 1 << 29
FLAG_FLIP = FLAG_HORIZONTAL_FLIP | FLAG_VERTICAL_FLIP | FLAG_DIAGONAL_FLIP

GID_MAX = 0xFFFFFFFF


class GID(int):
    """
    A raw 32-bit tile identifier with flip flags intact.

    GID is an int, so it compares, hashes and formats like the number stored
    in the TMX file. All accessors return new values; a GID never changes.

        gid = GID(0x80000005)
        gid.index()               # -> 5
        gid.is_horizontal_flip()  # -> True
    """

    __slots__ = ()

    def __new__(cls, value: int = 0) -> 'GID':
        value = int(value)
        if not 0 <= value <= GID_MAX:
            raise ValueError(f"GID {value} does not fit in 32 unsigned bits")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"GID(0x{int(self):08x})"

    def index(self) -> 'GID':
        """Tile index with the three flip bits cleared."""
        return GID(self & ~FLAG_FLIP)

    def is_horizontal_flip(self) -> bool:
        return bool(self & FLAG_HORIZONTAL_FLIP)

    def is_vertical_flip(self) -> bool:
        return bool(self & FLAG_VERTICAL_FLIP)

    def is_diagonal_flip(self) -> bool:
        return bool(self & FLAG_DIAGONAL_FLIP)

    def is_flipped(self) -> bool:
        """True when any of the three flip bits is set."""
        return bool(self & FLAG_FLIP)

    def flags(self) -> Tuple[bool, bool, bool]:
        """(horizontal, vertical, diagonal)"""
        return (self.is_horizontal_flip(),
                self.is_vertical_flip(),
                self.is_diagonal_flip())

    def with_flags(self, horizontal: bool = False, vertical: bool = False,
                   diagonal: bool = False) -> 'GID':
        """Same tile index with the given flags set and all others cleared."""
        value = int(self.index())
        if horizontal:
            value |= FLAG_HORIZONTAL_FLIP
        if vertical:
            value |= FLAG_VERTICAL_FLIP
        if diagonal:
            value |= FLAG_DIAGONAL_FLIP
        return GID(value)
