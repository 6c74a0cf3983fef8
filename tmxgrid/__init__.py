"""
tmxgrid - tile layer decoding for Tiled TMX maps

Reads TMX documents and decodes their tile layers (xml, csv or base64,
optionally gzip/zlib compressed) into column-major grids of GIDs.

Requisitos:
    pip install numpy
"""

from .codecs import (Compression, DecodeRequest, Encoding, decode,
                     encode_base64, encode_csv)
from .errors import (DecodeError, GridNotDecoded, LengthMismatch,
                     MalformedPayload, OutOfBounds, TmxError,
                     UnsupportedCompression, UnsupportedEncoding)
from .gid import (FLAG_DIAGONAL_FLIP, FLAG_FLIP, FLAG_HORIZONTAL_FLIP,
                  FLAG_VERTICAL_FLIP, GID)
from .grid import Grid
from .layer_data import DecodeState, LayerData
from .tmx_map import (Image, LayerGroup, MapObject, ObjectGroup, Property,
                      TiledMap, TileInfo, TileLayer, TileOffset, Tileset)

__version__ = "1.0.0"
__all__ = [
    "GID",
    "FLAG_HORIZONTAL_FLIP",
    "FLAG_VERTICAL_FLIP",
    "FLAG_DIAGONAL_FLIP",
    "FLAG_FLIP",
    "Grid",
    "Encoding",
    "Compression",
    "DecodeRequest",
    "decode",
    "encode_csv",
    "encode_base64",
    "DecodeState",
    "LayerData",
    "TmxError",
    "DecodeError",
    "UnsupportedEncoding",
    "UnsupportedCompression",
    "MalformedPayload",
    "LengthMismatch",
    "OutOfBounds",
    "GridNotDecoded",
    "Property",
    "Image",
    "TileOffset",
    "TileInfo",
    "Tileset",
    "TileLayer",
    "MapObject",
    "ObjectGroup",
    "LayerGroup",
    "TiledMap",
]
