"""
Reading TMX documents (Tiled Map XML) into a layer/tileset model

=============================================================================
WHAT IS IN A TMX FILE?
=============================================================================

    <map version="1.10" orientation="orthogonal" width="100" height="100"
         tilewidth="32" tileheight="32">

        <tileset firstgid="1" name="terrain" tilewidth="32" tileheight="32">
            <image source="terrain.png" width="256" height="256"/>
        </tileset>
        <tileset firstgid="65" source="props.tsx"/>

        <layer name="Ground" width="100" height="100">
            <data encoding="base64" compression="zlib">eJzt...</data>
        </layer>

        <objectgroup name="Spawns">
            <object id="1" x="100" y="200" gid="3"/>
            <object id="2" x="0" y="0">
                <polygon points="0,0 32,0 32,32"/>
            </object>
        </objectgroup>
    </map>

This module maps the XML structure onto dataclasses. The interesting part,
turning each <data> payload into a grid, is delegated to LayerData.

Every tile layer is decoded against the MAP width/height as soon as the
document is read. A layer that fails to decode aborts the whole load: a
half-decoded map would give wrong answers to every spatial query.
=============================================================================
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import DecodeError
from .gid import GID
from .layer_data import LayerData

logger = logging.getLogger(__name__)


def _parse_properties(elem: ET.Element) -> Dict[str, 'Property']:
    """Collect <properties><property .../></properties> by name."""
    props = {}
    props_elem = elem.find('properties')
    if props_elem is not None:
        for prop_elem in props_elem.findall('property'):
            prop = Property.from_xml(prop_elem)
            props[prop.name] = prop
    return props


def _parse_points(text: Optional[str]) -> List[Tuple[float, float]]:
    """'0,0 32,0 32,32' -> [(0.0, 0.0), (32.0, 0.0), (32.0, 32.0)]"""
    points = []
    for pair in (text or "").split():
        x, y = pair.split(',')
        points.append((float(x), float(y)))
    return points


# =============================================================================
# PROPERTIES AND IMAGES
# =============================================================================

@dataclass
class Property:
    """
    Custom property attached to a map, tileset, tile, layer or object.

    The value is converted according to the declared type:
    int, float and bool become Python values; string, color, file and
    object references stay as text.
    """
    name: str
    type: str = "string"
    value: Any = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        """
        Parse a property from XML.

        XML format:
            <property name="solid" type="bool" value="true"/>
            <property name="health" type="int" value="100"/>
            <property name="note">multi-line
            text</property>
        """
        prop_type = elem.get('type', 'string')
        # multi-line string properties store their value as element text
        value = elem.get('value')
        if value is None:
            value = elem.text or ''

        if prop_type == 'int':
            value = int(value)
        elif prop_type == 'float':
            value = float(value)
        elif prop_type == 'bool':
            value = value.lower() == 'true'

        return cls(name=elem.get('name', ''), type=prop_type, value=value)


@dataclass
class Image:
    """Image file referenced by a tileset or by a single tile."""
    source: str
    width: Optional[int] = None
    height: Optional[int] = None
    trans: Optional[str] = None          # transparent color, e.g. "ff00ff"

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        """Parse <image>; width and height are optional."""
        return cls(
            source=elem.get('source', ''),
            width=int(elem.get('width')) if elem.get('width') else None,
            height=int(elem.get('height')) if elem.get('height') else None,
            trans=elem.get('trans')
        )


@dataclass
class TileOffset:
    """Pixel offset applied when drawing tiles of a tileset (y grows down)."""
    x: int = 0
    y: int = 0

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileOffset':
        return cls(x=int(elem.get('x', 0)), y=int(elem.get('y', 0)))


# =============================================================================
# TILESETS
# =============================================================================

@dataclass
class TileInfo:
    """
    Metadata for one tile of a tileset.

    `id` is LOCAL to the tileset: gid = tileset.firstgid + tile.id
    Only tiles with properties or their own image are listed in the file.
    """
    id: int
    type: str = ""
    properties: Dict[str, Property] = field(default_factory=dict)
    image: Optional[Image] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileInfo':
        """Parse a <tile> entry of a tileset (properties and optional image)."""
        tile = cls(id=int(elem.get('id', 0)),
                   type=elem.get('type') or elem.get('class', ''),
                   properties=_parse_properties(elem))
        img_elem = elem.find('image')
        if img_elem is not None:
            tile.image = Image.from_xml(img_elem)
        return tile


@dataclass
class Tileset:
    """
    A set of tile graphics, either embedded in the map or stored in an
    external .tsx file.

    ==========================================================================
    EMBEDDED vs EXTERNAL
    ==========================================================================

    EMBEDDED:  <tileset firstgid="1" name="terrain" tilewidth="32" ...>
    EXTERNAL:  <tileset firstgid="1" source="terrain.tsx"/>

    The .tsx file has the same structure minus firstgid, which always comes
    from the map since it depends on the other tilesets the map uses.
    ==========================================================================
    """
    firstgid: int
    name: str
    tilewidth: int
    tileheight: int
    tilecount: int = 0
    columns: int = 0
    spacing: int = 0                     # pixels between tiles
    margin: int = 0                      # pixels around the image edge
    tileoffset: TileOffset = field(default_factory=TileOffset)
    image: Optional[Image] = None
    tiles: Dict[int, TileInfo] = field(default_factory=dict)
    properties: Dict[str, Property] = field(default_factory=dict)
    source: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element, firstgid: int) -> 'Tileset':
        """
        Parse a tileset from a <tileset> element (TMX or TSX root).

        Parameters:
        -----------
        elem : ET.Element
            The <tileset> element
        firstgid : int
            First global ID, always taken from the map

        Returns:
        --------
        Tileset : with image, tile offset and per-tile metadata filled in
        """
        tileset = cls(
            firstgid=firstgid,
            name=elem.get('name', ''),
            tilewidth=int(elem.get('tilewidth', 0)),
            tileheight=int(elem.get('tileheight', 0)),
            tilecount=int(elem.get('tilecount', 0)),
            columns=int(elem.get('columns', 0)),
            spacing=int(elem.get('spacing', 0)),
            margin=int(elem.get('margin', 0)),
            properties=_parse_properties(elem),
            source=elem.get('source')
        )

        offset_elem = elem.find('tileoffset')
        if offset_elem is not None:
            tileset.tileoffset = TileOffset.from_xml(offset_elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tileset.image = Image.from_xml(img_elem)

        for tile_elem in elem.findall('tile'):
            tile = TileInfo.from_xml(tile_elem)
            tileset.tiles[tile.id] = tile

        return tileset

    @classmethod
    def from_tsx(cls, tsx_path: Path, firstgid: int, source: str,
                 tilewidth: int = 0, tileheight: int = 0) -> 'Tileset':
        """
        Load an external tileset.

        A missing file is not fatal: the map still loads with a placeholder
        tileset sized like the map grid, so GID lookups keep working.
        """
        try:
            tsx_root = ET.parse(tsx_path).getroot()
        except FileNotFoundError:
            logger.warning("External tileset not found: %s", tsx_path)
            return cls(firstgid=firstgid, name=Path(source).stem,
                       tilewidth=tilewidth, tileheight=tileheight,
                       source=source)

        tileset = cls.from_xml(tsx_root, firstgid)
        tileset.source = source
        return tileset


# =============================================================================
# LAYERS
# =============================================================================

@dataclass
class TileLayer:
    """
    A grid of tile references spanning the whole map.

    Tiles are addressed by (col, row), with (0, 0) the top-left cell:

        raw = layer.identifier_at(5, 10)   # GID with flip flags
        idx = layer.tile_index_at(5, 10)   # flags cleared, 0 = empty

    Both raise OutOfBounds outside the grid and GridNotDecoded before
    decode() has succeeded.
    """
    name: str
    width: int = 0
    height: int = 0
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    properties: Dict[str, Property] = field(default_factory=dict)
    data: LayerData = field(default_factory=LayerData)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileLayer':
        """
        Parse a <layer> element.

        The <data> payload is stored as-is; decode() turns it into a grid
        once the map dimensions are known.
        """
        layer = cls(
            name=elem.get('name', ''),
            width=int(elem.get('width', 0)),
            height=int(elem.get('height', 0)),
            id=int(elem.get('id', 0)),
            # absent means visible
            visible=elem.get('visible', '1') == '1',
            opacity=float(elem.get('opacity', 1.0)),
            offsetx=float(elem.get('offsetx', 0)),
            offsety=float(elem.get('offsety', 0)),
            properties=_parse_properties(elem)
        )

        data_elem = elem.find('data')
        if data_elem is not None:
            layer.data = LayerData.from_xml(data_elem)
        return layer

    def decode(self, cols: int, rows: int):
        """
        Decode this layer's tile data.

        Parameters:
        -----------
        cols, rows : int
            Map width and height in tiles (not the layer attributes)

        Returns:
        --------
        Grid : the decoded grid, cached after the first call
        """
        return self.data.decode(cols, rows)

    def identifier_at(self, col: int, row: int) -> GID:
        """
        Raw GID at (col, row), flip flags intact.

        Parameters:
        -----------
        col : int
            Column (0 to cols-1)
        row : int
            Row (0 to rows-1)

        Returns:
        --------
        GID : 0 = empty, otherwise a tile reference with flags
        """
        return self.data.identifier_at(col, row)

    def tile_index_at(self, col: int, row: int) -> int:
        """Tile index at (col, row) with flip flags cleared."""
        return self.data.tile_index_at(col, row)


@dataclass
class MapObject:
    """
    Free-form object of an object layer (spawn points, triggers, shapes).

    Position and size are in pixels. Tile objects carry a `gid`, which may
    have flip flags like any layer cell. Polygon and polyline points are
    relative to (x, y).
    """
    id: int
    name: str = ""
    type: str = ""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    rotation: float = 0
    gid: Optional[GID] = None
    visible: bool = True
    properties: Dict[str, Property] = field(default_factory=dict)
    polygon: List[Tuple[float, float]] = field(default_factory=list)
    polyline: List[Tuple[float, float]] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'MapObject':
        """
        Parse an <object>.

        Only tile objects have a gid. A <polygon> or <polyline> child holds
        space-separated "x,y" pairs relative to the object position.
        """
        obj = cls(
            id=int(elem.get('id', 0)),
            name=elem.get('name', ''),
            type=elem.get('type') or elem.get('class', ''),
            x=float(elem.get('x', 0)),
            y=float(elem.get('y', 0)),
            width=float(elem.get('width', 0)),
            height=float(elem.get('height', 0)),
            rotation=float(elem.get('rotation', 0)),
            visible=elem.get('visible', '1') == '1',
            properties=_parse_properties(elem)
        )

        if elem.get('gid'):
            obj.gid = GID(int(elem.get('gid')))

        polygon_elem = elem.find('polygon')
        if polygon_elem is not None:
            obj.polygon = _parse_points(polygon_elem.get('points'))
        polyline_elem = elem.find('polyline')
        if polyline_elem is not None:
            obj.polyline = _parse_points(polyline_elem.get('points'))

        return obj


@dataclass
class ObjectGroup:
    """Object layer. Object order is kept as in the file."""
    name: str
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    properties: Dict[str, Property] = field(default_factory=dict)
    objects: List[MapObject] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ObjectGroup':
        """Parse an <objectgroup> and its objects."""
        return cls(
            name=elem.get('name', ''),
            id=int(elem.get('id', 0)),
            visible=elem.get('visible', '1') == '1',
            opacity=float(elem.get('opacity', 1.0)),
            offsetx=float(elem.get('offsetx', 0)),
            offsety=float(elem.get('offsety', 0)),
            properties=_parse_properties(elem),
            objects=[MapObject.from_xml(o) for o in elem.findall('object')]
        )


@dataclass
class LayerGroup:
    """
    Folder of layers. Groups nest:

    Layers:
    ├── Background (group)
    │   ├── Sky
    │   └── Mountains
    └── Ground
    """
    name: str
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    properties: Dict[str, Property] = field(default_factory=dict)
    layers: List[Union['TileLayer', 'ObjectGroup', 'LayerGroup']] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerGroup':
        """Parse a <group>, recursing into child layers and groups."""
        return cls(
            name=elem.get('name', ''),
            id=int(elem.get('id', 0)),
            visible=elem.get('visible', '1') == '1',
            opacity=float(elem.get('opacity', 1.0)),
            offsetx=float(elem.get('offsetx', 0)),
            offsety=float(elem.get('offsety', 0)),
            properties=_parse_properties(elem),
            layers=_parse_layers(elem)
        )


Layer = Union[TileLayer, ObjectGroup, LayerGroup]

_LAYER_TAGS = {
    'layer': TileLayer,
    'objectgroup': ObjectGroup,
    'group': LayerGroup,
}


def _parse_layers(parent: ET.Element) -> List[Layer]:
    """Child layers of <map> or <group>, in document (drawing) order."""
    return [_LAYER_TAGS[child.tag].from_xml(child)
            for child in parent if child.tag in _LAYER_TAGS]


# =============================================================================
# TILED MAP (entry point)
# =============================================================================

@dataclass
class TiledMap:
    """
    A parsed TMX map.

    ==========================================================================
    USAGE
    ==========================================================================

        tmx = TiledMap.load("level1.tmx")
        ground = tmx.get_layer_by_name("Ground")

        gid = ground.identifier_at(5, 10)
        if gid.is_horizontal_flip():
            ...
        tileset = tmx.get_tileset_for_gid(gid)

    ==========================================================================
    """
    version: str = "1.0"
    tiledversion: str = ""
    orientation: str = "orthogonal"
    renderorder: str = "right-down"
    width: int = 0                       # map width in tiles (cols)
    height: int = 0                      # map height in tiles (rows)
    tilewidth: int = 0
    tileheight: int = 0
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[Layer] = field(default_factory=list)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'TiledMap':
        """
        Load and decode a TMX file.

        Raises:
        -------
        FileNotFoundError : the TMX file does not exist
        xml.etree.ElementTree.ParseError : the XML is malformed
        DecodeError : a tile layer payload is invalid
        """
        filepath = Path(filepath)
        root = ET.parse(filepath).getroot()
        return cls.from_xml(root, base_path=filepath.parent)

    @classmethod
    def from_string(cls, text: str,
                    base_path: Union[str, Path, None] = None) -> 'TiledMap':
        """Parse a TMX document held in memory; .tsx paths resolve against base_path."""
        root = ET.fromstring(text)
        return cls.from_xml(root, base_path=base_path)

    @classmethod
    def from_xml(cls, root: ET.Element,
                 base_path: Union[str, Path, None] = None) -> 'TiledMap':
        base_path = Path(base_path) if base_path is not None else Path('.')

        tmx = cls(
            version=root.get('version', '1.0'),
            tiledversion=root.get('tiledversion', ''),
            orientation=root.get('orientation', 'orthogonal'),
            renderorder=root.get('renderorder', 'right-down'),
            width=int(root.get('width', 0)),
            height=int(root.get('height', 0)),
            tilewidth=int(root.get('tilewidth', 0)),
            tileheight=int(root.get('tileheight', 0)),
            properties=_parse_properties(root)
        )

        for tileset_elem in root.findall('tileset'):
            firstgid = int(tileset_elem.get('firstgid', 1))
            source = tileset_elem.get('source')
            if source:
                tileset = Tileset.from_tsx(base_path / source, firstgid, source,
                                           tmx.tilewidth, tmx.tileheight)
            else:
                tileset = Tileset.from_xml(tileset_elem, firstgid)
            tmx.tilesets.append(tileset)
        tmx.tilesets.sort(key=lambda ts: ts.firstgid)

        tmx.layers = _parse_layers(root)
        tmx.decode_layers()
        return tmx

    def decode_layers(self):
        """
        Decode every tile layer against the map dimensions.

        Already decoded layers are skipped. The first failure is logged with
        the layer name and propagated.
        """
        for layer in self.tile_layers():
            try:
                layer.decode(self.width, self.height)
            except DecodeError as exc:
                logger.error("Aborting map load: tile layer '%s' failed to decode: %s",
                             layer.name, exc)
                raise

    def tile_layers(self) -> List[TileLayer]:
        """All tile layers, including those nested in groups."""
        return [layer for layer in self.get_all_layers_flat()
                if isinstance(layer, TileLayer)]

    def get_all_layers_flat(self) -> List[Union[TileLayer, ObjectGroup]]:
        """TileLayers and ObjectGroups in drawing order, groups expanded."""
        result = []

        def flatten(layers):
            for layer in layers:
                if isinstance(layer, LayerGroup):
                    flatten(layer.layers)
                else:
                    result.append(layer)

        flatten(self.layers)
        return result

    def get_layer_by_name(self, name: str) -> Optional[Layer]:
        """First layer (or group) with the given name, searching groups too."""
        def search(layers):
            for layer in layers:
                if layer.name == name:
                    return layer
                if isinstance(layer, LayerGroup):
                    found = search(layer.layers)
                    if found is not None:
                        return found
            return None

        return search(self.layers)

    def get_tileset_for_gid(self, gid: int) -> Optional[Tileset]:
        """
        Tileset holding a GID: the one with the largest firstgid <= index.

            Tileset A: firstgid=1
            Tileset B: firstgid=101

            GID 50  -> A
            GID 150 -> B
            GID 0   -> None (empty cell)

        Flip flags are cleared first, so raw layer values can be passed in.
        """
        index = GID(gid).index()
        if index == 0:
            return None
        for tileset in reversed(self.tilesets):
            if index >= tileset.firstgid:
                return tileset
        return None
