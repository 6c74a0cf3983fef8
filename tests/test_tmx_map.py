# tests/test_tmx_map.py
import logging

import pytest

from tmxgrid.codecs import encode_base64, encode_csv
from tmxgrid.errors import LengthMismatch
from tmxgrid.gid import GID
from tmxgrid.tmx_map import LayerGroup, ObjectGroup, TiledMap, TileLayer

GROUND = [1, 2, 3, 4, 5, 6]
DECOR = [0, 0x80000041, 0, 0, 0x60000042, 0]


def _tmx(extra_tileset="", decor_payload=None):
    decor_payload = decor_payload or encode_base64(DECOR, "gzip")
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" tiledversion="1.10.2" orientation="orthogonal"
     renderorder="right-down" width="3" height="2" tilewidth="16" tileheight="16">
 <properties>
  <property name="music" value="town.ogg"/>
  <property name="difficulty" type="int" value="3"/>
 </properties>
 <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16"
          tilecount="64" columns="8" spacing="1" margin="2">
  <tileoffset x="0" y="4"/>
  <image source="terrain.png" width="144" height="144" trans="ff00ff"/>
  <tile id="3">
   <properties>
    <property name="solid" type="bool" value="true"/>
   </properties>
  </tile>
 </tileset>
 {extra_tileset}
 <layer id="1" name="Ground" width="3" height="2">
  <data encoding="csv">{encode_csv(GROUND, 3)}</data>
 </layer>
 <group id="2" name="Details">
  <layer id="3" name="Decor" width="3" height="2" opacity="0.5" visible="0">
   <data encoding="base64" compression="gzip">
    {decor_payload}
   </data>
  </layer>
  <layer id="4" name="Legacy" width="3" height="2">
   <data>
    <tile gid="7"/><tile/><tile gid="8"/>
    <tile/><tile gid="9"/><tile/>
   </data>
  </layer>
 </group>
 <objectgroup id="5" name="Spawns">
  <object id="1" name="chest" type="item" x="16" y="32" width="16" height="16"
          gid="2147483651"/>
  <object id="2" name="zone" x="0" y="0">
   <polygon points="0,0 32,0 32,16.5"/>
  </object>
  <object id="3" name="path" x="4" y="4">
   <polyline points="0,0 8,8"/>
  </object>
 </objectgroup>
</map>
"""


def test_map_attributes_and_properties():
    tmx = TiledMap.from_string(_tmx())
    assert (tmx.width, tmx.height) == (3, 2)
    assert (tmx.tilewidth, tmx.tileheight) == (16, 16)
    assert tmx.tiledversion == "1.10.2"
    assert tmx.properties["music"].value == "town.ogg"
    assert tmx.properties["difficulty"].value == 3


def test_embedded_tileset():
    tileset = TiledMap.from_string(_tmx()).tilesets[0]
    assert tileset.name == "terrain"
    assert (tileset.spacing, tileset.margin) == (1, 2)
    assert (tileset.tileoffset.x, tileset.tileoffset.y) == (0, 4)
    assert tileset.image.source == "terrain.png"
    assert tileset.image.trans == "ff00ff"
    assert tileset.tiles[3].properties["solid"].value is True


def test_layers_are_decoded_on_load():
    tmx = TiledMap.from_string(_tmx())
    ground = tmx.get_layer_by_name("Ground")
    assert ground.data.decoded
    assert ground.identifier_at(2, 1) == 6
    assert ground.data.grid.to_list() == GROUND

    decor = tmx.get_layer_by_name("Decor")
    assert decor.opacity == 0.5
    assert decor.visible is False
    gid = decor.identifier_at(1, 0)
    assert gid.is_horizontal_flip()
    assert decor.tile_index_at(1, 0) == 0x41
    other = decor.identifier_at(1, 1)
    assert other.is_vertical_flip() and other.is_diagonal_flip()
    assert not other.is_horizontal_flip()

    legacy = tmx.get_layer_by_name("Legacy")
    assert legacy.data.grid.to_list() == [7, 0, 8, 0, 9, 0]


def test_layer_tree():
    tmx = TiledMap.from_string(_tmx())
    assert [type(layer) for layer in tmx.layers] == [TileLayer, LayerGroup, ObjectGroup]
    assert [layer.name for layer in tmx.tile_layers()] == ["Ground", "Decor", "Legacy"]
    assert [layer.name for layer in tmx.get_all_layers_flat()] == [
        "Ground", "Decor", "Legacy", "Spawns"]
    assert isinstance(tmx.get_layer_by_name("Details"), LayerGroup)
    assert tmx.get_layer_by_name("missing") is None


def test_objects():
    spawns = TiledMap.from_string(_tmx()).get_layer_by_name("Spawns")
    chest, zone, path = spawns.objects
    assert chest.type == "item"
    assert isinstance(chest.gid, GID)
    assert chest.gid.is_horizontal_flip()
    assert chest.gid.index() == 3
    assert zone.gid is None
    assert zone.polygon == [(0.0, 0.0), (32.0, 0.0), (32.0, 16.5)]
    assert path.polyline == [(0.0, 0.0), (8.0, 8.0)]


def test_tileset_for_gid():
    extra = '<tileset firstgid="65" name="props" tilewidth="16" tileheight="16"/>'
    tmx = TiledMap.from_string(_tmx(extra_tileset=extra))
    assert tmx.get_tileset_for_gid(0) is None
    assert tmx.get_tileset_for_gid(64).name == "terrain"
    assert tmx.get_tileset_for_gid(65).name == "props"
    # flags are ignored
    assert tmx.get_tileset_for_gid(0x80000003).name == "terrain"


def test_external_tileset(tmp_path):
    (tmp_path / "props.tsx").write_text(
        '<?xml version="1.0"?>\n'
        '<tileset name="props" tilewidth="32" tileheight="32" tilecount="4" columns="2">\n'
        ' <image source="props.png" width="64" height="64"/>\n'
        '</tileset>\n')
    map_path = tmp_path / "level.tmx"
    map_path.write_text(_tmx(extra_tileset='<tileset firstgid="65" source="props.tsx"/>'))

    tmx = TiledMap.load(map_path)
    props = tmx.tilesets[1]
    assert props.firstgid == 65
    assert props.source == "props.tsx"
    assert props.tilewidth == 32
    assert props.image.source == "props.png"


def test_missing_external_tileset_warns(tmp_path, caplog):
    extra = '<tileset firstgid="65" source="missing.tsx"/>'
    with caplog.at_level(logging.WARNING, logger="tmxgrid.tmx_map"):
        tmx = TiledMap.from_string(_tmx(extra_tileset=extra), base_path=tmp_path)
    placeholder = tmx.tilesets[1]
    assert placeholder.name == "missing"
    assert placeholder.tilewidth == 16
    assert "missing.tsx" in caplog.text


def test_bad_layer_aborts_load(caplog):
    short = encode_base64(DECOR[:-1], "gzip")
    with caplog.at_level(logging.ERROR, logger="tmxgrid.tmx_map"):
        with pytest.raises(LengthMismatch) as excinfo:
            TiledMap.from_string(_tmx(decor_payload=short))
    assert (excinfo.value.got, excinfo.value.want) == (5, 6)
    assert "Decor" in caplog.text
