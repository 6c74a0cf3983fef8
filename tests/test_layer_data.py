# tests/test_layer_data.py
import logging
import xml.etree.ElementTree as ET

import pytest

from tmxgrid.codecs import encode_base64
from tmxgrid.errors import (DecodeError, GridNotDecoded, LengthMismatch,
                            MalformedPayload, UnsupportedEncoding)
from tmxgrid.layer_data import DecodeState, LayerData


def test_decode_is_memoised():
    data = LayerData(encoding="csv", raw_data="1,2,3,4")
    assert data.state is DecodeState.NOT_DECODED
    first = data.decode(2, 2)
    assert data.state is DecodeState.DECODED
    # a second call does not look at the payload again
    data.raw_data = "garbage"
    second = data.decode(2, 2)
    assert second is first
    assert second.to_list() == [1, 2, 3, 4]


def test_failure_is_cached_and_no_grid_exposed():
    data = LayerData(encoding="rle", raw_data="1,2,3,4")
    with pytest.raises(UnsupportedEncoding) as first:
        data.decode(2, 2)
    assert data.state is DecodeState.FAILED
    with pytest.raises(UnsupportedEncoding) as second:
        data.decode(2, 2)
    assert second.value is first.value
    with pytest.raises(GridNotDecoded):
        data.grid
    with pytest.raises(GridNotDecoded):
        data.identifier_at(0, 0)


def test_query_before_decode():
    data = LayerData(encoding="csv", raw_data="1")
    assert not data.decoded
    with pytest.raises(GridNotDecoded):
        data.tile_index_at(0, 0)


def test_plain_tiles_from_xml():
    elem = ET.fromstring(
        '<data><tile gid="1"/><tile/><tile gid="2147483651"/><tile gid="4"/></data>')
    data = LayerData.from_xml(elem)
    assert data.encoding is None
    assert data.tiles == [1, 0, 0x80000003, 4]
    data.decode(2, 2)
    assert data.identifier_at(0, 1).is_horizontal_flip()
    assert data.tile_index_at(0, 1) == 3
    assert data.tile_index_at(1, 0) == 0


def test_base64_from_xml():
    payload = encode_base64([1, 2, 3, 4, 5, 6], "zlib")
    elem = ET.fromstring(
        f'<data encoding="base64" compression="zlib">\n   {payload}\n</data>')
    data = LayerData.from_xml(elem)
    assert (data.encoding, data.compression) == ("base64", "zlib")
    assert data.decode(3, 2).to_list() == [1, 2, 3, 4, 5, 6]


def test_length_mismatch_from_layer():
    data = LayerData(encoding="csv", raw_data="1,2,3")
    with pytest.raises(LengthMismatch) as excinfo:
        data.decode(2, 2)
    assert (excinfo.value.got, excinfo.value.want) == (3, 4)


def test_huge_csv_token_marks_layer_failed():
    data = LayerData(encoding="csv", raw_data="1,2,3," + "9" * 5000)
    with pytest.raises(MalformedPayload):
        data.decode(2, 2)
    assert data.state is DecodeState.FAILED


def test_bad_dimensions_mark_layer_failed():
    data = LayerData(encoding="csv", raw_data="1,2")
    with pytest.raises(DecodeError):
        data.decode(0, 2)
    assert data.state is DecodeState.FAILED


def test_failure_is_logged(caplog):
    data = LayerData(encoding="csv", raw_data="1,2,3")
    with caplog.at_level(logging.ERROR, logger="tmxgrid.layer_data"):
        with pytest.raises(LengthMismatch):
            data.decode(2, 2)
    assert "got 3, wanted 4" in caplog.text
    assert "'csv'" in caplog.text
