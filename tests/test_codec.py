import io
import json
from pathlib import Path

import pytest

from opex.codec import (
    JsonEncodable,
    JsonOptions,
    dump,
    dumps,
    load,
    loads,
    read_file,
    to_json_string,
    write_file,
)
from opex.errors import MalformedEncoding
from opex.geometry import BBox, Polygon
from opex.predictions import ObjectPrediction, ObjectPredictions

DATA = Path(__file__).parent / "data" / "simple.json"


def _preds() -> ObjectPredictions:
    return ObjectPredictions(
        id="img001",
        objects=(
            ObjectPrediction.from_bbox("cat", BBox(0, 0, 10, 10)),
            ObjectPrediction.from_bbox("dog", BBox(5, 5, 20, 20)),
        ),
    )


def test_entities_are_json_encodable() -> None:
    assert isinstance(BBox(0, 0, 1, 1), JsonEncodable)
    assert isinstance(Polygon([(0, 0), (1, 0), (1, 1)]), JsonEncodable)
    assert isinstance(_preds(), JsonEncodable)


def test_to_json_string_pretty_and_compact() -> None:
    bbox = BBox(1, 2, 3, 4)
    assert to_json_string(bbox, pretty=False) == '{"top":2,"left":1,"bottom":4,"right":3}'

    pretty = to_json_string(bbox)
    assert "\n" in pretty
    assert json.loads(pretty) == bbox.to_json()

    wide = to_json_string(bbox, options=JsonOptions(indent=4))
    assert '\n    "top": 2' in wide


def test_json_options_validation() -> None:
    with pytest.raises(ValueError):
        JsonOptions(indent=-1)
    with pytest.raises(ValueError):
        to_json_string(BBox(0, 0, 1, 1), pretty=True, options=JsonOptions())


def test_end_to_end_two_objects() -> None:
    text = dumps(_preds(), pretty=False)
    assert "\n" not in text
    decoded = loads(text)
    assert decoded.id == "img001"
    assert len(decoded.objects) == 2
    assert [o.label for o in decoded.objects] == ["cat", "dog"]
    cat, dog = decoded.objects
    assert (cat.bbox.left, cat.bbox.top, cat.bbox.right, cat.bbox.bottom) == (0, 0, 10, 10)
    assert (dog.bbox.left, dog.bbox.top, dog.bbox.right, dog.bbox.bottom) == (5, 5, 20, 20)
    assert decoded == _preds()


def test_loads_accepts_bytes() -> None:
    assert loads(dumps(_preds()).encode("utf-8")) == _preds()


def test_loads_invalid_json() -> None:
    with pytest.raises(MalformedEncoding):
        loads("{not json")
    with pytest.raises(MalformedEncoding):
        loads("[1, 2, 3]")


def test_load_from_text_and_binary_streams() -> None:
    with DATA.open("r", encoding="utf-8") as f:
        from_text = load(f)
    with DATA.open("rb") as f:
        from_bytes = load(f)
    assert from_text == from_bytes
    assert len(from_text) == 2
    assert from_text.timestamp_str() == "20230615_143022.123456"
    assert from_text.meta == {"source": "unit-test"}
    assert from_text.objects[0].score == pytest.approx(0.87)
    assert from_text.objects[1].meta == {"annotator": "alice"}


def test_dump_to_text_and_binary_sinks() -> None:
    buf = io.StringIO()
    dump(_preds(), buf, pretty=False)
    assert buf.getvalue() == dumps(_preds(), pretty=False)

    raw = io.BytesIO()
    dump(_preds(), raw)
    assert raw.getvalue().decode("utf-8") == dumps(_preds())


def test_dump_non_ascii_meta() -> None:
    preds = ObjectPredictions(id="x", meta={"note": "café"})
    buf = io.BytesIO()
    dump(preds, buf, pretty=False)
    assert "café".encode() in buf.getvalue()
    assert loads(buf.getvalue()).meta == {"note": "café"}


def test_read_write_file(tmp_path: Path) -> None:
    original = read_file(DATA)
    out = write_file(original, tmp_path / "nested" / "out.json")
    assert out.is_file()
    assert read_file(out) == original
    assert json.loads(out.read_text(encoding="utf-8")) == original.to_json()

    compact = write_file(original, tmp_path / "compact.json", pretty=False)
    assert compact.read_text(encoding="utf-8").count("\n") == 0


def test_read_file_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_file(tmp_path / "missing.json")


def test_invalid_utf8_is_malformed(tmp_path: Path) -> None:
    raw = b'{"id": "\xff", "objects": []}'
    with pytest.raises(MalformedEncoding):
        loads(raw)
    with pytest.raises(MalformedEncoding):
        load(io.BytesIO(raw))

    path = tmp_path / "bad.json"
    path.write_bytes(raw)
    with pytest.raises(MalformedEncoding):
        read_file(path)
    with path.open("r", encoding="utf-8") as f, pytest.raises(MalformedEncoding):
        load(f)
