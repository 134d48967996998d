import json

import pytest

from photo_index.exceptions import FileReadError, ManifestError, ReservedAlbumError, ValidationError
from photo_index.manifest.parser import DisplayOrder, ManifestAlbumKind, ManifestParser
from photo_index.models import AlbumKind

from conftest import DISPLAY_SETTINGS, album_entry


def _parse(albums):
    return ManifestParser().parse(json.dumps(albums))


def test_parse_preserves_declaration_order_and_kinds():
    manifest = _parse([
        ["zoo", album_entry("Zoo", ["a", "b"])],
        ["sf", album_entry("San Francisco", ["b"], kind="location")],
        ["hike", album_entry("Hike", ["c"], kind={"day": "Jan 2"}, display="from_last")],
    ])

    assert manifest.paths() == ["zoo", "sf", "hike"]
    assert manifest["zoo"].kind is None
    assert manifest["sf"].kind == ManifestAlbumKind.location()
    assert manifest["hike"].kind == ManifestAlbumKind.day("Jan 2")
    assert manifest["hike"].display is DisplayOrder.FROM_LAST
    assert manifest["zoo"].photos == ("a", "b")
    assert manifest.kind_of("sf") is AlbumKind.LOCATION
    assert manifest.kind_of("hike") is AlbumKind.DAY
    assert manifest.kind_of("missing") is None
    assert "zoo" in manifest and len(manifest) == 3


def test_reserved_all_album_is_rejected():
    with pytest.raises(ReservedAlbumError, match="reserved"):
        _parse([["all", album_entry("Everything", ["a"])]])


def test_reserved_error_is_a_manifest_error():
    assert issubclass(ReservedAlbumError, ManifestError)


def test_album_path_must_be_uri_safe():
    with pytest.raises(ValidationError):
        _parse([["my trip", album_entry("Trip", ["a"])]])


@pytest.mark.parametrize("albums", [
    {"not": "a list"},
    [["only-path"]],
    [["a", "not an object"]],
    [["a", {**album_entry("A", ["x"]), "display": "sideways"}]],
    [["a", {**album_entry("A", ["x"]), "kind": "planet"}]],
    [["a", {**album_entry("A", ["x"]), "kind": {"day": 3}}]],
    [["a", {**album_entry("A", ["x"]), "photos": [1, 2]}]],
    [["a", {k: v for k, v in album_entry("A", ["x"]).items() if k != "cover_img"}]],
    [["a", album_entry("A", ["x"])], ["a", album_entry("Again", ["y"])]],
])
def test_malformed_manifest(albums):
    with pytest.raises(ManifestError):
        _parse(albums)


def test_invalid_json():
    with pytest.raises(ManifestError, match="invalid JSON"):
        ManifestParser().parse("[[")


def test_kind_may_be_omitted():
    entry = album_entry("A", ["x"])
    del entry["kind"]
    manifest = _parse([["a", entry]])
    assert manifest["a"].kind is None


def test_load_missing_manifest(tmp_path):
    with pytest.raises(FileReadError):
        ManifestParser().load(tmp_path)


def test_load_reports_file_path(tmp_path):
    (tmp_path / "albums.json").write_text('[["all", {}]]')
    with pytest.raises(ReservedAlbumError, match="albums.json"):
        ManifestParser().load(tmp_path)


def test_display_settings():
    settings = ManifestParser().parse_display_settings(json.dumps(DISPLAY_SETTINGS))
    assert settings.min_columns == 2
    assert settings.column_width_range == (150, 400)
    assert settings.max_multi_column_height_multiplier == 1.5
    assert settings.max_sequential_multi == 2


def test_display_settings_accepts_list_range():
    raw = dict(DISPLAY_SETTINGS, columnWidthRange=[100, 300])
    settings = ManifestParser().parse_display_settings(json.dumps(raw))
    assert settings.column_width_range == (100, 300)


@pytest.mark.parametrize("override", [
    {"maxSequentialMulti": 0},
    {"minColumns": -1},
    {"padding": "5"},
    {"maxColumnCrop": None},
    {"columnWidthRange": [1]},
])
def test_bad_display_settings(override):
    with pytest.raises(ManifestError):
        ManifestParser().parse_display_settings(json.dumps(dict(DISPLAY_SETTINGS, **override)))
