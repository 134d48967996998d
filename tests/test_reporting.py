import csv

from photo_index.core import PhotoIndexService
from photo_index.reporting import ReportGenerator

from conftest import SF_GPS, album_entry


def test_catalog_report(library, tmp_path):
    library.add_photo("bridge", title="Bridge", taken="2021:12:18 09:00:00", gps=SF_GPS)
    library.add_photo("pier", title="Pier", taken="2021:12:19 12:00:00", lens=None)
    library.write_manifest([
        ["favorites", album_entry("Favorites", ["pier"])],
        ["sf", album_entry("San Francisco", ["bridge"], kind="location")],
        ["walks", album_entry("Walks", ["bridge", "pier"])],
        ["boats", album_entry("Boats", ["pier"])],
    ])
    snapshot = PhotoIndexService(library.root, show_progress=False).initialize()

    report = tmp_path / "catalog.csv"
    assert ReportGenerator(snapshot).generate_catalog_report(report) == 2

    with open(report, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert [r["Photo"] for r in rows] == ["bridge", "pier"]

    bridge, pier = rows
    assert bridge["Title"] == "Bridge"
    assert bridge["Captured"] == "2021-12-18T09:00:00-08:00"
    assert bridge["Location"] == "San Francisco"
    assert bridge["Day Album"] == "2021-12-18"
    assert bridge["Albums"] == "walks"
    assert bridge["Favorite"] == "no"
    assert bridge["Camera"] == "Canon EOS R6"
    assert bridge["Lens"] == "Canon RF35mm F1.8"
    assert bridge["Full Image Hash"] == snapshot.photo("bridge").full_image_hash

    assert pier["Location"] == ""
    assert pier["Albums"] == "boats;walks"
    assert pier["Favorite"] == "yes"
    assert pier["Lens"] == ""
    assert pier["Thumbnail Size"] == "64x48"


def test_empty_report(library, tmp_path):
    snapshot = PhotoIndexService(library.root, show_progress=False).initialize()
    report = tmp_path / "empty.csv"

    assert ReportGenerator(snapshot).generate_catalog_report(report) == 0
    with open(report, newline="", encoding="utf-8") as f:
        assert list(csv.reader(f)) == [ReportGenerator.HEADERS]
