import io
import json
import struct

import pytest
from PIL import Image

# TIFF field types
ASCII, SHORT, LONG, RATIONAL, UNDEFINED = 2, 3, 4, 5, 7

EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825

# name -> (ifd, tag id)
TAG_IDS = {
    "ImageDescription": ("ifd0", 0x010E),
    "Make": ("ifd0", 0x010F),
    "Model": ("ifd0", 0x0110),
    "ExposureTime": ("exif", 0x829A),
    "FNumber": ("exif", 0x829D),
    "ISOSpeedRatings": ("exif", 0x8827),
    "DateTimeOriginal": ("exif", 0x9003),
    "OffsetTimeOriginal": ("exif", 0x9011),
    "FocalLength": ("exif", 0x920A),
    "UserComment": ("exif", 0x9286),
    "SubSecTimeOriginal": ("exif", 0x9291),
    "LensMake": ("exif", 0xA433),
    "LensModel": ("exif", 0xA434),
    "GPSLatitudeRef": ("gps", 0x0001),
    "GPSLatitude": ("gps", 0x0002),
    "GPSLongitudeRef": ("gps", 0x0003),
    "GPSLongitude": ("gps", 0x0004),
}

# 37°48'30" N, 122°24'0" W
SF_GPS = {
    "GPSLatitudeRef": (ASCII, "N"),
    "GPSLatitude": (RATIONAL, [(37, 1), (48, 1), (30, 1)]),
    "GPSLongitudeRef": (ASCII, "W"),
    "GPSLongitude": (RATIONAL, [(122, 1), (24, 1), (0, 1)]),
}

DISPLAY_SETTINGS = {
    "minColumns": 2,
    "maxColumns": 6,
    "minColumnWidth": 200,
    "columnWidthRange": {"start": 150, "end": 400},
    "padding": 5,
    "maxColumnCrop": 0.2,
    "maxMultiCrop": 0.1,
    "maxMultiColumnHeightMultiplier": 1.5,
    "maxSequentialMulti": 2,
}


def _encode(field_type, value):
    if field_type == ASCII:
        raw = value if isinstance(value, bytes) else value.encode("ascii")
        raw += b"\x00"
        return raw, len(raw)
    if field_type in (SHORT, LONG):
        values = value if isinstance(value, list) else [value]
        fmt = "<H" if field_type == SHORT else "<I"
        return b"".join(struct.pack(fmt, v) for v in values), len(values)
    if field_type == RATIONAL:
        values = value if isinstance(value, list) else [value]
        return b"".join(struct.pack("<II", n, d) for n, d in values), len(values)
    if field_type == UNDEFINED:
        return value, len(value)
    raise ValueError(field_type)


def _ifd(entries, offset):
    """One little-endian IFD starting at `offset`, followed by its out-of-line data."""
    items = sorted(entries.items())
    data_offset = offset + 2 + 12 * len(items) + 4

    head = struct.pack("<H", len(items))
    data = b""
    for tag, (field_type, value) in items:
        raw, count = _encode(field_type, value)
        if len(raw) <= 4:
            field = raw.ljust(4, b"\x00")
        else:
            field = struct.pack("<I", data_offset + len(data))
            data += raw
            if len(data) % 2:
                data += b"\x00"
        head += struct.pack("<HHI", tag, field_type, count) + field
    head += struct.pack("<I", 0)
    return head + data


def build_exif(ifd0, exif=None, gps=None):
    """Returns an APP1 Exif payload (b'Exif\\0\\0' + TIFF) with the given IFDs."""
    ifd0 = dict(ifd0)
    if exif:
        ifd0[EXIF_IFD_POINTER] = (LONG, 0)
    if gps:
        ifd0[GPS_IFD_POINTER] = (LONG, 0)

    # Pointer values don't change the IFD's size, so lay out once to find offsets
    exif_offset = 8 + len(_ifd(ifd0, 8))
    exif_block = _ifd(exif, exif_offset) if exif else b""
    gps_offset = exif_offset + len(exif_block)
    gps_block = _ifd(gps, gps_offset) if gps else b""

    if exif:
        ifd0[EXIF_IFD_POINTER] = (LONG, exif_offset)
    if gps:
        ifd0[GPS_IFD_POINTER] = (LONG, gps_offset)

    tiff = b"II*\x00" + struct.pack("<I", 8) + _ifd(ifd0, 8) + exif_block + gps_block
    return b"Exif\x00\x00" + tiff


def photo_tags(title="A photo",
               taken="2021:12:18 10:30:00",
               offset="-08:00",
               make="Canon",
               model="Canon EOS R6",
               lens=("Canon", "RF35mm F1.8"),
               iso=100,
               f_stop=(28, 10),
               focal_length=(35, 1),
               exposure=(1, 250),
               comment=None,
               gps=None):
    """Tag name -> (type, value) for a photo that passes every check."""
    tags = {
        "ImageDescription": (ASCII, title),
        "Make": (ASCII, make),
        "Model": (ASCII, model),
        "ExposureTime": (RATIONAL, [exposure]),
        "FNumber": (RATIONAL, [f_stop]),
        "ISOSpeedRatings": (SHORT, iso),
        "DateTimeOriginal": (ASCII, taken),
        "OffsetTimeOriginal": (ASCII, offset),
        "FocalLength": (RATIONAL, [focal_length]),
    }
    if lens:
        tags["LensMake"] = (ASCII, lens[0])
        tags["LensModel"] = (ASCII, lens[1])
    if comment is not None:
        tags["UserComment"] = (UNDEFINED, comment)
    if gps:
        tags.update(gps)
    return tags


def exif_from_tags(tags):
    ifds = {"ifd0": {}, "exif": {}, "gps": {}}
    for name, entry in tags.items():
        ifd, tag_id = TAG_IDS[name]
        ifds[ifd][tag_id] = entry
    return build_exif(ifds["ifd0"], ifds["exif"], ifds["gps"])


def make_jpeg(exif=None, size=(64, 48), color=(200, 120, 40)):
    buf = io.BytesIO()
    with Image.new("RGB", size, color=color) as im:
        if exif is None:
            im.save(buf, "JPEG", quality=90)
        else:
            im.save(buf, "JPEG", quality=90, exif=exif)
    return buf.getvalue()


def make_photo(omit=(), size=(64, 48), color=(200, 120, 40), **kwargs):
    tags = photo_tags(**kwargs)
    for name in omit:
        tags.pop(name, None)
    return make_jpeg(exif_from_tags(tags), size=size, color=color)


class PhotoLibrary:
    """A photo directory on disk: albums.json, display settings and JPEGs."""

    def __init__(self, root):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.write_manifest([])
        self.write_display_settings(DISPLAY_SETTINGS)

    def add_photo(self, file_id, **kwargs):
        path = self.root / f"{file_id}.jpg"
        path.write_bytes(make_photo(**kwargs))
        return path

    def write_manifest(self, albums):
        (self.root / "albums.json").write_text(json.dumps(albums), encoding="utf-8")

    def write_display_settings(self, settings):
        (self.root / "default-flex-grid-config.json").write_text(json.dumps(settings), encoding="utf-8")


def album_entry(name, photos, cover=None, kind=None, display="from_first", description="An album"):
    return {
        "name": name,
        "kind": kind,
        "display": display,
        "description": description,
        "cover_img": cover or photos[0],
        "photos": list(photos),
    }


@pytest.fixture
def library(tmp_path):
    return PhotoLibrary(tmp_path / "photos")
