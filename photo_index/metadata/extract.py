import io
import re
import struct
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Any, Callable, Dict, List, Optional, Tuple

import exifread
from PIL import Image

from .. import config
from ..exceptions import MetadataError
from ..markup import render_markdown
from ..models import CameraInfo, ExifMetadata, GPSCoords

# EXIF field types, as reported by exifread's IfdTag.field_type
FIELD_ASCII = 2
FIELD_SHORT = 3
FIELD_RATIO = 5
FIELD_UNDEFINED = 7

# Tags that exifread names differently depending on its release
TAG_ALIASES = {
    "EXIF ISOSpeedRatings": "EXIF PhotographicSensitivity",
    "EXIF OffsetTimeOriginal": "EXIF Tag 0x9011",
    "EXIF LensMake": "EXIF Tag 0xA433",
    "EXIF LensModel": "EXIF Tag 0xA434",
}

# First 8 bytes of UserComment select the character set of the rest
USER_COMMENT_ASCII = b"ASCII\x00\x00\x00"
USER_COMMENT_JIS = b"JIS\x00\x00\x00\x00\x00"
USER_COMMENT_UNICODE = b"UNICODE\x00"
USER_COMMENT_UNDEFINED = b"\x00" * 8

DATETIME_RE = re.compile(r"^(\d{4}):(\d{2}):(\d{2}) (\d{2}):(\d{2}):(\d{2})$")
OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")

APP1_EXIF_HEADER = b"Exif\x00\x00"


class ExifTags:
    """
    exifread's tags plus the TIFF block they were parsed from.

    exifread reduces rationals, keeps only the text before the first NUL of
    an ASCII field and returns no value at all for Undefined fields of 1000
    bytes or more. Checks that depend on what was actually stored read the
    field's bytes back out of the TIFF block instead.
    """

    def __init__(self, tags: Dict[str, Any], tiff: Optional[bytes]):
        self.tags = tags
        self.tiff = tiff

    def get(self, key: str) -> Any:
        tag = self.tags.get(key)
        if tag is None and key in TAG_ALIASES:
            tag = self.tags.get(TAG_ALIASES[key])
        return tag

    def field_bytes(self, tag: Any, name: str) -> bytes:
        if self.tiff is None:
            raise MetadataError(name, "no EXIF block to read the stored value from")
        # exifread offsets are relative to the TIFF header
        start, length = tag.field_offset, tag.field_length
        raw = self.tiff[start:start + length]
        if len(raw) != length:
            raise MetadataError(name, "stored value runs past the end of the EXIF block")
        return raw

    def stored_ratio(self, tag: Any, name: str) -> Tuple[int, int]:
        """(numerator, denominator) of the first rational, unreduced."""
        raw = self.field_bytes(tag, name)
        byte_order = "<" if self.tiff[:2] == b"II" else ">"
        return struct.unpack(f"{byte_order}II", raw[:8])


def read_tiff_block(data: bytes) -> Optional[bytes]:
    """The TIFF structure inside the JPEG's APP1 Exif segment, if there is one."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            app1 = im.info.get("exif")
    except Exception as e:
        raise MetadataError("EXIF", f"failed to read exif data: {e}") from e

    if not app1:
        return None
    if app1.startswith(APP1_EXIF_HEADER):
        return app1[len(APP1_EXIF_HEADER):]
    return app1


class ExifExtractor:
    """
    Turns the EXIF block of a JPEG into a validated ExifMetadata.

    Unlike a best-effort reader, every field the site displays is required
    and checked for the exact encoding we expect; any deviation is a
    MetadataError naming the tag, so a bad photo fails the build instead of
    rendering with blanks.
    """

    def __init__(self, markdown: Callable[[str], str] = render_markdown):
        self.markdown = markdown

    def extract(self, data: bytes) -> ExifMetadata:
        tags = self.read_tags(data)

        title = self.get_title(tags)
        captured_at = self.get_captured_at(tags)
        description, alt_text = self.get_description(tags)

        return ExifMetadata(
            title=title,
            description=description,
            alt_text=alt_text,
            coords=self.get_gps_coords(tags),
            camera=CameraInfo(
                id=self.get_camera_id(tags),
                lens_id=self.get_lens_id(tags),
                iso=self.get_iso(tags),
                f_stop=self.get_f_stop(tags),
                focal_length=self.get_focal_length(tags),
                exposure_time=self.get_exposure_time(tags),
            ),
            captured_at=captured_at,
            local_time=captured_at.strftime("%H:%M:%S"),
            tz_offset=format_offset(captured_at),
            date=format_date(captured_at),
        )

    def read_tags(self, data: bytes) -> ExifTags:
        # details=True: exifread skips UserComment otherwise
        try:
            tags = exifread.process_file(io.BytesIO(data), details=True)
        except Exception as e:
            raise MetadataError("EXIF", f"failed to read exif data: {e}") from e
        return ExifTags(tags, read_tiff_block(data))

    # --- Text ---

    def get_title(self, tags: ExifTags) -> str:
        # ImageDescription is, per EXIF 2.2, "a character string giving the
        # title of the image"; the longer description lives in UserComment.
        return _required_ascii(tags, "Image ImageDescription", "ImageDescription")

    def get_description(self, tags: ExifTags) -> Tuple[Optional[str], Optional[str]]:
        """Returns (description HTML, alt text); both None without a UserComment."""
        text = self._user_comment(tags)
        if not text:
            return None, None

        if not text.startswith(config.ALT_TEXT_PREFIX):
            return self.markdown(text), None

        first_line, _, rest = text.partition("\n")
        alt_text = first_line[len(config.ALT_TEXT_PREFIX):].strip()
        description = self.markdown(rest) if rest.strip() else None
        return description, alt_text or None

    def _user_comment(self, tags: ExifTags) -> Optional[str]:
        tag = _get(tags, "EXIF UserComment")
        if tag is None:
            return None

        if tag.field_type != FIELD_UNDEFINED:
            raise MetadataError("UserComment", f"expected an Undefined value, found {tag.values!r}")

        raw = tags.field_bytes(tag, "UserComment")
        if not raw:
            return None

        marker, content = raw[:8], raw[8:]
        if marker == USER_COMMENT_ASCII:
            try:
                text = content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MetadataError("UserComment", "ASCII content was not valid UTF-8") from e
        elif marker == USER_COMMENT_UNICODE:
            # exiftool writes little-endian UTF-16 and that's all we accept
            if len(content) % 2 != 0:
                raise MetadataError("UserComment", "odd length UTF-16 content")
            try:
                text = content.decode("utf-16-le")
            except UnicodeDecodeError as e:
                raise MetadataError("UserComment", "content was not valid UTF-16 LE") from e
        elif marker == USER_COMMENT_JIS:
            raise MetadataError("UserComment", "unsupported JIS encoding")
        elif marker == USER_COMMENT_UNDEFINED:
            raise MetadataError("UserComment", "unsupported 'Undefined' encoding")
        else:
            raise MetadataError("UserComment", f"expected a character code, found {marker!r}")

        # Writers commonly pad with NULs
        return text.rstrip("\x00")

    # --- GPS ---

    def get_gps_coords(self, tags: ExifTags) -> Optional[GPSCoords]:
        lat = _gps_decimal(tags, "GPSLatitude")
        lon = _gps_decimal(tags, "GPSLongitude")
        lat_sign = _gps_ref(tags, "GPSLatitudeRef", "N", "S")
        lon_sign = _gps_ref(tags, "GPSLongitudeRef", "E", "W")

        present = {
            "GPSLatitude": lat is not None,
            "GPSLatitudeRef": lat_sign is not None,
            "GPSLongitude": lon is not None,
            "GPSLongitudeRef": lon_sign is not None,
        }
        if not any(present.values()):
            return None
        if not all(present.values()):
            missing = [name for name, ok in present.items() if not ok]
            raise MetadataError("GPS", f"partial GPS tags: missing {missing}")

        return GPSCoords(lat=lat * lat_sign, lon=lon * lon_sign)

    # --- Camera ---

    def get_camera_id(self, tags: ExifTags) -> Tuple[str, str]:
        make = _required_ascii(tags, "Image Make", "Make")
        model = _required_ascii(tags, "Image Model", "Model")

        # "Canon" + "Canon EOS R6" -> ("Canon", "EOS R6")
        if model.startswith(make):
            model = model[len(make):].lstrip()
        return make, model

    def get_lens_id(self, tags: ExifTags) -> Optional[Tuple[str, str]]:
        make = _optional_ascii(tags, "EXIF LensMake", "LensMake")
        model = _optional_ascii(tags, "EXIF LensModel", "LensModel")

        if make is None and model is None:
            return None
        if model is None:
            raise MetadataError("LensModel", "found LensMake tag but no LensModel")
        if make is None:
            raise MetadataError("LensMake", "found LensModel tag but no LensMake")
        return make, model

    def get_iso(self, tags: ExifTags) -> int:
        # EXIF 2.3 renamed ISOSpeedRatings to PhotographicSensitivity; same tag id
        tag = _required(tags, "EXIF ISOSpeedRatings", "ISOSpeedRatings")
        if tag.field_type != FIELD_SHORT or len(tag.values) != 1:
            raise MetadataError(
                "ISOSpeedRatings", f"expected a single short value, found {tag.values!r}"
            )
        return int(tag.values[0])

    def get_f_stop(self, tags: ExifTags) -> float:
        return float(_single_ratio(tags, "EXIF FNumber", "FNumber"))

    def get_focal_length(self, tags: ExifTags) -> float:
        return float(_single_ratio(tags, "EXIF FocalLength", "FocalLength"))

    def get_exposure_time(self, tags: ExifTags) -> str:
        tag = _required(tags, "EXIF ExposureTime", "ExposureTime")
        _single_ratio(tags, "EXIF ExposureTime", "ExposureTime")

        # As stored: 10/3000 is shown as a decimal, not reduced to 1/300
        numerator, denominator = tags.stored_ratio(tag, "ExposureTime")
        if numerator == 1:
            return f"1/{denominator}"
        return format_decimal(numerator / denominator)

    # --- Time ---

    def get_captured_at(self, tags: ExifTags) -> datetime:
        """
        DateTimeOriginal + OffsetTimeOriginal, i.e. when the shutter fired, in
        the photographer's local time.
        """
        raw_dt = _required_ascii(tags, "EXIF DateTimeOriginal", "DateTimeOriginal")
        m = DATETIME_RE.match(raw_dt)
        if not m:
            raise MetadataError("DateTimeOriginal", f"failed to parse {raw_dt!r}")

        raw_offset = _required_ascii(tags, "EXIF OffsetTimeOriginal", "OffsetTimeOriginal")
        tz = parse_offset(raw_offset)

        microsecond = 0
        subsec = _optional_ascii(tags, "EXIF SubSecTimeOriginal", "SubSecTimeOriginal")
        if subsec is not None:
            subsec = subsec.strip()
            if not subsec.isdigit():
                raise MetadataError("SubSecTimeOriginal", f"failed to parse {subsec!r}")
            microsecond = int(subsec[:6].ljust(6, "0"))

        try:
            return datetime(*(int(g) for g in m.groups()), microsecond=microsecond, tzinfo=tz)
        except ValueError as e:
            raise MetadataError("DateTimeOriginal", f"invalid date {raw_dt!r}: {e}") from e


def parse_offset(raw: str) -> timezone:
    m = OFFSET_RE.match(raw)
    if not m:
        raise MetadataError("OffsetTimeOriginal", f"failed to parse {raw!r}")

    sign, hours, minutes = m.group(1), int(m.group(2)), int(m.group(3))
    if hours > 23 or minutes > 59:
        raise MetadataError("OffsetTimeOriginal", f"invalid offset {raw!r}")

    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if sign == "-" else delta)


def format_offset(dt: datetime) -> str:
    # e.g. "-08:00"
    offset = dt.utcoffset() or timedelta(0)
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def format_date(dt: datetime) -> str:
    # e.g. "Dec 18, 2021"
    return f"{dt:%b} {dt.day}, {dt.year}"


def format_decimal(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


# --- Tag access helpers ---

def _get(tags: ExifTags, key: str) -> Any:
    return tags.get(key)


def _required(tags: ExifTags, key: str, name: str) -> Any:
    tag = _get(tags, key)
    if tag is None:
        raise MetadataError(name, f"missing {name} tag")
    return tag


def _ascii_value(tags: ExifTags, tag: Any, name: str) -> str:
    if tag.field_type != FIELD_ASCII:
        raise MetadataError(name, f"expected an ASCII value, found {tag.values!r}")

    # NUL separates values; trailing NULs are only padding
    stored = tags.field_bytes(tag, name).rstrip(b"\x00")
    if b"\x00" in stored:
        values = stored.split(b"\x00")
        raise MetadataError(name, f"expected a single ASCII value, found {len(values)}: {values!r}")
    if not stored:
        raise MetadataError(name, f"empty {name} field")
    try:
        return stored.decode("ascii")
    except UnicodeDecodeError:
        raise MetadataError(name, f"non-ASCII bytes in {name} field: {stored!r}") from None


def _required_ascii(tags: ExifTags, key: str, name: str) -> str:
    return _ascii_value(tags, _required(tags, key, name), name)


def _optional_ascii(tags: ExifTags, key: str, name: str) -> Optional[str]:
    tag = _get(tags, key)
    if tag is None:
        return None
    return _ascii_value(tags, tag, name)


def _ratios(tag: Any, name: str) -> List[Fraction]:
    if tag.field_type != FIELD_RATIO:
        raise MetadataError(name, f"expected rational values, found {tag.values!r}")

    out = []
    for v in tag.values:
        if v.denominator == 0:
            raise MetadataError(name, f"zero denominator in {v!r}")
        out.append(Fraction(v.numerator, v.denominator))
    return out


def _single_ratio(tags: ExifTags, key: str, name: str) -> Fraction:
    values = _ratios(_required(tags, key, name), name)
    if len(values) != 1:
        raise MetadataError(name, f"expected a single rational value, found {values!r}")
    return values[0]


def _gps_decimal(tags: ExifTags, name: str) -> Optional[float]:
    """
    Degrees/minutes/seconds -> decimal degrees (always positive; the sign
    comes from the matching Ref tag). None if the tag is absent.
    """
    tag = _get(tags, f"GPS {name}")
    if tag is None:
        return None

    values = _ratios(tag, name)
    if len(values) != 3:
        raise MetadataError(name, f"expected 3 rationals, found {values!r}")

    deg, minutes, sec = values
    return float(deg + minutes / 60 + sec / 3600)


def _gps_ref(tags: ExifTags, name: str, pos: str, neg: str) -> Optional[float]:
    tag = _get(tags, f"GPS {name}")
    if tag is None:
        return None

    value = _ascii_value(tags, tag, name)
    if value == pos:
        return 1.0
    if value == neg:
        return -1.0
    raise MetadataError(name, f"expected either {pos!r} or {neg!r}, found {value!r}")


