"""
Parsing of the album manifest (albums.json) and the default display settings.

The manifest is a JSON array of [path, entry] pairs; declaration order is
significant and is preserved all the way into the grouped album lists:

    [
      ["sf", {"name": "San Francisco", "kind": "location", "display": "from_first",
              "description": "...", "cover_img": "bridge", "photos": ["bridge", "pier"]}],
      ["hike", {"name": "Hike", "kind": {"day": "Jan 2"}, "display": "from_last", ...}]
    ]
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .. import config
from ..exceptions import FileReadError, ManifestError, ReservedAlbumError, ValidationError
from ..models import AlbumKind, DisplaySettings
from ..scanning.discovery import is_uri_idempotent


class DisplayOrder(Enum):
    FROM_FIRST = "from_first"
    FROM_LAST = "from_last"


@dataclass(frozen=True)
class ManifestAlbumKind:
    """Either a location album, or a day album with a free-form label."""
    kind: AlbumKind
    label: Optional[str] = None

    @classmethod
    def location(cls) -> "ManifestAlbumKind":
        return cls(AlbumKind.LOCATION)

    @classmethod
    def day(cls, label: str) -> "ManifestAlbumKind":
        return cls(AlbumKind.DAY, label)


@dataclass(frozen=True)
class AlbumManifestEntry:
    name: str
    kind: Optional[ManifestAlbumKind]
    display: DisplayOrder
    description: str   # markdown
    cover_img: str
    photos: Tuple[str, ...]


class Manifest:
    """Ordered (path, entry) pairs plus a lookup by path."""

    def __init__(self, albums: List[Tuple[str, AlbumManifestEntry]]):
        self.albums: Tuple[Tuple[str, AlbumManifestEntry], ...] = tuple(albums)
        self._by_path: Dict[str, AlbumManifestEntry] = dict(self.albums)

    def __iter__(self) -> Iterator[Tuple[str, AlbumManifestEntry]]:
        return iter(self.albums)

    def __len__(self) -> int:
        return len(self.albums)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def __getitem__(self, path: str) -> AlbumManifestEntry:
        return self._by_path[path]

    def get(self, path: str) -> Optional[AlbumManifestEntry]:
        return self._by_path.get(path)

    def paths(self) -> List[str]:
        return [path for path, _ in self.albums]

    def kind_of(self, path: str) -> Optional[AlbumKind]:
        entry = self._by_path.get(path)
        if entry is None or entry.kind is None:
            return None
        return entry.kind.kind


class ManifestParser:
    """
    Reads the album manifest and the default display settings from the photo
    directory.
    """

    def load(self, photos_dir: Path) -> Manifest:
        path = photos_dir / config.ALBUMS_META_FILENAME
        text = _read_text(path, "albums info file")
        try:
            return self.parse(text)
        except ManifestError as e:
            raise type(e)(f"{path}: {e}") from e

    def parse(self, text: str) -> Manifest:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"invalid JSON: {e}") from e

        if not isinstance(raw, list):
            raise ManifestError(f"expected a list of [path, album] pairs, found {type(raw).__name__}")

        albums: List[Tuple[str, AlbumManifestEntry]] = []
        seen = set()
        for idx, item in enumerate(raw):
            if not isinstance(item, list) or len(item) != 2:
                raise ManifestError(f"album #{idx}: expected a [path, album] pair")

            path, body = item
            if not isinstance(path, str):
                raise ManifestError(f"album #{idx}: path must be a string, found {path!r}")

            # Checked before anything else about the album; "all" is synthesized
            if path == config.ALL_ALBUM_PATH:
                raise ReservedAlbumError(
                    f"albums info file contains reserved album path {config.ALL_ALBUM_PATH!r}"
                )
            if not is_uri_idempotent(path):
                raise ValidationError(f"bad album name {path!r}: must URI encode to the same value")
            if path in seen:
                raise ManifestError(f"duplicate album path {path!r}")
            seen.add(path)

            albums.append((path, self._parse_entry(path, body)))

        logging.debug(f"Parsed {len(albums)} albums from manifest")
        return Manifest(albums)

    def _parse_entry(self, path: str, body: Any) -> AlbumManifestEntry:
        if not isinstance(body, dict):
            raise ManifestError(f"album {path!r}: expected an object")

        photos = _require(body, "photos", list, path)
        for p in photos:
            if not isinstance(p, str):
                raise ManifestError(f"album {path!r}: photo ids must be strings, found {p!r}")

        display_raw = _require(body, "display", str, path)
        try:
            display = DisplayOrder(display_raw)
        except ValueError:
            raise ManifestError(
                f"album {path!r}: display must be 'from_first' or 'from_last', found {display_raw!r}"
            ) from None

        return AlbumManifestEntry(
            name=_require(body, "name", str, path),
            kind=self._parse_kind(path, body.get("kind")),
            display=display,
            description=_require(body, "description", str, path),
            cover_img=_require(body, "cover_img", str, path),
            photos=tuple(photos),
        )

    def _parse_kind(self, path: str, raw: Any) -> Optional[ManifestAlbumKind]:
        if raw is None:
            return None
        if raw == "location":
            return ManifestAlbumKind.location()
        if isinstance(raw, dict) and len(raw) == 1 and isinstance(raw.get("day"), str):
            return ManifestAlbumKind.day(raw["day"])
        raise ManifestError(f"album {path!r}: unknown kind {raw!r}")

    # --- Display settings ---

    def load_display_settings(self, photos_dir: Path) -> DisplaySettings:
        path = photos_dir / config.DISPLAY_SETTINGS_FILENAME
        text = _read_text(path, "default display settings")
        try:
            return self.parse_display_settings(text)
        except ManifestError as e:
            raise ManifestError(f"{path}: {e}") from e

    def parse_display_settings(self, text: str) -> DisplaySettings:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"invalid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise ManifestError("display settings must be an object")

        where = "display settings"
        width_range = raw.get("columnWidthRange")
        if isinstance(width_range, dict):
            width_range = [width_range.get("start"), width_range.get("end")]
        if (not isinstance(width_range, list) or len(width_range) != 2
                or not all(_is_count(v) for v in width_range)):
            raise ManifestError(f"{where}: columnWidthRange must be a [start, end] pair of integers")

        max_sequential_multi = _require_count(raw, "maxSequentialMulti", where)
        if max_sequential_multi == 0:
            raise ManifestError(f"{where}: maxSequentialMulti must be greater than zero")

        return DisplaySettings(
            min_columns=_require_count(raw, "minColumns", where),
            max_columns=_require_count(raw, "maxColumns", where),
            min_column_width=_require_count(raw, "minColumnWidth", where),
            column_width_range=(width_range[0], width_range[1]),
            padding=_require_count(raw, "padding", where),
            max_column_crop=_require_number(raw, "maxColumnCrop", where),
            max_multi_crop=_require_number(raw, "maxMultiCrop", where),
            max_multi_column_height_multiplier=_require_number(
                raw, "maxMultiColumnHeightMultiplier", where
            ),
            max_sequential_multi=max_sequential_multi,
        )


def _read_text(path: Path, what: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"failed to read {what} {path}: {e}") from e


def _require(body: Dict[str, Any], key: str, typ: type, album: str) -> Any:
    if key not in body:
        raise ManifestError(f"album {album!r}: missing field {key!r}")
    value = body[key]
    if not isinstance(value, typ):
        raise ManifestError(f"album {album!r}: field {key!r} must be a {typ.__name__}, found {value!r}")
    return value


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _require_count(raw: Dict[str, Any], key: str, where: str) -> int:
    value = raw.get(key)
    if not _is_count(value):
        raise ManifestError(f"{where}: {key} must be a non-negative integer, found {value!r}")
    return value


def _require_number(raw: Dict[str, Any], key: str, where: str) -> float:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ManifestError(f"{where}: {key} must be a number, found {value!r}")
    return float(value)
