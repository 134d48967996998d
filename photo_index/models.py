from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class AlbumReference:
    """
    Back-reference from a photo to an album it appears in.
    """
    path: str   # unique id, used in URLs
    name: str   # display name


class AlbumKind(Enum):
    DAY = "day"
    LOCATION = "location"
    ALL = "all"


@dataclass(frozen=True)
class GPSCoords:
    lat: float
    lon: float


@dataclass(frozen=True)
class CameraInfo:
    # (Make, Model) with the make stripped from the front of the model
    id: Tuple[str, str]
    # (LensMake, LensModel), both or neither
    lens_id: Optional[Tuple[str, str]]
    iso: int
    f_stop: float
    focal_length: float   # not converted to 35mm equivalent
    exposure_time: str    # e.g. "1/30" or "2.5"


@dataclass(frozen=True)
class ExifMetadata:
    title: str
    description: Optional[str]   # HTML
    alt_text: Optional[str]
    coords: Optional[GPSCoords]
    camera: CameraInfo
    captured_at: datetime        # offset-aware

    # Display strings derived from captured_at
    local_time: str
    tz_offset: str
    date: str


@dataclass(frozen=True)
class Thumbnail:
    width: int
    height: int
    hash: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class PhotoRecord:
    file_id: str
    exif: ExifMetadata
    is_favorite: bool
    # Every album except the location/day/favorites ones, sorted by name
    albums: Tuple[AlbumReference, ...]
    location: Optional[AlbumReference]
    day_album: AlbumReference
    thumbnail: Thumbnail
    full_image_hash: str

    @property
    def captured_at(self) -> datetime:
        return self.exif.captured_at


@dataclass(frozen=True)
class Album:
    name: str
    path: str
    description: str   # HTML
    kind: Optional[AlbumKind]
    # Only None for the "all" album of an empty collection
    cover_img: Optional[PhotoRecord]
    photos: Tuple[PhotoRecord, ...]


@dataclass(frozen=True)
class AlbumsGrouped:
    """Manifest-declared albums split by kind, each in declaration order."""
    normal: Tuple[Album, ...] = ()
    days: Tuple[Album, ...] = ()
    locations: Tuple[Album, ...] = ()


@dataclass(frozen=True)
class DisplaySettings:
    """
    Default layout parameters for the photo grid on album and index pages.

    Field names mirror the camelCase keys of the settings file.
    """
    min_columns: int
    max_columns: int
    min_column_width: int
    column_width_range: Tuple[int, int]
    padding: int
    max_column_crop: float
    max_multi_crop: float
    # Zero disables multi-column items
    max_multi_column_height_multiplier: float
    max_sequential_multi: int


@dataclass(frozen=True)
class MapView:
    centered_at: GPSCoords
    zoom_level: int
