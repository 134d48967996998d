"""
The immutable photo index and the code that assembles it.

An IndexSnapshot is built once per rebuild and never modified afterwards, so
any number of readers can hold on to one while the next is being built.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from . import config
from .albums.auto_date import AutoDateAlbumBuilder
from .exceptions import IndexStateError, InvalidRequestError
from .manifest.parser import DisplayOrder, Manifest
from .markup import render_markdown
from .models import (
    Album, AlbumKind, AlbumsGrouped, DisplaySettings, GPSCoords, MapView, PhotoRecord,
)


class ImageSize(Enum):
    SMALL = "small"
    FULL = "full"


def photo_page_url(file_id: str) -> str:
    return f"{config.PHOTOS_URL_PREFIX}/view/{file_id}"


def image_url(file_id: str, size: ImageSize, rev: str) -> str:
    return f"{config.PHOTOS_URL_PREFIX}/img-file/{file_id}?size={size.value}&rev={rev}"


# --- Read results ---

@dataclass(frozen=True)
class Redirect:
    url: str
    permanent: bool


@dataclass(frozen=True)
class InMemoryImage:
    data: bytes
    hash: str
    content_type: str = config.SMALL_IMG_CONTENT_TYPE
    cache_control: str = config.PHOTO_CACHE_POLICY


@dataclass(frozen=True)
class OnDiskImage:
    path: Path
    hash: str
    content_type: str = config.FULL_IMG_CONTENT_TYPE
    cache_control: str = config.PHOTO_CACHE_POLICY


ImageSource = Union[InMemoryImage, OnDiskImage, Redirect]


@dataclass(frozen=True)
class PhotoContext:
    """A photo plus its neighbours in whichever sequence it's being browsed in."""
    photo: PhotoRecord
    album: Optional[str]
    previous: Optional[PhotoRecord]
    next: Optional[PhotoRecord]
    map_view: Optional[MapView]


GLOBAL_MAP_VIEW = MapView(
    centered_at=GPSCoords(lat=config.GLOBAL_MAP_CENTER[0], lon=config.GLOBAL_MAP_CENTER[1]),
    zoom_level=config.GLOBAL_MAP_ZOOM,
)


@dataclass(frozen=True)
class IndexSnapshot:
    # path -> album; includes the synthesized "all" and auto day albums
    albums: Mapping[str, Album]
    # manifest albums only, by kind, in declaration order
    albums_grouped: AlbumsGrouped
    photos: Mapping[str, PhotoRecord]
    # ascending by capture time
    photos_by_time: Tuple[PhotoRecord, ...]
    display_settings: Optional[DisplaySettings]
    photos_dir: Path

    # --- Lookups ---

    def photo(self, file_id: str) -> Optional[PhotoRecord]:
        return self.photos.get(file_id)

    def album(self, path: str) -> Optional[Album]:
        return self.albums.get(path)

    def all_album(self) -> Album:
        return self.albums[config.ALL_ALBUM_PATH]

    def favorites(self) -> Optional[Album]:
        return self.albums.get(config.FAVORITES_ALBUM_PATH)

    def recent_photos(self, count: int = config.NUM_PREVIEW_PHOTOS) -> List[PhotoRecord]:
        favorites = self.favorites()
        if favorites is None:
            return []
        return list(favorites.photos[:count])

    def mapped_photos(self) -> List[PhotoRecord]:
        return [p for p in self.photos_by_time if p.exif.coords is not None]

    def global_map_view(self) -> MapView:
        return GLOBAL_MAP_VIEW

    # --- Navigation ---

    def navigate(self, file_id: str, album: Optional[str] = None) -> Union[PhotoContext, Redirect, None]:
        """
        Finds the photo's neighbours within `album` (or the whole library by
        capture time if no album is given).

        Returns None for an unknown photo. An unknown album, or one that
        doesn't contain the photo, redirects to the photo without album context.
        """
        photo = self.photos.get(file_id)
        if photo is None:
            return None

        if album is None:
            sequence: Sequence[PhotoRecord] = self.photos_by_time
        else:
            found = self.albums.get(album)
            if found is None:
                return Redirect(photo_page_url(file_id), permanent=False)
            sequence = found.photos

        idx = next((i for i, p in enumerate(sequence) if p.file_id == file_id), None)
        if idx is None:
            return Redirect(photo_page_url(file_id), permanent=False)

        map_view = None
        if photo.exif.coords is not None:
            map_view = MapView(centered_at=photo.exif.coords, zoom_level=config.PHOTO_MAP_ZOOM)

        return PhotoContext(
            photo=photo,
            album=album,
            previous=sequence[idx - 1] if idx > 0 else None,
            next=sequence[idx + 1] if idx + 1 < len(sequence) else None,
            map_view=map_view,
        )

    # --- Image bytes ---

    def image_source(self, file_id: str, size: str, rev: Optional[str] = None) -> Optional[ImageSource]:
        """
        Resolves an image request. URLs carry the content hash as `rev` so
        they can be cached forever; a missing or stale rev redirects to the
        current URL (permanently only when a stale rev was given).
        """
        try:
            selected = ImageSize(size)
        except ValueError:
            raise InvalidRequestError(f"image size must be 'small' or 'full', found {size!r}") from None

        photo = self.photos.get(file_id)
        if photo is None:
            return None

        if selected is ImageSize.FULL:
            target_hash = photo.full_image_hash
        else:
            target_hash = photo.thumbnail.hash

        if rev != target_hash:
            return Redirect(image_url(file_id, selected, target_hash), permanent=rev is not None)

        if selected is ImageSize.SMALL:
            return InMemoryImage(data=photo.thumbnail.data, hash=target_hash)
        return OnDiskImage(path=self.photos_dir / f"{file_id}{config.FULL_IMG_EXT}", hash=target_hash)


class StateAssembler:
    """
    Merges processed photos, manifest albums and auto day albums into one
    IndexSnapshot.
    """

    def __init__(self, markdown: Callable[[str], str] = render_markdown):
        self.markdown = markdown

    def assemble(self,
                 manifest: Manifest,
                 photos: Dict[str, PhotoRecord],
                 day_albums: Sequence[AutoDateAlbumBuilder],
                 photos_dir: Path,
                 display_settings: Optional[DisplaySettings] = None) -> IndexSnapshot:
        albums: Dict[str, Album] = {}

        for path, entry in manifest:
            album_photos = [self._lookup(photos, p, path) for p in entry.photos]
            if entry.display is DisplayOrder.FROM_LAST:
                album_photos.reverse()

            albums[path] = Album(
                name=entry.name,
                path=path,
                description=self.markdown(entry.description),
                kind=entry.kind.kind if entry.kind else None,
                cover_img=self._lookup(photos, entry.cover_img, path),
                photos=tuple(album_photos),
            )

        for builder in day_albums:
            # Always ascending by capture time, never reversed
            day_photos = tuple(self._lookup(photos, p, builder.path) for p in builder.photo_ids)
            albums[builder.path] = Album(
                name=builder.name,
                path=builder.path,
                description=builder.description,
                kind=AlbumKind.DAY,
                cover_img=day_photos[0],
                photos=day_photos,
            )

        by_time = sorted(photos.values(), key=_time_key)
        newest_first = tuple(reversed(by_time))
        albums[config.ALL_ALBUM_PATH] = Album(
            name=config.ALL_ALBUM_NAME,
            path=config.ALL_ALBUM_PATH,
            description=config.ALL_ALBUM_DESC,
            kind=AlbumKind.ALL,
            cover_img=newest_first[len(newest_first) // 2] if newest_first else None,
            photos=newest_first,
        )

        snapshot = IndexSnapshot(
            albums=MappingProxyType(albums),
            albums_grouped=self._group(manifest, albums),
            photos=MappingProxyType(dict(photos)),
            photos_by_time=tuple(by_time),
            display_settings=display_settings,
            photos_dir=photos_dir,
        )
        logging.debug(f"Assembled snapshot: {len(photos)} photos, {len(albums)} albums")
        return snapshot

    def _lookup(self, photos: Dict[str, PhotoRecord], file_id: str, album: str) -> PhotoRecord:
        try:
            return photos[file_id]
        except KeyError:
            raise IndexStateError(f"album {album!r} references unprocessed photo {file_id!r}") from None

    def _group(self, manifest: Manifest, albums: Dict[str, Album]) -> AlbumsGrouped:
        normal, days, locations = [], [], []
        for path in manifest.paths():
            album = albums[path]
            if album.kind is AlbumKind.DAY:
                days.append(album)
            elif album.kind is AlbumKind.LOCATION:
                locations.append(album)
            else:
                normal.append(album)
        return AlbumsGrouped(normal=tuple(normal), days=tuple(days), locations=tuple(locations))


def _time_key(photo: PhotoRecord):
    # file id breaks ties so equal timestamps still sort deterministically
    return photo.captured_at, photo.file_id
