from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .. import config
from ..exceptions import ValidationError
from ..manifest.parser import Manifest
from ..models import AlbumKind, AlbumReference

T = TypeVar("T")


def extract_single(items: Iterable[T], predicate: Callable[[T], bool], what: str) -> Optional[T]:
    """
    Returns the one item matching `predicate`, or None if nothing matches.

    A second match is an error rather than a silent pick of either one.
    """
    found: Optional[T] = None
    seen = False
    for item in items:
        if not predicate(item):
            continue
        if seen:
            raise ValidationError(f"found multiple {what!r} albums containing this image")
        found, seen = item, True
    return found


@dataclass(frozen=True)
class SpecialAlbums:
    location: Optional[AlbumReference]
    day_album: Optional[AlbumReference]   # explicit day album only
    is_favorite: bool
    others: Tuple[AlbumReference, ...]    # sorted by display name


class MembershipResolver:
    """
    Cross-references the manifest against the photos on disk.

    Every manifest photo (and every cover image) gets an entry up front; each
    discovered file then claims its entry. Anything left unclaimed afterwards
    is referenced by the manifest but missing from disk.
    """

    def __init__(self, manifest: Manifest):
        self.manifest = manifest
        self._membership: "OrderedDict[str, List[AlbumReference]]" = OrderedDict()

        for path, entry in manifest:
            ref = AlbumReference(path=path, name=entry.name)
            for photo_id in entry.photos:
                self._membership.setdefault(photo_id, []).append(ref)
            # Covers must be backed by a file too, even if not otherwise listed
            self._membership.setdefault(entry.cover_img, [])

    def claim(self, file_id: str) -> List[AlbumReference]:
        """Hands over (and forgets) the album references for a discovered photo."""
        return self._membership.pop(file_id, [])

    def ensure_all_claimed(self) -> None:
        if self._membership:
            missing = sorted(self._membership)
            raise ValidationError(
                f"some image(s) referenced in albums but aren't on disk: {missing}"
            )

    def split_special(self, refs: List[AlbumReference]) -> SpecialAlbums:
        """
        Pulls the location, explicit day and favorites albums out of a
        photo's references. At most one location and one day album allowed.
        """
        location = extract_single(
            refs, lambda r: self.manifest.kind_of(r.path) == AlbumKind.LOCATION, "location"
        )
        day_album = extract_single(
            refs, lambda r: self.manifest.kind_of(r.path) == AlbumKind.DAY, "day"
        )

        is_favorite = any(r.path == config.FAVORITES_ALBUM_PATH for r in refs)
        others = {
            r.path: r for r in refs
            if self.manifest.kind_of(r.path) is None and r.path != config.FAVORITES_ALBUM_PATH
        }

        return SpecialAlbums(
            location=location,
            day_album=day_album,
            is_favorite=is_favorite,
            others=tuple(sorted(others.values(), key=lambda r: (r.name, r.path))),
        )


def resolve_membership(manifest: Manifest, file_ids: Iterable[str]) -> Tuple[MembershipResolver, Dict[str, List[AlbumReference]]]:
    """Claims references for every discovered id and checks nothing dangles."""
    resolver = MembershipResolver(manifest)
    claimed = {file_id: resolver.claim(file_id) for file_id in file_ids}
    resolver.ensure_all_claimed()
    return resolver, claimed
