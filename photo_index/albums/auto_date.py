import bisect
import threading
from datetime import date, datetime
from typing import Collection, Dict, List, Tuple

from .. import config
from ..exceptions import ValidationError
from ..models import AlbumReference


def auto_day_name(day: date) -> str:
    # e.g. "18 December, 2021"
    return f"{day.day} {day:%B}, {day.year}"


class AutoDateAlbumBuilder:
    """
    Accumulates the photos for one calendar day that have no explicit day album.

    Members stay sorted by exact capture time (ties broken by file id); the
    album is never reversed, regardless of any manifest display order.
    """

    def __init__(self, day: date):
        self.date = day
        self.path = day.strftime(config.AUTO_DAY_PATH_FORMAT)
        self.name = auto_day_name(day)
        self.description = config.AUTO_DAY_DESC_TEMPLATE.format(name=self.name)
        self._photos: List[Tuple[datetime, str]] = []

    def add(self, captured_at: datetime, file_id: str) -> None:
        bisect.insort(self._photos, (captured_at, file_id))

    @property
    def photo_ids(self) -> List[str]:
        return [file_id for _, file_id in self._photos]

    def reference(self) -> AlbumReference:
        return AlbumReference(path=self.path, name=self.name)


class DayAlbumAccumulator:
    """
    Shared by the worker pool: maps a local capture date to its builder.

    The lock only covers the lookup and insert; everything expensive happens
    outside it.
    """

    def __init__(self, declared_paths: Collection[str]):
        self._declared_paths = frozenset(declared_paths)
        self._builders: Dict[date, AutoDateAlbumBuilder] = {}
        self._lock = threading.Lock()

    def add(self, captured_at: datetime, file_id: str) -> AlbumReference:
        # captured_at carries the photo's own offset, so .date() is the local date
        day = captured_at.date()
        with self._lock:
            builder = self._builders.get(day)
            if builder is None:
                builder = AutoDateAlbumBuilder(day)
                if builder.path in self._declared_paths:
                    raise ValidationError(
                        f"preexisting album path {builder.path!r} conflicts with auto-generated date path"
                    )
                self._builders[day] = builder
            builder.add(captured_at, file_id)
            return builder.reference()

    def builders(self) -> List[AutoDateAlbumBuilder]:
        """Builders in date order. Only call once the workers are done."""
        with self._lock:
            return [self._builders[d] for d in sorted(self._builders)]
