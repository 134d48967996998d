import logging
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from tqdm import tqdm

from .albums.auto_date import DayAlbumAccumulator
from .albums.membership import MembershipResolver
from .exceptions import FileReadError, PhotoProcessingError
from .imaging.thumbnail import ThumbnailGenerator
from .metadata.extract import ExifExtractor
from .models import AlbumReference, PhotoRecord
from .scanning.discovery import PhotoCandidate
from .scanning.hasher import content_hash

_CLOSED = object()


@dataclass
class PhotoTask:
    candidate: PhotoCandidate
    albums: List[AlbumReference]   # unsorted, as claimed from the manifest

    @property
    def file_id(self) -> str:
        return self.candidate.file_id


@dataclass
class PipelineResult:
    photos: Dict[str, PhotoRecord]
    day_albums: DayAlbumAccumulator


class ProgressReporter:
    """
    Single consumer for completion signals from the worker pool.

    Workers never write to the console themselves; they drop a signal on an
    unbounded queue and move on. Closing the queue ends the consumer thread.
    """

    def __init__(self, total: int, enabled: bool = True):
        self.total = total
        self.enabled = enabled
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread = threading.Thread(target=self._consume, name="progress", daemon=True)

    def start(self) -> "ProgressReporter":
        self._thread.start()
        return self

    def signal(self, ok: bool) -> None:
        self._queue.put_nowait(ok)

    def close(self) -> None:
        self._queue.put_nowait(_CLOSED)
        self._thread.join()

    def __enter__(self) -> "ProgressReporter":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    def _consume(self) -> None:
        failed = 0
        try:
            with tqdm(total=self.total, desc="Processing images", unit="img",
                      disable=not self.enabled) as bar:
                while True:
                    item = self._queue.get()
                    if item is _CLOSED:
                        break
                    if not item:
                        failed += 1
                        bar.set_postfix(failed=failed)
                    bar.update(1)
        except Exception as e:
            # Progress output is cosmetic; keep draining so close() never hangs
            logging.debug(f"Progress reporting stopped: {e}")
            while self._queue.get() is not _CLOSED:
                pass


class ProcessingPipeline:
    """
    Fans the per-photo work (EXIF, day album, hashes, thumbnail) out over a
    thread pool.

    Fail-fast: the first photo that raises cancels everything still queued and
    the error propagates; no partial result is ever returned.
    """

    def __init__(self,
                 resolver: MembershipResolver,
                 extractor: Optional[ExifExtractor] = None,
                 thumbnailer: Optional[ThumbnailGenerator] = None,
                 max_workers: Optional[int] = None,
                 show_progress: bool = True):
        self.resolver = resolver
        self.extractor = extractor or ExifExtractor()
        self.thumbnailer = thumbnailer or ThumbnailGenerator()
        self.max_workers = max_workers or os.cpu_count() or 1
        self.show_progress = show_progress

    def run(self, tasks: Sequence[PhotoTask]) -> PipelineResult:
        day_albums = DayAlbumAccumulator(self.resolver.manifest.paths())
        photos: Dict[str, PhotoRecord] = {}

        logging.info(f"Processing {len(tasks)} photos with {self.max_workers} workers")

        with ProgressReporter(len(tasks), enabled=self.show_progress) as progress:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self._run_task, task, day_albums, progress)
                    for task in tasks
                ]
                try:
                    for future in as_completed(futures):
                        record = future.result()
                        photos[record.file_id] = record
                except BaseException:
                    for f in futures:
                        f.cancel()
                    raise

        return PipelineResult(photos=photos, day_albums=day_albums)

    def _run_task(self, task: PhotoTask, day_albums: DayAlbumAccumulator,
                  progress: ProgressReporter) -> PhotoRecord:
        ok = False
        try:
            record = self.process_photo(task, day_albums)
            ok = True
            return record
        except Exception as e:
            raise PhotoProcessingError(task.file_id, e) from e
        finally:
            progress.signal(ok)

    def process_photo(self, task: PhotoTask, day_albums: DayAlbumAccumulator) -> PhotoRecord:
        path = task.candidate.path
        try:
            data = path.read_bytes()
        except OSError as e:
            raise FileReadError(f"failed to read file {path}: {e}") from e

        exif = self.extractor.extract(data)
        special = self.resolver.split_special(task.albums)

        day_album = special.day_album
        if day_album is None:
            day_album = day_albums.add(exif.captured_at, task.file_id)

        thumbnail = self.thumbnailer.generate(data)

        return PhotoRecord(
            file_id=task.file_id,
            exif=exif,
            is_favorite=special.is_favorite,
            albums=special.others,
            location=special.location,
            day_album=day_album,
            thumbnail=thumbnail,
            full_image_hash=content_hash(data),
        )
