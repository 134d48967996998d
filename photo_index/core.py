import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .albums.membership import resolve_membership
from .exceptions import PhotoIndexError
from .imaging.thumbnail import ThumbnailGenerator
from .manifest.parser import ManifestParser
from .markup import render_markdown
from .metadata.extract import ExifExtractor
from .pipeline import PhotoTask, ProcessingPipeline
from .scanning.discovery import PhotoDiscovery
from .state import IndexSnapshot, StateAssembler


class PhotoIndexService:
    """
    Owns the currently published IndexSnapshot.

    Readers call current() and get a complete snapshot without taking any
    lock. rebuild() constructs a new snapshot from scratch and publishes it
    with a single reference swap; if the build fails, the previous snapshot
    stays in place. Rebuilds are serialized among themselves.
    """

    def __init__(self,
                 photos_dir: Path,
                 max_workers: Optional[int] = None,
                 show_progress: bool = True,
                 markdown: Callable[[str], str] = render_markdown,
                 load_display_settings: bool = True):
        self.photos_dir = Path(photos_dir)
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.markdown = markdown
        self.load_display_settings = load_display_settings

        self._snapshot: Optional[IndexSnapshot] = None
        self._rebuild_lock = threading.Lock()

    def initialize(self) -> IndexSnapshot:
        """
        Startup build. Errors propagate; the caller is expected to treat them
        as fatal.
        """
        return self.rebuild()

    def current(self) -> IndexSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise RuntimeError("photo index has not been initialized")
        return snapshot

    def rebuild(self) -> IndexSnapshot:
        """Builds and publishes a new snapshot, raising PhotoIndexError on failure."""
        with self._rebuild_lock:
            snapshot = self.build()
            self._snapshot = snapshot
        return snapshot

    def update(self) -> bool:
        """
        Entry point for the external update trigger. Failures are logged and
        the previously published snapshot keeps serving.
        """
        try:
            self.rebuild()
        except PhotoIndexError:
            logging.exception(f"Failed to rebuild photo index from {self.photos_dir}; keeping previous index")
            return False
        return True

    def build(self) -> IndexSnapshot:
        """One full pass over the manifest and the photo directory. Publishes nothing."""
        logging.info(f"Building photo index from {self.photos_dir}...")

        # --- Step 1: Manifest (fails before touching any photo) ---
        parser = ManifestParser()
        manifest = parser.load(self.photos_dir)
        display_settings = None
        if self.load_display_settings:
            display_settings = parser.load_display_settings(self.photos_dir)

        # --- Step 2: Discovery & membership ---
        candidates = PhotoDiscovery().discover(self.photos_dir)
        resolver, claimed = resolve_membership(manifest, (c.file_id for c in candidates))
        tasks = [PhotoTask(candidate=c, albums=claimed[c.file_id]) for c in candidates]

        # --- Step 3: Per-photo processing ---
        pipeline = ProcessingPipeline(
            resolver,
            extractor=ExifExtractor(markdown=self.markdown),
            thumbnailer=ThumbnailGenerator(),
            max_workers=self.max_workers,
            show_progress=self.show_progress,
        )
        result = pipeline.run(tasks)

        # --- Step 4: Assemble ---
        snapshot = StateAssembler(markdown=self.markdown).assemble(
            manifest,
            result.photos,
            result.day_albums.builders(),
            photos_dir=self.photos_dir,
            display_settings=display_settings,
        )
        logging.info(
            f"Photo index built: {len(snapshot.photos)} photos, {len(snapshot.albums)} albums."
        )
        return snapshot
