import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .core import PhotoIndexService
from .exceptions import PhotoIndexError
from .models import AlbumKind
from .reporting import ReportGenerator


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("MARKDOWN").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Photo Index: build the photo collection index")

    p.add_argument("photos_dir", type=Path, help="Directory holding albums.json and the photos")

    p.add_argument("--workers", type=int, default=None, help="Worker threads (default: CPU count)")
    p.add_argument("--no-progress", action="store_true", help="Don't show the progress bar")
    p.add_argument("--report", type=Path, default=None, help="Write a CSV catalog of the index to this path")
    p.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    photos_dir = args.photos_dir.resolve()
    logging.info("=== Photo Index Started ===")
    logging.info(f"Photos: {photos_dir}")

    service = PhotoIndexService(
        photos_dir,
        max_workers=args.workers,
        show_progress=not args.no_progress,
    )

    try:
        snapshot = service.initialize()
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except PhotoIndexError:
        logging.exception("Fatal error while building the photo index.")
        sys.exit(1)

    grouped = snapshot.albums_grouped
    auto_days = sum(1 for a in snapshot.albums.values() if a.kind is AlbumKind.DAY) - len(grouped.days)
    logging.info(
        f"Albums: {len(grouped.normal)} normal, {len(grouped.days)} day, "
        f"{len(grouped.locations)} location, {auto_days} auto-generated day"
    )

    if args.report:
        ReportGenerator(snapshot).generate_catalog_report(args.report)


if __name__ == "__main__":
    main()
