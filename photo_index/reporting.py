import csv
import logging
from pathlib import Path
from typing import List, Union

from .models import PhotoRecord
from .state import IndexSnapshot


class ReportGenerator:
    HEADERS = [
        "Photo",
        "Title",
        "Captured",
        "Location",
        "Day Album",
        "Albums",
        "Favorite",
        "Camera",
        "Lens",
        "Thumbnail Size",
        "Thumbnail Hash",
        "Full Image Hash",
    ]

    def __init__(self, snapshot: IndexSnapshot):
        self.snapshot = snapshot

    def generate_catalog_report(self, output_csv: Union[str, Path]) -> int:
        """
        Writes one row per photo, oldest first. Returns the number of rows.
        """
        logging.info(f"Writing catalog report -> {output_csv}")

        rows = 0
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for photo in self.snapshot.photos_by_time:
                writer.writerow(self._row(photo))
                rows += 1

        logging.info(f"Report complete: {rows} photos")
        return rows

    def _row(self, photo: PhotoRecord) -> List[str]:
        exif = photo.exif
        lens = " ".join(exif.camera.lens_id) if exif.camera.lens_id else ""
        return [
            photo.file_id,
            exif.title,
            exif.captured_at.isoformat(),
            photo.location.name if photo.location else "",
            photo.day_album.path,
            ";".join(a.path for a in photo.albums),
            "yes" if photo.is_favorite else "no",
            " ".join(exif.camera.id),
            lens,
            f"{photo.thumbnail.width}x{photo.thumbnail.height}",
            photo.thumbnail.hash,
            photo.full_image_hash,
        ]
