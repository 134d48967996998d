import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .. import config
from ..exceptions import FileReadError, ValidationError


def is_uri_idempotent(value: str) -> bool:
    """True if every character of `value` URI-encodes to itself."""
    return all(c in config.URI_SAFE_CHARS for c in value)


@dataclass(frozen=True)
class PhotoCandidate:
    path: Path
    file_id: str


class PhotoDiscovery:
    """
    Finds the photos in a directory.

    Names are validated rather than filtered: a photo with an unusable name
    fails the whole build instead of silently vanishing from the site.
    """

    def __init__(self, pattern: str = config.IMGS_GLOB):
        self.pattern = pattern

    def discover(self, root: Path) -> List[PhotoCandidate]:
        if not root.is_dir():
            raise FileReadError(f"photo directory {root} does not exist")

        candidates = []
        for path in sorted(root.glob(self.pattern)):
            if not path.is_file():
                continue

            file_id = path.stem
            if not file_id or not is_uri_idempotent(file_id):
                raise ValidationError(
                    f"bad image file name {path.name!r}: must URI encode to the same value"
                )
            candidates.append(PhotoCandidate(path=path, file_id=file_id))

        logging.debug(f"Discovered {len(candidates)} photos in {root}")
        return candidates
