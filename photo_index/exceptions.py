"""
Custom exception hierarchy for the photo index.

Every failure raised while building a snapshot derives from PhotoIndexError,
so the service can treat "build failed" uniformly while the log still says
exactly which album, photo or tag was at fault.
"""
from typing import Optional


class PhotoIndexError(Exception):
    """Base exception for all photo index errors."""
    pass


class ManifestError(PhotoIndexError):
    """Raised when the album manifest (or display settings) cannot be parsed."""
    pass


class ReservedAlbumError(ManifestError):
    """Raised when the manifest declares an album under a reserved path."""
    pass


class ValidationError(PhotoIndexError):
    """Raised when the manifest and the photo directory disagree, or a name is not URI-safe."""
    pass


class MetadataError(PhotoIndexError):
    """Raised when a required EXIF tag is missing or malformed."""

    def __init__(self, tag: str, message: str):
        super().__init__(f"{tag}: {message}")
        self.tag = tag


class CodecError(PhotoIndexError):
    """Raised when an image cannot be decoded or re-encoded."""
    pass


class FileReadError(PhotoIndexError):
    """Raised when a photo or configuration file cannot be read."""
    pass


class PhotoProcessingError(PhotoIndexError):
    """Wraps a failure that happened while processing one photo."""

    def __init__(self, file_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"failed to process photo {file_id!r}: {cause}")
        self.file_id = file_id
        self.cause = cause


class IndexStateError(PhotoIndexError):
    """Raised when assembling the snapshot finds a reference that validation should have caught."""
    pass


class InvalidRequestError(PhotoIndexError):
    """Raised by read accessors for malformed requests (e.g. an unknown image size)."""
    pass
