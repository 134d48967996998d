import base64
import hashlib


def content_hash(data: bytes) -> str:
    """
    Returns the SHA-256 digest of `data`, base64 encoded with the URL-safe
    alphabet and no padding.

    The value goes straight into image URLs as a cache-busting revision, so it
    must not contain '+', '/' or '='.
    """
    digest = hashlib.sha256(data).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
