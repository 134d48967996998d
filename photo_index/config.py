"""
Configuration constants for the photo index.
"""

# --- Filesystem Layout ---
IMGS_GLOB = "*.jpg"
FULL_IMG_EXT = ".jpg"
ALBUMS_META_FILENAME = "albums.json"
DISPLAY_SETTINGS_FILENAME = "default-flex-grid-config.json"

# --- Naming ---
# Characters that URI-encode to themselves (RFC 3986 "unreserved").
# Photo ids and album paths are restricted to these so URLs stay simple.
URI_SAFE_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
    "-~._"
)

# --- Special Albums ---
ALL_ALBUM_PATH = "all"
ALL_ALBUM_NAME = "All photos"
ALL_ALBUM_DESC = "All of my photos on this site, each and every one"
FAVORITES_ALBUM_PATH = "favorites"

# Auto-generated day albums, e.g. path "2021-12-18", name "18 December, 2021"
AUTO_DAY_PATH_FORMAT = "%Y-%m-%d"
AUTO_DAY_DESC_TEMPLATE = "<p>Everything from {name}</p>"

# --- Metadata Parsing ---
# Only the first line of the UserComment may carry alt text
ALT_TEXT_PREFIX = "alt:"

# --- Thumbnails ---
SMALL_IMG_PIXEL_BUDGET = 480_000  # ~800x600
SMALL_IMG_QUALITY = 80
SMALL_IMG_FORMAT = "WEBP"

# --- Serving ---
PHOTOS_URL_PREFIX = "/photos"
# 30 days; URLs carry a content hash so the resource never changes in place
PHOTO_CACHE_POLICY = "max-age=2592000, immutable"
SMALL_IMG_CONTENT_TYPE = "image/webp"
FULL_IMG_CONTENT_TYPE = "image/jpeg"

# Number of favorites shown as a preview on the site root
NUM_PREVIEW_PHOTOS = 5

# --- Maps ---
GLOBAL_MAP_CENTER = (37.839, -122.396)
GLOBAL_MAP_ZOOM = 11
PHOTO_MAP_ZOOM = 12
