import io
import math
from typing import Tuple

from PIL import Image

from .. import config
from ..exceptions import CodecError
from ..models import Thumbnail
from ..scanning.hasher import content_hash


def target_size(width: int, height: int, budget: int = config.SMALL_IMG_PIXEL_BUDGET) -> Tuple[int, int]:
    """
    Scales (width, height) down so the pixel count is roughly `budget`,
    keeping the aspect ratio. Images already within budget keep their size.
    """
    pixels = width * height
    if pixels <= budget:
        return width, height

    scale = math.sqrt(budget / pixels)
    return max(1, int(width * scale)), max(1, int(height * scale))


class ThumbnailGenerator:
    """
    Produces the small WEBP version of a photo that's served from memory.
    """

    def __init__(self,
                 budget: int = config.SMALL_IMG_PIXEL_BUDGET,
                 quality: int = config.SMALL_IMG_QUALITY):
        self.budget = budget
        self.quality = quality

    def generate(self, jpeg_data: bytes) -> Thumbnail:
        try:
            with Image.open(io.BytesIO(jpeg_data), formats=["JPEG"]) as im:
                im.load()
                img = im.convert("RGB")
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise CodecError(f"failed to decode source JPEG image: {e}") from e

        size = target_size(img.width, img.height, self.budget)
        if size != img.size:
            img = img.resize(size, Image.LANCZOS)

        buf = io.BytesIO()
        try:
            img.save(buf, config.SMALL_IMG_FORMAT, quality=self.quality)
        except (OSError, ValueError, KeyError) as e:
            raise CodecError(f"failed to encode {config.SMALL_IMG_FORMAT} image: {e}") from e

        data = buf.getvalue()
        return Thumbnail(width=img.width, height=img.height, hash=content_hash(data), data=data)
