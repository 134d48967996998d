import io

import pytest
from PIL import Image

from photo_index.exceptions import CodecError
from photo_index.imaging.thumbnail import ThumbnailGenerator, target_size

from conftest import make_jpeg


def _gradient_jpeg(size, shift=0):
    w, h = size
    with Image.new("RGB", size) as im:
        im.putdata([((x + shift) % 256, (y * 3) % 256, (x * y) % 256) for y in range(h) for x in range(w)])
        buf = io.BytesIO()
        im.save(buf, "JPEG", quality=90)
    return buf.getvalue()


def test_target_size():
    assert target_size(640, 480) == (640, 480)
    assert target_size(1000, 800) == (774, 619)
    assert target_size(4000, 3000, budget=12) == (4, 3)


def test_small_image_keeps_dimensions():
    thumb = ThumbnailGenerator().generate(make_jpeg(size=(64, 48)))

    assert (thumb.width, thumb.height) == (64, 48)
    assert thumb.data[:4] == b"RIFF" and thumb.data[8:12] == b"WEBP"


def test_large_image_is_downsampled():
    thumb = ThumbnailGenerator().generate(make_jpeg(size=(1000, 800)))

    assert (thumb.width, thumb.height) == (774, 619)
    assert thumb.width * thumb.height <= 480_000
    with Image.open(io.BytesIO(thumb.data)) as im:
        assert im.format == "WEBP"
        assert im.size == (774, 619)


def test_hash_is_deterministic():
    data = _gradient_jpeg((120, 90))
    first = ThumbnailGenerator().generate(data)
    second = ThumbnailGenerator().generate(data)
    assert first.hash == second.hash
    assert first.data == second.data


def test_hash_tracks_content():
    a = ThumbnailGenerator().generate(_gradient_jpeg((120, 90)))
    b = ThumbnailGenerator().generate(_gradient_jpeg((120, 90), shift=128))
    assert a.hash != b.hash


def test_garbage_is_a_codec_error():
    with pytest.raises(CodecError):
        ThumbnailGenerator().generate(b"not an image at all")


def test_only_jpeg_is_accepted():
    buf = io.BytesIO()
    with Image.new("RGB", (10, 10)) as im:
        im.save(buf, "PNG")
    with pytest.raises(CodecError):
        ThumbnailGenerator().generate(buf.getvalue())
