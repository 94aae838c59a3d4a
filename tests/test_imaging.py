from __future__ import annotations

import io

import pytest
from PIL import Image

from aicomplex_engine.imaging import (
    MARK_COLOR,
    aspect_ratio_of,
    crop_to_aspect_ratio,
    image_size,
    mark_region,
    pad_to_aspect_ratio,
)
from aicomplex_engine.runs.requests import ImageArtifact


def _png(size: tuple[int, int], color: tuple[int, int, int] = (200, 200, 200)) -> ImageArtifact:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return ImageArtifact(buffer.getvalue())


def _open(artifact: ImageArtifact) -> Image.Image:
    return Image.open(io.BytesIO(artifact.data)).convert("RGBA")


def test_pad_keeps_matching_ratio_untouched() -> None:
    artifact = _png((160, 90))
    assert pad_to_aspect_ratio(artifact, "16:9") is artifact
    assert pad_to_aspect_ratio(artifact, 160 / 90) is artifact


def test_pad_wide_target_adds_transparent_sides() -> None:
    padded = pad_to_aspect_ratio(_png((40, 40)), "16:9")
    assert padded.mime_type == "image/png"
    assert image_size(padded) == (71, 40)
    image = _open(padded)
    assert image.getpixel((0, 20))[3] == 0
    assert image.getpixel((35, 20))[3] == 255
    assert pad_to_aspect_ratio(padded, "16:9") is padded


def test_pad_small_image_is_stable_on_second_pass() -> None:
    padded = pad_to_aspect_ratio(_png((10, 10)), "16:9")
    assert image_size(padded) == (18, 10)
    assert pad_to_aspect_ratio(padded, "16:9") is padded
    assert crop_to_aspect_ratio(padded, "16:9") is padded


def test_pad_tall_target_adds_rows() -> None:
    padded = pad_to_aspect_ratio(_png((90, 30)), 1.0)
    assert image_size(padded) == (90, 90)
    assert _open(padded).getpixel((45, 0))[3] == 0


def test_crop_to_ratio() -> None:
    cropped = crop_to_aspect_ratio(_png((200, 100)), "1:1")
    assert image_size(cropped) == (100, 100)
    assert aspect_ratio_of(crop_to_aspect_ratio(_png((100, 200)), "4:3")) == pytest.approx(4 / 3, abs=0.02)


def test_invalid_ratio_raises() -> None:
    with pytest.raises(ValueError):
        pad_to_aspect_ratio(_png((10, 10)), "wide")
    with pytest.raises(ValueError):
        pad_to_aspect_ratio(_png((10, 10)), 0)


def test_mark_region_draws_outline() -> None:
    marked = mark_region(_png((100, 100)), (0.2, 0.2, 0.6, 0.6))
    image = _open(marked)
    assert image.getpixel((20, 40)) == MARK_COLOR
    assert image.getpixel((40, 40)) == (200, 200, 200, 255)


def test_mark_region_rejects_empty_box() -> None:
    with pytest.raises(ValueError):
        mark_region(_png((10, 10)), (0.5, 0.5, 0.5, 0.9))
    with pytest.raises(ValueError):
        mark_region(_png((10, 10)), (0.1, 0.2))
