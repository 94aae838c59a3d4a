"""Pixel helpers: aspect-ratio conformance and region marking."""

from __future__ import annotations

from io import BytesIO
from typing import Sequence

from PIL import Image, ImageDraw

from .providers.google_utils import parse_ratio
from .runs.requests import ImageArtifact


MARK_COLOR = (249, 115, 22, 255)


def _ratio_value(ratio: float | str) -> float:
    if isinstance(ratio, str):
        parsed = parse_ratio(ratio)
        if parsed is None:
            raise ValueError(f"Invalid aspect ratio: {ratio!r}")
        return parsed[0] / parsed[1]
    value = float(ratio)
    if value <= 0:
        raise ValueError(f"Invalid aspect ratio: {ratio!r}")
    return value


def _encode_png(image: Image.Image) -> ImageArtifact:
    buf = BytesIO()
    image.save(buf, format="PNG")
    return ImageArtifact(data=buf.getvalue(), mime_type="image/png")


def image_size(artifact: ImageArtifact) -> tuple[int, int]:
    with Image.open(BytesIO(artifact.data)) as img:
        w, h = img.size
        return int(w), int(h)


def aspect_ratio_of(artifact: ImageArtifact) -> float:
    w, h = image_size(artifact)
    return w / max(1, h)


def pad_to_aspect_ratio(artifact: ImageArtifact, ratio: float | str, tolerance: float = 0.01) -> ImageArtifact:
    """Center ``artifact`` on a transparent canvas with the target ratio.

    Images already within ``tolerance`` of the ratio, or whose padded canvas
    would round to their own size, come back unchanged.
    """
    target = _ratio_value(ratio)
    with Image.open(BytesIO(artifact.data)) as img:
        w, h = img.size
        if h <= 0 or abs(w / h - target) <= tolerance:
            return artifact
        if w / h > target:
            canvas_w, canvas_h = w, max(1, round(w / target))
        else:
            canvas_w, canvas_h = max(1, round(h * target)), h
        if (canvas_w, canvas_h) == (w, h):
            return artifact
        rgba = img.convert("RGBA")
    canvas = Image.new("RGBA", (canvas_w, canvas_h), (0, 0, 0, 0))
    canvas.paste(rgba, ((canvas_w - w) // 2, (canvas_h - h) // 2))
    return _encode_png(canvas)


def crop_to_aspect_ratio(artifact: ImageArtifact, ratio: float | str, tolerance: float = 0.01) -> ImageArtifact:
    target = _ratio_value(ratio)
    with Image.open(BytesIO(artifact.data)) as img:
        w, h = img.size
        if h <= 0 or abs(w / h - target) <= tolerance:
            return artifact
        if w / h > target:
            new_w = max(1, round(h * target))
            left = (w - new_w) // 2
            box = (left, 0, left + new_w, h)
        else:
            new_h = max(1, round(w / target))
            top = (h - new_h) // 2
            box = (0, top, w, top + new_h)
        if (box[2] - box[0], box[3] - box[1]) == (w, h):
            return artifact
        cropped = img.convert("RGBA").crop(box)
    return _encode_png(cropped)


def mark_region(artifact: ImageArtifact, box: Sequence[float], width: int = 4) -> ImageArtifact:
    """Draw an orange rectangle; ``box`` is (left, top, right, bottom) as fractions of the image."""
    if len(box) != 4:
        raise ValueError("Region must be (left, top, right, bottom)")
    left, top, right, bottom = (min(1.0, max(0.0, float(v))) for v in box)
    if right <= left or bottom <= top:
        raise ValueError("Region is empty")
    with Image.open(BytesIO(artifact.data)) as img:
        rgba = img.convert("RGBA")
    w, h = rgba.size
    draw = ImageDraw.Draw(rgba)
    draw.rectangle(
        (round(left * w), round(top * h), round(right * w) - 1, round(bottom * h) - 1),
        outline=MARK_COLOR,
        width=max(1, width),
    )
    return _encode_png(rgba)
