from __future__ import annotations

import io

from PIL import Image

from aicomplex_engine.pipeline.extract import extract_image, extract_text
from aicomplex_engine.providers import default_registry
from aicomplex_engine.providers.dryrun import DryRunImageBackend, DryRunVideoBackend, _resolve_size
from aicomplex_engine.runs.requests import ImageArtifact


def _size(artifact: ImageArtifact) -> tuple[int, int]:
    with Image.open(io.BytesIO(artifact.data)) as image:
        return image.size


def _png(size: tuple[int, int]) -> ImageArtifact:
    buffer = io.BytesIO()
    Image.new("RGB", size, (10, 20, 30)).save(buffer, format="PNG")
    return ImageArtifact(buffer.getvalue())


def test_resolve_size_ratios() -> None:
    assert _resolve_size("16:9") == (512, 288)
    assert _resolve_size("9:16") == (288, 512)
    assert _resolve_size("1:1") == (512, 512)
    assert _resolve_size("bad") == (512, 512)


def test_dryrun_generate_images_snaps_ratio() -> None:
    backend = DryRunImageBackend()
    results = backend.generate_images("a coastal villa", 3, "auto")
    assert len(results) == 3
    assert all(_size(artifact) == (512, 384) for artifact in results)
    assert results[0].data != results[1].data


def test_dryrun_generate_content_matches_source_size() -> None:
    backend = DryRunImageBackend()
    response = backend.generate_content([_png((320, 200)), "make it dusk"])
    artifact = extract_image(response)
    assert artifact is not None
    assert _size(artifact) == (320, 200)


def test_dryrun_generate_text_counts_images() -> None:
    backend = DryRunImageBackend()
    text = extract_text(backend.generate_text([_png((8, 8)), "classify"]))
    assert text == "dryrun: classify (1 image)"


def test_dryrun_video_completes_after_polls() -> None:
    backend = DryRunVideoBackend(polls_until_done=2)
    operation = backend.submit(_png((8, 8)), "orbit", "veo-2.0-generate-preview")
    assert not operation.done
    operation = backend.poll(operation)
    assert not operation.done
    operation = backend.poll(operation)
    assert operation.done and operation.result_uri
    assert backend.fetch(operation.result_uri).startswith(b"dryrun-video:")


def test_default_registry_lists_backends() -> None:
    registry = default_registry()
    assert registry.list() == ["dryrun", "gemini"]
    assert registry.image("dryrun") is not None
    assert registry.video("gemini") is not None
    assert registry.image("flux") is None
