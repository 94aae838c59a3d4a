from __future__ import annotations

import pytest

from aicomplex_engine.runs.requests import (
    DEFAULT_ASPECT_RATIO,
    MAX_COUNT,
    GenerationRequest,
    ImageArtifact,
    clamp_count,
)


def test_data_url_round_trip() -> None:
    artifact = ImageArtifact(b"\x89PNG\r\n\x1a\nbody", "image/webp")
    url = artifact.to_data_url()
    assert url.startswith("data:image/webp;base64,")
    assert ImageArtifact.from_data_url(url) == artifact
    assert ImageArtifact.from_data_url(f"  {url}\n") == artifact


@pytest.mark.parametrize(
    "value",
    ["", "not a url", "data:image/png;base64,", "data:image/png;base64,@@@@", "data:image/png,aGk="],
)
def test_malformed_data_url_is_none(value: str) -> None:
    assert ImageArtifact.from_data_url(value) is None


def test_format_and_extension() -> None:
    assert ImageArtifact(b"", "image/jpg").format == "jpeg"
    assert ImageArtifact(b"", "image/jpeg").extension == "jpg"
    assert ImageArtifact(b"").extension == "png"


def test_clamp_count() -> None:
    assert clamp_count(0) == 1
    assert clamp_count("3") == 3
    assert clamp_count(99) == MAX_COUNT
    assert clamp_count(None) == 1


def test_request_orders_input_images() -> None:
    source, mask, second, reference = (ImageArtifact(bytes([n])) for n in range(4))
    request = GenerationRequest(
        mode="edit",
        count=40,
        primary_image=source,
        reference_image=reference,
        secondary_image=second,
        mask_image=mask,
    )
    assert request.input_images() == [source, mask, second, reference]
    assert request.count == MAX_COUNT
    assert request.aspect_ratio == DEFAULT_ASPECT_RATIO
    assert GenerationRequest(mode="create").input_images() == []
