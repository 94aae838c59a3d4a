from __future__ import annotations

import base64
from types import SimpleNamespace

from aicomplex_engine.pipeline.extract import clean_prompt_list, extract_image, extract_text


def _sdk_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def test_extract_image_from_sdk_objects() -> None:
    text_part = SimpleNamespace(text="here you go", inline_data=None)
    image_part = SimpleNamespace(text=None, inline_data=SimpleNamespace(data=b"\x89PNG", mime_type="image/png"))
    artifact = extract_image(_sdk_response(text_part, image_part))
    assert artifact is not None
    assert artifact.data == b"\x89PNG"
    assert artifact.mime_type == "image/png"


def test_extract_image_from_mapping_with_base64_text() -> None:
    encoded = base64.b64encode(b"jpeg-bytes").decode("ascii")
    response = {
        "candidates": [
            {"content": {"parts": [{"inlineData": {"data": encoded, "mimeType": "image/jpg"}}]}},
        ]
    }
    artifact = extract_image(response)
    assert artifact is not None
    assert artifact.data == b"jpeg-bytes"
    assert artifact.mime_type == "image/jpeg"


def test_extract_image_defaults_mime_type() -> None:
    part = {"inline_data": {"data": b"raw"}}
    artifact = extract_image({"candidates": [{"content": {"parts": [part]}}]})
    assert artifact is not None
    assert artifact.mime_type == "image/png"


def test_extract_image_returns_none_when_absent() -> None:
    assert extract_image(None) is None
    assert extract_image({"candidates": []}) is None
    assert extract_image(_sdk_response(SimpleNamespace(text="refused", inline_data=None))) is None
    assert extract_image({"candidates": [{"content": {"parts": [{"inline_data": {"data": "%%%"}}]}}]}) is None


def test_extract_text_prefers_text_attribute() -> None:
    assert extract_text(SimpleNamespace(text="  interior \n")) == "interior"
    parts = [{"text": "one "}, {"text": "two"}]
    assert extract_text({"candidates": [{"content": {"parts": parts}}]}) == "one two"
    assert extract_text(None) == ""


def test_clean_prompt_list_drops_preamble_and_markdown() -> None:
    raw = "Sure! Here are prompts:\n1️⃣ **Wide shots**\n- A wide dusk view\n* Another"
    cleaned = clean_prompt_list(raw)
    assert cleaned.startswith("1️⃣ Wide shots")
    assert "**" not in cleaned
    assert "\nA wide dusk view" in cleaned
