from __future__ import annotations

import json

from aicomplex_engine.pipeline.prompts import PromptComposer, format_prompt, serialize_placements
from aicomplex_engine.session.composition import ObjectTransform


def test_format_prompt_substitutes_positional_values() -> None:
    assert format_prompt("Render {0} without {1}", "a villa", "cars") == "Render a villa without cars"
    assert format_prompt("{1} then {0} then {1}", "a", "b") == "b then a then b"


def test_format_prompt_leaves_missing_placeholders_literal() -> None:
    assert format_prompt("Use {0} and {1}", "brick") == "Use brick and {1}"
    assert format_prompt("Use {0}", None) == "Use {0}"
    assert format_prompt("", "ignored") == ""


def test_text_to_image_appends_negative_prompt() -> None:
    composer = PromptComposer()
    assert composer.text_to_image("a cabin", "snow") == "a cabin. Do not include: snow"
    assert composer.text_to_image("a cabin", "   ") == "a cabin"
    assert composer.text_to_image("a cabin") == "a cabin"


def test_image_to_image_selects_template_by_reference_and_negative() -> None:
    composer = PromptComposer(
        {
            "generate_with_reference": "REF {0}",
            "generate_with_reference_negative": "REF {0} NOT {1}",
            "generate_without_reference": "PLAIN {0}",
            "generate_without_reference_negative": "PLAIN {0} NOT {1}",
        }
    )
    assert composer.image_to_image("warm", None, has_reference=True) == "REF warm"
    assert composer.image_to_image("warm", "people", has_reference=True) == "REF warm NOT people"
    assert composer.image_to_image("warm", "", has_reference=False) == "PLAIN warm"
    assert composer.image_to_image("warm", "people", has_reference=False) == "PLAIN warm NOT people"


def test_reference_template_forbids_copying_composition() -> None:
    prompt = PromptComposer().image_to_image("modern", has_reference=True)
    assert "modern" in prompt
    assert "Never copy the composition" in prompt


def test_inpaint_templates_describe_mask() -> None:
    composer = PromptComposer()
    with_ref = composer.inpaint("add a bench", has_reference=True)
    without_ref = composer.inpaint("add a bench", has_reference=False)
    assert "white area" in with_ref and "style reference" in with_ref
    assert "white area" in without_ref and "style reference" not in without_ref


def test_serialize_placements_formats_numbers() -> None:
    transforms = [
        ObjectTransform(x=12.346, y=50, scale=20.5, rotation=44.6, flip_horizontal=True),
        ObjectTransform(),
    ]
    payload = serialize_placements(transforms)
    assert payload[0] == {
        "pos": {"x": "12.35", "y": "50.00"},
        "scale": "20.50",
        "rotation": "45",
        "orientation": {"flip_horizontal": True, "flip_vertical": False},
    }
    assert payload[1]["pos"] == {"x": "50.00", "y": "50.00"}


def test_composition_prompt_embeds_placement_json() -> None:
    composer = PromptComposer({"place_and_render": "DATA:{0}"})
    prompt = composer.composition([ObjectTransform(x=10, y=20)])
    assert prompt.startswith("DATA:")
    assert json.loads(prompt[len("DATA:"):]) == serialize_placements([ObjectTransform(x=10, y=20)])


def test_close_up_prompt_mentions_count() -> None:
    assert "generate 3 distinct" in PromptComposer().close_up(3)
