"""Prompt templates and composition."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Sequence

_PLACEHOLDER_RE = re.compile(r"{(\d+)}")

# Placeholders are positional: {0} is the user text, {1} the negative prompt.
DEFAULT_TEMPLATES: dict[str, str] = {
    "generate_with_reference": (
        "You are a professional architectural visualizer. The first image is the source design. "
        "The second image is a reference used ONLY for style, materials, color palette and lighting. "
        "Never copy the composition, layout or camera angle of the reference. "
        "Re-render the source image according to this request: \"{0}\". "
        "Keep the geometry of the source image intact and produce a photorealistic result."
    ),
    "generate_with_reference_negative": (
        "You are a professional architectural visualizer. The first image is the source design. "
        "The second image is a reference used ONLY for style, materials, color palette and lighting. "
        "Never copy the composition, layout or camera angle of the reference. "
        "Re-render the source image according to this request: \"{0}\". "
        "Keep the geometry of the source image intact and produce a photorealistic result. "
        "Do not include: {1}."
    ),
    "generate_without_reference": (
        "You are a professional architectural visualizer. Re-render the provided image according to "
        "this request: \"{0}\". Keep its geometry and composition and produce a photorealistic result."
    ),
    "generate_without_reference_negative": (
        "You are a professional architectural visualizer. Re-render the provided image according to "
        "this request: \"{0}\". Keep its geometry and composition and produce a photorealistic result. "
        "Do not include: {1}."
    ),
    "edit_with_reference": (
        "The first image is the original. The second image is a mask: the white area marks the only "
        "region you may change, everything under the black area must stay pixel-identical. "
        "The third image is a style reference for the new content. "
        "Edit the masked region according to this request: \"{0}\". "
        "Blend lighting, perspective and shadows seamlessly with the rest of the image."
    ),
    "edit_without_reference": (
        "The first image is the original. The second image is a mask: the white area marks the only "
        "region you may change, everything under the black area must stay pixel-identical. "
        "Edit the masked region according to this request: \"{0}\". "
        "Blend lighting, perspective and shadows seamlessly with the rest of the image."
    ),
    "place_and_render": (
        "The first image is a background scene. Each following image is a decor object on a transparent "
        "canvas with the same aspect ratio as the background. Place every object into the scene using "
        "this placement data, one entry per object in the same order as the images. Positions are "
        "percentages from the top-left corner of the background, scale is a percentage of the background "
        "width, rotation is in degrees:\n{0}\n"
        "Render the result photorealistically: match perspective, lighting, shadows and reflections of "
        "the scene, and keep everything else in the background unchanged."
    ),
    "camera_angle": (
        "Render the building from the provided image with a new camera angle. The desired angle is: "
        "\"{0}\". The final image should be a realistic architectural photo."
    ),
    "plan_render": (
        "You are a professional AI architect who converts 2D floor plans into photorealistic 3D interior "
        "renders. Analyze the layout, room sizes, furniture, windows and doors of the provided plan. "
        "Apply this style request: \"{0}\". If a second image is provided it is a style reference: take "
        "palette, materials and lighting from it but never its layout. Choose an attractive eye-level "
        "viewpoint and output one high quality 3D interior render."
    ),
    "plan_colorize": (
        "You are an assistant for architects. Colorize the provided black and white 2D floor plan. "
        "Request: \"{0}\". Use clear professional architectural color conventions for walls, furniture, "
        "windows, doors and room types. Do not change the layout and do not add 3D effects."
    ),
    "close_up": (
        "The user has provided an image with an orange rectangle drawn on it. The rectangle marks a region "
        "of interest and MUST NOT appear in the generated images. Act as a professional architectural "
        "photographer and generate {0} distinct, detailed close-up photographs of the area inside the "
        "rectangle, each from a DIFFERENT camera angle. Keep the style, lighting and materials of the "
        "original image."
    ),
    "moodboard": (
        "Create a professional interior design moodboard inspired by the provided image. Theme: \"{0}\". "
        "Include material swatches, a color palette, key furniture pieces and lighting references laid "
        "out on a clean background."
    ),
    "moodboard_with_reference": (
        "Create a professional interior design moodboard inspired by the first image. Theme: \"{0}\". "
        "Use the second image as a style reference for palette and materials. Include material swatches, "
        "a color palette, key furniture pieces and lighting references laid out on a clean background."
    ),
    "lighting": (
        "Re-render the provided image with new lighting: {0}. Keep geometry, materials and camera "
        "exactly the same and change only the light, shadows and atmosphere."
    ),
    "architectural_prompts": (
        "Act as an architectural photographer. Analyze the provided image and write a numbered list of "
        "prompts for new photographs of this project: wide shots, medium shots, close-up details and "
        "artistic shots. Start each section header with its number followed by 1️⃣-style "
        "emoji and return only the prompts."
    ),
    "prompt_from_image": (
        "Describe the provided exterior architecture image as a single detailed rendering prompt: "
        "building type, style, materials, surroundings, weather, time of day and camera. Return only "
        "the prompt."
    ),
    "prompt_from_image_interior": (
        "Describe the provided interior image as a single detailed rendering prompt: room type, style, "
        "materials, furniture, lighting and camera. Return only the prompt."
    ),
    "prompt_from_keywords": (
        "Expand these keywords into one detailed exterior architectural rendering prompt: \"{0}\". "
        "Return only the prompt."
    ),
    "prompt_from_keywords_interior": (
        "Expand these keywords into one detailed interior rendering prompt: \"{0}\". Return only the prompt."
    ),
    "prompt_from_plan": (
        "Analyze the provided 2D floor plan and describe a photorealistic 3D interior render of it as a "
        "single prompt: rooms, layout, furniture and a fitting style. Return only the prompt."
    ),
    "classify_image": (
        "Is this image an interior or an exterior architectural view? Answer with exactly one word: "
        "interior or exterior."
    ),
    "video_script": (
        "Act as a director specialized in architectural and interior cinematography with 20 years of "
        "experience, and as an expert at writing image-to-video prompts. Based on the provided image and "
        "this request: \"{0}\", write one English prompt describing camera movement, light movement and "
        "composition for a short video. Return only the prompt, no analysis."
    ),
}


def format_prompt(template: str, *values: Any) -> str:
    if not template:
        return ""

    def _substitute(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index < len(values) and values[index] is not None:
            return str(values[index])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_substitute, template)


def serialize_placements(transforms: Sequence[Any]) -> list[dict[str, Any]]:
    """Reduce transforms to the numbers the backend reasons about."""
    return [
        {
            "pos": {"x": f"{transform.x:.2f}", "y": f"{transform.y:.2f}"},
            "scale": f"{transform.scale:.2f}",
            "rotation": f"{transform.rotation:.0f}",
            "orientation": {
                "flip_horizontal": transform.flip_horizontal,
                "flip_vertical": transform.flip_vertical,
            },
        }
        for transform in transforms
    ]


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


class PromptComposer:
    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self.templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self.templates.update(templates)

    def template(self, name: str) -> str:
        return self.templates.get(name, "")

    def render(self, name: str, *values: Any) -> str:
        return format_prompt(self.template(name), *values)

    def text_to_image(self, prompt: str, negative_prompt: str | None = None) -> str:
        # The text-to-image backend has no negative prompt field.
        if _has_text(negative_prompt):
            return f"{prompt}. Do not include: {negative_prompt}"
        return prompt

    def image_to_image(self, prompt: str, negative_prompt: str | None = None, *, has_reference: bool) -> str:
        name = "generate_with_reference" if has_reference else "generate_without_reference"
        if _has_text(negative_prompt):
            name = f"{name}_negative"
        return self.render(name, prompt, negative_prompt)

    def inpaint(self, prompt: str, *, has_reference: bool) -> str:
        return self.render("edit_with_reference" if has_reference else "edit_without_reference", prompt)

    def composition(self, transforms: Sequence[Any]) -> str:
        return self.render("place_and_render", json.dumps(serialize_placements(transforms), indent=2))

    def camera_angle(self, prompt: str) -> str:
        return self.render("camera_angle", prompt)

    def plan(self, prompt: str, *, colorize: bool) -> str:
        return self.render("plan_colorize" if colorize else "plan_render", prompt)

    def close_up(self, count: int) -> str:
        return self.render("close_up", count)

    def moodboard(self, prompt: str, *, has_reference: bool) -> str:
        return self.render("moodboard_with_reference" if has_reference else "moodboard", prompt)

    def lighting(self, prompt: str) -> str:
        return self.render("lighting", prompt)

    def prompt_from_image(self, *, interior: bool) -> str:
        return self.template("prompt_from_image_interior" if interior else "prompt_from_image")

    def prompt_from_keywords(self, keywords: str, *, interior: bool) -> str:
        return self.render("prompt_from_keywords_interior" if interior else "prompt_from_keywords", keywords)

    def video_script(self, prompt: str) -> str:
        return self.render("video_script", prompt)
