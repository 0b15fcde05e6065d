# src/providers/prompts.py — v1
"""Prompt templates for the generation stages."""

from __future__ import annotations

from pokefusion.core.models import DescriptionFields

BLEND_PROMPT = """\
Create a brand-new Pokémon that merges the traits of {name_1} and {name_2}, using {name_1} as the base.
The new Pokémon should retain the same pose, angle, and overall body positioning as {name_1}'s official artwork.
Design: Incorporate key physical features from both {name_1} and {name_2}, blending them into a seamless and natural-looking hybrid.
Art Style: Strictly follow Official Pokémon-style, cel-shaded, with clean outlines and smooth shading.
Viewpoint: Match the exact pose and three-quarter front-facing angle of {name_1}.
Background: Pure white, no shadows, no extra elements.
Composition: Only ONE full-body Pokémon in the image, no alternative angles, no evolution steps, no fusion schematics.
Restrictions: No text, no labels, no extra Pokémon, no mechanical parts, no unnatural color combinations."""

DESCRIBE_PROMPT = """\
You are an expert creature designer. This image is an AI-generated blend of {name_1} and {name_2}.
Describe the fusion so it can be redrawn at high quality. Answer with exactly these bold headings:

**Body structure and pose:** overall shape, proportions and stance.
**Color palette:** the main colors and where they appear.
**Key features:** the most distinctive elements from each source and how they combine.
**Texture and surface:** skin, fur, scales or other surface detail.
**Species influence or type vibe:** what kind of creature it reads as.
**Attitude and expression:** the personality it conveys.
**Notable accessories or markings:** special markings or features.

Describe it as an original creature. Do not use the names of existing characters."""

ENHANCE_PROMPT = """\
Illustrate an original cartoon creature with {body_structure}, using a {color_palette}.
The creature features {key_features} with {texture_and_surface}.
It has a {species_influence} aesthetic, displaying a {attitude_and_expression}.
Additional details include {notable_accessories}.
Keep the body structure, pose and color palette of the uploaded image intact; only improve the artistic quality.
Style it for a teenager-friendly, early 2000s anime look. Use smooth, clean outlines, cel-shading, soft shadows, and vibrant colors.
Do not recreate or reference any existing character or franchise.
Keep the background transparent, but ensure that the eyes are non-transparent."""

FUSION_PROMPT = """\
Pokemon fusion creature named {target_name}: Blend the distinctive characteristics of {name_1} and {name_2} into a single cohesive creature.

The fusion should combine the unique body structure, color palette, and key features from both Pokemon while maintaining visual harmony.

Style requirements:
- Early 2000s anime Pokemon art style
- Clean outlines with cel-shading
- Vibrant, saturated colors
- Completely transparent background
- Single cohesive creature (not two separate Pokemon)
- Maintain proportional anatomy

The result should look like an official Pokemon that could naturally exist in the Pokemon universe."""


def blend_prompt(name_1: str, name_2: str) -> str:
    return BLEND_PROMPT.format(name_1=name_1, name_2=name_2)


def describe_prompt(name_1: str, name_2: str) -> str:
    return DESCRIBE_PROMPT.format(name_1=name_1, name_2=name_2)


def enhance_prompt(fields: DescriptionFields) -> str:
    return ENHANCE_PROMPT.format(**fields.model_dump())


def fusion_prompt(name_1: str, name_2: str, target_name: str) -> str:
    return FUSION_PROMPT.format(name_1=name_1, name_2=name_2, target_name=target_name)
