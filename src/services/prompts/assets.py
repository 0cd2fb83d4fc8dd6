"""Asset generation prompt templates.

Contains prompts for:
- VARIATION_GENERATOR: Expand one theme into N distinct visual descriptions
- ASSET_TEMPLATES: Per-kind wrappers applied to each variation before image/video generation
"""

from models.asset import AssetKind

# Plain white backdrops key out cleanly in the background stripper
ISOLATION_CLAUSE = (
    "isolated on a pure, solid, high-contrast #FFFFFF white background "
    "with no shadows, no gradients, and clean sharp edges"
)

# Variation Generator prompt
# Template placeholders: {count}, {kind}, {base_prompt}
VARIATION_GENERATOR = """Generate {count} distinct but highly related visual descriptions for creating {kind} assets based on the theme: "{base_prompt}".
Ensure variety in angle, color palette, and specific details while maintaining the essence.
Keep each description concise (under 20 words)."""

# Pass-through variation prompt used by the bare /variations endpoint
# Template placeholders: {count}, {prompt}
SHORT_VARIATION_GENERATOR = 'Generate {count} short visual prompt variations based on: "{prompt}"'

# Per-kind templates
# Template placeholders: {prompt}, {isolation}
ASSET_TEMPLATES = {
    AssetKind.STICKER: (
        "Die-cut sticker of {prompt}, bold white border around the shape, high quality "
        "illustration, vibrant colors, {isolation}, 4k, vector style."
    ),
    AssetKind.PNG_ELEMENT: (
        "High resolution isolated object of {prompt}, professional asset, clean edges, "
        "studio lighting, {isolation}, stock asset style."
    ),
    AssetKind.GRAPHIC: (
        "Minimalist vector graphic illustration of {prompt}, modern design aesthetic, "
        "clean lines, flat colors, {isolation}."
    ),
    AssetKind.SHAPE_3D: (
        "3D render of {prompt}, claymation or polished plastic style, soft studio lighting, "
        "high detail, volumetric shadows ONLY on the object itself, {isolation}, octane render."
    ),
    AssetKind.MOCKUP: (
        "Professional product mockup of {prompt}, clean composition, commercial photography "
        "style, minimalist surrounding, photorealistic, 4k."
    ),
    AssetKind.PHOTO: (
        "High-quality professional photography of {prompt}, natural lighting, shallow depth "
        "of field, 8k resolution, cinematic composition."
    ),
    AssetKind.STAMP: (
        "Retro postal stamp or rubber stamp design featuring {prompt}, textured ink effect, "
        "vintage aesthetic, {isolation}."
    ),
    AssetKind.GIF: (
        "A looping animation of {prompt}, smooth seamless looping motion, high quality "
        "motion graphics, smooth transitions, isolated background."
    ),
}


def build_variation_prompt(base_prompt: str, kind: AssetKind, count: int) -> str:
    return VARIATION_GENERATOR.format(count=count, kind=kind.value, base_prompt=base_prompt)


def build_asset_prompt(kind: AssetKind, prompt: str) -> str:
    """Wrap a variation in the generation template for its asset kind.

    Args:
        kind: Asset category
        prompt: One variation description

    Returns:
        Final prompt sent to the image or video model
    """
    template = ASSET_TEMPLATES.get(kind)
    if template is None:
        return prompt
    return template.format(prompt=prompt, isolation=ISOLATION_CLAUSE)
