"""Asset variant tools: generate a batch, pick one, refine it."""

import logging
import random
import time

from frameforge.engine import GenerationOptions
from frameforge.session import (
    AssetSession,
    AssetType,
    InlineImage,
    Refinement,
    Variant,
    VariantMetadata,
)
from frameforge.validation import validate_asset_dimensions

from ..context import ToolContext
from ..errors import Content, ToolValidationError, tool_boundary
from .content import image, json_text, require_text, text

logger = logging.getLogger(__name__)

MAX_VARIANTS = 4
REFINEMENT_STEPS = 20

DEFAULT_ASSET_SIZES: dict[AssetType, tuple[int, int]] = {
    AssetType.ICON: (256, 256),
    AssetType.BANNER: (1200, 400),
    AssetType.MOCKUP: (1920, 1080),
}

PROMPT_TEMPLATES: dict[AssetType, str] = {
    AssetType.ICON: "{description}, app icon, centered, flat design, plain background",
    AssetType.BANNER: "{description}, wide web banner, clean composition",
    AssetType.MOCKUP: "{description}, user interface mockup, high fidelity",
}


def generate_seed() -> int:
    return random.randint(0, 2**31 - 1)


def _parse_asset_type(value: str) -> AssetType:
    try:
        return AssetType(value.strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in AssetType)
        raise ToolValidationError(f"Invalid asset_type '{value}'. Valid: {valid}") from None


async def _generate_variant(
    ctx: ToolContext,
    prompt: str,
    width: int,
    height: int,
    seed: int,
    steps: int | None,
    operation_name: str,
) -> Variant:
    start = time.perf_counter()
    result = await ctx.generate(
        GenerationOptions(prompt=prompt, width=width, height=height, steps=steps, seed=seed),
        operation_name=operation_name,
    )
    if not isinstance(result.image, InlineImage):
        raise RuntimeError("Engine returned no image data")
    return Variant.create(
        image_base64=result.image.data,
        seed=seed,
        prompt=prompt,
        metadata=VariantMetadata(
            width=width,
            height=height,
            steps=result.metadata.steps,
            latency_ms=(time.perf_counter() - start) * 1000,
        ),
    )


@tool_boundary("generate_variants")
async def generate_variants(
    ctx: ToolContext,
    session_id: str,
    description: str,
    asset_type: str = "icon",
    count: int = 3,
    width: int | None = None,
    height: int | None = None,
) -> list[Content]:
    """Generate a batch of variants with different seeds.

    Identical requests within a session are served from the variant
    cache without touching the engine.
    """
    session_id = require_text(session_id, "session_id")
    description = require_text(description, "description")
    kind = _parse_asset_type(asset_type)
    if not 1 <= count <= MAX_VARIANTS:
        raise ToolValidationError(f"count must be between 1 and {MAX_VARIANTS}")

    default_w, default_h = DEFAULT_ASSET_SIZES[kind]
    width, height = width or default_w, height or default_h
    check = validate_asset_dimensions(kind, width, height)
    if not check.valid:
        rec_w, rec_h = check.recommended
        raise ToolValidationError(f"{check.reason} (recommended: {rec_w}x{rec_h})")

    session = await ctx.require_session(session_id)
    key = ctx.sessions.build_variant_cache_key(kind.value, description, width, height)
    variants = ctx.sessions.get_variant_cache(session_id, key)
    cached = variants is not None

    if variants is None:
        prompt = PROMPT_TEMPLATES[kind].format(description=description)
        variants = []
        for _ in range(count):
            variants.append(
                await _generate_variant(
                    ctx, prompt, width, height, generate_seed(), None, "generate_variants"
                )
            )
        ctx.sessions.set_variant_cache(session_id, key, variants)

    session.current_asset = AssetSession(type=kind, variants=list(variants))
    await ctx.sessions.save_session(session)

    lines = [
        f"{'Loaded' if cached else 'Generated'} {len(variants)} {kind.value} variant(s)"
        f"{' from cache' if cached else ''}",
        "",
    ]
    lines += [f"- {v.id} (seed {v.seed})" for v in variants]
    lines += ["", "Use select_variant to choose one for refinement."]
    return [text("\n".join(lines))] + [image(v.image_base64) for v in variants]


@tool_boundary("select_variant")
async def select_variant(ctx: ToolContext, session_id: str, variant_id: str) -> list[Content]:
    session_id = require_text(session_id, "session_id")
    variant_id = require_text(variant_id, "variant_id")
    session = await ctx.require_session(session_id)

    asset = session.current_asset
    if asset is None or not asset.variants:
        return [
            text(
                "No variants found in this session. "
                "Generate variants first using generate_variants."
            )
        ]

    variant = asset.find_variant(variant_id)
    if variant is None:
        available = ", ".join(v.id for v in asset.variants)
        raise ToolValidationError(
            f"Variant {variant_id} not found. Available variants: {available}"
        )

    asset.selected_variant_id = variant.id
    await ctx.sessions.save_session(session)
    return [
        text(
            f"Selected variant {variant.id}\n\n"
            f'Prompt: "{variant.prompt}"\n'
            f"Seed: {variant.seed}\n"
            f"Dimensions: {variant.metadata.width}x{variant.metadata.height}"
        )
    ]


@tool_boundary("refine_asset")
async def refine_asset(
    ctx: ToolContext, session_id: str, instruction: str
) -> list[Content]:
    """Regenerate the selected variant with an extra instruction.

    The refined variant joins the asset's variants and becomes selected.
    """
    session_id = require_text(session_id, "session_id")
    instruction = require_text(instruction, "refinement instruction")
    session = await ctx.require_session(session_id)

    asset = session.current_asset
    if asset is None:
        return [text("No asset in this session. Generate variants first using generate_variants.")]
    if asset.selected_variant_id is None:
        return [text("No variant selected. Select a variant first using select_variant.")]
    base = asset.selected_variant
    if base is None:
        raise ToolValidationError(f"Selected variant {asset.selected_variant_id} not found.")

    seed = generate_seed()
    refined = await _generate_variant(
        ctx,
        f"{base.prompt}, {instruction}",
        base.metadata.width,
        base.metadata.height,
        seed,
        REFINEMENT_STEPS,
        "refine_asset",
    )

    asset.variants.append(refined)
    asset.refinements.append(
        Refinement(
            variant_id=refined.id,
            refinement_prompt=instruction,
            base_variant_id=base.id,
        )
    )
    asset.selected_variant_id = refined.id
    await ctx.sessions.save_session(session)
    logger.info(f"Refined variant {base.id} -> {refined.id}")

    return [
        text(
            f"Refined variant {base.id}\n\n"
            f'Refinement: "{instruction}"\n'
            f"New variant ID: {refined.id}\n"
            f"Seed: {seed}\n"
            f"Latency: {refined.metadata.latency_ms:.0f}ms"
        ),
        json_text({"variant_id": refined.id, "base_variant_id": base.id, "seed": seed}),
        image(refined.image_base64),
    ]


__all__ = ["generate_variants", "select_variant", "refine_asset"]
