"""Stable Diffusion models known to work with the MLX engine."""

from dataclasses import asdict, dataclass
from pathlib import Path

import aiofiles.os

from .mlx import model_cache_path


@dataclass(frozen=True)
class ModelInfo:
    """One entry of the model catalog.

    Attributes:
        id: Short name shown to users.
        name: Display name.
        description: One-line summary.
        size: Approximate download size.
        huggingface_id: Repository id, the value for MODEL_NAME.
        recommended: Suggested default.
    """

    id: str
    name: str
    description: str
    size: str
    huggingface_id: str
    recommended: bool = False


AVAILABLE_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(
        id="sd-2.1",
        name="Stable Diffusion 2.1",
        description="High-quality text-to-image generation (default)",
        size="~5GB",
        huggingface_id="stabilityai/stable-diffusion-2-1",
        recommended=True,
    ),
    ModelInfo(
        id="sd-2.1-base",
        name="Stable Diffusion 2.1 Base",
        description="Faster generation with slightly lower quality",
        size="~3.5GB",
        huggingface_id="stabilityai/stable-diffusion-2-1-base",
    ),
    ModelInfo(
        id="sd-1.5",
        name="Stable Diffusion 1.5",
        description="Earlier version, good compatibility",
        size="~4GB",
        huggingface_id="runwayml/stable-diffusion-v1-5",
    ),
    ModelInfo(
        id="sdxl-turbo",
        name="SDXL Turbo",
        description="Few-step generation at 512px, runs with the sdxl pipeline",
        size="~7GB",
        huggingface_id="stabilityai/sdxl-turbo",
    ),
)


@dataclass
class ModelAvailability:
    """A catalog entry as seen from this machine."""

    model: ModelInfo
    downloaded: bool
    active: bool

    def to_dict(self) -> dict:
        return {**asdict(self.model), "downloaded": self.downloaded, "active": self.active}


async def list_models(cache_dir: Path | None, active_model: str) -> list[ModelAvailability]:
    """Catalog entries with download and active flags.

    The configured model is listed even when it is not in the catalog.
    """
    models = list(AVAILABLE_MODELS)
    if active_model not in {m.huggingface_id for m in models}:
        models.append(
            ModelInfo(
                id=active_model.rsplit("/", 1)[-1],
                name=active_model,
                description="Configured through MODEL_NAME",
                size="unknown",
                huggingface_id=active_model,
            )
        )

    entries = []
    for model in models:
        downloaded = cache_dir is not None and await aiofiles.os.path.isdir(
            model_cache_path(cache_dir, model.huggingface_id)
        )
        entries.append(
            ModelAvailability(
                model=model,
                downloaded=downloaded,
                active=model.huggingface_id == active_model,
            )
        )
    return entries


__all__ = ["AVAILABLE_MODELS", "ModelInfo", "ModelAvailability", "list_models"]
