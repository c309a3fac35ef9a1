"""Server status, metrics and model listing tools."""

from frameforge.config import EnvVar, get_environment, get_model_cache_dir
from frameforge.engine import list_models

from ..context import ToolContext
from ..errors import Content, tool_boundary
from ..health import format_startup_banner, get_server_health
from .content import json_text, text


@tool_boundary("status")
async def status(ctx: ToolContext) -> list[Content]:
    health = await get_server_health(ctx)
    return [text(format_startup_banner(health).strip()), json_text(health.to_dict())]


@tool_boundary("get_metrics")
async def get_metrics(ctx: ToolContext) -> list[Content]:
    snapshot = ctx.sessions.get_metrics_snapshot()
    return [text(ctx.sessions.get_metrics_summary()), json_text(snapshot.to_dict())]


@tool_boundary("list_available_models")
async def list_available_models(ctx: ToolContext) -> list[Content]:
    """Known MLX-compatible models, flagged as downloaded and/or active."""
    entries = await list_models(get_model_cache_dir(), get_environment(EnvVar.MODEL_NAME))

    blocks = []
    for entry in entries:
        model = entry.model
        badges = "".join(
            badge
            for badge, on in (
                (" [RECOMMENDED]", model.recommended),
                (" [ACTIVE]", entry.active),
                (" [DOWNLOADED]", entry.downloaded),
            )
            if on
        )
        blocks.append(
            f"{model.name}{badges}\n"
            f"- ID: {model.id}\n"
            f"- Description: {model.description}\n"
            f"- Size: {model.size}\n"
            f"- Hugging Face: {model.huggingface_id}"
        )

    summary = f"Found {len(entries)} models for MLX:\n\n" + "\n\n".join(blocks)
    summary += "\n\nSet MODEL_NAME to a Hugging Face id to switch models."
    return [text(summary), json_text([e.to_dict() for e in entries])]


__all__ = ["status", "get_metrics", "list_available_models"]
