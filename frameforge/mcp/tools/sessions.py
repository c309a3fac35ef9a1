"""Session lifecycle tools."""

import logging

from ..context import ToolContext
from ..errors import Content, tool_boundary
from .content import json_text, require_text, text

logger = logging.getLogger(__name__)


@tool_boundary("create_session")
async def create_session(ctx: ToolContext) -> list[Content]:
    session = await ctx.sessions.create_session()
    return [
        text(f"Created session {session.id}"),
        json_text({"session_id": session.id, "created_at": session.created_at.isoformat()}),
    ]


@tool_boundary("list_sessions")
async def list_sessions(ctx: ToolContext) -> list[Content]:
    summaries = await ctx.sessions.list_sessions()
    if not summaries:
        return [text("No sessions found")]

    lines = [f"Found {len(summaries)} session(s):"]
    for summary in summaries:
        prompt = f' - last prompt: "{summary.last_prompt}"' if summary.last_prompt else ""
        lines.append(
            f"- {summary.id} ({summary.total_iterations} iteration(s), "
            f"updated {summary.updated_at:%Y-%m-%d %H:%M}){prompt}"
        )
    return [text("\n".join(lines)), json_text([s.to_dict() for s in summaries])]


@tool_boundary("delete_session")
async def delete_session(ctx: ToolContext, session_id: str) -> list[Content]:
    session_id = require_text(session_id, "session_id")
    ctx.forget_session(session_id)
    if await ctx.sessions.delete_session(session_id):
        return [text(f"Deleted session {session_id}")]
    return [text(f"Session {session_id} does not exist; nothing to delete")]


__all__ = ["create_session", "list_sessions", "delete_session"]
