"""Tools backed by the community's own data: memories, chat history and member profiles."""

import logging
from datetime import (
    datetime,
    timedelta,
    timezone,
)
from typing import (
    Any,
    List,
    Optional,
)

from agora.core.errors import (
    EmbeddingError,
    StoreError,
)
from agora.tools import (
    ToolContext,
    ToolName,
    clamp_int,
    register_tool,
)

logger = logging.getLogger(__name__)

MEMORY_LIMIT = 50
CHAT_HISTORY_LIMIT = 50
DEFAULT_DAYS_BACK = 7
MAX_DAYS_BACK = 30
DEFAULT_PROFILE_LIMIT = 20
MAX_PROFILE_LIMIT = 50
SEMANTIC_MATCH_THRESHOLD = 0.7
DEFAULT_SEMANTIC_MATCHES = 10


@register_tool(
    ToolName.SEARCH_MEMORY,
    "Gather all memories from the community's knowledge base to provide context. Use this when "
    "you need to access saved community information, past facts, or stored knowledge.",
)
def search_memory(ctx: ToolContext) -> str:
    """List the newest community memories with their dates and tags."""
    logger.info("🧠 Searching memories")
    memories = ctx.store.recent_memories(ctx.community_id, MEMORY_LIMIT)
    if not memories:
        return "No memories found in the community knowledge base."

    lines = []
    for memory in memories:
        tags = f" [{', '.join(memory.tags)}]" if memory.tags else ""
        lines.append(f"• {memory.content} ({memory.created_at.date().isoformat()}){tags}")
    return f"Community Memories ({len(memories)}):\n\n" + "\n".join(lines)


@register_tool(
    ToolName.SEARCH_CHAT_HISTORY,
    "Search recent community chat messages to find relevant context or information from "
    "previous conversations.",
    {
        "type": "object",
        "properties": {
            "days_back": {
                "type": "integer",
                "description": "Number of days to search back (default 7, max 30)",
                "minimum": 1,
                "maximum": MAX_DAYS_BACK,
            },
        },
    },
)
def search_chat_history(ctx: ToolContext, days_back: Any = None) -> str:
    """Recent chat messages from the last *days_back* days, newest first."""
    days = clamp_int(days_back, DEFAULT_DAYS_BACK, 1, MAX_DAYS_BACK)
    logger.info("💬 Searching chat history: %d days", days)

    since = datetime.now(timezone.utc) - timedelta(days=days)
    messages = ctx.store.recent_messages(ctx.community_id, since, CHAT_HISTORY_LIMIT)
    if not messages:
        return f"No chat messages found in the last {days} days."

    lines = [
        f"[{msg.created_at.strftime('%Y-%m-%d %H:%M')}] {msg.display_name}: {msg.content}"
        for msg in messages
    ]
    return f"Recent Chat History ({len(messages)} messages, {days} days):\n\n" + "\n".join(lines)


@register_tool(
    ToolName.SAVE_MEMORY,
    "Save important information to the community's memory for future reference. Use this when "
    "users share important information that should be remembered.",
    {
        "type": "object",
        "properties": {
            "content": {"type": "string", "description": "The information to save"},
            "tags": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Tags to categorize this memory "
                "(e.g., ['event', 'announcement', 'faq'])",
            },
        },
        "required": ["content"],
    },
)
def save_memory(ctx: ToolContext, content: str, tags: Optional[List[str]] = None) -> str:
    """Store one memory tagged with the run's provenance."""
    logger.info("💾 Saving memory: %r", content[:50])
    try:
        ctx.store.insert_memory(
            ctx.community_id,
            content,
            [str(tag) for tag in tags or []],
            ctx.user_id,
            {"source": ctx.source, "saved_at": datetime.now(timezone.utc).isoformat()},
        )
    except StoreError as exc:
        logger.error("Error saving memory: %s", exc)
        return f"Failed to save memory: {exc}"
    return "✅ Memory saved successfully!"


@register_tool(
    ToolName.GET_MEMBER_PROFILES,
    "Fetch all community member profiles into context. Use this to get a comprehensive list of "
    "community members with their names, bios, interests, and skills. Best for general awareness "
    "of who's in the community.",
    {
        "type": "object",
        "properties": {
            "limit": {
                "type": "integer",
                "description": "Maximum number of profiles to return (default 20, max 50)",
                "minimum": 1,
                "maximum": MAX_PROFILE_LIMIT,
            },
        },
    },
)
def get_member_profiles(ctx: ToolContext, limit: Any = None) -> str:
    """Numbered summary of member profiles; unlinked members are skipped."""
    count = clamp_int(limit, DEFAULT_PROFILE_LIMIT, 1, MAX_PROFILE_LIMIT)
    logger.info("👥 Fetching community member profiles (limit=%d)", count)

    rows = ctx.store.member_profiles(ctx.community_id, count)
    if not rows:
        return "No community members found."

    entries = []
    for profile in (p for p in rows if p is not None):
        parts = [f"{len(entries) + 1}. {profile.name or 'Unknown'}"]
        if profile.headline:
            parts.append(f"   Headline: {profile.headline}")
        if profile.bio:
            parts.append(f"   Bio: {profile.bio}")
        if profile.interests_skills:
            parts.append(f"   Interests/Skills: {', '.join(profile.interests_skills)}")
        entries.append("\n".join(parts))

    return f"Community Members ({len(entries)}):\n\n" + "\n\n".join(entries)


@register_tool(
    ToolName.SEMANTIC_PROFILE_SEARCH,
    "Advanced semantic search of user profiles using AI embeddings. Use this to find people "
    "based on conceptual similarity (e.g., 'looking for someone interested in AI' or 'find "
    "people who might collaborate on a design project'). Better for matching based on meaning "
    "rather than exact keywords.",
    {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The semantic search query to find users based on meaning "
                "and context",
            },
            "limit": {
                "type": "integer",
                "description": "Maximum number of matches to return (default 10, max 50)",
                "minimum": 1,
                "maximum": MAX_PROFILE_LIMIT,
            },
        },
        "required": ["query"],
    },
)
def semantic_profile_search(ctx: ToolContext, query: str, limit: Any = None) -> str:
    """Profiles whose stored embedding is close to the embedding of *query*."""
    count = clamp_int(limit, DEFAULT_SEMANTIC_MATCHES, 1, MAX_PROFILE_LIMIT)
    logger.info("🔍 Semantic profile search: %r", query)

    if ctx.embedder is None:
        return "Failed to generate search embedding. Please try again."
    try:
        embedding = ctx.embedder.embed(query)
    except EmbeddingError as exc:
        logger.error("Error generating embedding: %s", exc)
        return "Failed to generate search embedding. Please try again."

    try:
        matches = ctx.store.match_profiles(embedding, SEMANTIC_MATCH_THRESHOLD, count)
    except StoreError as exc:
        logger.error("Error searching profiles: %s", exc)
        return f"Failed to search profiles: {exc}"

    if not matches:
        return f'No profiles found matching "{query}" with sufficient similarity.'

    entries = []
    for idx, match in enumerate(matches, start=1):
        parts = [f"{idx}. {match.name or 'Unknown'} (similarity: {match.similarity * 100:.0f}%)"]
        if match.bio:
            bio = match.bio[:100] + ("..." if len(match.bio) > 100 else "")
            parts.append(f"   Bio: {bio}")
        if match.interests_skills:
            parts.append(f"   Skills: {', '.join(match.interests_skills[:3])}")
        entries.append("\n".join(parts))

    return f'Found {len(matches)} profile(s) matching "{query}":\n\n' + "\n\n".join(entries)
