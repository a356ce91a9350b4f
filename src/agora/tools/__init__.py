"""
Tool catalog for Agora.

This module provides a decorator to register tools and a registry to look them up by name.  The
catalog is closed: every tool is a member of :class:`ToolName`, and adding one means adding an enum
member plus a registered handler, not editing configuration.

Handlers are plain functions ``fn(ctx, **arguments) -> str``.  They receive a :class:`ToolContext`
describing the community the run belongs to and the collaborators available to it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    TypedDict,
)

import httpx

from agora.memory.memory_store import CommunityStore
from agora.memory.vector_memory import Embedder

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    """Every tool the model can be offered."""

    WEB_SEARCH = "web_search"
    SEARCH_MEMORY = "search_memory"
    SEARCH_CHAT_HISTORY = "search_chat_history"
    SAVE_MEMORY = "save_memory"
    GET_MEMBER_PROFILES = "get_member_profiles"
    SEMANTIC_PROFILE_SEARCH = "semantic_profile_search"
    SCRAPE_WEBPAGE = "scrape_webpage"

    @classmethod
    def lookup(cls, name: str) -> Optional["ToolName"]:
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass
class ToolContext:
    """Per-run collaborators handed to every tool handler."""

    community_id: str
    store: CommunityStore
    http: httpx.Client
    embedder: Optional[Embedder] = None
    user_id: Optional[str] = None
    source: str = "webhook_agent"
    tavily_api_key: Optional[str] = None


ToolHandler = Callable[..., str]


class FunctionSchema(TypedDict):
    name: str
    description: str
    parameters: Mapping[str, Any]


class ToolSchema(TypedDict):
    """Chat-completions ``tools`` entry."""

    type: str
    function: FunctionSchema


TOOL_REGISTRY: Dict[ToolName, ToolHandler] = {}
"""Global registry of tool handlers."""

TOOL_CATALOG: Dict[ToolName, ToolSchema] = {}
"""Schemas advertised to the model, keyed like :data:`TOOL_REGISTRY`."""


def register_tool(
    name: ToolName, description: str, parameters: Mapping[str, Any] | None = None
) -> Callable[[ToolHandler], ToolHandler]:
    """
    Register a tool handler and its schema under *name*.

    Used as a decorator::

        @register_tool(ToolName.SEARCH_MEMORY, "Gather all memories ...")
        def search_memory(ctx: ToolContext) -> str:
            ...

    Raises
    ------
    ValueError
        If a handler for *name* is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name.value}' is already registered.")
    logger.debug("Registering tool '%s'", name.value)

    def wrapper(fn: ToolHandler) -> ToolHandler:
        TOOL_REGISTRY[name] = fn
        TOOL_CATALOG[name] = {
            "type": "function",
            "function": {
                "name": name.value,
                "description": description,
                "parameters": parameters or {"type": "object", "properties": {}},
            },
        }
        return fn

    return wrapper


def get_tool_schemas(enabled: Iterable[str]) -> List[ToolSchema]:
    """Return catalog entries for the *enabled* tool names, in catalog order."""
    wanted = set(enabled)
    return [TOOL_CATALOG[name] for name in ToolName if name.value in wanted and name in TOOL_CATALOG]


def clamp_int(value: Any, default: int, low: int, high: int) -> int:
    """Coerce a model-supplied integer argument into ``[low, high]``; falsy means *default*.

    Infinite floats (JSON ``1e999``) saturate to the nearest bound.
    """
    try:
        number = int(value) if value else default
    except OverflowError:
        number = high if value > 0 else low
    except (TypeError, ValueError):
        number = default
    return max(low, min(number, high))


# Populate the registry
from agora.tools import (  # noqa: E402  pylint: disable=wrong-import-position
    community,
    web,
)

__all__ = [
    "TOOL_CATALOG",
    "TOOL_REGISTRY",
    "ToolContext",
    "ToolName",
    "clamp_int",
    "community",
    "get_tool_schemas",
    "register_tool",
    "web",
]
