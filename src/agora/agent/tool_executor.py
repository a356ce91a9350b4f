"""Dispatches tool calls registered in ``agora.tools`` and turns every failure into text."""

import logging
from typing import (
    Any,
    Dict,
)

from agora.tools import (
    TOOL_REGISTRY,
    ToolContext,
    ToolName,
)

logger = logging.getLogger(__name__)


def execute_tool(name: str, args: Dict[str, Any] | None, ctx: ToolContext) -> str:
    """
    Look up *name* in the registry and invoke it with *args*.

    Parameters
    ----------
    name:
        The catalog tool name, as sent by the model.
    args:
        Keyword arguments to pass verbatim to the tool function.  If *None*,
        an empty dict is assumed.
    ctx:
        Community and collaborators for this run.

    Returns
    -------
    str
        The tool's text result.  Unknown tools, bad arguments and exceptions raised by the tool
        are all reported as text so the model can react; this function never raises.
    """

    if args is None:
        args = {}

    tool = ToolName.lookup(name)
    tool_fn = TOOL_REGISTRY.get(tool) if tool is not None else None
    if tool_fn is None:
        logger.warning("Model requested unknown tool '%s'", name)
        return f"Unknown tool: {name}"

    try:
        logger.info("🔧 Executing tool '%s' with args=%s", name, args)
        return str(tool_fn(ctx, **args))
    except TypeError as exc:
        # Argument mismatch - give the model a clean message.
        logger.exception("Argument error while executing tool '%s'", name)
        return f"Invalid arguments for {name}: {exc}"
    except Exception as exc:  # noqa: BLE001  pylint: disable=broad-except
        logger.exception("Unhandled error in tool '%s'", name)
        return f"Error executing {name}: {exc}"
