"""Main orchestration loop for Agora."""

from __future__ import annotations

import logging
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
)

from agora.agent.model_gateway import BaseModelGateway
from agora.agent.tool_executor import execute_tool
from agora.core.errors import MaxIterationsError
from agora.core.schema import (
    AgentResult,
    AgentToolFlags,
    ChatMessage,
    HistoryMessage,
    ToolCall,
    ToolCallRecord,
)
from agora.memory.memory_store import Community
from agora.tools import (
    ToolContext,
    ToolName,
    get_tool_schemas,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 5
"""Model calls allowed per run before it is declared failed."""

ToolCallHook = Callable[[ToolCall, Dict[str, Any]], Optional[str]]


# ---------------------------------------------------------------------------
# Message assembly
# ---------------------------------------------------------------------------
def build_system_prompt(community: Community, now: datetime | None = None) -> str:
    """Community-specific system prompt used by the webhook agent."""
    now = now or datetime.now(timezone.utc)
    agent_name = community.agent_name or "Assistant"
    instructions = community.agent_instructions or "Be helpful, friendly, and concise."
    return (
        f"You are {agent_name}, a helpful AI assistant for {community.name}.\n"
        f"Current time: {now.isoformat()}\n\n"
        f"{instructions}"
    )


def _user_content(text: str, image_url: str | None) -> str | List[Dict[str, Any]]:
    if not image_url:
        return text
    return [
        {"type": "text", "text": text},
        {"type": "image_url", "image_url": {"url": image_url}},
    ]


def build_messages(
    system_prompt: str,
    history: Sequence[HistoryMessage],
    message: str,
    image_url: str | None = None,
) -> List[ChatMessage]:
    """System prompt, then prior turns, then the caller's message."""
    messages = [ChatMessage(role="system", content=system_prompt)]
    for turn in history:
        messages.append(ChatMessage(role=turn.role, content=_user_content(turn.content, turn.image_url)))
    messages.append(ChatMessage(role="user", content=_user_content(message, image_url)))
    return messages


# ---------------------------------------------------------------------------
# Agent Run
# ---------------------------------------------------------------------------
class AgentRun:
    """
    One bounded execution of the model/tool loop.

    Each iteration is a single model call.  When the reply carries tool calls, the assistant
    message is appended as-is, every call is executed in request order and answered with a
    ``tool`` message carrying the same call id, and the loop goes back to the model.  A reply
    without tool calls is the final answer.  After :data:`MAX_ITERATIONS` model calls without a
    final answer the run raises :class:`MaxIterationsError`; side effects of tools that already
    ran are kept.
    """

    def __init__(
        self,
        gateway: BaseModelGateway,
        context: ToolContext,
        flags: AgentToolFlags,
        on_tool_call: ToolCallHook | None = None,
        max_iterations: int = MAX_ITERATIONS,
    ):
        self.gateway = gateway
        self.context = context
        self.enabled_tools = flags.enabled()
        self.tools = get_tool_schemas(self.enabled_tools)
        self.on_tool_call = on_tool_call
        self.max_iterations = max_iterations

        self.messages: List[ChatMessage] = []
        self.iterations = 0
        self.tool_calls: List[ToolCallRecord] = []
        self.status_messages: List[str] = []

    def run(self, messages: Sequence[ChatMessage]) -> AgentResult:
        """Drive the conversation to a final answer."""
        self.messages = list(messages)
        logger.info("🛠️ Available tools: %s", self.enabled_tools)

        while self.iterations < self.max_iterations:
            self.iterations += 1
            logger.info("🔄 Agent iteration %d", self.iterations)

            reply = self.gateway.complete(self.messages, self.tools)

            if reply.wants_tools:
                calls = reply.message.tool_calls or []
                logger.info("🔧 AI requested %d tool(s)", len(calls))
                self.messages.append(reply.message)
                for call in calls:
                    self.messages.append(
                        ChatMessage(role="tool", tool_call_id=call.id, content=self._dispatch(call))
                    )
                continue

            response = reply.message.content
            if isinstance(response, list):
                response = "".join(part.get("text", "") for part in response)
            logger.info(
                "✅ Agent response complete (%d tokens, %d tools used)",
                reply.total_tokens,
                len(self.tool_calls),
            )
            return AgentResult(
                response=response or "",
                iterations=self.iterations,
                tool_calls=self.tool_calls,
                status_messages=self.status_messages,
                tokens_used=reply.total_tokens,
                model=reply.model or self.gateway.model,
            )

        logger.warning("⚠️ Max iterations reached (%d)", self.iterations)
        raise MaxIterationsError(self.iterations)

    def _dispatch(self, call: ToolCall) -> str:
        """Run one tool call and record it; always returns the text fed back to the model."""
        try:
            arguments = call.parsed_arguments()
        except ValueError as exc:
            result = f"Invalid arguments for {call.name}: {exc}"
            self.tool_calls.append(ToolCallRecord.from_result(call.name, {}, result))
            return result

        if ToolName.lookup(call.name) is not None and call.name not in self.enabled_tools:
            logger.error("⚠️ Tool %s was called but is not enabled in configuration", call.name)
            result = (
                f"Error: Tool {call.name} is not enabled. "
                f"Available tools: {', '.join(self.enabled_tools)}"
            )
        else:
            if self.on_tool_call is not None:
                status = self.on_tool_call(call, arguments)
                if status:
                    self.status_messages.append(status)
            result = execute_tool(call.name, arguments, self.context)

        self.tool_calls.append(ToolCallRecord.from_result(call.name, arguments, result))
        return result
