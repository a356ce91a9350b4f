"""
Schema definitions for model <-> agent <-> tool messages.

These data models serve as the contract between the model gateway, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

import json
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

Role = Literal["system", "user", "assistant", "tool"]

RESULT_PREVIEW_CHARS = 200


class ToolCall(BaseModel):
    """A call that the model wants the agent to execute."""

    id: str = Field(..., description="Call identifier, unique within the turn")
    name: str = Field(..., description="Catalog tool name")
    arguments: str = Field("{}", description="JSON-encoded arguments exactly as the model sent them")

    def parsed_arguments(self) -> Dict[str, Any]:
        """Decode *arguments*; raises ``ValueError`` if they are not a JSON object."""
        if not self.arguments or not self.arguments.strip():
            return {}
        decoded = json.loads(self.arguments)
        if not isinstance(decoded, dict):
            raise ValueError("tool arguments must be a JSON object")
        return decoded

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class ChatMessage(BaseModel):
    """One role-tagged message of a conversation turn."""

    role: Role
    content: Union[str, List[Dict[str, Any]], None] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Return the chat-completions wire representation."""
        payload: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_payload() for call in self.tool_calls]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


class HistoryMessage(BaseModel):
    """A prior turn supplied by the caller.

    Only plain conversation roles are accepted: a ``tool`` turn without the assistant message
    that requested it cannot be replayed to the model.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    role: Literal["system", "user", "assistant"]
    content: str = ""
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @field_validator("content", mode="before")
    @classmethod
    def _null_content(cls, value: Any) -> Any:
        return "" if value is None else value


class ModelReply(BaseModel):
    """A single completion returned by the model gateway."""

    message: ChatMessage
    total_tokens: int = 0
    model: str = ""

    @property
    def wants_tools(self) -> bool:
        return bool(self.message.tool_calls)


class ToolCallRecord(BaseModel):
    """Summary of one executed tool call, as reported back to the caller."""

    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: str

    @classmethod
    def from_result(cls, tool: str, arguments: Dict[str, Any], result: str) -> "ToolCallRecord":
        preview = result[:RESULT_PREVIEW_CHARS]
        if len(result) > RESULT_PREVIEW_CHARS:
            preview += "..."
        return cls(tool=tool, arguments=arguments, result=preview)


class AgentToolFlags(BaseModel):
    """Per-tenant switches selecting which catalog tools are advertised.

    Anything missing or unknown counts as disabled.
    """

    model_config = ConfigDict(extra="ignore")

    web_search: bool = False
    search_memory: bool = False
    search_chat_history: bool = False
    save_memory: bool = False
    get_member_profiles: bool = False
    semantic_profile_search: bool = False
    scrape_webpage: bool = False

    @classmethod
    def from_config(cls, raw: Optional[Dict[str, Any]]) -> "AgentToolFlags":
        """Build flags from a loosely-typed configuration map, keeping only literal ``True``."""
        if not raw:
            return cls()
        return cls(**{name: raw.get(name) is True for name in cls.model_fields})

    def enabled(self) -> List[str]:
        return [name for name in type(self).model_fields if getattr(self, name)]


class AgentResult(BaseModel):
    """Outcome of a completed agent run."""

    response: str
    iterations: int
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    status_messages: List[str] = Field(default_factory=list)
    tokens_used: int = 0
    model: str = ""
