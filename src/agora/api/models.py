"""
Pydantic models for Agora API requests and responses.
This module defines the request and response schemas used by the Agora API.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

from agora.core.schema import (
    HistoryMessage,
    ToolCallRecord,
)


# ---------------------------------------------------------------------------
# Webhook agent
# ---------------------------------------------------------------------------
class WebhookAgentRequest(BaseModel):
    """Public webhook call authenticated by a community API key.

    Both fields are optional here so the handler can answer with the specific error for
    whichever one is missing.
    """

    message: Optional[str] = Field(None, description="Message for the community agent")
    api_key: Optional[str] = Field(None, description="Community webhook API key")
    conversation_history: List[HistoryMessage] = Field(default_factory=list)


class WebhookAgentMetadata(BaseModel):
    community: str
    model: str
    tokens_used: int
    tools_used: int


class WebhookAgentResponse(BaseModel):
    """API response returned to the webhook caller."""

    success: bool = True
    response: str
    tool_calls: List[ToolCallRecord]
    metadata: WebhookAgentMetadata


# ---------------------------------------------------------------------------
# Telegram agent
# ---------------------------------------------------------------------------
class TelegramAgentRequest(BaseModel):
    """Internal call from the Telegram bot pipeline (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    user_message: str = Field(..., alias="userMessage")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    conversation_history: List[HistoryMessage] = Field(
        default_factory=list, alias="conversationHistory"
    )
    community_id: str = Field(..., alias="communityId")
    user_id: Optional[str] = Field(None, alias="userId")
    system_prompt: str = Field("", alias="systemPrompt")
    telegram_chat_id: Optional[Union[int, str]] = Field(None, alias="telegramChatId")
    bot_token: Optional[str] = Field(None, alias="botToken")
    enabled_tools: Optional[Dict[str, Any]] = Field(None, alias="enabledTools")


class TelegramAgentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    tools_used: List[str] = Field(default_factory=list, alias="toolsUsed")
    iterations: int
    usage: Optional[Dict[str, int]] = None
    max_reached: Optional[bool] = Field(None, alias="maxReached")
