"""Progress notifications sent to a Telegram chat while the agent works."""

import logging
from typing import (
    Any,
    Dict,
    Optional,
)

import httpx

from agora.core.schema import ToolCall

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


def describe_tool_call(name: str, args: Dict[str, Any]) -> str:
    """Friendly, user-facing status line for a tool the agent is about to use."""
    if name == "web_search":
        return f'🌐 Searching the web for "{args["query"]}"...' if args.get("query") else "🌐 Searching the web..."
    if name == "search_memory":
        return "🧠 Let me check what I remember..."
    if name == "search_chat_history":
        return f"💬 Looking through the last {args.get('days_back') or 7} days of messages..."
    if name == "save_memory":
        return "💾 Saving this to my memory..."
    if name == "get_member_profiles":
        return "👥 Looking at everyone's profiles..."
    if name == "semantic_profile_search":
        if args.get("query"):
            return f'🔍 Searching for people like "{args["query"]}"...'
        return "🔍 Searching member profiles..."
    if name == "scrape_webpage":
        return f"📄 Reading webpage: {args['url']}..." if args.get("url") else "📄 Reading webpage..."
    return f"🔧 Using tool: {name}"


class TelegramNotifier:
    """Sends the status line of each tool call to one chat; failures are logged, never raised."""

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str | int],
        client: httpx.Client,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._client = client

    @property
    def active(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    def send(self, text: str) -> None:
        if not self.active:
            return
        try:
            resp = self._client.post(
                f"{TELEGRAM_API}/bot{self._bot_token}/sendMessage",
                json={"chat_id": self._chat_id, "text": text},
            )
            if resp.status_code >= 400:
                logger.warning("Telegram sendMessage returned %d: %s", resp.status_code, resp.text)
        except httpx.HTTPError as exc:
            logger.warning("Error sending tool notification: %s", exc)

    def __call__(self, call: ToolCall, arguments: Dict[str, Any]) -> str:
        """Agent-loop hook: announce the call and report the status line used."""
        status = describe_tool_call(call.name, arguments)
        self.send(status)
        return status
