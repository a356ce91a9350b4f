"""
Model gateway interface for Agora.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
store) stays model-agnostic and speaks the chat-completions message shape defined in
:mod:`agora.core.schema`.

We support three back-ends out of the box:

1. **gateway** - any OpenAI-compatible ``/chat/completions`` endpoint (the Lovable AI gateway by
   default) called with httpx.
2. **openai** - the official OpenAI SDK, optionally pointed at another base URL (e.g. OpenRouter).
3. **anthropic** - the Anthropic Messages API; conversations and tool schemas are translated on the
   way in and out.

Additional providers can be added by subclassing :class:`BaseModelGateway` and registering via
:func:`register_gateway`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx

from agora.config import settings
from agora.core.errors import GatewayError
from agora.core.schema import (
    ChatMessage,
    ModelReply,
    ToolCall,
)
from agora.tools import ToolSchema

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_GATEWAY_REGISTRY: dict[str, Type["BaseModelGateway"]] = {}


def register_gateway(name: str) -> Callable:
    """Decorator to register a gateway class under *name*."""

    def wrapper(cls: Type["BaseModelGateway"]) -> Type["BaseModelGateway"]:
        _GATEWAY_REGISTRY[name] = cls
        return cls

    return wrapper


def load_gateway(name: str | None = None) -> "BaseModelGateway":
    """
    Factory that returns an instantiated gateway.

    Fallback order:
    1. *name* arg
    2. ``settings.MODEL_BACKEND`` env option
    3. default: ``"gateway"``
    """

    target = name or getattr(settings, "MODEL_BACKEND", "gateway")
    cls = _GATEWAY_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Model backend '{target}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelGateway(ABC):
    """Abstract gateway: conversation + advertised tools -> one model reply."""

    model: str = ""

    @abstractmethod
    def complete(self, messages: Sequence[ChatMessage], tools: Sequence[ToolSchema]) -> ModelReply:
        """Return the model's next message; raise :class:`GatewayError` on upstream failure."""


def parse_chat_completion(data: Dict[str, Any], default_model: str) -> ModelReply:
    """Convert a chat-completions JSON body into a :class:`ModelReply`."""
    message = data["choices"][0]["message"]

    calls: List[ToolCall] = []
    for idx, raw in enumerate(message.get("tool_calls") or []):
        func = raw.get("function") or {}
        arguments = func.get("arguments")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments or {})
        calls.append(
            ToolCall(id=raw.get("id") or f"call_{idx}", name=func.get("name") or "", arguments=arguments)
        )

    usage = data.get("usage") or {}
    return ModelReply(
        message=ChatMessage(
            role="assistant", content=message.get("content"), tool_calls=calls or None
        ),
        total_tokens=usage.get("total_tokens") or 0,
        model=data.get("model") or default_model,
    )


# ---------------------------------------------------------------------------
# Concrete gateways
# ---------------------------------------------------------------------------
@register_gateway("gateway")
class HttpGateway(BaseModelGateway):
    """OpenAI-compatible chat-completions endpoint over httpx."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        client: httpx.Client | None = None,
    ):
        self._base_url = (base_url or settings.AI_GATEWAY_URL).rstrip("/")
        self._api_key = api_key or settings.LOVABLE_API_KEY or ""
        self.model = model or settings.AI_MODEL
        self._client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT)

    def complete(self, messages: Sequence[ChatMessage], tools: Sequence[ToolSchema]) -> ModelReply:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_payload() for m in messages],
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"

        try:
            resp = self._client.post(
                f"{self._base_url}/chat/completions",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error("AI gateway request error: %s", str(e))
            raise GatewayError() from e

        if resp.status_code >= 400:
            logger.error("AI API error: %d %s", resp.status_code, resp.text)
            raise GatewayError(status_code=resp.status_code)

        try:
            return parse_chat_completion(resp.json(), self.model)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("Malformed AI gateway response: %s", str(e))
            raise GatewayError() from e


@register_gateway("openai")
class OpenAIGateway(BaseModelGateway):
    """OpenAI SDK gateway."""

    def __init__(self, model: str | None = None):
        self.model = model or settings.AI_MODEL

    def complete(self, messages: Sequence[ChatMessage], tools: Sequence[ToolSchema]) -> ModelReply:
        import openai  # pylint: disable=import-outside-toplevel

        client = openai.OpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_payload() for m in messages],
        }
        if tools:
            kwargs["tools"] = list(tools)
            kwargs["tool_choice"] = "auto"

        try:
            resp = client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            logger.error("OpenAI gateway error: %s", str(e))
            raise GatewayError() from e

        return parse_chat_completion(resp.model_dump(), self.model)


def _text_of(content: Any) -> str:
    if isinstance(content, list):
        return "\n".join(part.get("text", "") for part in content if part.get("type") == "text")
    return content or ""


def _anthropic_parts(content: Any) -> Any:
    """Translate chat-completions multimodal parts to Anthropic content blocks."""
    if not isinstance(content, list):
        return content or ""
    blocks = []
    for part in content:
        if part.get("type") == "image_url":
            blocks.append(
                {"type": "image", "source": {"type": "url", "url": part["image_url"]["url"]}}
            )
        elif part.get("type") == "text":
            blocks.append({"type": "text", "text": part.get("text", "")})
    return blocks


def to_anthropic_messages(messages: Sequence[ChatMessage]) -> tuple[str, List[Dict[str, Any]]]:
    """Split a chat-completions conversation into Anthropic ``(system, messages)``."""
    system: List[str] = []
    out: List[Dict[str, Any]] = []
    last_was_tool = False

    for msg in messages:
        if msg.role == "system":
            system.append(_text_of(msg.content))
            continue

        if msg.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": _text_of(msg.content),
            }
            # Consecutive tool results share one user turn
            if last_was_tool:
                out[-1]["content"].append(block)
            else:
                out.append({"role": "user", "content": [block]})
            last_was_tool = True
            continue

        last_was_tool = False
        if msg.role == "assistant":
            blocks: List[Dict[str, Any]] = []
            text = _text_of(msg.content)
            if text:
                blocks.append({"type": "text", "text": text})
            for call in msg.tool_calls or []:
                try:
                    tool_input = call.parsed_arguments()
                except ValueError:
                    tool_input = {}
                blocks.append(
                    {"type": "tool_use", "id": call.id, "name": call.name, "input": tool_input}
                )
            out.append({"role": "assistant", "content": blocks})
        else:
            out.append({"role": "user", "content": _anthropic_parts(msg.content)})

    return "\n\n".join(system), out


@register_gateway("anthropic")
class AnthropicGateway(BaseModelGateway):
    """Anthropic Claude gateway."""

    MAX_TOKENS = 4096

    def __init__(self, model: str | None = None):
        self.model = model or settings.ANTHROPIC_MODEL

    def complete(self, messages: Sequence[ChatMessage], tools: Sequence[ToolSchema]) -> ModelReply:
        import anthropic  # pylint: disable=import-outside-toplevel

        client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
        system, converted = to_anthropic_messages(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.MAX_TOKENS,
            "messages": converted,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {
                    "name": t["function"]["name"],
                    "description": t["function"]["description"],
                    "input_schema": t["function"]["parameters"],
                }
                for t in tools
            ]

        try:
            response = client.messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            logger.error("Anthropic gateway error: %s", str(e))
            raise GatewayError() from e

        texts: List[str] = []
        calls: List[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input)))

        return ModelReply(
            message=ChatMessage(
                role="assistant", content="\n".join(texts) or None, tool_calls=calls or None
            ),
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            model=response.model or self.model,
        )
