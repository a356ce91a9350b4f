"""In-memory stand-ins for the store, the model gateway and the embedder."""

import json
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import httpx

from agora.agent.model_gateway import BaseModelGateway
from agora.core.errors import (
    EmbeddingError,
    StoreError,
)
from agora.core.schema import (
    ChatMessage,
    ModelReply,
    ToolCall,
)
from agora.memory.memory_store import (
    ChatLogMessage,
    ChatSessionRecord,
    Community,
    CommunityStore,
    MemberProfile,
    MemoryEntry,
    ProfileMatch,
    Workflow,
)
from agora.memory.vector_memory import Embedder
from agora.tools import ToolContext


class FakeStore(CommunityStore):
    """Dict-backed store that records every write."""

    def __init__(self) -> None:
        self.communities: Dict[str, Community] = {}
        self.workflows: Dict[Tuple[str, str], Workflow] = {}
        self.memories: List[MemoryEntry] = []
        self.inserted_memories: List[Dict[str, Any]] = []
        self.messages: List[ChatLogMessage] = []
        self.profiles: List[Optional[MemberProfile]] = []
        self.matches: List[ProfileMatch] = []
        self.sessions: List[ChatSessionRecord] = []
        self.message_queries: List[Tuple[str, datetime, int]] = []
        self.profile_queries: List[Tuple[str, int]] = []
        self.match_queries: List[Tuple[List[float], float, int]] = []
        self.fail_insert = False
        self.fail_log = False
        self.fail_match = False

    def add_community(
        self,
        api_key: str,
        community: Community,
        enabled: bool = True,
        agent_tools: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.communities[api_key] = community
        self.workflows[(community.id, "webhook_agent")] = Workflow(
            is_enabled=enabled, configuration={"agent_tools": agent_tools or {}}
        )

    def find_community_by_api_key(self, api_key: str) -> Optional[Community]:
        return self.communities.get(api_key)

    def get_workflow(self, community_id: str, workflow_type: str) -> Optional[Workflow]:
        return self.workflows.get((community_id, workflow_type))

    def recent_memories(self, community_id: str, limit: int) -> List[MemoryEntry]:
        return sorted(self.memories, key=lambda m: m.created_at, reverse=True)[:limit]

    def insert_memory(
        self,
        community_id: str,
        content: str,
        tags: Sequence[str],
        created_by: Optional[str],
        metadata: Dict[str, Any],
    ) -> None:
        if self.fail_insert:
            raise StoreError("permission denied for table memories")
        self.inserted_memories.append(
            {
                "community_id": community_id,
                "content": content,
                "tags": list(tags),
                "created_by": created_by,
                "metadata": metadata,
            }
        )

    def recent_messages(
        self, community_id: str, since: datetime, limit: int
    ) -> List[ChatLogMessage]:
        self.message_queries.append((community_id, since, limit))
        return [m for m in self.messages if m.created_at >= since][:limit]

    def member_profiles(self, community_id: str, limit: int) -> List[Optional[MemberProfile]]:
        self.profile_queries.append((community_id, limit))
        return self.profiles[:limit]

    def match_profiles(
        self, embedding: Sequence[float], threshold: float, count: int
    ) -> List[ProfileMatch]:
        self.match_queries.append((list(embedding), threshold, count))
        if self.fail_match:
            raise StoreError("function semantic_search_users does not exist")
        return self.matches[:count]

    def log_chat_session(self, record: ChatSessionRecord) -> None:
        if self.fail_log:
            raise StoreError("ai_chat_sessions unavailable")
        self.sessions.append(record)


class FakeEmbedder(Embedder):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.queries: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.queries.append(text)
        if self.fail:
            raise EmbeddingError("embedding service down")
        return [0.1, 0.2, 0.3]


Scripted = Union[ModelReply, Exception]


class ScriptedGateway(BaseModelGateway):
    """Returns canned replies in order; the last one repeats once the script runs out."""

    model = "scripted/test-model"

    def __init__(self, replies: Sequence[Scripted]) -> None:
        self.replies = list(replies)
        self.requests: List[Tuple[List[ChatMessage], List[Any]]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def complete(self, messages: Sequence[ChatMessage], tools: Sequence[Any]) -> ModelReply:
        self.requests.append(([m.model_copy(deep=True) for m in messages], list(tools)))
        reply = self.replies[min(len(self.requests), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply


def tool_reply(*calls: Tuple[str, str, Dict[str, Any]], tokens: int = 10) -> ModelReply:
    """Assistant reply requesting ``(id, name, arguments)`` tool calls."""
    return ModelReply(
        message=ChatMessage(
            role="assistant",
            content=None,
            tool_calls=[
                ToolCall(id=call_id, name=name, arguments=json.dumps(args))
                for call_id, name, args in calls
            ],
        ),
        total_tokens=tokens,
        model=ScriptedGateway.model,
    )


def final_reply(text: str, tokens: int = 42) -> ModelReply:
    return ModelReply(
        message=ChatMessage(role="assistant", content=text),
        total_tokens=tokens,
        model=ScriptedGateway.model,
    )


def make_context(
    store: Optional[FakeStore] = None,
    handler: Any = None,
    embedder: Optional[Embedder] = None,
    tavily_api_key: Optional[str] = None,
) -> ToolContext:
    """ToolContext whose outbound HTTP goes to *handler* (a MockTransport callback)."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected outbound request to {request.url}")

    return ToolContext(
        community_id="c-1",
        store=store or FakeStore(),
        http=httpx.Client(transport=httpx.MockTransport(handler or refuse)),
        embedder=embedder,
        user_id="u-1",
        tavily_api_key=tavily_api_key,
    )


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
