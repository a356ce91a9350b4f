"""
Community data access over the Supabase PostgREST API.

The agent never talks to the database directly; every read and insert it needs goes through a
:class:`CommunityStore`.  :class:`SupabaseStore` is the production implementation and speaks plain
REST via httpx:

* ``GET  /rest/v1/<table>?select=...&col=eq.value`` for reads
* ``POST /rest/v1/<table>`` for inserts
* ``POST /rest/v1/rpc/<function>`` for stored procedures
* ``POST /functions/v1/<name>`` for edge functions
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
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
)

import httpx
from pydantic import (
    BaseModel,
    Field,
)

from agora.config import settings
from agora.core.errors import StoreError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
class Community(BaseModel):
    """Tenant record resolved from a webhook API key."""

    id: str
    name: str
    agent_name: Optional[str] = None
    agent_instructions: Optional[str] = None


class Workflow(BaseModel):
    """Per-community workflow switch and its free-form configuration."""

    is_enabled: bool = False
    configuration: Dict[str, Any] = Field(default_factory=dict)


class MemoryEntry(BaseModel):
    content: str
    created_at: datetime
    tags: List[str] = Field(default_factory=list)


class ChatLogMessage(BaseModel):
    content: str = ""
    created_at: datetime
    sent_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return (
            self.metadata.get("telegram_first_name")
            or self.metadata.get("telegram_username")
            or self.sent_by
            or "User"
        )


class MemberProfile(BaseModel):
    name: Optional[str] = None
    headline: Optional[str] = None
    bio: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    interests_skills: List[str] = Field(default_factory=list)


class ProfileMatch(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    interests_skills: List[str] = Field(default_factory=list)
    similarity: float = 0.0


class ChatSessionRecord(BaseModel):
    """One usage row written to ``ai_chat_sessions`` after a successful run."""

    community_id: str
    user_id: Optional[str] = None
    chat_type: str
    model_used: str
    tokens_used: int = 0
    cost_usd: float = 0
    message_count: int = 1
    session_start_at: datetime
    session_end_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Store interface
# ---------------------------------------------------------------------------
class CommunityStore(ABC):
    """Everything the agent and its handlers read from or write to tenant storage."""

    @abstractmethod
    def find_community_by_api_key(self, api_key: str) -> Optional[Community]:
        """Return the community owning *api_key*, or ``None``."""

    @abstractmethod
    def get_workflow(self, community_id: str, workflow_type: str) -> Optional[Workflow]:
        """Return the workflow row of *workflow_type* for the community, or ``None``."""

    @abstractmethod
    def recent_memories(self, community_id: str, limit: int) -> List[MemoryEntry]:
        """Newest-first knowledge entries."""

    @abstractmethod
    def insert_memory(
        self,
        community_id: str,
        content: str,
        tags: Sequence[str],
        created_by: Optional[str],
        metadata: Dict[str, Any],
    ) -> None:
        """Persist one knowledge entry."""

    @abstractmethod
    def recent_messages(
        self, community_id: str, since: datetime, limit: int
    ) -> List[ChatLogMessage]:
        """Newest-first chat messages created at or after *since*."""

    @abstractmethod
    def member_profiles(self, community_id: str, limit: int) -> List[Optional[MemberProfile]]:
        """Membership rows joined with profiles; ``None`` where no profile is linked."""

    @abstractmethod
    def match_profiles(
        self, embedding: Sequence[float], threshold: float, count: int
    ) -> List[ProfileMatch]:
        """Vector similarity search over precomputed profile embeddings."""

    @abstractmethod
    def log_chat_session(self, record: ChatSessionRecord) -> None:
        """Write one usage record."""


# ---------------------------------------------------------------------------
# Supabase implementation
# ---------------------------------------------------------------------------
def _iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


class SupabaseStore(CommunityStore):
    """PostgREST-backed :class:`CommunityStore`."""

    def __init__(
        self,
        url: str | None = None,
        service_key: str | None = None,
        client: httpx.Client | None = None,
    ):
        self._url = (url or settings.SUPABASE_URL).rstrip("/")
        key = service_key or settings.SUPABASE_SERVICE_ROLE_KEY or ""
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT)

    # ------------------------------------------------------------------ #
    # Low-level helpers
    # ------------------------------------------------------------------ #
    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            resp = self._client.request(method, f"{self._url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"Request to {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            logger.error("Supabase %s %s -> %d: %s", method, path, resp.status_code, resp.text)
            raise StoreError(_error_message(resp))
        return resp

    def _select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        resp = self._request("GET", f"/rest/v1/{table}", params=params)
        return resp.json() or []

    def _insert(self, table: str, row: Dict[str, Any]) -> None:
        self._request(
            "POST", f"/rest/v1/{table}", json=row, headers={"Prefer": "return=minimal"}
        )

    def rpc(self, function: str, payload: Dict[str, Any]) -> Any:
        """Call a Postgres function exposed through PostgREST."""
        return self._request("POST", f"/rest/v1/rpc/{function}", json=payload).json()

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Any:
        """Invoke a Supabase edge function and return its JSON body."""
        return self._request("POST", f"/functions/v1/{name}", json=body).json()

    # ------------------------------------------------------------------ #
    # CommunityStore API
    # ------------------------------------------------------------------ #
    def find_community_by_api_key(self, api_key: str) -> Optional[Community]:
        rows = self._select(
            "communities",
            {
                "select": "id,name,agent_instructions,agent_name",
                "webhook_api_key": f"eq.{api_key}",
                "limit": 1,
            },
        )
        return Community.model_validate(rows[0]) if rows else None

    def get_workflow(self, community_id: str, workflow_type: str) -> Optional[Workflow]:
        rows = self._select(
            "community_workflows",
            {
                "select": "configuration,is_enabled",
                "community_id": f"eq.{community_id}",
                "workflow_type": f"eq.{workflow_type}",
                "limit": 1,
            },
        )
        if not rows:
            return None
        row = rows[0]
        return Workflow(
            is_enabled=bool(row.get("is_enabled")), configuration=row.get("configuration") or {}
        )

    def recent_memories(self, community_id: str, limit: int) -> List[MemoryEntry]:
        rows = self._select(
            "memories",
            {
                "select": "content,created_at,tags",
                "community_id": f"eq.{community_id}",
                "order": "created_at.desc",
                "limit": limit,
            },
        )
        return [
            MemoryEntry(content=r["content"], created_at=r["created_at"], tags=r.get("tags") or [])
            for r in rows
        ]

    def insert_memory(
        self,
        community_id: str,
        content: str,
        tags: Sequence[str],
        created_by: Optional[str],
        metadata: Dict[str, Any],
    ) -> None:
        self._insert(
            "memories",
            {
                "community_id": community_id,
                "content": content,
                "tags": list(tags),
                "created_by": created_by,
                "metadata": metadata,
            },
        )

    def recent_messages(
        self, community_id: str, since: datetime, limit: int
    ) -> List[ChatLogMessage]:
        rows = self._select(
            "messages",
            {
                "select": "content,created_at,sent_by,metadata",
                "community_id": f"eq.{community_id}",
                "created_at": f"gte.{_iso(since)}",
                "order": "created_at.desc",
                "limit": limit,
            },
        )
        return [
            ChatLogMessage(
                content=r.get("content") or "",
                created_at=r["created_at"],
                sent_by=r.get("sent_by"),
                metadata=r.get("metadata") or {},
            )
            for r in rows
        ]

    def member_profiles(self, community_id: str, limit: int) -> List[Optional[MemberProfile]]:
        rows = self._select(
            "community_members",
            {
                "select": "user:user_id(name,bio,interests_skills,headline,username,avatar_url)",
                "community_id": f"eq.{community_id}",
                "limit": limit,
            },
        )
        profiles: List[Optional[MemberProfile]] = []
        for row in rows:
            user = row.get("user")
            if not user:
                profiles.append(None)
                continue
            user = {**user, "interests_skills": user.get("interests_skills") or []}
            profiles.append(MemberProfile.model_validate(user))
        return profiles

    def match_profiles(
        self, embedding: Sequence[float], threshold: float, count: int
    ) -> List[ProfileMatch]:
        rows = self.rpc(
            "semantic_search_users",
            {
                "query_embedding": list(embedding),
                "match_threshold": threshold,
                "match_count": count,
            },
        )
        return [
            ProfileMatch(
                name=r.get("name"),
                bio=r.get("bio"),
                interests_skills=r.get("interests_skills") or [],
                similarity=r.get("similarity") or 0.0,
            )
            for r in rows or []
        ]

    def log_chat_session(self, record: ChatSessionRecord) -> None:
        self._insert("ai_chat_sessions", record.model_dump(mode="json"))


def _error_message(resp: httpx.Response) -> str:
    """Pull PostgREST's ``message`` field out of an error response when there is one."""
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
