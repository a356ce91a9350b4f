"""
Query embeddings for semantic profile search.

Profile vectors are precomputed and stored next to the profiles; at query time we only need one
embedding for the search text.  Two back-ends are available:

* ``remote`` - the ``generate-embedding`` Supabase edge function (default).
* ``local``  - a sentence-transformers model running in-process (``pip install agora[local]``).
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    List,
)

from agora.config import settings
from agora.core.errors import (
    EmbeddingError,
    StoreError,
)
from agora.memory.memory_store import SupabaseStore

logger = logging.getLogger(__name__)


class Embedder(ABC):
    """Turns a piece of text into a vector."""

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """Return the embedding of *text* or raise :class:`EmbeddingError`."""


class RemoteEmbedder(Embedder):
    """Embeddings from the ``generate-embedding`` edge function."""

    FUNCTION_NAME = "generate-embedding"

    def __init__(self, store: SupabaseStore):
        self._store = store

    def embed(self, text: str) -> List[float]:
        try:
            data = self._store.invoke_function(self.FUNCTION_NAME, {"text": text})
        except StoreError as exc:
            raise EmbeddingError(str(exc)) from exc
        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            raise EmbeddingError("embedding service returned no embedding")
        return [float(x) for x in embedding]


class LocalEmbedder(Embedder):
    """
    sentence-transformers wrapper.

    The model is loaded lazily on first use so that importing this module stays cheap.
    """

    def __init__(self, model_name: str | None = None):
        self._model_name = model_name or settings.EMBED_MODEL
        self._model: Any = None

    def _load(self) -> Any:
        if self._model is None:
            # Lazy import - keeps sentence-transformers an optional dependency
            from sentence_transformers import (  # pylint: disable=import-outside-toplevel
                SentenceTransformer,
            )

            logger.info("Loading embedding model '%s'", self._model_name)
            self._model = SentenceTransformer(self._model_name)
        return self._model

    def embed(self, text: str) -> List[float]:
        try:
            vector = self._load().encode(text)
        except ImportError as exc:
            raise EmbeddingError(
                "sentence-transformers not installed. Run 'pip install agora[local]'"
            ) from exc
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Local embedding failed: %s", exc)
            raise EmbeddingError(str(exc)) from exc
        return [float(x) for x in vector]


def load_embedder(store: SupabaseStore, backend: str | None = None) -> Embedder:
    """Return the embedder selected by *backend* (default ``settings.EMBEDDING_BACKEND``)."""
    target = (backend or settings.EMBEDDING_BACKEND).lower()
    if target == "local":
        return LocalEmbedder()
    if target == "remote":
        return RemoteEmbedder(store)
    raise ValueError(f"Embedding backend '{target}' is not supported.")
