"""Exception hierarchy shared by the agent, the store and the HTTP layer."""


class AgoraError(RuntimeError):
    """Base class for failures that abort a request."""


class GatewayError(AgoraError):
    """Raised when the model gateway call fails outright."""

    def __init__(self, message: str = "AI service unavailable", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MaxIterationsError(AgoraError):
    """Raised when an agent run exhausts its iteration cap without a final answer."""

    def __init__(self, iterations: int):
        super().__init__("Max iterations reached")
        self.iterations = iterations


class StoreError(AgoraError):
    """Raised when a PostgREST or edge-function request fails."""


class EmbeddingError(AgoraError):
    """Raised when an embedding cannot be produced for a query."""
