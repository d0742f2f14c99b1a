"""Exception types raised by the hybrid retriever."""


class RetrievalError(Exception):
    """Base class for retrieval failures."""

    pass


class RetrievalValidationError(RetrievalError, ValueError):
    """Raised when a query or configuration value is rejected before any network call."""

    pass


class EmbeddingError(RetrievalError):
    """Raised when the query could not be embedded."""

    pass


class SearchError(RetrievalError):
    """Raised when the search index call fails."""

    pass


class EmbeddingAuthError(RetrievalError):
    """Raised when no credentials are available for the embedding endpoint."""

    pass
