"""
Structured error types for launch-spine.

Every failure a launch worker can hit is expressed as a subclass of
:class:`LaunchError`. Errors carry a category, an explicit (always false)
retry flag, structured context (container, role, stage) and the chained
underlying exception, so a single log line is enough to explain why a
container never started.

Manifesto:
    - **Typed hierarchy:** One subtype per launch stage
    - **Explicit retry semantics:** Launch attempts are never retried here
    - **Rich context:** Errors know which container and role they belong to
    - **Error chaining:** The original ``OSError`` is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        LaunchError                            │
        │  (category, retryable=False, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │  CredentialError        ProviderError                         │
        │  (AUTH)                 (PIPELINE)                            │
        │                                                               │
        │  ResourceStagingError   SubmissionError                       │
        │  (STORAGE)              (ORCHESTRATION)                       │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = CredentialError("token is not valid JSON")
    >>> err.retryable
    False
    >>> err.with_context(container_id="c-007", role="worker").context.role
    'worker'

Tags:
    error-handling, exception-hierarchy, launch, credentials, staging
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and alert routing."""

    AUTH = "AUTH"                    # Token decoding, identity binding
    PIPELINE = "PIPELINE"            # Role provider failures
    STORAGE = "STORAGE"              # Staging config / image files
    ORCHESTRATION = "ORCHESTRATION"  # Submission, coordinator bookkeeping
    INTERNAL = "INTERNAL"            # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a launch error.

    Only non-None fields are emitted by :meth:`to_dict`, so the dict can be
    splatted straight into a structured log call.

    Attributes:
        container_id: Container the launch was for
        role: Role name being launched
        stage: Worker state at the time of failure
        node: Target node address (``host:port``)
        metadata: Additional key-value pairs
    """

    container_id: str | None = None
    role: str | None = None
    stage: str | None = None
    node: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["container_id", "role", "stage", "node"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class LaunchError(Exception):
    """
    Base exception for every launch-attempt failure.

    Subclasses set ``default_category``. Launch attempts are never retried
    inside a worker, so ``retryable`` is always false; a coordinator that
    wants retries decides that from the outcome it observes.

    Examples:
        >>> try:
        ...     raise FileNotFoundError("/conf/hbase-site.xml")
        ... except FileNotFoundError as e:
        ...     err = ResourceStagingError("config bundle missing", cause=e)
        >>> err.to_dict()["category"]
        'STORAGE'
    """

    default_category: ErrorCategory = ErrorCategory.ORCHESTRATION

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = False
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> LaunchError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SubmissionError("rejected").with_context(
                container_id="c-007", stage="COMMAND_READY"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class CredentialError(LaunchError):
    """The container token could not be decoded or bound to the node."""

    default_category = ErrorCategory.AUTH


class ProviderError(LaunchError):
    """The role provider failed to populate the launch context."""

    default_category = ErrorCategory.PIPELINE


class ResourceStagingError(LaunchError):
    """The config bundle or binary image could not be staged."""

    default_category = ErrorCategory.STORAGE


class SubmissionError(LaunchError):
    """The coordinator rejected or failed the container start request."""

    default_category = ErrorCategory.ORCHESTRATION


def categorize_error(error: Exception) -> ErrorCategory:
    """Return the category of *error*, ``INTERNAL`` for foreign exceptions."""
    if isinstance(error, LaunchError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
    "CredentialError",
    "ErrorCategory",
    "ErrorContext",
    "LaunchError",
    "ProviderError",
    "ResourceStagingError",
    "SubmissionError",
    "categorize_error",
]
