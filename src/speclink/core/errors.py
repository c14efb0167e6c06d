"""
Error taxonomy for speclink.

Every failure the core can surface derives from SpecLinkError. Each error
renders as a single line and may carry a remediation hint that the CLI
prints underneath it.

Hierarchy:
    SpecLinkError
    ├── DocumentError
    │   ├── ParseError          malformed document
    │   └── ValidationError     well-formed but semantically invalid
    ├── StoreIOError            storage medium failure (lock timeouts are retryable)
    ├── NotFoundError           missing id on get/delete
    ├── DuplicateLinkError      second remote link attempted
    ├── NotLinkedError          remote operation on an unlinked Spec
    ├── ExternalAPIError        remote service failure
    └── PhaseTransitionError    phase change outside the declared sequence

Integrity violations are report entries, not exceptions (see
speclink.core.integrity.models.MismatchEntry).
"""

from __future__ import annotations

from pathlib import Path


class SpecLinkError(Exception):
    """Base class for all speclink errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class DocumentError(SpecLinkError):
    """A spec document could not be turned into metadata."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.path = path


class ParseError(DocumentError):
    """Document is malformed: missing title or a required header field."""

    pass


class ValidationError(DocumentError):
    """Document parses but carries invalid values (id, phase, timestamp)."""

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        path: Path | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, path=path, hint=hint)
        self.errors = errors or [message]


class StoreIOError(SpecLinkError):
    """
    The local store could not be read or written.

    Lock timeouts set ``retryable`` so callers can decide to try again;
    the store itself never retries.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable


class NotFoundError(SpecLinkError):
    """A record was requested by key but does not exist."""

    def __init__(self, entity: str, key: str, *, hint: str | None = None) -> None:
        super().__init__(f"{entity} not found: {key}", hint=hint)
        self.entity = entity
        self.key = key


class DuplicateLinkError(SpecLinkError):
    """A second remote link was attempted for an already-linked entity."""

    def __init__(
        self,
        entity_id: str,
        external_url: str | None = None,
        *,
        target: str = "a remote issue",
    ) -> None:
        where = f": {external_url}" if external_url else ""
        super().__init__(
            f"Spec {entity_id} is already linked to {target}{where}",
            hint="Use 'speclink github push' to update the existing issue",
        )
        self.entity_id = entity_id
        self.external_url = external_url


class NotLinkedError(SpecLinkError):
    """A remote operation targeted an entity with no remote link."""

    def __init__(self, message: str) -> None:
        super().__init__(message, hint="Create the link first: speclink github link <spec-id>")


class ExternalAPIError(SpecLinkError):
    """
    The issue tracker rejected or failed a request.

    ``retryable`` is True for server errors, timeouts and transport failures.
    The sync layer never retries on its own.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.retryable = retryable


class PhaseTransitionError(SpecLinkError):
    """A phase change skips or reverses the declared sequence without force."""

    pass
