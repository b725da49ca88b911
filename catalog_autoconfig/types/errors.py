"""Custom exception classes for the autoconfig pipeline.

Absence of evidence (no GraphQL, no endpoints, introspection disabled) is
never an exception; these classes cover genuine failures that callers need
to tell apart.

Example:
    >>> from catalog_autoconfig.types.errors import GenerationError
    >>> try:
    ...     raise ValueError("no base URL")
    ... except ValueError as e:
    ...     raise GenerationError(f"Config generation failed: {e}") from e
"""


class AutoconfigError(Exception):
    """Base exception for all autoconfig errors.

    Attributes:
        message: Error message describing what went wrong
        url: Optional URL being analyzed when error occurred
        phase: Optional phase name where error occurred

    Example:
        >>> try:
        ...     # pipeline code
        ... except AutoconfigError as e:
        ...     logger.error(f"Autoconfig failed: {e}")
    """

    def __init__(self, message: str, url: str | None = None, phase: str | None = None):
        """Initialize autoconfig error.

        Args:
            message: Error message
            url: Optional URL being analyzed
            phase: Optional phase where error occurred
        """
        self.message = message
        self.url = url
        self.phase = phase
        super().__init__(message)

    def __str__(self) -> str:
        """String representation with context."""
        parts = [self.message]
        if self.url:
            parts.append(f"url={self.url}")
        if self.phase:
            parts.append(f"phase={self.phase}")
        return " | ".join(parts)


class GenerationError(AutoconfigError):
    """Provider config generation failed.

    Raised when the site profile lacks the minimum information needed to
    build a config (for example an unusable base URL).
    """

    pass


class StorageError(AutoconfigError):
    """Reading or writing a provider config failed."""

    pass


class CatalogError(AutoconfigError):
    """The execution layer received a response it cannot interpret.

    Raised by DynamicCatalog for non-JSON bodies or GraphQL error payloads.
    The validator converts it into a failed check.
    """

    pass


class ValidationTimeoutError(AutoconfigError):
    """A validation run exceeded its overall deadline.

    Distinct from a failed ValidationResult so callers can tell "timed out"
    apart from "site rejected the configuration".

    Example:
        >>> raise ValidationTimeoutError(
        ...     "Validation exceeded 30s",
        ...     url="api.example.com",
        ...     phase="Search"
        ... )
    """

    pass
