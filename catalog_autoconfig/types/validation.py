"""Validation and pipeline result models.

ValidationResult is always complete: the validator converts stage errors
into failed checks rather than raising, so callers can render every check
that ran.

Example:
    >>> result = await validator.validate(config, test_query="Naruto")
    >>> for check in result.checks:
    ...     print(check.name, check.passed, check.error_message)
    >>> if result.is_valid:
    ...     store.save(config)
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_autoconfig.types.analysis import AnalysisResult
from catalog_autoconfig.types.enums import ValidationStatus
from catalog_autoconfig.types.graphql import GeneratedQuery, GraphQLSchemaInfo
from catalog_autoconfig.types.provider_config import DynamicProviderConfig
from catalog_autoconfig.types.site import SiteProfile

PARTIAL_MESSAGE = "Some non-critical checks failed - provider may still work"


class ValidationCheck(BaseModel):
    """Outcome of one validation stage.

    Attributes:
        name: Stage name (Connectivity, Search, Listing, Resolution)
        description: What the stage proves
        passed: Whether the stage succeeded
        error_message: Failure reason
        sample_data: Identifier or URL carried to the next stage
        duration: Stage wall time in seconds
        critical: Whether failure makes the configuration invalid
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    passed: bool
    error_message: Optional[str] = None
    sample_data: Optional[str] = None
    duration: float = Field(default=0.0, ge=0.0)
    critical: bool = False


class ValidationResult(BaseModel):
    """Graded result of a validation run."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    status: ValidationStatus
    checks: List[ValidationCheck] = Field(default_factory=list)
    suggested_fixes: Optional[DynamicProviderConfig] = None
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0.0)

    @property
    def failed_checks(self) -> List[ValidationCheck]:
        """Checks that ran and failed, in run order."""
        return [check for check in self.checks if not check.passed]

    @classmethod
    def success(cls, checks: List[ValidationCheck], duration: float = 0.0) -> "ValidationResult":
        return cls(
            is_valid=True,
            status=ValidationStatus.SUCCESS,
            checks=checks,
            duration=duration,
        )

    @classmethod
    def partial(
        cls,
        checks: List[ValidationCheck],
        warnings: Optional[List[str]] = None,
        duration: float = 0.0,
    ) -> "ValidationResult":
        return cls(
            is_valid=True,
            status=ValidationStatus.PARTIAL,
            checks=checks,
            error_message=PARTIAL_MESSAGE,
            warnings=warnings or [],
            duration=duration,
        )

    @classmethod
    def failure(
        cls,
        checks: List[ValidationCheck],
        suggested_fixes: Optional[DynamicProviderConfig] = None,
        duration: float = 0.0,
    ) -> "ValidationResult":
        """Failed result naming every failed check.

        Example:
            >>> ValidationResult.failure([search_check]).error_message
            'Validation failed: Search'
        """
        names = ", ".join(check.name for check in checks if not check.passed)
        return cls(
            is_valid=False,
            status=ValidationStatus.FAILURE,
            checks=checks,
            suggested_fixes=suggested_fixes,
            error_message=f"Validation failed: {names}",
            duration=duration,
        )


class AnalysisPhase(BaseModel):
    """Record of one orchestrator phase."""

    model_config = ConfigDict(frozen=True)

    name: str
    succeeded: bool
    message: Optional[str] = None
    duration: float = Field(default=0.0, ge=0.0)
    steps: List[str] = Field(default_factory=list)


class AutoconfigResult(BaseModel):
    """Outcome of a full autoconfig run.

    Attributes:
        is_success: True when a config was generated; the validation
            outcome is reported separately in validation
        profile: Input site profile
        analysis: Pattern engine output
        schema_info: Introspected schema, when GraphQL was available
        generated_queries: Candidate GraphQL documents
        config: Generated (and possibly validated) configuration
        validation: Validation result, None when skipped
        error_message: First fatal error, if any
        warnings: Non-fatal issues collected along the way
        phases: Phase records in execution order
        duration: Total wall time in seconds
    """

    model_config = ConfigDict(frozen=True)

    is_success: bool
    profile: SiteProfile
    analysis: Optional[AnalysisResult] = None
    schema_info: Optional[GraphQLSchemaInfo] = None
    generated_queries: List[GeneratedQuery] = Field(default_factory=list)
    config: Optional[DynamicProviderConfig] = None
    validation: Optional[ValidationResult] = None
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    phases: List[AnalysisPhase] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0.0)
