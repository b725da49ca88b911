"""LangGraph state for the autoconfig pipeline.

Fields are populated progressively as nodes run. `phases` and `warnings`
use an operator.add reducer so every node appends rather than replaces.

Example:
    >>> state: AutoconfigState = {"profile": profile, "options": AutoconfigOptions()}
    >>> # State gets populated through pipeline execution
"""

import operator
from typing import Annotated, List, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field

from catalog_autoconfig.types import (
    AnalysisPhase,
    AnalysisResult,
    DynamicProviderConfig,
    GeneratedQuery,
    GraphQLSchemaInfo,
    ProviderType,
    SiteProfile,
    ValidationResult,
)


class AutoconfigOptions(BaseModel):
    """Per-run options.

    Attributes:
        provider_name: Force the display name
        force_type: Force anime or manga instead of inferring it
        test_query: Search query tried before the defaults during validation
        skip_validation: Do not run live validation
        dry_run: Do not write the config to the store
        timeout: Overall validation deadline in seconds
        inspect_responses: GET detected endpoints during analysis to read their
            response structure
    """

    model_config = ConfigDict(frozen=True)

    provider_name: Optional[str] = None
    force_type: Optional[ProviderType] = None
    test_query: Optional[str] = None
    skip_validation: bool = False
    dry_run: bool = False
    timeout: Optional[float] = Field(default=None, gt=0)
    inspect_responses: bool = False


class AutoconfigState(TypedDict, total=False):
    """State for the autoconfig pipeline.

    Attributes:
        profile: Input site profile (required)
        options: Run options (required)

        analysis: Pattern engine result
        graphql_endpoint: Endpoint that answered introspection
        schema_info: Introspected schema
        generated_queries: Candidate GraphQL documents

        config: Generated provider configuration
        validation: Live validation result
        stored_path: Where the config was written

        error_message: Fatal error that stopped the run
        warnings: Non-fatal issues (appended)
        phases: Phase records (appended)
    """

    # Input
    profile: SiteProfile
    options: AutoconfigOptions

    # Analysis
    analysis: AnalysisResult
    graphql_endpoint: Optional[str]
    schema_info: Optional[GraphQLSchemaInfo]
    generated_queries: List[GeneratedQuery]

    # Outputs
    config: DynamicProviderConfig
    validation: Optional[ValidationResult]
    stored_path: Optional[str]

    # Control flow
    error_message: Optional[str]
    warnings: Annotated[List[str], operator.add]
    phases: Annotated[List[AnalysisPhase], operator.add]
