"""Type definitions and shared models"""

from catalog_autoconfig.types.analysis import (
    AnalysisResult,
    PatternMatch,
    SiteFingerprint,
)
from catalog_autoconfig.types.domain import (
    Anime,
    Chapter,
    ChapterPage,
    Episode,
    Manga,
    StreamLink,
)
from catalog_autoconfig.types.enums import (
    ContentCategory,
    GraphQLTypeKind,
    PatternType,
    ProviderType,
    QueryPurpose,
    RequestMethod,
    SiteType,
    TransformType,
    ValidationStatus,
)
from catalog_autoconfig.types.errors import (
    AutoconfigError,
    CatalogError,
    GenerationError,
    StorageError,
    ValidationTimeoutError,
)
from catalog_autoconfig.types.graphql import (
    GeneratedQuery,
    GraphQLArgument,
    GraphQLField,
    GraphQLMutation,
    GraphQLQuery,
    GraphQLSchemaInfo,
    GraphQLType,
)
from catalog_autoconfig.types.provider_config import (
    ContentConfig,
    DynamicProviderConfig,
    EndpointConfig,
    FieldMapping,
    HostConfig,
    MediaConfig,
    PageConfig,
    RateLimitConfig,
    SearchConfig,
    StreamConfig,
    TransformRule,
)
from catalog_autoconfig.types.site import SiteProfile
from catalog_autoconfig.types.validation import (
    AnalysisPhase,
    AutoconfigResult,
    ValidationCheck,
    ValidationResult,
)

__all__ = [
    # Input
    "SiteProfile",
    # Analysis
    "AnalysisResult",
    "PatternMatch",
    "SiteFingerprint",
    # GraphQL
    "GeneratedQuery",
    "GraphQLArgument",
    "GraphQLField",
    "GraphQLMutation",
    "GraphQLQuery",
    "GraphQLSchemaInfo",
    "GraphQLType",
    # Provider config
    "ContentConfig",
    "DynamicProviderConfig",
    "EndpointConfig",
    "FieldMapping",
    "HostConfig",
    "MediaConfig",
    "PageConfig",
    "RateLimitConfig",
    "SearchConfig",
    "StreamConfig",
    "TransformRule",
    # Validation
    "AnalysisPhase",
    "AutoconfigResult",
    "ValidationCheck",
    "ValidationResult",
    # Domain
    "Anime",
    "Chapter",
    "ChapterPage",
    "Episode",
    "Manga",
    "StreamLink",
    # Enums
    "ContentCategory",
    "GraphQLTypeKind",
    "PatternType",
    "ProviderType",
    "QueryPurpose",
    "RequestMethod",
    "SiteType",
    "TransformType",
    "ValidationStatus",
    # Errors
    "AutoconfigError",
    "CatalogError",
    "GenerationError",
    "StorageError",
    "ValidationTimeoutError",
]
