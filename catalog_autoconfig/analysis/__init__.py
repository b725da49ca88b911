"""Site analysis: pattern fingerprinting and GraphQL introspection."""

from catalog_autoconfig.analysis.graphql_introspector import GraphQLIntrospector, generate_queries
from catalog_autoconfig.analysis.pattern_engine import PatternEngine, get_pattern_confidence

__all__ = ["GraphQLIntrospector", "PatternEngine", "generate_queries", "get_pattern_confidence"]
