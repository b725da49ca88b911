"""Provider config and GraphQL document generation."""

from catalog_autoconfig.generation.config_generator import ConfigGenerator, generate_provider_name
from catalog_autoconfig.generation.query_renderer import QueryRenderer

__all__ = ["ConfigGenerator", "QueryRenderer", "generate_provider_name"]
