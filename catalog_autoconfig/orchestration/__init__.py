"""Orchestration layer for the LangGraph autoconfig pipeline.

Public API:
- AutoconfigState: TypedDict for pipeline state
- AutoconfigOptions: Per-run options
- AutoconfigNodes: Node implementations
- create_pipeline: Factory function for the compiled graph
- AutoconfigOrchestrator: High-level entry point

Example:
    >>> from catalog_autoconfig.orchestration import AutoconfigOrchestrator, AutoconfigOptions
    >>> result = await AutoconfigOrchestrator(client).run(profile, AutoconfigOptions(dry_run=True))
"""

from catalog_autoconfig.orchestration.nodes import AutoconfigNodes, profile_node
from catalog_autoconfig.orchestration.pipeline import (
    AutoconfigOrchestrator,
    create_pipeline,
    route_after_analyze,
    route_after_generate,
    route_after_validate,
)
from catalog_autoconfig.orchestration.state import AutoconfigOptions, AutoconfigState

__all__ = [
    "AutoconfigNodes",
    "AutoconfigOptions",
    "AutoconfigOrchestrator",
    "AutoconfigState",
    "create_pipeline",
    "profile_node",
    "route_after_analyze",
    "route_after_generate",
    "route_after_validate",
]
