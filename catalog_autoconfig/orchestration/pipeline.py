"""LangGraph pipeline definition for autoconfig orchestration.

Pipeline structure:
    START → analyze → introspect (if has_graphql) → generate → validate → store → END
                    ↘ generate (REST sites)                  ↘ store (skip_validation)
                                                                     ↘ END (dry_run)
    analyze/generate failures route straight to END.

Example:
    >>> orchestrator = AutoconfigOrchestrator(client, store=ProviderStore(store_dir))
    >>> result = await orchestrator.run(profile, AutoconfigOptions(test_query="Frieren"))
    >>> print(result.config.slug, [p.name for p in result.phases])
"""

import logging
from typing import Literal, Optional

import httpx
from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from catalog_autoconfig.analysis.graphql_introspector import GraphQLIntrospector
from catalog_autoconfig.analysis.pattern_engine import PatternEngine
from catalog_autoconfig.generation.config_generator import ConfigGenerator
from catalog_autoconfig.orchestration.nodes import AutoconfigNodes
from catalog_autoconfig.orchestration.state import AutoconfigOptions, AutoconfigState
from catalog_autoconfig.storage.provider_store import ProviderStore
from catalog_autoconfig.types import AutoconfigResult, SiteProfile
from catalog_autoconfig.types.provider_config import DEFAULT_USER_AGENT
from catalog_autoconfig.utils.profiling import Stopwatch
from catalog_autoconfig.validation.config_validator import ConfigValidator

logger = logging.getLogger(__name__)


def route_after_analyze(state: AutoconfigState) -> Literal["introspect", "generate", "end"]:
    """GraphQL sites are introspected first; failed analysis ends the run."""
    if state.get("error_message"):
        return "end"
    if state["profile"].has_graphql:
        logger.info("Routing to introspection (GraphQL detected)")
        return "introspect"
    logger.info("Routing to generation (no GraphQL detected)")
    return "generate"


def route_after_generate(state: AutoconfigState) -> Literal["validate", "store", "end"]:
    if state.get("error_message"):
        return "end"
    options = state.get("options") or AutoconfigOptions()
    if not options.skip_validation:
        return "validate"
    return "end" if options.dry_run else "store"


def route_after_validate(state: AutoconfigState) -> Literal["store", "end"]:
    options = state.get("options") or AutoconfigOptions()
    return "end" if options.dry_run else "store"


def create_pipeline(nodes: AutoconfigNodes, with_checkpointing: bool = False) -> CompiledStateGraph:
    """Create and compile the autoconfig pipeline.

    Args:
        nodes: Node implementations bound to their collaborators
        with_checkpointing: Enable MemorySaver checkpointing; invocations then
            need a {"configurable": {"thread_id": ...}} config

    Returns:
        Compiled StateGraph ready for execution
    """
    logger.debug("Creating autoconfig pipeline")
    graph = StateGraph(AutoconfigState)

    graph.add_node("analyze", nodes.analyze)
    graph.add_node("introspect", nodes.introspect)
    graph.add_node("generate", nodes.generate)
    graph.add_node("validate", nodes.validate)
    graph.add_node("store", nodes.store_config)

    graph.add_edge(START, "analyze")
    graph.add_conditional_edges(
        "analyze",
        route_after_analyze,
        {"introspect": "introspect", "generate": "generate", "end": END},
    )
    graph.add_edge("introspect", "generate")
    graph.add_conditional_edges(
        "generate",
        route_after_generate,
        {"validate": "validate", "store": "store", "end": END},
    )
    graph.add_conditional_edges("validate", route_after_validate, {"store": "store", "end": END})
    graph.add_edge("store", END)

    if with_checkpointing:
        logger.debug("Compiling pipeline with MemorySaver checkpointing")
        return graph.compile(checkpointer=MemorySaver())
    return graph.compile()


class AutoconfigOrchestrator:
    """Runs the full pipeline for one site profile.

    Attributes:
        nodes: Node implementations
        pipeline: Compiled LangGraph pipeline
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: Optional[ProviderStore] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        engine: Optional[PatternEngine] = None,
        introspector: Optional[GraphQLIntrospector] = None,
        generator: Optional[ConfigGenerator] = None,
        validator: Optional[ConfigValidator] = None,
    ):
        self.nodes = AutoconfigNodes(
            engine=engine or PatternEngine(client=client, user_agent=user_agent),
            introspector=introspector or GraphQLIntrospector(client, user_agent=user_agent),
            generator=generator or ConfigGenerator(user_agent=user_agent),
            validator=validator or ConfigValidator(client),
            store=store,
        )
        self.pipeline = create_pipeline(self.nodes)

    async def run(self, profile: SiteProfile, options: Optional[AutoconfigOptions] = None) -> AutoconfigResult:
        """Analyze a site and produce a provider configuration.

        Args:
            profile: Crawled site profile
            options: Run options (defaults to validate and store)

        Returns:
            AutoconfigResult folding every phase of the run
        """
        options = options or AutoconfigOptions()
        watch = Stopwatch()
        logger.info(f"Starting autoconfig for {profile.base_url}", extra={"url": profile.base_url})

        final = await self.pipeline.ainvoke({"profile": profile, "options": options, "phases": [], "warnings": []})

        config = final.get("config")
        error_message = final.get("error_message")
        result = AutoconfigResult(
            is_success=config is not None and not error_message,
            profile=profile,
            analysis=final.get("analysis"),
            schema_info=final.get("schema_info"),
            generated_queries=final.get("generated_queries") or [],
            config=config,
            validation=final.get("validation"),
            error_message=error_message,
            warnings=final.get("warnings") or [],
            phases=final.get("phases") or [],
            duration=watch.elapsed,
        )
        logger.info(
            f"Autoconfig for {profile.base_url} finished: {'success' if result.is_success else 'failed'}",
            extra={"url": profile.base_url, "duration": result.duration},
        )
        return result
