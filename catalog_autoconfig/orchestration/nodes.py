"""LangGraph node implementations for the autoconfig pipeline.

Nodes:
1. analyze: Pattern engine over the site profile
2. introspect: GraphQL introspection and query synthesis (GraphQL sites only)
3. generate: Build the DynamicProviderConfig
4. validate: Live four-stage validation (unless skipped)
5. store: Persist the config (unless dry run)

Each node is a bound async method taking AutoconfigState and returning a
dict of state updates, always including one AnalysisPhase record.
analyze and generate set error_message on failure, which ends the run;
introspect, validate and store record failures as warnings.

Example:
    >>> nodes = AutoconfigNodes(engine, introspector, generator, validator, store)
    >>> updates = await nodes.analyze({"profile": profile, "options": AutoconfigOptions()})
    >>> updates["analysis"].overall_confidence
    0.85
"""

import logging
from functools import wraps
from typing import Any, Dict, Optional

from catalog_autoconfig.analysis.graphql_introspector import GraphQLIntrospector, candidate_endpoints
from catalog_autoconfig.analysis.pattern_engine import PatternEngine
from catalog_autoconfig.generation.config_generator import ConfigGenerator
from catalog_autoconfig.orchestration.state import AutoconfigOptions, AutoconfigState
from catalog_autoconfig.storage.provider_store import ProviderStore
from catalog_autoconfig.types import AnalysisPhase, PatternType
from catalog_autoconfig.utils.profiling import Stopwatch
from catalog_autoconfig.validation.config_validator import ConfigValidator

logger = logging.getLogger(__name__)

ANALYZE_PHASE = "Pattern Analysis"
INTROSPECT_PHASE = "GraphQL Introspection"
GENERATE_PHASE = "Config Generation"
VALIDATE_PHASE = "Validation"
STORE_PHASE = "Storage"


def profile_node(node_name: str):
    """Decorator to log node execution time.

    Args:
        node_name: Human-readable name for the node (e.g., "Pattern Analysis")
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            watch = Stopwatch()
            logger.info(f"[PERF] {node_name} started")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"[PERF] {node_name} failed after {watch.elapsed:.2f}s: {e}",
                    extra={"node": node_name, "elapsed_seconds": watch.elapsed, "status": "failed"},
                    exc_info=True,
                )
                raise
            logger.info(
                f"[PERF] {node_name} completed in {watch.elapsed:.2f}s",
                extra={"node": node_name, "elapsed_seconds": watch.elapsed, "status": "success"},
            )
            return result

        return wrapper

    return decorator


def _options(state: AutoconfigState) -> AutoconfigOptions:
    return state.get("options") or AutoconfigOptions()


class AutoconfigNodes:
    """Pipeline nodes bound to their collaborators.

    Attributes:
        engine: Pattern engine
        introspector: GraphQL introspector
        generator: Config generator
        validator: Live validator
        store: Provider store (None disables storage)
    """

    def __init__(
        self,
        engine: PatternEngine,
        introspector: GraphQLIntrospector,
        generator: ConfigGenerator,
        validator: ConfigValidator,
        store: Optional[ProviderStore] = None,
    ):
        self.engine = engine
        self.introspector = introspector
        self.generator = generator
        self.validator = validator
        self.store = store

    @profile_node(ANALYZE_PHASE)
    async def analyze(self, state: AutoconfigState) -> Dict[str, Any]:
        profile = state.get("profile")
        if profile is None:
            raise ValueError("profile is required in state for analyze node")

        watch = Stopwatch()
        try:
            if _options(state).inspect_responses:
                analysis = await self.engine.analyze_with_responses(profile)
            else:
                analysis = self.engine.analyze(profile)
        except Exception as e:
            logger.error("Pattern analysis failed", extra={"url": profile.base_url}, exc_info=True)
            return {
                "error_message": f"Pattern analysis failed: {e}",
                "phases": [AnalysisPhase(name=ANALYZE_PHASE, succeeded=False, message=str(e), duration=watch.elapsed)],
            }

        steps = [
            f"Architecture: {analysis.fingerprint.architecture}",
            f"Patterns: {len(analysis.patterns)}",
            f"Confidence: {analysis.overall_confidence:.0%}",
        ]
        warnings = []
        if analysis.best(PatternType.SEARCH_ENDPOINT) is None and not profile.has_graphql:
            warnings.append("No search endpoint detected - configuration may be incomplete")

        return {
            "analysis": analysis,
            "warnings": warnings,
            "phases": [
                AnalysisPhase(
                    name=ANALYZE_PHASE,
                    succeeded=True,
                    message=f"Detected {len(analysis.patterns)} patterns",
                    duration=watch.elapsed,
                    steps=steps,
                )
            ],
        }

    @profile_node(INTROSPECT_PHASE)
    async def introspect(self, state: AutoconfigState) -> Dict[str, Any]:
        profile = state["profile"]
        options = _options(state)
        watch = Stopwatch()
        steps = []

        for endpoint in candidate_endpoints(profile):
            try:
                schema = await self.introspector.introspect(endpoint, profile)
                if schema is not None:
                    provider_type = options.force_type or self.generator.infer_provider_type(
                        profile, state["analysis"]
                    )
                    queries = self.introspector.generate_queries(schema, provider_type)
            except Exception as e:
                logger.warning(f"Introspection failed for {endpoint}: {e}", extra={"endpoint": endpoint})
                steps.append(f"{endpoint}: failed ({e})")
                continue

            steps.append(f"{endpoint}: {'ok' if schema else 'unsupported'}")
            if schema is None:
                continue
            steps.append(f"Generated {len(queries)} queries")
            return {
                "graphql_endpoint": schema.endpoint,
                "schema_info": schema,
                "generated_queries": queries,
                "phases": [
                    AnalysisPhase(
                        name=INTROSPECT_PHASE,
                        succeeded=True,
                        message=f"{len(schema.queries)} root queries at {schema.endpoint}",
                        duration=watch.elapsed,
                        steps=steps,
                    )
                ],
            }

        return {
            "schema_info": None,
            "generated_queries": [],
            "warnings": ["GraphQL introspection unavailable - falling back to REST templates"],
            "phases": [
                AnalysisPhase(
                    name=INTROSPECT_PHASE,
                    succeeded=False,
                    message="Introspection unsupported",
                    duration=watch.elapsed,
                    steps=steps,
                )
            ],
        }

    @profile_node(GENERATE_PHASE)
    async def generate(self, state: AutoconfigState) -> Dict[str, Any]:
        profile = state["profile"]
        options = _options(state)
        watch = Stopwatch()
        try:
            config = self.generator.generate(
                profile,
                state["analysis"],
                queries=state.get("generated_queries") or [],
                provider_type=options.force_type,
                name=options.provider_name,
                graphql_endpoint=state.get("graphql_endpoint"),
            )
        except Exception as e:
            logger.error("Config generation failed", extra={"url": profile.base_url}, exc_info=True)
            return {
                "error_message": f"Configuration generation failed: {e}",
                "phases": [
                    AnalysisPhase(name=GENERATE_PHASE, succeeded=False, message=str(e), duration=watch.elapsed)
                ],
            }

        return {
            "config": config,
            "phases": [
                AnalysisPhase(
                    name=GENERATE_PHASE,
                    succeeded=True,
                    message=f"Generated '{config.name}' provider config",
                    duration=watch.elapsed,
                    steps=[f"Provider: {config.name}", f"Type: {config.type.value}", f"Slug: {config.slug}"],
                )
            ],
        }

    @profile_node(VALIDATE_PHASE)
    async def validate(self, state: AutoconfigState) -> Dict[str, Any]:
        config = state["config"]
        options = _options(state)
        watch = Stopwatch()
        try:
            result, config = await self.validator.revalidate(config, options.test_query, options.timeout)
        except Exception as e:
            logger.warning(f"Validation failed: {e}", extra={"provider": config.slug})
            return {
                "validation": None,
                "warnings": [f"Validation failed: {e}"],
                "phases": [
                    AnalysisPhase(name=VALIDATE_PHASE, succeeded=False, message=str(e), duration=watch.elapsed)
                ],
            }

        steps = [
            f"{check.name}: {'✓' if check.passed else '✗'} {check.error_message or ''}".rstrip()
            for check in result.checks
        ]
        return {
            "config": config,
            "validation": result,
            "warnings": list(result.warnings),
            "phases": [
                AnalysisPhase(
                    name=VALIDATE_PHASE,
                    succeeded=result.is_valid,
                    message="All checks passed" if result.error_message is None else result.error_message,
                    duration=watch.elapsed,
                    steps=steps,
                )
            ],
        }

    @profile_node(STORE_PHASE)
    async def store_config(self, state: AutoconfigState) -> Dict[str, Any]:
        config = state["config"]
        watch = Stopwatch()
        if self.store is None:
            return {
                "warnings": ["No provider store configured - config not saved"],
                "phases": [AnalysisPhase(name=STORE_PHASE, succeeded=False, message="No provider store")],
            }
        try:
            path = self.store.save(config)
        except Exception as e:
            logger.error("Failed to save provider", extra={"provider": config.slug}, exc_info=True)
            return {
                "warnings": [f"Failed to save: {e}"],
                "phases": [AnalysisPhase(name=STORE_PHASE, succeeded=False, message=str(e), duration=watch.elapsed)],
            }

        return {
            "stored_path": str(path),
            "phases": [
                AnalysisPhase(
                    name=STORE_PHASE,
                    succeeded=True,
                    message=f"Saved provider '{config.slug}'",
                    duration=watch.elapsed,
                    steps=[f"Slug: {config.slug}", f"Path: {path}"],
                )
            ],
        }
