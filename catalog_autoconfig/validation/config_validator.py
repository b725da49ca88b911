"""Live four-stage validation of a provider configuration.

Stages run strictly in order, each feeding its sample to the next:

    Connectivity -> Search -> Listing -> Resolution

Connectivity and Search are critical: if either fails the configuration
is invalid and later stages are not attempted. Listing and Resolution
failures downgrade the result to partial (still usable).

Every stage converts its own exceptions into a failed ValidationCheck.
asyncio.CancelledError is never caught. An overall timeout raises
ValidationTimeoutError so callers can tell "timed out" apart from
"site rejected the configuration".

Example:
    >>> async with httpx.AsyncClient() as client:
    ...     validator = ConfigValidator(client)
    ...     result = await validator.validate(config, test_query="Frieren")
    ...     print(result.status, [c.name for c in result.failed_checks])
"""

import asyncio
import logging
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

import httpx

from catalog_autoconfig.runtime.catalog import CatalogProtocol, DynamicCatalog
from catalog_autoconfig.runtime.transform_engine import TransformEngine
from catalog_autoconfig.types.enums import ProviderType
from catalog_autoconfig.types.errors import ValidationTimeoutError
from catalog_autoconfig.types.provider_config import DynamicProviderConfig
from catalog_autoconfig.types.validation import ValidationCheck, ValidationResult
from catalog_autoconfig.utils.profiling import Stopwatch, profile_time

logger = logging.getLogger(__name__)

DEFAULT_TEST_QUERIES: Tuple[str, ...] = ("One Piece", "Naruto", "Attack on Titan")

# Status codes that prove the host is reachable
REACHABLE_STATUS = {405}

TIMEOUT_PREFIX = "Timed out"
CONNECT_PREFIX = "Connection failed"

CatalogFactory = Callable[[DynamicProviderConfig], CatalogProtocol]


class StageOutcome(NamedTuple):
    passed: bool
    sample: Optional[str] = None
    error: Optional[str] = None


def _describe_timeout(exc: httpx.TimeoutException) -> str:
    detail = str(exc)
    return f"{TIMEOUT_PREFIX}: {detail}" if detail else TIMEOUT_PREFIX


class ValidationStage:
    """One step of the validation state machine.

    Subclasses implement check(); run() adds timing and converts
    exceptions into a failed check.
    """

    name: str = ""
    description: str = ""
    critical: bool = False

    async def check(self, config: DynamicProviderConfig, sample: Optional[str]) -> StageOutcome:
        raise NotImplementedError

    async def run(self, config: DynamicProviderConfig, sample: Optional[str]) -> ValidationCheck:
        watch = Stopwatch()
        try:
            outcome = await self.check(config, sample)
        except httpx.TimeoutException as e:
            outcome = StageOutcome(False, error=_describe_timeout(e))
        except Exception as e:
            outcome = StageOutcome(False, error=str(e) or type(e).__name__)

        return ValidationCheck(
            name=self.name,
            description=self.description,
            passed=outcome.passed,
            error_message=None if outcome.passed else outcome.error,
            sample_data=outcome.sample,
            duration=watch.elapsed,
            critical=self.critical,
        )


class ConnectivityStage(ValidationStage):
    name = "Connectivity"
    description = "Base host answers a HEAD request"
    critical = True

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def check(self, config: DynamicProviderConfig, sample: Optional[str]) -> StageOutcome:
        url = config.base_url
        try:
            response = await self.client.head(url, headers=config.hosts.headers())
        except httpx.TimeoutException:
            raise
        except httpx.TransportError as e:
            return StageOutcome(False, error=f"{CONNECT_PREFIX}: {str(e) or type(e).__name__}")

        if response.is_success or response.status_code in REACHABLE_STATUS:
            return StageOutcome(True, sample=f"HTTP {response.status_code}")
        return StageOutcome(False, error=f"HTTP {response.status_code} from {url}")


class SearchStage(ValidationStage):
    """Tries each test query in order; the first with results wins."""

    name = "Search"
    description = "Search returns at least one result"
    critical = True

    def __init__(self, catalog: CatalogProtocol, queries: Sequence[str]):
        self.catalog = catalog
        self.queries = list(queries)

    async def check(self, config: DynamicProviderConfig, sample: Optional[str]) -> StageOutcome:
        last_error: Optional[str] = None
        timeouts = 0

        for query in self.queries:
            try:
                results = await self.catalog.search(query)
            except httpx.TimeoutException as e:
                timeouts += 1
                last_error = _describe_timeout(e)
                logger.info(f"Search '{query}' timed out", extra={"provider": config.slug})
                continue
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.info(f"Search '{query}' failed: {last_error}", extra={"provider": config.slug})
                continue

            if results:
                logger.info(
                    f"Search '{query}' returned {len(results)} results",
                    extra={"provider": config.slug, "query": query},
                )
                return StageOutcome(True, sample=results[0].id)
            logger.info(f"Search '{query}' returned no results", extra={"provider": config.slug})

        tried = ", ".join(f"'{q}'" for q in self.queries)
        message = f"No results for test queries {tried}"
        if last_error:
            message += f" (last error: {last_error})"
        if self.queries and timeouts == len(self.queries):
            message = f"{TIMEOUT_PREFIX}: {message}"
        return StageOutcome(False, error=message)


class ListingStage(ValidationStage):
    """Episodes (anime) or chapters (manga) for the search sample."""

    name = "Listing"
    description = "Content listing returns at least one item"
    critical = False

    def __init__(self, catalog: CatalogProtocol):
        self.catalog = catalog

    async def check(self, config: DynamicProviderConfig, sample: Optional[str]) -> StageOutcome:
        if not sample:
            return StageOutcome(False, error="Skipped: no content id from Search")

        if config.type == ProviderType.MANGA:
            if config.content.chapters is None:
                return StageOutcome(False, error="Chapter listing is not configured")
            items = await self.catalog.get_chapters(sample)
            label = "chapters"
        else:
            if config.content.episodes is None:
                return StageOutcome(False, error="Episode listing is not configured")
            items = await self.catalog.get_episodes(sample)
            label = "episodes"

        if not items:
            return StageOutcome(False, error=f"No {label} returned for {sample}")
        return StageOutcome(True, sample=items[0].id)


class ResolutionStage(ValidationStage):
    """Streams (anime) or pages (manga) for the listing sample."""

    name = "Resolution"
    description = "Media resolution returns at least one URL"
    critical = False

    def __init__(self, catalog: CatalogProtocol):
        self.catalog = catalog

    async def check(self, config: DynamicProviderConfig, sample: Optional[str]) -> StageOutcome:
        if not sample:
            return StageOutcome(False, error="Skipped: no item id from Listing")

        if config.type == ProviderType.MANGA:
            if config.media.pages is None:
                return StageOutcome(False, error="Page resolution is not configured")
            pages = await self.catalog.get_pages(sample)
            if not pages:
                return StageOutcome(False, error=f"No pages resolved for {sample}")
            return StageOutcome(True, sample=pages[0].image_url)

        if config.media.streams is None:
            return StageOutcome(False, error="Stream resolution is not configured")
        streams = await self.catalog.get_streams(sample)
        if not streams:
            return StageOutcome(False, error=f"No streams resolved for {sample}")
        return StageOutcome(True, sample=streams[0].url)


def build_test_queries(test_query: Optional[str], defaults: Sequence[str] = DEFAULT_TEST_QUERIES) -> List[str]:
    """[test_query] + defaults, blanks dropped, deduplicated in order."""
    queries = []
    for query in [test_query, *defaults]:
        if query and query.strip() and query.strip() not in queries:
            queries.append(query.strip())
    return queries


class ConfigValidator:
    """Runs the staged validation pipeline against a live site.

    Attributes:
        client: Shared httpx.AsyncClient
        transforms: Transform engine handed to the default catalog
        catalog_factory: Builds the catalog used by Search/Listing/Resolution
        default_queries: Fallback search queries
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        transforms: Optional[TransformEngine] = None,
        catalog_factory: Optional[CatalogFactory] = None,
        default_queries: Sequence[str] = DEFAULT_TEST_QUERIES,
    ):
        self.client = client
        self.transforms = transforms or TransformEngine()
        self.catalog_factory = catalog_factory or self._default_catalog
        self.default_queries = tuple(default_queries)

    def _default_catalog(self, config: DynamicProviderConfig) -> CatalogProtocol:
        return DynamicCatalog(config, self.client, self.transforms)

    def build_stages(self, config: DynamicProviderConfig, test_query: Optional[str] = None) -> List[ValidationStage]:
        catalog = self.catalog_factory(config)
        return [
            ConnectivityStage(self.client),
            SearchStage(catalog, build_test_queries(test_query, self.default_queries)),
            ListingStage(catalog),
            ResolutionStage(catalog),
        ]

    async def validate(
        self,
        config: DynamicProviderConfig,
        test_query: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ValidationResult:
        """Validate a configuration end-to-end.

        Args:
            config: Candidate configuration
            test_query: Preferred search query, tried before the defaults
            timeout: Optional deadline in seconds for the whole run

        Returns:
            Graded ValidationResult with every check that ran

        Raises:
            ValidationTimeoutError: If timeout expires before grading
        """
        if timeout is None:
            return await self._validate(config, test_query)
        try:
            return await asyncio.wait_for(self._validate(config, test_query), timeout)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Validation of {config.slug} exceeded {timeout}s",
                extra={"provider": config.slug, "timeout": timeout},
            )
            raise ValidationTimeoutError(
                f"Validation exceeded {timeout}s", url=config.base_url, phase="validate"
            ) from e

    @profile_time("Config validation")
    async def _validate(self, config: DynamicProviderConfig, test_query: Optional[str]) -> ValidationResult:
        watch = Stopwatch()
        stages = self.build_stages(config, test_query)
        checks: List[ValidationCheck] = []
        sample: Optional[str] = None

        for stage in stages:
            check = await stage.run(config, sample)
            checks.append(check)
            logger.info(
                f"{'✓' if check.passed else '✗'} {check.name}"
                + ("" if check.passed else f": {check.error_message}"),
                extra={"provider": config.slug, "stage": check.name, "duration": check.duration},
            )
            if not check.passed and stage.critical:
                break
            sample = check.sample_data if check.passed else None

        return self._grade(config, checks, len(stages), watch.elapsed)

    def _grade(
        self,
        config: DynamicProviderConfig,
        checks: List[ValidationCheck],
        stage_count: int,
        duration: float,
    ) -> ValidationResult:
        if any(c.critical and not c.passed for c in checks):
            return ValidationResult.failure(
                checks, suggested_fixes=self.suggest_fixes(config, checks), duration=duration
            )
        if len(checks) == stage_count and all(c.passed for c in checks):
            return ValidationResult.success(checks, duration=duration)
        warnings = [f"{c.name} failed: {c.error_message}" for c in checks if not c.passed]
        return ValidationResult.partial(checks, warnings=warnings, duration=duration)

    def suggest_fixes(
        self, config: DynamicProviderConfig, checks: List[ValidationCheck]
    ) -> Optional[DynamicProviderConfig]:
        """Best-effort alternative config for a failed run.

        Only offered when the connection itself failed over https; the
        suggestion switches the host block to plain http.
        """
        failed = [c for c in checks if not c.passed]
        if len(failed) != 1 or failed[0].name != ConnectivityStage.name:
            return None
        if not (failed[0].error_message or "").startswith(CONNECT_PREFIX):
            return None
        if not config.base_url.startswith("https://"):
            return None

        host = config.base_url[len("https://"):]
        api_base = config.hosts.api_base
        if api_base and api_base.startswith("https://"):
            api_base = "http://" + api_base[len("https://"):]
        hosts = config.hosts.model_copy(update={"base_host": f"http://{host}", "api_base": api_base})
        return config.model_copy(update={"hosts": hosts})

    async def revalidate(
        self,
        config: DynamicProviderConfig,
        test_query: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[ValidationResult, DynamicProviderConfig]:
        """Validate and refresh last_validated_at when the config is valid."""
        result = await self.validate(config, test_query, timeout)
        if result.is_valid:
            return result, config.with_validated_at()
        return result, config
