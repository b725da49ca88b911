"""Main CLI entry point for catalog-autoconfig.

Analyzes crawled site profiles, introspects GraphQL endpoints, generates
provider configurations and validates them against the live site.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from catalog_autoconfig.analysis.graphql_introspector import GraphQLIntrospector
from catalog_autoconfig.analysis.pattern_engine import PatternEngine
from catalog_autoconfig.cli.config import Config
from catalog_autoconfig.orchestration import AutoconfigOptions, AutoconfigOrchestrator
from catalog_autoconfig.storage.provider_store import ProviderStore
from catalog_autoconfig.types import (
    AnalysisResult,
    AutoconfigResult,
    GeneratedQuery,
    GraphQLSchemaInfo,
    ProviderType,
    SiteProfile,
    ValidationResult,
    ValidationStatus,
)
from catalog_autoconfig.types.errors import AutoconfigError
from catalog_autoconfig.utils.http import create_http_client
from catalog_autoconfig.validation.config_validator import ConfigValidator

__version__ = "1.0.0"

console = Console()

TYPE_CHOICE = click.Choice([t.value for t in ProviderType])


def _setup_logging(settings: Optional[Config], debug: bool) -> None:
    level = logging.DEBUG if debug else getattr(logging, settings.log_level if settings else "INFO")
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),  # Logs go to stderr
        ],
    )


def _load_settings(debug: bool) -> Config:
    try:
        settings = Config.from_env()
    except ValueError as e:
        console.print(f"\n[bold red]Configuration Error:[/bold red] {e}")
        raise click.Abort()
    _setup_logging(settings, debug)
    return settings


def _load_profile(path: Path) -> SiteProfile:
    try:
        return SiteProfile.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        console.print(f"[bold red]✗ Invalid site profile:[/bold red] {path}")
        console.print(f"[dim]{e}[/dim]")
        raise click.Abort()


def _store(settings: Config, store_dir: Optional[Path]) -> ProviderStore:
    return ProviderStore(store_dir or settings.store_dir)


def _print_analysis(analysis: AnalysisResult) -> None:
    fingerprint = analysis.fingerprint
    console.print(f"[bold]Architecture:[/bold] {fingerprint.architecture}")
    console.print(f"[bold]Technologies:[/bold] {', '.join(fingerprint.technologies) or '-'}")
    console.print(f"[bold]Fingerprint:[/bold] [dim]{fingerprint.hash[:16]}[/dim]")
    console.print(f"[bold]Confidence:[/bold] {analysis.overall_confidence:.0%}\n")

    table = Table(title="Detected patterns")
    table.add_column("Type")
    table.add_column("Value")
    table.add_column("Confidence", justify="right")
    for match in analysis.patterns:
        table.add_row(match.type.display_name, match.value, f"{match.confidence:.2f}")
    console.print(table)

    if analysis.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for recommendation in analysis.recommendations:
            console.print(f"  • {recommendation}")


def _print_schema(schema: GraphQLSchemaInfo, queries: list[GeneratedQuery]) -> None:
    console.print(f"[bold]Endpoint:[/bold] {schema.endpoint}")
    console.print(
        f"[bold]Schema:[/bold] {len(schema.types)} types, {len(schema.queries)} queries, "
        f"{len(schema.mutations)} mutations\n"
    )
    table = Table(title="Root queries")
    table.add_column("Field")
    table.add_column("Returns")
    table.add_column("Purpose")
    table.add_column("Confidence", justify="right")
    for query in schema.queries:
        returns = f"[{query.return_type}]" if query.returns_list else query.return_type
        table.add_row(query.name, returns, query.inferred_purpose.display_name, f"{query.purpose_confidence:.2f}")
    console.print(table)

    for query in queries:
        console.print(f"\n[bold cyan]{query.name}[/bold cyan] [dim]({query.confidence:.2f})[/dim]")
        console.print(query.document, markup=False, highlight=False)


def _print_validation(result: ValidationResult) -> None:
    table = Table(title="Validation checks")
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    table.add_column("Details")
    for check in result.checks:
        mark = "[green]✓[/green]" if check.passed else "[red]✗[/red]"
        details = check.sample_data if check.passed else check.error_message
        table.add_row(check.name, mark, f"{check.duration:.2f}s", details or "")
    console.print(table)

    if result.status == ValidationStatus.SUCCESS:
        console.print("\n[bold green]✓ Validation passed[/bold green]")
    elif result.status == ValidationStatus.PARTIAL:
        console.print(f"\n[bold yellow]⚠ {result.error_message}[/bold yellow]")
        for warning in result.warnings:
            console.print(f"  [yellow]-[/yellow] {warning}")
    else:
        console.print(f"\n[bold red]✗ {result.error_message}[/bold red]")
        if result.suggested_fixes is not None:
            console.print(f"[yellow]Suggested base host:[/yellow] {result.suggested_fixes.base_url}")


def _print_result(result: AutoconfigResult) -> None:
    table = Table(title="Autoconfig phases")
    table.add_column("Phase")
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    table.add_column("Message")
    for phase in result.phases:
        mark = "[green]✓[/green]" if phase.succeeded else "[red]✗[/red]"
        table.add_row(phase.name, mark, f"{phase.duration:.2f}s", phase.message or "")
    console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]⚠[/yellow] {warning}")

    if result.validation is not None:
        console.print()
        _print_validation(result.validation)


@click.group()
@click.version_option(version=__version__, prog_name="catalog-autoconfig")
def cli() -> None:
    """catalog-autoconfig - Generate and validate media catalog provider configs"""
    pass


@cli.command()
@click.argument("profile_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
@click.option("--inspect-responses", is_flag=True, help="Fetch detected endpoints and read their response structure")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def analyze(profile_path: Path, as_json: bool, inspect_responses: bool, debug: bool) -> None:
    """Fingerprint a site profile and print detected patterns.

    Example:
        catalog-autoconfig analyze profiles/example.json
        catalog-autoconfig analyze profiles/example.json --inspect-responses --json
    """
    settings = _load_settings(debug)
    profile = _load_profile(profile_path)

    if inspect_responses:

        async def run() -> AnalysisResult:
            async with create_http_client(settings) as client:
                engine = PatternEngine(client=client, user_agent=settings.user_agent)
                return await engine.analyze_with_responses(profile)

        analysis = asyncio.run(run())
    else:
        analysis = PatternEngine().analyze(profile)

    if as_json:
        click.echo(analysis.model_dump_json(indent=2))
        return

    console.print(f"\n[bold cyan]Analysis:[/bold cyan] {profile.base_url}\n")
    _print_analysis(analysis)


@cli.command()
@click.argument("endpoint")
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Site profile supplying referer and required headers",
)
@click.option("--type", "provider_type", type=TYPE_CHOICE, default=ProviderType.ANIME.value, help="Content type")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def introspect(endpoint: str, profile_path: Optional[Path], provider_type: str, debug: bool) -> None:
    """Introspect a GraphQL endpoint and print candidate queries.

    Example:
        catalog-autoconfig introspect https://api.example.com/graphql --type manga
    """
    settings = _load_settings(debug)

    if profile_path is not None:
        profile = _load_profile(profile_path)
    else:
        parsed = urlparse(endpoint)
        if not parsed.scheme or not parsed.netloc:
            console.print(f"[bold red]✗ Invalid URL format:[/bold red] {endpoint}")
            console.print("[yellow]Expected format:[/yellow] https://example.com/graphql (or pass --profile)")
            raise click.Abort()
        profile = SiteProfile(base_url=f"{parsed.scheme}://{parsed.netloc}", has_graphql=True)

    async def run() -> tuple[Optional[GraphQLSchemaInfo], list[GeneratedQuery]]:
        async with create_http_client(settings) as client:
            introspector = GraphQLIntrospector(client, user_agent=settings.user_agent)
            schema = await introspector.introspect(endpoint, profile)
            if schema is None:
                return None, []
            return schema, introspector.generate_queries(schema, ProviderType(provider_type))

    schema, queries = asyncio.run(run())
    if schema is None:
        console.print(f"[bold red]✗ Introspection unsupported at[/bold red] {profile.resolve(endpoint)}")
        raise click.Abort()
    _print_schema(schema, queries)


@cli.command()
@click.argument("profile_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "provider_name", help="Provider display name (default: derived from the site)")
@click.option("--type", "provider_type", type=TYPE_CHOICE, help="Force anime or manga")
@click.option("--test-query", help="Search query to try before the defaults")
@click.option("--skip-validation", is_flag=True, help="Do not validate against the live site")
@click.option("--dry-run", is_flag=True, help="Do not save the generated config")
@click.option("--store-dir", type=click.Path(file_okay=False, path_type=Path), help="Provider store directory")
@click.option("--inspect-responses", is_flag=True, help="Fetch detected endpoints during analysis")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Validation deadline in seconds")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def autoconfig(
    profile_path: Path,
    provider_name: Optional[str],
    provider_type: Optional[str],
    test_query: Optional[str],
    skip_validation: bool,
    dry_run: bool,
    store_dir: Optional[Path],
    timeout: Optional[float],
    inspect_responses: bool,
    debug: bool,
) -> None:
    """Generate (and validate) a provider config from a site profile.

    Example:
        catalog-autoconfig autoconfig profiles/example.json --test-query "Frieren"
        catalog-autoconfig autoconfig profiles/example.json --skip-validation --dry-run
    """
    settings = _load_settings(debug)
    profile = _load_profile(profile_path)
    options = AutoconfigOptions(
        provider_name=provider_name,
        force_type=ProviderType(provider_type) if provider_type else None,
        test_query=test_query,
        skip_validation=skip_validation,
        dry_run=dry_run,
        timeout=timeout,
        inspect_responses=inspect_responses,
    )

    console.print(f"\n[bold cyan]Starting autoconfig:[/bold cyan] {profile.base_url}\n")

    async def run() -> AutoconfigResult:
        store = None if dry_run else _store(settings, store_dir)
        async with create_http_client(settings) as client:
            orchestrator = AutoconfigOrchestrator(client, store=store, user_agent=settings.user_agent)
            return await orchestrator.run(profile, options)

    try:
        result = asyncio.run(run())
    except (AutoconfigError, OSError) as e:
        console.print(f"\n[bold red]Autoconfig Failed:[/bold red] {e}")
        if debug:
            console.print_exception()
        raise click.Abort()

    _print_result(result)

    if not result.is_success or result.config is None:
        console.print(f"\n[bold red]✗ {result.error_message or 'Autoconfig failed'}[/bold red]")
        raise click.Abort()

    console.print(f"\n[bold green]✓ Provider '{result.config.name}' created[/bold green] [dim]({result.config.slug})[/dim]")
    if dry_run:
        console.print("[dim]Dry run: config not saved[/dim]")
        click.echo(result.config.model_dump_json(indent=2))
    if result.validation is not None and not result.validation.is_valid:
        raise click.Abort()


@cli.command()
@click.argument("slug")
@click.option("--test-query", help="Search query to try before the defaults")
@click.option("--store-dir", type=click.Path(file_okay=False, path_type=Path), help="Provider store directory")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Validation deadline in seconds")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def validate(
    slug: str,
    test_query: Optional[str],
    store_dir: Optional[Path],
    timeout: Optional[float],
    debug: bool,
) -> None:
    """Re-validate a stored provider and refresh its timestamp.

    Example:
        catalog-autoconfig validate example-site --test-query "Naruto"
    """
    settings = _load_settings(debug)
    try:
        store = _store(settings, store_dir)
        config = store.get(slug)
    except (AutoconfigError, ValueError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort()
    if config is None:
        console.print(f"[bold red]✗ Provider not found:[/bold red] {slug}")
        raise click.Abort()

    console.print(f"\n[bold cyan]Validating:[/bold cyan] {config.name} [dim]({config.base_url})[/dim]\n")

    async def run():
        async with create_http_client(settings) as client:
            return await ConfigValidator(client).revalidate(config, test_query, timeout)

    try:
        result, updated = asyncio.run(run())
    except AutoconfigError as e:
        console.print(f"\n[bold red]Validation Failed:[/bold red] {e}")
        raise click.Abort()

    _print_validation(result)
    if not result.is_valid:
        raise click.Abort()
    store.save(updated)


@cli.group()
def providers() -> None:
    """Manage stored provider configurations"""
    pass


@providers.command("list")
@click.option("--store-dir", type=click.Path(file_okay=False, path_type=Path), help="Provider store directory")
def list_providers(store_dir: Optional[Path]) -> None:
    """List stored providers."""
    settings = _load_settings(debug=False)
    configs = _store(settings, store_dir).list()
    if not configs:
        console.print("[dim]No providers configured[/dim]")
        return

    table = Table(title="Providers")
    table.add_column("Slug")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Version")
    table.add_column("Last validated")
    for config in configs:
        validated = config.last_validated_at.strftime("%Y-%m-%d %H:%M") if config.last_validated_at else "never"
        name = f"{config.name} [dim](built-in)[/dim]" if config.is_built_in else config.name
        table.add_row(config.slug, name, config.type.display_name, config.version, validated)
    console.print(table)


@providers.command("show")
@click.argument("slug")
@click.option("--store-dir", type=click.Path(file_okay=False, path_type=Path), help="Provider store directory")
def show_provider(slug: str, store_dir: Optional[Path]) -> None:
    """Print a stored provider config as JSON."""
    settings = _load_settings(debug=False)
    try:
        config = _store(settings, store_dir).get(slug)
    except (AutoconfigError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort()
    if config is None:
        console.print(f"[bold red]✗ Provider not found:[/bold red] {slug}")
        raise click.Abort()
    click.echo(config.model_dump_json(indent=2))


@providers.command("remove")
@click.argument("slug")
@click.option("--store-dir", type=click.Path(file_okay=False, path_type=Path), help="Provider store directory")
def remove_provider(slug: str, store_dir: Optional[Path]) -> None:
    """Delete a custom provider config."""
    settings = _load_settings(debug=False)
    try:
        removed = _store(settings, store_dir).delete(slug)
    except (AutoconfigError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort()
    if not removed:
        console.print(f"[bold red]✗ Provider not found:[/bold red] {slug}")
        raise click.Abort()
    console.print(f"[green]✓[/green] Removed provider {slug}")


if __name__ == "__main__":
    cli()
