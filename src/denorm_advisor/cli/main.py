"""Main CLI entry point for Denorm Advisor."""

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from denorm_advisor import __version__
from denorm_advisor.analyzer import DenormalizationAnalyzer, MigrationProfile
from denorm_advisor.analyzer.models import AnalysisResult
from denorm_advisor.collector import InputFormatError, InputLoader, SchemaParser, TelemetryParser
from denorm_advisor.config import get_settings

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """Denorm Advisor - find denormalization candidates for NoSQL migration.

    Correlate entity models, query patterns, schema relationships and
    production telemetry to rank entities worth merging into single items.
    """
    setup_logging(verbose)


@cli.command()
@click.option(
    "--entities",
    "entities_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="JSON file with entity models and property mapping",
)
@click.option(
    "--patterns",
    "patterns_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="JSON file with query-access patterns",
)
@click.option(
    "--schema-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="SQL schema file (DDL)",
)
@click.option(
    "--dialect",
    default=None,
    help="SQL dialect of the schema file (default from settings)",
)
@click.option(
    "--telemetry",
    "telemetry_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Production query-store export (JSON)",
)
@click.option(
    "--profile",
    default=None,
    help="Threshold profile (see 'profiles' command)",
)
@click.option(
    "--output",
    type=click.Path(path_type=Path),
    help="Output file for results (JSON)",
)
@click.option(
    "--top",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Number of candidates to display",
)
def analyze(
    entities_file: Path,
    patterns_file: Path,
    schema_file: Path | None,
    dialect: str | None,
    telemetry_file: Path | None,
    profile: str | None,
    output: Path | None,
    top: int,
) -> None:
    """Analyze usage patterns and rank denormalization candidates.

    Loads entity models and query patterns, optionally a relational schema
    and a production telemetry export, then scores every entity and
    recommends a target storage paradigm for each candidate.
    """
    try:
        settings = get_settings()
        thresholds = settings.build_thresholds(profile)
    except (ValueError, ValidationError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(2)

    console.print(Panel.fit(
        f"[bold blue]Denorm Advisor Analysis[/bold blue]\n"
        f"{thresholds.summary()}",
        title="Starting Analysis",
    ))

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            loader = InputLoader()

            task = progress.add_task("Loading entity models...", total=None)
            catalog = loader.load_entities(entities_file)
            query_patterns = loader.load_patterns(patterns_file)
            progress.update(task, completed=True)
            console.print(
                f"  Loaded {len(catalog.entities)} entities, {len(query_patterns)} query patterns"
            )

            schema = None
            if schema_file:
                task = progress.add_task("Parsing schema...", total=None)
                schema_parser = SchemaParser(dialect=dialect or settings.schema_dialect)
                schema = schema_parser.parse_file(schema_file)
                progress.update(task, completed=True)
                console.print(
                    f"  Found {len(schema.tables)} tables, {len(schema.relationships)} relationships"
                )

            telemetry = None
            if telemetry_file:
                task = progress.add_task("Parsing production telemetry...", total=None)
                telemetry_parser = TelemetryParser(
                    dialect=settings.telemetry_dialect,
                    slow_query_ms=thresholds.slow_query_ms,
                    co_access_threshold=thresholds.co_access_threshold,
                )
                telemetry = telemetry_parser.parse_file(telemetry_file)
                progress.update(task, completed=True)
                console.print(
                    f"  Parsed {telemetry.total_queries_analyzed} production queries "
                    f"({telemetry.performance.slow_query_count} slow)"
                )

            task = progress.add_task("Scoring candidates...", total=None)
            analyzer = DenormalizationAnalyzer(thresholds)
            result = analyzer.analyze(
                catalog.entities,
                query_patterns,
                schema=schema,
                property_mapping=catalog.property_mapping,
                telemetry=telemetry,
            )
            progress.update(task, completed=True)

    except (FileNotFoundError, InputFormatError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        logger.debug("Analysis failed", exc_info=True)
        sys.exit(1)

    _display_analysis_summary(result, top)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        console.print(f"\n[green]Results saved to {output}[/green]")

    console.print("\n[bold green]✓ Analysis complete![/bold green]")
    console.print(f"  Analysis ID: {result.analysis_id}")


@cli.command()
def profiles() -> None:
    """List available threshold profiles."""
    table = Table(title="Threshold Profiles")
    table.add_column("Profile", style="cyan")
    table.add_column("High / Medium freq", justify="right")
    table.add_column("R/W ratio", justify="right")
    table.add_column("Co-access", justify="right")
    table.add_column("Description")

    for profile in MigrationProfile:
        thresholds = profile.build_thresholds()
        table.add_row(
            profile.profile_name,
            f"{thresholds.high_frequency} / {thresholds.medium_frequency}",
            f"{thresholds.high_read_write_ratio:.1f}",
            str(thresholds.co_access_threshold),
            profile.description,
        )

    console.print(table)
    console.print("\n[dim]Use --profile <name> with the analyze command, or set DENORM_PROFILE.[/dim]")


@cli.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    table = Table(show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Profile", settings.profile)
    table.add_row("Schema Dialect", settings.schema_dialect)
    table.add_row("Telemetry Dialect", settings.telemetry_dialect)
    table.add_row(
        "Always-Loaded Policy",
        settings.always_loaded_policy.value if settings.always_loaded_policy else "(profile)",
    )
    table.add_row(
        "Eager-Loading Rule",
        settings.eager_loading_rule.value if settings.eager_loading_rule else "(profile)",
    )
    table.add_row("Log Level", settings.log_level)

    console.print(table)


def _display_analysis_summary(result: AnalysisResult, top: int) -> None:
    """Display analysis summary in console."""
    console.print("\n")

    if result.candidates:
        table = Table(title="Denormalization Candidates")
        table.add_column("Entity", style="cyan")
        table.add_column("Score", justify="right", style="yellow")
        table.add_column("Target", style="green")
        table.add_column("Complexity", justify="center")
        table.add_column("Related Entities")
        table.add_column("Reason")

        for candidate in result.candidates[:top]:
            table.add_row(
                candidate.primary_entity,
                str(candidate.score),
                candidate.recommended_target.display_name,
                candidate.complexity.value,
                ", ".join(candidate.related_entities) or "-",
                candidate.reason,
            )

        console.print(table)
    else:
        console.print("[yellow]No denormalization candidates found. Try a more permissive profile.[/yellow]")

    if result.frequent_table_combinations:
        table = Table(title="Frequent Table Combinations")
        table.add_column("Tables", style="cyan")
        table.add_column("Executions", justify="right")
        table.add_column("Share", justify="right")

        for combination in result.frequent_table_combinations[:10]:
            table.add_row(
                " + ".join(sorted(combination.tables)),
                f"{combination.total_executions:,}",
                f"{combination.execution_percentage:.1f}%",
            )

        console.print(table)

    console.print(
        f"\n[bold]Overall complexity:[/bold] {result.complexity.overall_complexity} "
        f"[dim]({result.complexity.reason})[/dim]"
    )


if __name__ == "__main__":
    cli()
