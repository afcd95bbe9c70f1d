"""
serpharvest CLI

Examples:
    # Harvest three result pages per keyword
    serpharvest run keywords.txt --pages 3 -o results.json

    # Follow related keywords two levels deep, four browsers at once
    serpharvest run keywords.txt --also-searched-for --depth 2 -j 4 -o results.jsonl

    # Bing through a proxy pool, JSON to stdout
    serpharvest run keywords.txt --engine bing --proxies proxies.txt -f json -q | jq '.'

    # Check configuration
    serpharvest check
"""

import asyncio
import csv
import io
import json
import logging
import os
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .config import HarvestConfig, Settings, load_config, load_proxy_file
from .export import CSV_COLUMNS, FileResultSink, ResultCollector, csv_rows, export_serp_results
from .models import HarvestTask, SerpResult, TaskOutcome
from .runner import HarvestReport, HarvestRunner, generate_tasks
from .scraper.browser import BrowserManager
from .scraper.captcha import AntiCaptchaClient, AuthenticationError
from .scraper.engines import ENGINES, SearchEngine, get_engine

# Progress to stderr, data to stdout
console = Console(stderr=True)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool, quiet: bool, debug: bool) -> None:
    """Configure logging based on CLI flags."""
    if quiet:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def format_output(results: list[SerpResult], output_format: str) -> str:
    """Format harvested results for stdout."""
    if output_format == "json":
        return json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False)

    elif output_format == "jsonl":
        return "\n".join(json.dumps(r.to_dict(), ensure_ascii=False) for r in results)

    elif output_format == "csv":
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(csv_rows(results))
        return output.getvalue()

    else:
        raise ValueError(f"Unknown format: {output_format}")


def display_summary(outcomes: list[TaskOutcome]) -> None:
    """Display the per-keyword result table."""
    table = Table(title="Harvest Results", show_header=True, header_style="bold magenta")

    table.add_column("Keyword", style="cyan", max_width=40)
    table.add_column("Results", justify="right")
    table.add_column("Links", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Error", max_width=50)

    for o in outcomes:
        status = "[green]ok[/green]" if o.success else "[red]failed[/red]"
        table.add_row(
            o.keyword[:40],
            str(o.amount_of_results),
            str(o.links_collected),
            status,
            (o.error or "-")[:50],
        )

    console.print(table)


async def harvest(
    tasks: list[HarvestTask],
    engine: SearchEngine,
    settings: Settings,
    config: HarvestConfig,
    sink: ResultCollector,
) -> HarvestReport:
    """Run every task against a real browser."""
    # Engines without a challenge gate never call the solver
    solver = None
    if engine.challenge:
        solver = AntiCaptchaClient(
            api_key=settings.anticaptcha_key,
            poll_interval=settings.captcha_poll_interval,
            max_wait=settings.captcha_max_wait,
        )

    try:
        async with BrowserManager(config) as browser:
            runner = HarvestRunner(engine, solver, sink, browser.task_page, config=config)
            return await runner.run(tasks)
    finally:
        if solver:
            await solver.close()


# ============================================================================
# CLI Group
# ============================================================================

@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """Harvest search results and related keywords with a real browser."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ============================================================================
# Run Command
# ============================================================================

@cli.command()
@click.argument("keywords_file", type=click.Path(exists=True))
@click.option("-e", "--engine", type=click.Choice(sorted(ENGINES)), help="Search engine profile")
@click.option("-p", "--pages", type=int, help="Result pages per keyword")
@click.option("-d", "--depth", type=int, help="Related keyword depth (1-4)")
@click.option("--also-searched-for", is_flag=True, help="Follow related keywords")
@click.option("--proxies", type=click.Path(exists=True), help="Proxy list, host:port[:login:password]")
@click.option("-o", "--output", type=click.Path(), help="Output file (default: stdout)")
@click.option("-f", "--format", "output_format",
              type=click.Choice(["json", "jsonl", "csv"]),
              default="json", help="Output format")
@click.option("--records", type=click.Path(), help="Append every result record to this JSONL file")
@click.option("-j", "--parallel", type=int, help="Concurrent browser pages")
@click.option("--config", type=click.Path(exists=True), help="YAML config file")
@click.option("--no-headless", is_flag=True, help="Show the browser window")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress, only emit data")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--dry-run", is_flag=True, help="Show plan without executing")
def run(
    keywords_file: str,
    engine: Optional[str],
    pages: Optional[int],
    depth: Optional[int],
    also_searched_for: bool,
    proxies: Optional[str],
    output: Optional[str],
    output_format: str,
    records: Optional[str],
    parallel: Optional[int],
    config: Optional[str],
    no_headless: bool,
    quiet: bool,
    verbose: bool,
    debug: bool,
    dry_run: bool,
):
    """
    Harvest every keyword in KEYWORDS_FILE (one per line).

    Output goes to stdout by default (use -o for file).
    Progress goes to stderr (use -q to suppress).

    Examples:

        serpharvest run keywords.txt --pages 3

        serpharvest run keywords.txt --also-searched-for --depth 2 -o out.jsonl
    """
    setup_logging(verbose, quiet, debug)

    settings = load_config(config) if config else Settings()

    try:
        search_engine = get_engine(engine or settings.engine)
    except ValueError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(2)

    with open(keywords_file, encoding="utf-8") as f:
        keywords = f.read().splitlines()

    proxy_list = load_proxy_file(proxies) if proxies else None

    tasks = generate_tasks(
        keywords,
        also_searched_for=also_searched_for or settings.also_searched_for,
        search_depth=depth if depth is not None else settings.search_depth,
        page_limit=pages if pages is not None else settings.page_limit,
        proxies=proxy_list,
    )

    if not tasks:
        console.print(f"[yellow]No keywords in {keywords_file}[/yellow]")
        sys.exit(1)

    harvest_config = HarvestConfig(
        headless=settings.headless and not no_headless,
        concurrency=parallel if parallel is not None else settings.concurrency,
    )

    if dry_run:
        first = tasks[0]
        click.echo(f"Would harvest {len(tasks)} keywords on {search_engine.name}")
        click.echo(f"Pages: {first.page_limit}, Depth: {first.search_depth if first.also_searched_for else 0}")
        click.echo(f"Workers: {harvest_config.concurrency}, Proxies: {len(proxy_list or [])}")
        sys.exit(0)

    sink = FileResultSink(records) if records else ResultCollector()

    if not quiet:
        console.print(
            f"[cyan]Harvesting {len(tasks)} keywords on {search_engine.name} "
            f"with {harvest_config.concurrency} workers...[/cyan]"
        )

    try:
        report = asyncio.run(harvest(tasks, search_engine, settings, harvest_config, sink))
    except AuthenticationError as e:
        console.print(f"\n[red]Anti-Captcha authentication error:[/red] {e}")
        console.print("\n[yellow]Set it:[/yellow] [cyan]export ANTICAPTCHA_KEY=your_key_here[/cyan]")
        sys.exit(1)

    # Output
    if output:
        output_path = export_serp_results(report.results, output, output_format)
        if not quiet:
            console.print(f"\n[green]Saved:[/green] {output_path}")
    else:
        click.echo(format_output(report.results, output_format))

    if not quiet:
        display_summary(report.outcomes)
        console.print(f"[dim]{report.succeeded} keywords harvested, {report.failed} failed[/dim]")

    # Exit code: 0 if anything was harvested
    sys.exit(0 if report.succeeded else 1)


# ============================================================================
# Check Command
# ============================================================================

@cli.command()
@click.option("--browser", is_flag=True, help="Also launch Chromium and load a page")
def check(browser: bool):
    """Check configuration and service availability."""
    key = os.environ.get("ANTICAPTCHA_KEY", "")
    if key:
        click.echo(f"✓ ANTICAPTCHA_KEY: {key[:8]}...")
    else:
        click.echo("✗ ANTICAPTCHA_KEY: not set")

    if key:
        async def balance() -> float:
            async with AntiCaptchaClient(api_key=key) as client:
                return await client.get_balance()

        try:
            click.echo(f"✓ Anti-Captcha: balance {asyncio.run(balance()):.2f}")
        except Exception as e:
            click.echo(f"✗ Anti-Captcha: {e}")

    if browser:
        async def launch() -> bool:
            async with BrowserManager() as manager:
                return await manager.test_connection(get_engine("bing").base_url)

        try:
            ok = asyncio.run(launch())
        except Exception as e:
            logger.debug("Browser launch failed: %s", e)
            ok = False
        click.echo("✓ Playwright: browser OK" if ok else "✗ Playwright: browser unavailable (run `playwright install chromium`)")


# ============================================================================
# Version Command
# ============================================================================

@cli.command()
def version():
    """Show version info."""
    from serpharvest import __version__
    click.echo(f"serpharvest {__version__}")


if __name__ == "__main__":
    cli()
