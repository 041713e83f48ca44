"""Analyze command for single-page crawls.

Runs one crawl through the JobManager so the command exercises the same
lifecycle (start, completion callback, cancellation on Ctrl+C) as a service
embedding the library.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pageprobe.core.config import Settings
from pageprobe.core.logger import get_logger
from pageprobe.services.jobs import JobManager
from pageprobe.services.models import CrawlResult

console = Console()

CLI_JOB_ID = "cli"


def analyze_command(
    url: str = typer.Argument(..., help="URL to analyze"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    check_links: bool = typer.Option(
        True,
        "--check-links/--no-broken-links",
        help="Probe classified links for liveness",
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Fetch timeout (s)"),
    max_retries: int | None = typer.Option(None, "--max-retries"),
    retry_delay: float | None = typer.Option(None, "--retry-delay", help="Seconds"),
    max_redirects: int | None = typer.Option(None, "--max-redirects"),
    follow_redirects: bool = typer.Option(
        True, "--follow-redirects/--no-follow-redirects"
    ),
    log_level: str = typer.Option("WARNING", "--log-level"),
) -> None:
    """Fetch URL, analyze its HTML and check its links.

    Exits with code 1 when the crawl ends with an error (including
    cancellation) and 2 when the options are invalid.
    """
    overrides: dict[str, Any] = {
        "check_broken_links": check_links,
        "follow_redirects": follow_redirects,
        "log_level": log_level,
    }
    for key, value in (
        ("timeout", timeout),
        ("max_retries", max_retries),
        ("retry_delay", retry_delay),
        ("max_redirects", max_redirects),
    ):
        if value is not None:
            overrides[key] = value

    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        console.print(f"[red]Invalid options: {escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc

    get_logger("pageprobe", settings.log_level, settings.log_file)

    result = asyncio.run(_run_analysis(settings, url))

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)

    if result.error:
        raise typer.Exit(code=1)


async def _run_analysis(settings: Settings, url: str) -> CrawlResult:
    """Run one crawl job and return the result delivered to its callback."""
    delivered: list[CrawlResult] = []

    async with JobManager(settings=settings) as jobs:
        task = jobs.start(CLI_JOB_ID, url, delivered.append)
        try:
            await asyncio.shield(task)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if jobs.is_running(CLI_JOB_ID):
                jobs.stop(CLI_JOB_ID)
            await asyncio.gather(task, return_exceptions=True)

    if delivered:
        return delivered[0]
    return task.result()


def _print_result(result: CrawlResult) -> None:
    if result.error:
        style = "yellow" if result.cancelled else "red"
        message = f"{result.outcome.value}: {escape(result.error)}"
        console.print(f"[{style}]{message}[/{style}]")
        console.print(f"URL: {result.url}")
        return

    summary = Table(title=result.url, show_header=False)
    summary.add_column("Field", style="cyan")
    summary.add_column("Value")
    summary.add_row("Status", str(result.status_code))
    summary.add_row("Title", escape(result.title) or "-")
    summary.add_row("HTML version", result.html_version)
    summary.add_row("Internal links", str(result.internal_links))
    summary.add_row("External links", str(result.external_links))
    summary.add_row("Broken links", str(result.broken_links))
    summary.add_row(
        "Headings",
        " ".join(f"{tag}:{count}" for tag, count in result.heading_counts.items()),
    )
    summary.add_row(
        "Login form",
        f"{'yes' if result.has_login_form else 'no'} "
        f"(confidence {result.login_form_confidence:.2f})",
    )
    console.print(summary)

    if result.meta_tags:
        meta = Table(title="Meta tags")
        meta.add_column("Key", style="cyan")
        meta.add_column("Content")
        for key, value in result.meta_tags.items():
            meta.add_row(escape(key), escape(value))
        console.print(meta)

    if result.broken_links_details:
        broken = Table(title="Broken links")
        broken.add_column("URL")
        broken.add_column("Status", justify="right")
        broken.add_column("Error", style="red")
        for info in result.broken_links_details:
            broken.add_row(escape(info.url), str(info.status_code), escape(info.error))
        console.print(broken)
