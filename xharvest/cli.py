"""Command-line interface for xharvest."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from xharvest import Harvester, HarvestConfig, ScrapeRequest, __version__
from xharvest.config import LogFormat
from xharvest.core.exporter import save_many_json

app = typer.Typer(
    name="xharvest",
    help="Multi-channel X/Twitter post harvester",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"xharvest version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """xharvest - multi-channel X/Twitter post harvester."""
    pass


def _config(quiet: bool = False) -> HarvestConfig:
    config = HarvestConfig()
    if quiet:
        config.log_format = LogFormat.JSON
        config.log_level = "ERROR"
    return config


@app.command()
def scrape(
    handles: list[str] = typer.Argument(..., help="X handles to scrape"),
    keyword: list[str] = typer.Option(
        [], "--keyword", "-k", help="Keep posts containing any of these (repeatable)"
    ),
    max_items: int = typer.Option(20, "--max", "-n", min=1, help="Posts per handle"),
    replies: bool = typer.Option(False, "--replies", help="Include replies"),
    retweets: bool = typer.Option(True, "--retweets/--no-retweets", help="Include retweets"),
    since: Optional[datetime] = typer.Option(None, "--since", help="Only posts at or after this date"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for JSON files"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output, only show errors"),
):
    """Scrape recent posts for one or more handles."""
    config = _config(quiet)

    async def run():
        async with Harvester(config) as harvester:
            if len(handles) == 1:
                request = ScrapeRequest(
                    handle=handles[0],
                    keywords=keyword,
                    max_items=max_items,
                    include_replies=replies,
                    include_retweets=retweets,
                    since_date=since,
                )
                outcome = await harvester.scrape(request)
                outcomes = {outcome.handle: outcome}
            else:
                outcomes = await harvester.scrape_many(
                    handles,
                    keyword,
                    max_items,
                    include_replies=replies,
                    include_retweets=retweets,
                    since_date=since,
                )

        for outcome in outcomes.values():
            if outcome.success:
                if not quiet:
                    _print_outcome(outcome)
            else:
                console.print(f"[red]x[/red] Failed to scrape @{outcome.handle}: {outcome.error or 'Unknown error'}")

        if output:
            for path in save_many_json(outcomes, output):
                console.print(f"[dim]Saved to {path}[/dim]")

        success_count = sum(1 for outcome in outcomes.values() if outcome.success)
        console.print(f"\n[bold]Scraped {success_count}/{len(outcomes)} handles[/bold]")

    try:
        asyncio.run(run())
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def avatar(handle: str = typer.Argument(..., help="X handle")):
    """Resolve a profile image URL."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.resolve_avatar(handle)

    url = asyncio.run(run())
    if not url:
        console.print(f"[red]No avatar found for {handle}[/red]")
        raise typer.Exit(1)
    console.print(url)


@app.command()
def post(
    urls_or_ids: list[str] = typer.Argument(..., help="Status URLs or numeric post ids"),
):
    """Fetch one or more posts; several are looked up in paced groups."""

    async def run():
        async with Harvester(_config()) as harvester:
            if len(urls_or_ids) == 1:
                return {urls_or_ids[0]: await harvester.scrape_post(urls_or_ids[0])}
            return await harvester.scrape_posts(urls_or_ids)

    found = asyncio.run(run())
    for key, item in found.items():
        if item is None:
            console.print(f"[red]Post not found: {key}[/red]")
            continue
        console.print(f"[bold]@{item.author_handle}[/bold] [dim]{item.posted_at:%Y-%m-%d %H:%M}[/dim]")
        console.print(item.content)
        m = item.metrics
        console.print(f"[dim]{m.likes:,} likes · {m.retweets:,} reposts · {m.replies:,} replies · {m.views:,} views[/dim]")
        console.print(f"[dim]{item.url}[/dim]")

    if all(item is None for item in found.values()):
        raise typer.Exit(1)


@app.command()
def media(handle: str = typer.Argument(..., help="X handle")):
    """Resolve avatar and banner image URLs."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.fetch_media(handle)

    found = asyncio.run(run())
    if found is None:
        console.print(f"[red]Invalid handle: {handle}[/red]")
        raise typer.Exit(1)
    console.print(f"Avatar: {found.avatar_url or '-'}")
    console.print(f"Banner: {found.banner_url or '-'}")


@app.command()
def profile(handle: str = typer.Argument(..., help="X handle")):
    """Show public account metadata."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.fetch_profile(handle)

    found = asyncio.run(run())
    if found is None:
        console.print(f"[red]Failed to fetch profile for {handle}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"@{found.handle}", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Name", found.name)
    table.add_row("Followers", f"{found.followers_count:,}")
    table.add_row("Following", f"{found.following_count:,}")
    table.add_row("Avatar", found.avatar_url or "-")
    console.print(table)


def _print_outcome(outcome):
    """Print scrape outcome summary."""
    console.print(f"\n[bold]@{outcome.handle}[/bold] [dim]via {outcome.channel_used}[/dim]")
    if outcome.enriched_count:
        console.print(f"  [dim]{outcome.enriched_count} posts enriched[/dim]")
    if outcome.error:
        console.print(f"  [yellow]{outcome.error}[/yellow]")

    for item in outcome.posts[:5]:
        marker = "[cyan]RT[/cyan] " if item.is_retweet else "   "
        text = item.content[:60] + "..." if len(item.content) > 60 else item.content
        console.print(f"{marker}[dim]{item.metrics.likes:>6,} likes[/dim]  {text}")
    console.print(f"  [dim]{len(outcome.posts)} posts fetched[/dim]")


if __name__ == "__main__":
    app()
