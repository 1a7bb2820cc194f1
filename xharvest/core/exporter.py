"""Export utilities for scrape outcomes."""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from xharvest.models.outcome import ScrapeOutcome

if TYPE_CHECKING:
    import pandas as pd

try:
    import pandas as pd
    PANDAS_AVAILABLE = True
except ImportError:
    PANDAS_AVAILABLE = False


def save_json(
    outcome: ScrapeOutcome,
    target: str | Path,
    indent: int = 2,
) -> Path:
    """
    Save one outcome as JSON.

    Args:
        outcome: ScrapeOutcome to serialize
        target: File path, or an existing directory to write ``{handle}.json`` into
        indent: JSON indentation level

    Returns:
        Path to saved file
    """
    path = Path(target)
    if path.is_dir():
        path = path / f"{outcome.handle}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(outcome.model_dump_json(indent=indent), encoding="utf-8")
    return path


def save_many_json(
    outcomes: dict[str, ScrapeOutcome],
    output_dir: str | Path,
    filename_template: str = "{handle}.json",
) -> list[Path]:
    """
    Save each outcome of a batch to its own JSON file.

    Args:
        outcomes: Outcomes keyed by handle, as returned by ``scrape_many``
        output_dir: Directory for output files
        filename_template: Template with {handle} placeholder

    Returns:
        List of paths to saved files
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    return [
        save_json(outcome, output_path / filename_template.format(handle=handle))
        for handle, outcome in outcomes.items()
    ]


def load_outcomes(source: str | Path) -> dict[str, ScrapeOutcome]:
    """
    Read outcomes back, keyed by handle.

    ``source`` is one saved file or a directory written by :func:`save_many_json`;
    a directory's ``*.json`` files are read in name order.
    """
    path = Path(source)
    files = sorted(path.glob("*.json")) if path.is_dir() else [path]
    outcomes: dict[str, ScrapeOutcome] = {}
    for file in files:
        outcome = ScrapeOutcome.model_validate_json(file.read_text(encoding="utf-8"))
        outcomes[outcome.handle] = outcome
    return outcomes


def batch_summary(outcomes: dict[str, ScrapeOutcome]) -> dict:
    """Success and failure counts plus every outcome as JSON-safe data."""
    succeeded = sum(1 for outcome in outcomes.values() if outcome.success)
    return {
        "total": len(outcomes),
        "successful": succeeded,
        "failed": len(outcomes) - succeeded,
        "results": {handle: outcome.model_dump(mode="json") for handle, outcome in outcomes.items()},
    }


def merge_outcomes(outcomes: list[ScrapeOutcome]) -> dict:
    """
    Merge several outcomes into one export-friendly dict.

    Each post carries a ``_handle`` key naming the account it was scraped for.
    Failed outcomes are listed under ``failures`` with their error.
    """
    posts = []
    failures = []
    for outcome in outcomes:
        if not outcome.success:
            failures.append({"handle": outcome.handle, "error": outcome.error})
        for post in outcome.posts:
            post_data = post.model_dump(mode="json")
            post_data["_handle"] = outcome.handle
            post_data["_channel"] = outcome.channel_used
            posts.append(post_data)

    return {
        "exported_at": datetime.now().isoformat(),
        "handles_count": len(outcomes),
        "posts_count": len(posts),
        "failures": failures,
        "posts": posts,
    }


def _check_pandas():
    """Raise ImportError if pandas is not available."""
    if not PANDAS_AVAILABLE:
        raise ImportError(
            "pandas is required for DataFrame export. Install with: pip install xharvest[pandas]"
        )


def _post_rows(outcome: ScrapeOutcome) -> list[dict]:
    rows = []
    for post in outcome.posts:
        row = post.model_dump(mode="json", exclude={"metrics"})
        row.update(post.metrics.model_dump())
        row["handle"] = outcome.handle
        row["channel"] = outcome.channel_used
        rows.append(row)
    return rows


def to_posts_df(outcome: ScrapeOutcome) -> "pd.DataFrame":
    """
    Convert posts from a ScrapeOutcome to a pandas DataFrame.

    Metrics are flattened into one column each (likes, retweets, ...).

    Raises:
        ImportError: If pandas is not installed
    """
    _check_pandas()
    return pd.DataFrame(_post_rows(outcome))


def outcomes_to_posts_df(outcomes: list[ScrapeOutcome]) -> "pd.DataFrame":
    """
    Convert posts from several outcomes to a single DataFrame with a 'handle' column.

    Raises:
        ImportError: If pandas is not installed
    """
    _check_pandas()

    rows = []
    for outcome in outcomes:
        rows.extend(_post_rows(outcome))
    return pd.DataFrame(rows)


def save_csv(outcome: ScrapeOutcome, filepath: str | Path) -> Path:
    """
    Save an outcome's posts to a CSV file.

    Raises:
        ImportError: If pandas is not installed
    """
    _check_pandas()

    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    to_posts_df(outcome).to_csv(path, index=False)
    return path
