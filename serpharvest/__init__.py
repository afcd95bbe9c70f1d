"""
serpharvest - Search result and related-keyword harvester.

Drives a real browser through a search engine's result pages, clears its
click-captcha gate with a solving service, and follows "people also search
for" keywords a few levels deep.

CLI Usage:
    serpharvest run keywords.txt --engine yandex --pages 3
    serpharvest run keywords.txt --also-searched-for --depth 2 -j 4 -o out.jsonl

Library Usage:
    from serpharvest import HarvestRunner, generate_tasks, get_engine

    tasks = generate_tasks(["coffee beans"], page_limit=2)
    report = await HarvestRunner(get_engine("bing"), solver, sink, browser.task_page).run(tasks)
"""

__version__ = "0.3.0"

VERSION_INFO = {
    "major": 0,
    "minor": 3,
    "patch": 0,
    "release": "beta",  # stable, beta, alpha
}


def get_version() -> str:
    """Get full version string."""
    version = f"{VERSION_INFO['major']}.{VERSION_INFO['minor']}.{VERSION_INFO['patch']}"
    if VERSION_INFO["release"] != "stable":
        version += f"-{VERSION_INFO['release']}"
    return version


from serpharvest.models import HarvestTask, SearchResult, SearchSuggestion, SerpResult, TaskOutcome
from serpharvest.runner import HarvestReport, HarvestRunner, generate_tasks
from serpharvest.scraper.engines import get_engine

__all__ = [
    "HarvestReport",
    "HarvestRunner",
    "HarvestTask",
    "SearchResult",
    "SearchSuggestion",
    "SerpResult",
    "TaskOutcome",
    "generate_tasks",
    "get_engine",
    "__version__",
    "get_version",
    "VERSION_INFO",
]
