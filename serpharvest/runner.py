"""Task generation and the concurrent worker pool."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .config import HarvestConfig
from .dedup import BroadcastHub, KeywordDedupSet, normalize_keyword
from .export import ResultSink
from .models import HarvestTask, Proxy, SerpResult, TaskOutcome
from .scraper.captcha import CaptchaSolver
from .scraper.engines import SearchEngine
from .scraper.harvester import SerpHarvester

logger = logging.getLogger(__name__)


def generate_tasks(
    keywords: Iterable[str],
    also_searched_for: bool = False,
    search_depth: int = 0,
    page_limit: int = 1,
    proxies: Optional[list[Proxy]] = None,
    rng: Optional[random.Random] = None,
) -> list[HarvestTask]:
    """
    Build one task per keyword.

    Blank lines are dropped and repeated keywords keep only their first
    occurrence. Each task gets a randomly chosen proxy when a list is given.
    """
    rng = rng or random.Random()
    tasks = []
    seen = set()

    for raw in keywords:
        keyword = raw.strip()
        if not keyword:
            continue

        key = normalize_keyword(keyword)
        if key in seen:
            logger.warning("Duplicate keyword '%s' in input, keeping the first", keyword)
            continue
        seen.add(key)

        tasks.append(HarvestTask(
            keyword=keyword,
            also_searched_for=also_searched_for,
            search_depth=search_depth,
            page_limit=page_limit,
            proxy=rng.choice(proxies) if proxies else None,
        ))

    logger.info("Generated %d tasks", len(tasks))
    return tasks


@dataclass
class HarvestReport:
    """Everything a run produced."""

    results: list[SerpResult] = field(default_factory=list)
    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


# Opens a page for a task, e.g. BrowserManager.task_page
PageFactory = Callable[[HarvestTask], object]


class HarvestRunner:
    """
    Runs one worker per task, at most ``config.concurrency`` at a time.

    Workers share nothing but the broadcast hub: each gets its own dedup
    replica, seeded from what the hub has already broadcast, and its own
    page.
    """

    def __init__(
        self,
        engine: SearchEngine,
        captcha_solver: CaptchaSolver,
        sink: ResultSink,
        page_factory: PageFactory,
        config: Optional[HarvestConfig] = None,
        hub: Optional[BroadcastHub] = None,
    ):
        self.engine = engine
        self.captcha_solver = captcha_solver
        self.sink = sink
        self.page_factory = page_factory
        self.config = config or HarvestConfig()
        self.hub = hub or BroadcastHub()

    async def run(self, tasks: list[HarvestTask]) -> HarvestReport:
        """Run every task and gather their results."""
        semaphore = asyncio.Semaphore(max(1, self.config.concurrency))
        report = HarvestReport()

        async def worker(task: HarvestTask) -> None:
            async with semaphore:
                results, outcomes = await self.run_task(task)
                report.results.extend(results)
                report.outcomes.extend(outcomes)

        await asyncio.gather(*(worker(task) for task in tasks))

        logger.info(
            "Run complete: %d keywords harvested, %d failed",
            report.succeeded,
            report.failed,
        )
        return report

    async def run_task(self, task: HarvestTask) -> tuple[list[SerpResult], list[TaskOutcome]]:
        """
        Run a single task on its own page.

        Anything the harvester lets escape is reported as a failed row for
        the task's keyword; it never takes down sibling workers.
        """
        dedup = KeywordDedupSet(hub=self.hub)
        harvester = None

        try:
            async with self.page_factory(task) as page:
                harvester = SerpHarvester(
                    page,
                    self.engine,
                    self.captcha_solver,
                    self.sink,
                    dedup=dedup,
                    config=self.config,
                )
                results = await harvester.harvest(task)
                return results, list(harvester.outcomes)

        except Exception as e:
            logger.error("Task '%s' failed: %s", task.keyword, e)
            outcome = TaskOutcome.failed(task.keyword, str(e) or type(e).__name__)
            self.sink.post_result_to_table(outcome.to_row())

            results = list(harvester.serp_results) if harvester else []
            outcomes = list(harvester.outcomes) if harvester else []
            return results, outcomes + [outcome]

        finally:
            dedup.close()
