"""Keyword harvester: search, paginate and expand related keywords by depth."""

import logging
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..config import HarvestConfig
from ..dedup import KeywordDedupSet
from ..export import ResultSink
from ..models import HarvestTask, SearchDepth, SearchSuggestion, SerpResult, TaskOutcome
from .browser import BrowserPage
from .captcha import CaptchaSolver
from .challenge import ChallengeSolver
from .engines import SearchEngine
from .pagination import PageResultExtractor, PaginationWalker
from .suggestions import SuggestionCollector

logger = logging.getLogger(__name__)

# Depths at or above this are never expanded
MAX_SEARCH_DEPTH = 5


def should_expand(task: HarvestTask) -> bool:
    """Depth expansion runs only when enabled and 0 < depth < MAX_SEARCH_DEPTH."""
    return bool(task.also_searched_for) and 0 < task.search_depth < MAX_SEARCH_DEPTH


class SerpHarvester:
    """
    Harvests one seed keyword and, optionally, its related keywords.

    Holds the keyword currently being built, every completed harvest and
    the per-depth suggestion history for one task. One instance drives one
    browser page; nothing here runs concurrently.
    """

    def __init__(
        self,
        page: BrowserPage,
        engine: SearchEngine,
        captcha_solver: CaptchaSolver,
        sink: ResultSink,
        dedup: Optional[KeywordDedupSet] = None,
        config: Optional[HarvestConfig] = None,
    ):
        self.page = page
        self.engine = engine
        self.sink = sink
        self.dedup = dedup if dedup is not None else KeywordDedupSet()
        self.config = config or HarvestConfig()

        self.challenge = ChallengeSolver(page, engine, captcha_solver, self.config)
        self.suggestions = SuggestionCollector(page, engine)
        self.walker = PaginationWalker(
            page,
            engine,
            PageResultExtractor(page, engine, sink, self.config),
            self.challenge,
            self.config,
        )

        self.page_limit = 1
        self.serp_result: Optional[SerpResult] = None
        self.serp_results: list[SerpResult] = []
        self.search_depth: list[SearchDepth] = []
        self.outcomes: list[TaskOutcome] = []

    async def harvest(self, task: HarvestTask) -> list[SerpResult]:
        """
        Run one task: the seed keyword, then related keywords by depth.

        Challenge failures on the seed search propagate; the caller reports
        them as a failed task. Failures on related keywords only cost that
        keyword.

        Returns:
            Every SerpResult completed by this task, in harvest order
        """
        self.page_limit = max(1, task.page_limit)
        self.serp_results = []
        self.search_depth = []
        self.outcomes = []

        if self.dedup.mark_or_claim(task.keyword):
            logger.info("Keyword '%s' already harvested, skipping", task.keyword)
            return []

        self.serp_result = SerpResult(keyword=task.keyword)

        await self.open_search(task.keyword)

        suggestions = await self.collect_suggestions(task.keyword)
        self.search_depth.append(SearchDepth(search_depth_value=0, search_suggestions=suggestions))

        await self.collect_results(task.keyword)

        if should_expand(task):
            await self.expand(1, task.search_depth)

        return self.serp_results

    async def open_search(self, keyword: str) -> None:
        """Navigate to the engine and get a result page for ``keyword`` on screen."""
        url = self.engine.entry_url(keyword)
        logger.info("Navigating to %s", url)

        try:
            await self.page.goto(url, wait_until=self.config.wait_until, timeout=self.config.home_timeout)
        except PlaywrightTimeout as e:
            # Partially loaded pages are usually still usable
            logger.warning("Timeout while loading %s: %s", url, e)

        await self.challenge.ensure_clear()

        if self.engine.search_box:
            logger.info("Searching for '%s'", keyword)
            await self.page.wait_for_selector(self.engine.search_box, timeout=self.config.selector_timeout)
            await self.page.fill(self.engine.search_box, keyword)
            async with self.page.expect_navigation(timeout=self.config.home_timeout):
                await self.page.keyboard.press("Enter")

    async def collect_suggestions(self, keyword: str) -> list[SearchSuggestion]:
        """Clear any gate, then record the page's related keywords for ``keyword``."""
        await self.challenge.ensure_clear()

        suggestions = await self.suggestions.collect(keyword)
        self.serp_result.related_keywords.extend(suggestions)

        self.sink.post_result_to_storage(
            fields=["keyword", "suggestions"],
            values={
                "keyword": keyword,
                "suggestions": [s.to_dict() for s in suggestions],
            },
        )
        return suggestions

    async def collect_results(self, keyword: str) -> bool:
        """
        Paginate the active keyword's results and finalize its SerpResult.

        Returns:
            True if the keyword completed, False if it was reported failed
        """
        logger.info("Collecting results for '%s'", keyword)

        try:
            position = await self.walker.walk(self.serp_result, self.page_limit)
        except Exception as e:
            logger.error("Error collecting results for '%s': %s", keyword, e)
            self._report(TaskOutcome.failed(keyword, str(e)))
            return False

        amount_of_results = position - 1
        self.serp_result.amount_of_results = amount_of_results

        self._report(TaskOutcome(
            keyword=keyword,
            success=True,
            amount_of_results=amount_of_results,
            links_collected=amount_of_results,
        ))

        self.serp_results.append(self.serp_result)
        self.dedup.publish(self.serp_result)

        logger.info("Finished collecting %d results for '%s'", amount_of_results, keyword)
        return True

    async def expand(self, current_depth: int, max_depth: int) -> None:
        """
        Harvest related keywords level by level until ``current_depth > max_depth``.

        Each level's frontier is the suggestion list recorded for the level
        before it. Keywords already in the dedup set are skipped.
        """
        while current_depth <= max_depth:
            frontier = self._suggestions_at(current_depth - 1)
            level_suggestions: list[SearchSuggestion] = []

            for suggestion in frontier:
                keyword = suggestion.suggestion
                if not keyword:
                    continue

                if self.dedup.mark_or_claim(keyword):
                    logger.debug("Skipping '%s', already harvested", keyword)
                    continue

                logger.info("Navigating to '%s' related results at depth %d", keyword, current_depth)

                try:
                    await self.page.goto(
                        suggestion.url,
                        wait_until=self.config.wait_until,
                        timeout=self.config.suggestion_timeout,
                    )
                    self.serp_result = SerpResult(keyword=keyword)
                    level_suggestions.extend(await self.collect_suggestions(keyword))
                    await self.collect_results(keyword)

                except Exception as e:
                    logger.error("Error collecting related results for '%s': %s", keyword, e)
                    self._report(TaskOutcome.failed(keyword, str(e)))

            self.search_depth.append(SearchDepth(
                search_depth_value=current_depth,
                search_suggestions=level_suggestions,
            ))
            logger.info(
                "Depth %d done: %d suggestions queued for the next level",
                current_depth,
                len(level_suggestions),
            )

            current_depth += 1

    def _suggestions_at(self, depth: int) -> list[SearchSuggestion]:
        for level in self.search_depth:
            if level.search_depth_value == depth:
                return level.search_suggestions
        return []

    def _report(self, outcome: TaskOutcome) -> None:
        self.outcomes.append(outcome)
        self.sink.post_result_to_table(outcome.to_row())
