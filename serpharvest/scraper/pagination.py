"""Organic result extraction and pagination across result pages."""

import logging
from typing import Optional

from ..config import HarvestConfig
from ..export import ResultSink
from ..models import SearchResult, SerpResult
from .browser import BrowserPage
from .challenge import ChallengeSolver
from .engines import SearchEngine

logger = logging.getLogger(__name__)

RECORD_FIELDS = ["keyword", "position", "anchor", "snippet", "url"]


class PageResultExtractor:
    """Extracts one page's worth of ranked organic results."""

    def __init__(
        self,
        page: BrowserPage,
        engine: SearchEngine,
        sink: ResultSink,
        config: Optional[HarvestConfig] = None,
    ):
        self.page = page
        self.engine = engine
        self.sink = sink
        self.config = config or HarvestConfig()

    async def extract(self, serp_result: SerpResult, position: int) -> int:
        """
        Append the current page's results to ``serp_result``.

        Args:
            serp_result: Harvest being built for the active keyword
            position: Position to give the first result on this page

        Returns:
            Position for the first result of the next page
        """
        await self.page.wait_for_selector(
            self.engine.results_ready, timeout=self.config.selector_timeout
        )

        elements = await self.page.query_selector_all(self.engine.result_item)
        logger.debug("Found %d result elements for '%s'", len(elements), serp_result.keyword)

        for element in elements:
            result = await self._parse_single_result(element, position)
            if not result:
                continue

            self.sink.post_result_to_storage(
                fields=RECORD_FIELDS,
                values={
                    "keyword": serp_result.keyword,
                    "position": result.position,
                    "anchor": result.anchor_link,
                    "snippet": result.text_snippet,
                    "url": result.url,
                },
            )
            serp_result.search_results.append(result)
            position += 1

        return position

    async def _parse_single_result(self, element, position: int) -> Optional[SearchResult]:
        """Parse one result element; None if it has no organic link."""
        try:
            link = await element.query_selector(self.engine.organic_link)
            if not link:
                return None

            url = await link.get_attribute("href")
            if not url:
                return None

            anchor = await link.text_content() or ""

        except Exception as e:
            logger.debug("Error parsing result element: %s", e)
            return None

        try:
            snippet = await self.engine.snippet_text(element)
        except Exception as e:
            logger.debug("Failed to read snippet: %s", e)
            snippet = ""

        return SearchResult(
            position=position,
            url=url,
            anchor_link=anchor.strip(),
            text_snippet=snippet,
        )


class PaginationWalker:
    """Drives the extractor across successive result pages."""

    def __init__(
        self,
        page: BrowserPage,
        engine: SearchEngine,
        extractor: PageResultExtractor,
        challenge: ChallengeSolver,
        config: Optional[HarvestConfig] = None,
    ):
        self.page = page
        self.engine = engine
        self.extractor = extractor
        self.challenge = challenge
        self.config = config or HarvestConfig()

    async def walk(self, serp_result: SerpResult, page_limit: int, position: int = 1) -> int:
        """
        Extract the current page and follow "next page" up to ``page_limit`` pages.

        Navigation and extraction errors propagate; the caller decides what a
        failed keyword means.

        Returns:
            The position counter after the last extracted result
        """
        position = await self.extractor.extract(serp_result, position)
        current_page = 1

        while current_page < page_limit:
            next_url = await self._next_page_url()
            if not next_url:
                logger.info("No more result pages for '%s' after page %d", serp_result.keyword, current_page)
                break

            current_page += 1
            logger.info("Navigating to page %d for '%s'", current_page, serp_result.keyword)
            logger.debug("Next page url: %s", next_url)

            await self.page.goto(
                next_url,
                wait_until=self.config.wait_until,
                timeout=self.config.pagination_timeout,
            )
            await self.challenge.ensure_clear()

            position = await self.extractor.extract(serp_result, position)

        return position

    async def _next_page_url(self) -> Optional[str]:
        """The last pager link is the "next" control."""
        links = await self.page.query_selector_all(self.engine.next_page)
        if not links:
            return None

        href = await links[-1].get_attribute("href")
        if not href:
            return None

        return self.engine.resolve(href)
