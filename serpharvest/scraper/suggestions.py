"""Related-keyword ("people also search for") extraction."""

import logging

from ..models import SearchSuggestion
from .browser import BrowserPage
from .engines import SearchEngine

logger = logging.getLogger(__name__)


class SuggestionCollector:
    """Reads the related-searches block of the current result page."""

    def __init__(self, page: BrowserPage, engine: SearchEngine):
        self.page = page
        self.engine = engine

    async def collect(self, keyword: str) -> list[SearchSuggestion]:
        """
        Collect suggestions in page order.

        Returns an empty list when the page has no related-searches block or
        it can't be read; neither case is an error.
        """
        logger.info("Collecting search suggestions for '%s'", keyword)

        try:
            container = await self.page.query_selector(self.engine.suggestions_container)
            if not container:
                logger.info("No search suggestions for '%s'", keyword)
                return []

            suggestions = []
            for link in await container.query_selector_all(self.engine.suggestion_link):
                try:
                    text = await self.engine.suggestion_text(link)
                    href = await link.get_attribute("href") or ""
                except Exception as e:
                    logger.debug("Failed to read suggestion link: %s", e)
                    continue

                suggestions.append(SearchSuggestion(
                    suggestion=text,
                    url=self.engine.resolve(href),
                ))

        except Exception as e:
            logger.warning("Error collecting search suggestions for '%s': %s", keyword, e)
            return []

        logger.debug("Found %d suggestions for '%s'", len(suggestions), keyword)
        return suggestions
