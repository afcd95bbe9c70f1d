"""Tests for related-keyword collection."""

import pytest

from serpharvest.scraper.engines import BING, YANDEX
from serpharvest.scraper.suggestions import SuggestionCollector
from serpharvest.testing import FakeElement, FakePage, FakeScreen, results_screen

URL = "https://ya.ru/search/?text=alpha"


class TestSuggestionCollector:
    """Test the related-searches block."""

    @pytest.mark.asyncio
    async def test_collects_in_page_order(self):
        screen = results_screen(YANDEX, [], suggestions=[
            ("beta", "/search/?text=beta"),
            ("gamma", "https://ya.ru/search/?text=gamma"),
        ])
        page = FakePage({URL: screen}, url=URL)

        suggestions = await SuggestionCollector(page, YANDEX).collect("alpha")

        assert [s.suggestion for s in suggestions] == ["beta", "gamma"]
        assert [s.url for s in suggestions] == [
            "https://ya.ru/search/?text=beta",
            "https://ya.ru/search/?text=gamma",
        ]

    @pytest.mark.asyncio
    async def test_no_block_is_empty(self):
        page = FakePage({URL: results_screen(YANDEX, [])}, url=URL)

        assert await SuggestionCollector(page, YANDEX).collect("alpha") == []

    @pytest.mark.asyncio
    async def test_bing_reads_link_text(self):
        url = "https://www.bing.com/search?q=alpha"
        link = FakeElement(text=" beta ", attrs={"href": "/search?q=beta"})
        screen = FakeScreen({BING.suggestions_container: [
            FakeElement(children={BING.suggestion_link: [link]}),
        ]})
        page = FakePage({url: screen}, url=url)

        suggestions = await SuggestionCollector(page, BING).collect("alpha")

        assert suggestions[0].suggestion == "beta"
        assert suggestions[0].url == "https://www.bing.com/search?q=beta"

    @pytest.mark.asyncio
    async def test_unreadable_link_skipped(self):
        class BrokenLink(FakeElement):
            async def get_attribute(self, name):
                raise RuntimeError("detached")

        container = FakeElement(children={YANDEX.suggestion_link: [
            BrokenLink(),
            FakeElement(attrs={"title": "gamma", "href": "/search/?text=gamma"}),
        ]})
        page = FakePage({URL: FakeScreen({YANDEX.suggestions_container: [container]})}, url=URL)

        suggestions = await SuggestionCollector(page, YANDEX).collect("alpha")

        assert [s.suggestion for s in suggestions] == ["gamma"]

    @pytest.mark.asyncio
    async def test_page_error_degrades_to_empty(self):
        class BrokenPage(FakePage):
            async def query_selector(self, selector):
                raise RuntimeError("page crashed")

        assert await SuggestionCollector(BrokenPage(url=URL), YANDEX).collect("alpha") == []
