"""Tests for the keyword harvester and depth expansion."""

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from serpharvest.dedup import KeywordDedupSet
from serpharvest.models import HarvestTask, SerpResult
from serpharvest.scraper.challenge import ChallengePanelMissingError
from serpharvest.scraper.engines import BING, YANDEX
from serpharvest.scraper.harvester import SerpHarvester, should_expand
from serpharvest.testing import FakePage, challenge_screen, search_site, serp_url

HOME = "https://ya.ru"
GATE = "https://ya.ru/showcaptcha?retpath=home"

GRAPH = {
    "alpha": ["beta", "gamma"],
    "beta": ["delta"],
    "gamma": [],
    "delta": ["epsilon"],
    "epsilon": [],
}


def task(keyword="alpha", depth=0, also_searched_for=True, pages=1) -> HarvestTask:
    return HarvestTask(keyword, also_searched_for=also_searched_for, search_depth=depth, page_limit=pages)


def navigated_keywords(page) -> list[str]:
    """Result pages opened by goto, as keywords."""
    return [url.rsplit("=", 1)[-1] for url in page.gotos if "text=" in url]


class TestShouldExpand:
    """Test the depth expansion precondition."""

    @pytest.mark.parametrize("depth,expected", [
        (-1, False),
        (0, False),
        (1, True),
        (4, True),
        (5, False),
        (9, False),
    ])
    def test_depth_bounds(self, depth, expected):
        assert should_expand(task(depth=depth)) is expected

    def test_flag_required(self):
        assert should_expand(task(depth=2, also_searched_for=False)) is False


class TestSeedKeyword:
    """Test the depth-0 search."""

    @pytest.mark.asyncio
    async def test_typed_search(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))
        harvester = SerpHarvester(page, YANDEX, solver, sink, dedup, config)

        results = await harvester.harvest(task(depth=0))

        assert page.gotos == [HOME]
        assert page.filled == {YANDEX.search_box: "alpha"}
        assert page.keyboard.presses == ["Enter"]
        assert [r.keyword for r in results] == ["alpha"]
        assert results[0].amount_of_results == 2
        assert [s.suggestion for s in results[0].related_keywords] == ["beta", "gamma"]

    @pytest.mark.asyncio
    async def test_bing_direct_search(self, solver, sink, dedup, config):
        page = FakePage(search_site(BING, GRAPH))
        harvester = SerpHarvester(page, BING, solver, sink, dedup, config)

        results = await harvester.harvest(task(depth=0))

        assert page.gotos == ["https://www.bing.com/search?q=alpha"]
        assert page.filled == {}
        assert results[0].amount_of_results == 2

    @pytest.mark.asyncio
    async def test_depth_zero_recorded(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))
        harvester = SerpHarvester(page, YANDEX, solver, sink, dedup, config)

        await harvester.harvest(task(depth=0))

        assert len(harvester.search_depth) == 1
        level = harvester.search_depth[0]
        assert level.search_depth_value == 0
        assert [s.suggestion for s in level.search_suggestions] == ["beta", "gamma"]

    @pytest.mark.asyncio
    async def test_posts_rows_and_records(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))

        await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=0))

        assert sink.rows == [{
            "Keyword": "alpha",
            "Amount of results": 2,
            "Amount of links collected": 2,
            "Job result": True,
        }]
        suggestion_records = [r for r in sink.records if "suggestions" in r]
        assert suggestion_records[0]["keyword"] == "alpha"
        assert [s["suggestion"] for s in suggestion_records[0]["suggestions"]] == ["beta", "gamma"]
        assert sum(1 for r in sink.records if "position" in r) == 2

    @pytest.mark.asyncio
    async def test_already_claimed_keyword_skipped(self, solver, sink, dedup, config):
        dedup.mark_or_claim("alpha")
        page = FakePage(search_site(YANDEX, GRAPH))

        results = await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=2))

        assert results == []
        assert page.gotos == []

    @pytest.mark.asyncio
    async def test_home_page_challenge_solved(self, solver, sink, dedup, config):
        screens = search_site(YANDEX, GRAPH)
        screens[GATE] = challenge_screen(YANDEX, submit_to=HOME)
        page = FakePage(screens, redirects={HOME: GATE})

        results = await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=0))

        assert len(solver.images) == 1
        assert [r.keyword for r in results] == ["alpha"]

    @pytest.mark.asyncio
    async def test_seed_challenge_failure_propagates(self, solver, sink, dedup, config):
        screens = search_site(YANDEX, GRAPH)
        screens[GATE] = challenge_screen(YANDEX, panel=False)
        page = FakePage(screens, redirects={HOME: GATE})

        with pytest.raises(ChallengePanelMissingError):
            await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=1))


class TestDepthExpansion:
    """Test related keyword expansion."""

    @pytest.mark.asyncio
    async def test_depth_one(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))
        harvester = SerpHarvester(page, YANDEX, solver, sink, dedup, config)

        results = await harvester.harvest(task(depth=1))

        assert navigated_keywords(page) == ["beta", "gamma"]
        assert [r.keyword for r in results] == ["alpha", "beta", "gamma"]
        assert [d.search_depth_value for d in harvester.search_depth] == [0, 1]
        assert [s.suggestion for s in harvester.search_depth[1].search_suggestions] == ["delta"]

    @pytest.mark.asyncio
    async def test_depth_two(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))
        harvester = SerpHarvester(page, YANDEX, solver, sink, dedup, config)

        results = await harvester.harvest(task(depth=2))

        assert navigated_keywords(page) == ["beta", "gamma", "delta"]
        assert [r.keyword for r in results] == ["alpha", "beta", "gamma", "delta"]
        assert [d.search_depth_value for d in harvester.search_depth] == [0, 1, 2]

    @pytest.mark.parametrize("depth", [0, 5, 7])
    @pytest.mark.asyncio
    async def test_out_of_range_depth_never_expands(self, depth, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))

        results = await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=depth))

        assert navigated_keywords(page) == []
        assert [r.keyword for r in results] == ["alpha"]

    @pytest.mark.asyncio
    async def test_flag_off_never_expands(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH))

        await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(
            task(depth=3, also_searched_for=False)
        )

        assert navigated_keywords(page) == []

    @pytest.mark.asyncio
    async def test_broadcast_keyword_skipped(self, solver, sink, hub, dedup, config):
        sibling = KeywordDedupSet(hub)
        sibling.publish(SerpResult(keyword="beta"))
        page = FakePage(search_site(YANDEX, GRAPH))

        results = await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=1))

        assert navigated_keywords(page) == ["gamma"]
        assert [r.keyword for r in results] == ["alpha", "gamma"]

    @pytest.mark.asyncio
    async def test_completed_keywords_broadcast(self, solver, sink, hub, dedup, config):
        sibling = KeywordDedupSet(hub)
        page = FakePage(search_site(YANDEX, GRAPH))

        await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=1))

        assert all(k in sibling for k in ["alpha", "beta", "gamma"])
        assert "delta" not in sibling

    @pytest.mark.asyncio
    async def test_duplicates_harvested_once(self, solver, sink, dedup, config):
        graph = {"alpha": ["beta", "Beta", "alpha"], "beta": ["alpha"]}
        page = FakePage(search_site(YANDEX, graph))

        results = await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=2))

        assert navigated_keywords(page) == ["beta"]
        assert [r.keyword for r in results] == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_amount_matches_results(self, solver, sink, dedup, config):
        page = FakePage(search_site(YANDEX, GRAPH, results_per_keyword=3))

        results = await SerpHarvester(page, YANDEX, solver, sink, dedup, config).harvest(task(depth=3))

        assert results
        for serp in results:
            assert serp.amount_of_results == len(serp.search_results) == 3
            assert [r.position for r in serp.search_results] == [1, 2, 3]


class TestKeywordFailures:
    """Test that one failing keyword leaves its siblings alone."""

    @pytest.mark.asyncio
    async def test_navigation_failure_isolated(self, solver, sink, dedup, config):
        page = FakePage(
            search_site(YANDEX, GRAPH),
            goto_errors={serp_url(YANDEX, "beta"): PlaywrightTimeout("Timeout 15000ms exceeded")},
        )
        harvester = SerpHarvester(page, YANDEX, solver, sink, dedup, config)

        results = await harvester.harvest(task(depth=1))

        assert [r.keyword for r in results] == ["alpha", "gamma"]
        assert [(r["Keyword"], r["Job result"]) for r in sink.rows] == [
            ("alpha", True),
            ("beta", False),
            ("gamma", True),
        ]
        assert "15000ms" in sink.rows[1]["Error"]
        assert [d.search_depth_value for d in harvester.search_depth] == [0, 1]

    @pytest.mark.asyncio
    async def test_extraction_failure_isolated(self, solver, sink, dedup, config):
        screens = search_site(YANDEX, GRAPH)
        del screens[serp_url(YANDEX, "beta")].elements[YANDEX.results_ready]
        page = FakePage(screens)
        harvester = SerpHarvester(page, YANDEX, solver, sink, dedup, config)

        results = await harvester.harvest(task(depth=1))

        assert [r.keyword for r in results] == ["alpha", "gamma"]
        failed = [o for o in harvester.outcomes if not o.success]
        assert [o.keyword for o in failed] == ["beta"]
        # beta's suggestions were read before its results failed
        assert [s.suggestion for s in harvester.search_depth[1].search_suggestions] == ["delta"]
