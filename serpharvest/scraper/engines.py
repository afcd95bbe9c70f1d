"""Per-site search engine profiles: selectors and extraction strategies."""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus, urljoin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeSelectors:
    """Selectors for a click-captcha gate."""

    gate_path: str
    footer: str  # only present once the image stage is showing
    checkbox: str
    panel: str  # element that gets screenshotted
    view: str  # element the returned coordinates are relative to
    actions: str  # controls hidden while screenshotting
    submit: str
    cookie_consent: Optional[str] = None


@dataclass(frozen=True)
class SearchEngine:
    """
    Selector profile and extraction strategy for one search engine.

    Playwright's CSS engine pierces open shadow roots, so plain descendant
    selectors stand in for composite pierce selectors.
    """

    name: str
    base_url: str
    results_ready: str
    result_item: str
    organic_link: str
    snippet: str
    next_page: str
    suggestions_container: str
    suggestion_link: str
    search_box: Optional[str] = None
    challenge: Optional[ChallengeSelectors] = None

    def entry_url(self, keyword: str) -> str:
        """URL opened for a depth-0 search."""
        return f"{self.base_url}/search?q={quote_plus(keyword)}"

    def resolve(self, href: str) -> str:
        """Resolve a relative link against the engine's origin."""
        return urljoin(self.base_url + "/", href)

    async def suggestion_text(self, element) -> str:
        text = await element.text_content()
        return (text or "").strip()

    async def snippet_text(self, element) -> str:
        snippet_el = await element.query_selector(self.snippet)
        if not snippet_el:
            return ""
        text = await snippet_el.text_content()
        return (text or "").strip()


@dataclass(frozen=True)
class YandexEngine(SearchEngine):
    """ya.ru: typed search from the home page, gated by a click-captcha."""

    def entry_url(self, keyword: str) -> str:
        return self.base_url

    async def suggestion_text(self, element) -> str:
        # Related searches carry the full query in the title; the visible
        # text is truncated.
        title = await element.get_attribute("title")
        return (title or "").strip()


@dataclass(frozen=True)
class BingEngine(SearchEngine):
    """bing.com: direct search URL, no challenge gate."""

    async def snippet_text(self, element) -> str:
        for paragraph in await element.query_selector_all(self.snippet):
            text = (await paragraph.text_content() or "").strip()
            if text:
                # Snippets are prefixed with a "Web" source label
                if text.startswith("Web"):
                    text = text[3:].lstrip()
                return text
        return ""


YANDEX = YandexEngine(
    name="yandex",
    base_url="https://ya.ru",
    results_ready="#search-result",
    result_item="#search-result li.serp-item",
    organic_link="div.VanillaReact a",
    snippet=".OrganicTextContentSpan",
    next_page="div.Pager-Content div a",
    suggestions_container="div.RelatedBottom-Items",
    suggestion_link="a",
    search_box="#text",
    challenge=ChallengeSelectors(
        gate_path="/showcaptcha",
        footer="div.AdvancedCaptcha-Footer",
        checkbox="div.CheckboxCaptcha-Anchor > div",
        panel="#advanced-captcha-form > div",
        view="div.AdvancedCaptcha-View",
        actions="#advanced-captcha-form > div > div.AdvancedCaptcha-FormActions",
        submit="button.CaptchaButton.CaptchaButton_view_action > div",
        cookie_consent="div.gdpr-popup-v3-button.gdpr-popup-v3-button_id_all",
    ),
)

BING = BingEngine(
    name="bing",
    base_url="https://www.bing.com",
    results_ready="#b_results li.b_algo h2 a",
    result_item="#b_results li.b_algo",
    organic_link="h2 a",
    snippet='p[class*="b_lineclamp"]',
    next_page="li.b_pag li a",
    suggestions_container="#brsv3",
    suggestion_link="li a",
)

ENGINES = {
    YANDEX.name: YANDEX,
    BING.name: BING,
}


def get_engine(name: str) -> SearchEngine:
    """
    Look up an engine profile by name.

    Raises:
        ValueError: if no profile has that name
    """
    try:
        return ENGINES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown search engine: {name} (choose from {', '.join(sorted(ENGINES))})"
        ) from None
