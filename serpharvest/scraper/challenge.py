"""Click-captcha challenge gate detection and solving."""

import asyncio
import base64
import logging
import random
import tempfile
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..config import HarvestConfig
from .browser import BrowserPage
from .captcha import CaptchaSolver, DEFAULT_COMMENT
from .engines import ChallengeSelectors, SearchEngine

logger = logging.getLogger(__name__)

# Hides (or restores) the captcha action row so the screenshot only shows the task
_TOGGLE_JS = """([selector, hidden]) => {
    for (const el of document.querySelectorAll(selector)) {
        if (hidden) el.setAttribute("style", "display:none");
        else el.removeAttribute("style");
    }
}"""


class ChallengeStatus(Enum):
    CLEAR = "clear"  # no gate was showing
    SOLVED = "solved"
    EXHAUSTED = "exhausted"


@dataclass
class ChallengeOutcome:
    """Result of one solve() call."""

    status: ChallengeStatus
    attempts: int = 0

    @property
    def cleared(self) -> bool:
        return self.status is not ChallengeStatus.EXHAUSTED


class ChallengeError(Exception):
    """Base exception for challenge gate failures."""
    pass


class ChallengePanelMissingError(ChallengeError):
    """The gate is showing but its image panel can't be found."""
    pass


class ChallengeExhaustedError(ChallengeError):
    """The attempt or time budget ran out with the gate still showing."""
    pass


class ChallengeSolver:
    """
    Clears the engine's click-captcha gate.

    Each attempt walks checkbox stage -> image stage -> solution -> submit,
    then re-checks the URL. A wrong solution re-presents a challenge, so
    attempts repeat until the gate is gone or the budget runs out.
    """

    def __init__(
        self,
        page: BrowserPage,
        engine: SearchEngine,
        captcha_solver: CaptchaSolver,
        config: Optional[HarvestConfig] = None,
    ):
        self.page = page
        self.engine = engine
        self.captcha_solver = captcha_solver
        self.config = config or HarvestConfig()

    @property
    def selectors(self) -> Optional[ChallengeSelectors]:
        return self.engine.challenge

    def is_gated(self) -> bool:
        """True if the page is sitting on the challenge gate."""
        if self.selectors is None:
            return False
        return self.selectors.gate_path in self.page.url

    async def solve(self) -> ChallengeOutcome:
        """
        Clear the gate if one is showing.

        Returns:
            CLEAR if no gate was present, SOLVED once it is gone, EXHAUSTED if
            max_attempts or max_duration ran out first.

        Raises:
            ChallengePanelMissingError: image stage without a captcha panel
        """
        if not self.is_gated():
            return ChallengeOutcome(ChallengeStatus.CLEAR)

        started = time.monotonic()
        attempts = 0

        while self.is_gated():
            elapsed = time.monotonic() - started
            if attempts >= self.config.challenge_max_attempts or elapsed >= self.config.challenge_max_duration:
                logger.warning(
                    "Challenge still showing after %d attempts (%.0fs), giving up",
                    attempts,
                    elapsed,
                )
                return ChallengeOutcome(ChallengeStatus.EXHAUSTED, attempts)

            attempts += 1
            logger.info("Solving challenge at %s (attempt %d)", self.page.url, attempts)
            await self._attempt()

        logger.info("Challenge cleared after %d attempts", attempts)
        return ChallengeOutcome(ChallengeStatus.SOLVED, attempts)

    async def ensure_clear(self) -> ChallengeOutcome:
        """Like solve(), but an exhausted budget raises."""
        outcome = await self.solve()
        if not outcome.cleared:
            raise ChallengeExhaustedError(
                f"Challenge not solved after {outcome.attempts} attempts"
            )
        return outcome

    async def _attempt(self) -> None:
        sel = self.selectors

        if not await self.page.query_selector(sel.footer):
            await self._click_checkbox()
            if not self.is_gated():
                return

        await self._accept_cookies()

        image_base64 = await self._capture_panel()

        logger.info("Waiting for captcha solution")
        points = await self.captcha_solver.solve_coordinates(image_base64, DEFAULT_COMMENT)
        logger.debug("Captcha points: %s", points)

        await self._click_points(points)
        await asyncio.sleep(self.config.submit_delay)

        logger.info("Submitting captcha")
        await self._click_and_wait(sel.submit)

    async def _click_checkbox(self) -> None:
        logger.info("Clicking challenge checkbox")
        await self.page.wait_for_selector(
            self.selectors.checkbox, timeout=self.config.selector_timeout
        )
        await self._click_and_wait(self.selectors.checkbox)

    async def _accept_cookies(self) -> None:
        consent = self.selectors.cookie_consent
        if consent and await self.page.query_selector(consent):
            logger.info("Accepting cookie consent on challenge page")
            await self.page.click(consent)

    async def _capture_panel(self) -> str:
        """Screenshot the captcha panel and return it base64 encoded."""
        sel = self.selectors
        path = Path(tempfile.gettempdir()) / f"{self.engine.name}-captcha-{uuid.uuid4().hex[:12]}.png"

        await self.page.evaluate(_TOGGLE_JS, [sel.actions, True])
        try:
            await asyncio.sleep(self.config.settle_delay)

            panel = await self.page.query_selector(sel.panel)
            if not panel:
                raise ChallengePanelMissingError(
                    f"Challenge panel '{sel.panel}' not found on {self.page.url}"
                )

            logger.debug("Screenshotting captcha to %s", path)
            await panel.screenshot(path=str(path))
        finally:
            await self.page.evaluate(_TOGGLE_JS, [sel.actions, False])

        try:
            return base64.b64encode(path.read_bytes()).decode("ascii")
        finally:
            path.unlink(missing_ok=True)

    async def _click_points(self, points: list[tuple[float, float]]) -> None:
        for x, y in points:
            view = await self.page.query_selector(self.selectors.view)
            if not view:
                raise ChallengePanelMissingError(
                    f"Challenge view '{self.selectors.view}' disappeared while clicking"
                )
            box = await view.bounding_box()
            if not box:
                raise ChallengePanelMissingError(
                    f"Challenge view '{self.selectors.view}' is not visible"
                )
            await asyncio.sleep(random.uniform(self.config.click_delay_min, self.config.click_delay_max))
            await self.page.mouse.click(box["x"] + x, box["y"] + y)

    async def _click_and_wait(self, selector: str) -> None:
        """Click and wait for the navigation it triggers; not every click navigates."""
        try:
            async with self.page.expect_navigation(timeout=self.config.selector_timeout):
                await self.page.click(selector)
        except PlaywrightTimeout:
            logger.debug("No navigation after clicking %s", selector)
