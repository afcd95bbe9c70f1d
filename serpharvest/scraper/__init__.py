"""SERP scraping module."""

# Captcha solving service
from .captcha import AntiCaptchaClient, CaptchaServiceError, AuthenticationError, CaptchaUnsolvableError

# Browser-driven harvesting
from .browser import BrowserManager
from .challenge import ChallengeSolver, ChallengeError, ChallengeExhaustedError, ChallengePanelMissingError
from .engines import BING, YANDEX, SearchEngine, get_engine
from .harvester import SerpHarvester

__all__ = [
    # Captcha service
    "AntiCaptchaClient",
    "CaptchaServiceError",
    "AuthenticationError",
    "CaptchaUnsolvableError",
    # Browser
    "BrowserManager",
    "ChallengeSolver",
    "ChallengeError",
    "ChallengeExhaustedError",
    "ChallengePanelMissingError",
    "SearchEngine",
    "BING",
    "YANDEX",
    "get_engine",
    "SerpHarvester",
]
