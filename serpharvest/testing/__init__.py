"""Test doubles for running the harvester without a browser."""

from .fake_page import (
    FakeCaptchaSolver,
    FakeElement,
    FakePage,
    FakeScreen,
    challenge_screen,
    result_element,
    results_screen,
    search_site,
    serp_url,
    suggestion_element,
)

__all__ = [
    "FakeCaptchaSolver",
    "FakeElement",
    "FakePage",
    "FakeScreen",
    "challenge_screen",
    "result_element",
    "results_screen",
    "search_site",
    "serp_url",
    "suggestion_element",
]
