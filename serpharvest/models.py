"""Data models for the SERP harvester."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SearchResult:
    """Represents one ranked organic result from a SERP."""

    position: int  # 1-based, continuous across pages of one keyword
    url: str
    anchor_link: str
    text_snippet: str = ""

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "url": self.url,
            "anchorLink": self.anchor_link,
            "textSnippet": self.text_snippet,
        }


@dataclass
class SearchSuggestion:
    """A related-keyword candidate with its direct navigation target."""

    suggestion: str
    url: str

    def to_dict(self) -> dict:
        return {"suggestion": self.suggestion, "url": self.url}


@dataclass
class SerpResult:
    """Container for one complete harvest of a single keyword."""

    keyword: str
    related_keywords: list[SearchSuggestion] = field(default_factory=list)
    amount_of_results: int = 0
    search_results: list[SearchResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "keyword": self.keyword,
            "relatedKeywords": [s.to_dict() for s in self.related_keywords],
            "amountOfResults": self.amount_of_results,
            "searchResults": [r.to_dict() for r in self.search_results],
        }


@dataclass
class SearchDepth:
    """Snapshot of all suggestions discovered at one expansion depth."""

    search_depth_value: int
    search_suggestions: list[SearchSuggestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "searchDepthValue": self.search_depth_value,
            "searchSuggestions": [s.to_dict() for s in self.search_suggestions],
        }


@dataclass
class Proxy:
    """A proxy server, optionally with credentials."""

    server: str
    port: str
    login: Optional[str] = None
    password: Optional[str] = None

    @property
    def server_url(self) -> str:
        return f"http://{self.server}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.login and self.password)

    def to_playwright(self) -> dict:
        """Proxy settings in the shape Playwright's new_context() expects."""
        settings = {"server": self.server_url}
        if self.has_credentials:
            settings["username"] = self.login
            settings["password"] = self.password
        return settings


@dataclass
class HarvestTask:
    """One generated unit of work: a single seed keyword."""

    keyword: str
    also_searched_for: bool = False
    search_depth: int = 0
    page_limit: int = 1
    proxy: Optional[Proxy] = None


@dataclass
class TaskOutcome:
    """Per-keyword summary row posted to the result table."""

    keyword: str
    success: bool
    amount_of_results: int = 0
    links_collected: int = 0
    error: Optional[str] = None

    @classmethod
    def failed(cls, keyword: str, error: Optional[str] = None) -> "TaskOutcome":
        return cls(keyword=keyword, success=False, error=error)

    def to_row(self) -> dict:
        row = {
            "Keyword": self.keyword,
            "Amount of results": self.amount_of_results,
            "Amount of links collected": self.links_collected,
            "Job result": self.success,
        }
        if self.error:
            row["Error"] = self.error
        return row
