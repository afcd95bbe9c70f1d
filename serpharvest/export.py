"""Result sinks and export of harvested SERP data (JSON, JSONL, CSV)."""

import csv
import json
import logging
from pathlib import Path
from typing import Iterator, Optional, Protocol

from .models import SerpResult

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    """Where the harvester reports per-keyword rows and per-record data."""

    def post_result_to_table(self, row: dict) -> None:
        ...

    def post_result_to_storage(self, fields: list[str], values: dict) -> None:
        ...


class ResultCollector:
    """In-memory sink; keeps everything posted to it."""

    def __init__(self):
        self.rows: list[dict] = []
        self.records: list[dict] = []

    def post_result_to_table(self, row: dict) -> None:
        self.rows.append(row)

    def post_result_to_storage(self, fields: list[str], values: dict) -> None:
        self.records.append({name: values.get(name) for name in fields})

    @property
    def succeeded(self) -> list[dict]:
        return [row for row in self.rows if row.get("Job result")]

    @property
    def failed(self) -> list[dict]:
        return [row for row in self.rows if not row.get("Job result")]


class FileResultSink(ResultCollector):
    """Collects rows in memory and appends every storage record to a JSONL file."""

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def post_result_to_storage(self, fields: list[str], values: dict) -> None:
        super().post_result_to_storage(fields, values)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(self.records[-1], ensure_ascii=False, default=str) + "\n")


CSV_COLUMNS = [
    "keyword",
    "position",
    "url",
    "anchor",
    "snippet",
    "amount_of_results",
    "related_keywords",
]


def csv_rows(results: list[SerpResult]) -> Iterator[dict]:
    """Flatten harvests to one CSV row per search result."""
    for serp in results:
        related = "; ".join(s.suggestion for s in serp.related_keywords if s.suggestion)
        for result in serp.search_results:
            yield {
                "keyword": serp.keyword,
                "position": result.position,
                "url": result.url,
                "anchor": result.anchor_link,
                "snippet": result.text_snippet,
                "amount_of_results": serp.amount_of_results,
                "related_keywords": related,
            }


def export_to_csv(results: list[SerpResult], output_path: str) -> str:
    """
    Export harvested results to CSV, one row per search result.

    Args:
        results: Completed harvests
        output_path: Path to output file

    Returns:
        Path to the created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(csv_rows(results))

    logger.info("Exported %d keywords to %s", len(results), output_path)
    return str(output_path)


def export_to_json(results: list[SerpResult], output_path: str, lines: bool = False) -> str:
    """Export harvested results to a JSON array, or JSONL with ``lines=True``."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        if lines:
            for serp in results:
                f.write(json.dumps(serp.to_dict(), ensure_ascii=False) + "\n")
        else:
            json.dump([serp.to_dict() for serp in results], f, indent=2, ensure_ascii=False)

    logger.info("Exported %d keywords to %s", len(results), output_path)
    return str(output_path)


def export_serp_results(
    results: list[SerpResult],
    output_path: str,
    output_format: Optional[str] = None,
) -> str:
    """
    Export results, picking the format from the argument or file extension.

    Raises:
        ValueError: for an unknown format
    """
    if not output_format:
        output_format = Path(output_path).suffix.lstrip(".").lower() or "json"

    if output_format == "csv":
        return export_to_csv(results, output_path)
    if output_format == "json":
        return export_to_json(results, output_path)
    if output_format == "jsonl":
        return export_to_json(results, output_path, lines=True)

    raise ValueError(f"Unknown format: {output_format}")
