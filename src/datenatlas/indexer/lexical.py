"""Weighted substring search over the flattened atlas corpus."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from datenatlas import config
from datenatlas.models import AtlasDataset, SearchItem
from datenatlas.slugs import short_description, strip_diacritics

logger = logging.getLogger(__name__)

WEIGHTS = {
    "title": 0.5,
    "subtitle": 0.2,
    "description": 0.2,
    "keywords": 0.1,
}
MAX_TOKEN_SCORE = sum(WEIGHTS.values())

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_text(value: str | None) -> str:
    """Lowercase, strip diacritics, replace punctuation by spaces, collapse whitespace."""
    if not value:
        return ""
    folded = strip_diacritics(value.lower().replace("ß", "ss"))
    return " ".join(_NON_ALNUM.sub(" ", folded).split())


def _collation_key(title: str) -> tuple[str, str]:
    # German dictionary order: umlauts sort with their base letter, ß as ss,
    # and lowercase before uppercase when titles differ only by case
    folded = strip_diacritics(title.replace("ß", "ss").replace("ẞ", "SS")).casefold()
    return folded, title.swapcase()


def build_search_items(dataset: AtlasDataset, section: str = config.SITE_SECTION) -> list[SearchItem]:
    """Flatten elements, processes and diagrams into search items."""
    items: list[SearchItem] = []
    for element in dataset.elements:
        items.append(SearchItem(
            id=f"element:{element.slug}",
            type="element",
            title=f"{element.element_name} ({element.edifact_id})",
            subtitle=element.segment_name,
            description=short_description(element.description),
            slug=element.slug,
            url=f"{section}/datenelemente/{element.slug}",
            keywords=tuple(element.keywords),
            related_ids=tuple(element.diagram_ids),
        ))
    for process in dataset.processes:
        items.append(SearchItem(
            id=f"process:{process.slug}",
            type="process",
            title=process.name,
            subtitle=", ".join(process.relevant_laws),
            description=short_description(process.summary or process.description or ""),
            slug=process.slug,
            url=f"{section}/prozesse/{process.slug}",
            keywords=(*process.keywords, *process.relevant_laws),
            related_ids=tuple(process.elements),
        ))
    for diagram in dataset.diagrams:
        items.append(SearchItem(
            id=f"diagram:{diagram.slug}",
            type="diagram",
            title=diagram.title,
            subtitle="Visualisierung",
            description=diagram.description,
            slug=diagram.slug,
            url=f"{section}/visualisierungen/{diagram.slug}",
            keywords=tuple(diagram.keywords),
            related_ids=tuple(diagram.related_process_slugs),
        ))
    return items


class IndexedItem:
    """A search item with its fields normalized once at index time."""

    __slots__ = ("item", "title", "subtitle", "description", "keywords")

    def __init__(self, item: SearchItem) -> None:
        self.item = item
        self.title = normalize_text(item.title)
        self.subtitle = normalize_text(item.subtitle)
        self.description = normalize_text(item.description)
        self.keywords = tuple(k for k in (normalize_text(k) for k in item.keywords) if k)

    def score_token(self, token: str) -> float:
        score = 0.0
        if token in self.title:
            score += WEIGHTS["title"]
        if token in self.subtitle:
            score += WEIGHTS["subtitle"]
        if token in self.description:
            score += WEIGHTS["description"]
        if any(token in k for k in self.keywords):
            score += WEIGHTS["keywords"]
        return score


def index_items(items: Iterable[SearchItem]) -> list[IndexedItem]:
    return [IndexedItem(item) for item in items]


class SearchIndex:
    """In-memory search over SearchItems.

    Matching is substring-based ("lief" finds "Lieferant"). Scores returned to
    callers are distances: 0.0 is the best possible match, 1.0 the worst.
    """

    def __init__(self, items: Iterable[SearchItem]) -> None:
        self._indexed = index_items(items)

    def __len__(self) -> int:
        return len(self._indexed)

    def search(self, query: str, limit: int | None = None) -> list[SearchHit]:
        """Rank items against a query. ``limit`` defaults to the corpus size."""
        if limit is None:
            limit = len(self._indexed)
        tokens = normalize_text(query).split()

        if not tokens:
            return [SearchHit(entry.item, 1.0, 0.0) for entry in self._indexed[:limit]]

        scored: list[tuple[float, IndexedItem]] = []
        for entry in self._indexed:
            raw = sum(entry.score_token(token) for token in tokens)
            if raw > 0:
                scored.append((raw, entry))

        scored.sort(key=lambda pair: (-pair[0], _collation_key(pair[1].item.title)))

        max_possible = MAX_TOKEN_SCORE * len(tokens)
        hits = []
        for raw, entry in scored[:limit]:
            distance = min(1.0, max(0.0, 1.0 - raw / max_possible))
            hits.append(SearchHit(entry.item, distance, raw))
        logger.debug("Query %r: %d of %d items matched", query, len(scored), len(self._indexed))
        return hits


class SearchHit:
    """One ranked search result."""

    __slots__ = ("item", "score", "raw_score")

    def __init__(self, item: SearchItem, score: float, raw_score: float) -> None:
        self.item = item
        self.score = score
        self.raw_score = raw_score


def build_index(items: Iterable[SearchItem]) -> SearchIndex:
    return SearchIndex(items)
