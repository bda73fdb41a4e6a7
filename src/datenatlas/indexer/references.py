"""Contextual reference lookup against the external knowledge base.

The store can hold far more records than relevance filtering needs, so the
first lookup pulls a bounded number of records page by page and every later
lookup filters that in-memory copy. Nothing here may abort a build: when the
store is unreachable the enricher warns once and answers every term with an
empty list.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from datenatlas import config
from datenatlas.models import ContextReference
from datenatlas.slugs import short_description, slugify
from datenatlas.storage.vector_store import LanceReferenceStore, ReferenceRecord, ReferenceSource

logger = logging.getLogger(__name__)

MAX_RECORDS = 1024
PAGE_SIZE = 256


class ReferenceEnricher:
    """Bounded, load-once cache over a paginated reference source."""

    def __init__(
        self,
        source: ReferenceSource | None,
        max_records: int = MAX_RECORDS,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._source = source
        self._max_records = max_records
        self._page_size = page_size
        self._records: list[ReferenceRecord] | None = None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._source is not None

    def _load(self) -> list[ReferenceRecord]:
        # Double-checked so concurrent first callers trigger a single scroll
        if self._records is not None:
            return self._records
        with self._lock:
            if self._records is None:
                self._records = self._scroll_all()
        return self._records

    def _scroll_all(self) -> list[ReferenceRecord]:
        if self._source is None:
            return []
        records: list[ReferenceRecord] = []
        offset: int | None = 0
        try:
            while offset is not None:
                page, offset = self._source.scroll(offset, self._page_size)
                records.extend(page)
                if len(records) >= self._max_records:
                    break
        except Exception as e:
            logger.warning(
                "Failed to preload references (%d loaded before the error): %s", len(records), e,
            )
        records = records[: self._max_records]
        logger.info("Reference cache holds %d records", len(records))
        return records

    def warm(self) -> int:
        """Populate the cache now. Returns the number of cached records."""
        return len(self._load())

    def fetch_references(self, term: str, limit: int = 3) -> list[ContextReference]:
        """Return up to ``limit`` cached records mentioning ``term``."""
        if self._source is None or not term:
            return []
        try:
            needle = term.lower()
            out: list[ContextReference] = []
            for record in self._load():
                haystack = [record.title, record.text, *record.keywords]
                if any(needle in value.lower() for value in haystack if value):
                    out.append(_to_reference(record))
                    if len(out) >= limit:
                        break
            return out
        except Exception as e:
            logger.warning('Reference lookup failed for term "%s": %s', term, e)
            return []

    def fetch_many(
        self,
        terms: list[str],
        limit: int = 3,
        workers: int = config.WORKERS,
    ) -> list[list[ContextReference]]:
        """Look up several terms on a bounded pool. Results follow input order."""
        if self._source is None:
            return [[] for _ in terms]
        self._load()
        with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
            return list(pool.map(lambda t: self.fetch_references(t, limit), terms))

    def rank(self, terms: Iterable[str], limit: int = 5) -> list[ReferenceRecord]:
        """Records ordered by how many normalized terms occur in title + text."""
        normalized = {_normalize(t) for t in terms}
        normalized = {t for t in normalized if len(t) > 2}
        if self._source is None or not normalized:
            return []
        scored: list[tuple[int, ReferenceRecord]] = []
        for record in self._load():
            if not record.text:
                continue
            text = _normalize(f"{record.title} {record.text}")
            score = sum(1 for t in normalized if t in text)
            if score:
                scored.append((score, record))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [record for _, record in scored[:limit]]


def _normalize(value: str) -> str:
    return slugify(value).replace("-", " ")


def _to_reference(record: ReferenceRecord) -> ContextReference:
    return ContextReference(
        id=record.id,
        title=record.title,
        url=record.url,
        snippet=short_description(record.text),
        score=record.score,
        tags=list(record.keywords),
    )


def create_enricher() -> ReferenceEnricher:
    """Build the enricher from configuration; no URL means enrichment is off."""
    if not config.VECTOR_STORE_URL:
        logger.warning("VECTOR_STORE_URL not configured. Skipping reference enrichment.")
        return ReferenceEnricher(None)
    try:
        source = LanceReferenceStore(
            config.VECTOR_STORE_URL,
            config.VECTOR_STORE_COLLECTION,
            api_key=config.VECTOR_STORE_API_KEY or None,
        )
    except Exception as e:
        logger.warning("Unable to connect to the reference store: %s", e)
        return ReferenceEnricher(None)
    return ReferenceEnricher(source)
