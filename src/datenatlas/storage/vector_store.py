"""Contextual reference records stored in LanceDB."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import lancedb
import pyarrow as pa


@dataclass
class ReferenceRecord:
    """One knowledge-base entry, normalized from a loosely-shaped payload."""

    id: str
    title: str
    text: str
    url: str | None = None
    keywords: list[str] = field(default_factory=list)
    score: float | None = None

    @classmethod
    def from_payload(cls, point_id: Any, payload: dict[str, Any]) -> ReferenceRecord:
        text = payload.get("contextual_content") or payload.get("text") or payload.get("content") or ""
        title = (
            payload.get("title")
            or payload.get("heading")
            or payload.get("section_title")
            or payload.get("slug")
            or "Fachlicher Kontext"
        )
        url = payload.get("url") or payload.get("href") or payload.get("source_url") or None
        keywords = payload.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [keywords]
        return cls(
            id=str(point_id if point_id not in (None, "") else title),
            title=title,
            text=text,
            url=url,
            keywords=[str(k) for k in keywords],
            score=payload.get("score"),
        )


class ReferenceSource(Protocol):
    """Anything that can page through reference records."""

    def scroll(self, offset: int, limit: int) -> tuple[list[ReferenceRecord], int | None]:
        """Return one page of records and the offset of the next page (None at the end)."""
        ...


class LanceReferenceStore:
    """LanceDB table of reference snippets, read by paging through it."""

    def __init__(self, uri: str | Path, table_name: str, api_key: str | None = None) -> None:
        self._uri = str(uri)
        self._table_name = table_name
        if api_key:
            self._db = lancedb.connect(self._uri, api_key=api_key)
        else:
            if not self._uri.startswith(("db://", "s3://", "gs://", "az://")):
                Path(self._uri).mkdir(parents=True, exist_ok=True)
            self._db = lancedb.connect(self._uri)
        self._table: lancedb.table.Table | None = None

    @staticmethod
    def _schema() -> pa.Schema:
        return pa.schema(
            [
                pa.field("id", pa.utf8()),
                pa.field("title", pa.utf8()),
                pa.field("text", pa.utf8()),
                pa.field("url", pa.utf8()),
                pa.field("keywords", pa.list_(pa.utf8())),
                pa.field("payload", pa.utf8()),
            ]
        )

    def init_table(self) -> None:
        """Create the reference table if it doesn't exist, or open it."""
        existing = self._db.list_tables().tables
        if self._table_name in existing:
            self._table = self._db.open_table(self._table_name)
        else:
            self._table = self._db.create_table(self._table_name, schema=self._schema())

    def _get_table(self) -> lancedb.table.Table:
        if self._table is None:
            self._table = self._db.open_table(self._table_name)
        return self._table

    def add_references(self, records: list[ReferenceRecord], payloads: list[dict] | None = None) -> None:
        """Batch insert reference records, optionally with their raw payloads."""
        if self._table is None:
            self.init_table()
        payloads = payloads or [{} for _ in records]
        rows = [
            {
                "id": r.id,
                "title": r.title,
                "text": r.text,
                "url": r.url or "",
                "keywords": r.keywords,
                "payload": json.dumps(p, ensure_ascii=False),
            }
            for r, p in zip(records, payloads)
        ]
        self._get_table().add(rows)

    def scroll(self, offset: int, limit: int) -> tuple[list[ReferenceRecord], int | None]:
        """Read one page of rows in storage order."""
        rows = self._get_table().search().offset(offset).limit(limit).to_list()
        records = [self._to_record(row) for row in rows]
        next_offset = offset + len(rows) if len(rows) == limit else None
        return records, next_offset

    @staticmethod
    def _to_record(row: dict[str, Any]) -> ReferenceRecord:
        payload: dict[str, Any] = {}
        raw = row.get("payload")
        if raw:
            payload = json.loads(raw)
        record = ReferenceRecord.from_payload(row.get("id"), payload)
        # Non-empty columns win over anything derived from the raw payload
        if row.get("title"):
            record.title = row["title"]
        if row.get("text"):
            record.text = row["text"]
        if row.get("url"):
            record.url = row["url"]
        if row.get("keywords"):
            record.keywords = [str(k) for k in row["keywords"]]
        return record

    def count(self) -> int:
        """Return the number of rows in the table."""
        return self._get_table().count_rows()
