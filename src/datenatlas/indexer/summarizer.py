"""Answer prompt-like process summaries in the raw catalog with an LLM.

Upstream process contexts sometimes carry the instruction that was meant to
produce a summary ("Beschreibe den Ablauf ...") instead of the summary
itself. This step answers those prompts, writes the answers back into
``data_atlas.json`` and remembers what it did in a progress file so reruns
only touch new or changed prompts.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from datenatlas.config import AtlasPaths
from datenatlas.indexer.linker import is_likely_prompt
from datenatlas.indexer.loader import RawCatalog, RawElement, RawProcessContext, load_catalog
from datenatlas.indexer.references import ReferenceEnricher
from datenatlas.indexer.writer import write_json_atomic
from datenatlas.provider import GenerationProvider
from datenatlas.storage.vector_store import ReferenceRecord

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Du bist ein Fachexperte für Marktkommunikation in der Energiewirtschaft. "
    "Antworte prägnant, sachlich und auf Deutsch."
)

REQUIREMENTS = [
    "- Erstelle eine verständliche, aber fachlich präzise Zusammenfassung des genannten Prozesses.",
    "- Betone Abläufe, beteiligte Rollen, Nachrichten und rechtliche Grundlagen.",
    "- Falls Informationen fehlen, liefere eine plausible Ergänzung und kennzeichne Unsicherheiten.",
    "- Verwende 2–3 Absätze Fließtext ohne Aufzählungszeichen.",
]

SUMMARY_SOURCE_FLAG = "llm:generation:willi-mako:v1"
MAX_REFERENCE_CHARS = 1200
SHORT_PROMPT_WORDS = 35
_QUESTION_WORD = re.compile(r"\b(?:Beschreibe|Erläutere|Erkläre|Skizziere|Wie|Was|Welche|Warum|Nenne)\b", re.IGNORECASE)


class ProviderAuthError(RuntimeError):
    """The generation provider rejected our credentials."""


def looks_unanswered(text: str | None) -> bool:
    """Broader than is_likely_prompt: short texts containing a question word also count."""
    if not text or not text.strip():
        return False
    if is_likely_prompt(text):
        return True
    trimmed = text.strip()
    return len(trimmed.split()) <= SHORT_PROMPT_WORDS and bool(_QUESTION_WORD.search(trimmed))


def _hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SummaryTask:
    id: str
    prompt: str
    process_name: str
    context_block: str
    search_terms: list[str]
    target: RawProcessContext

    def set_summary(self, value: str) -> None:
        self.target.summary_prompt = self.prompt
        self.target.summary = value
        self.target.summary_source = SUMMARY_SOURCE_FLAG
        self.target.summary_updated_at = _utc_now()


def _element_context(element: RawElement) -> str:
    group = f" (Gruppe {element.segment_group})" if element.segment_group else ""
    return (
        f"EDIFACT-ID: {element.edifact_id}\n"
        f"Segment: {element.segment_name}{group}\n"
        f"Elementname: {element.element_name} ({element.element_code})\n"
        f"Beschreibung: {element.description or '—'}"
    )


def _process_lines(ctx: RawProcessContext) -> list[str]:
    laws = ", ".join(ctx.relevant_laws) if ctx.relevant_laws else "keine Angabe"
    keywords = ", ".join(ctx.keywords) if ctx.keywords else "keine Angabe"
    return [
        f"Prozess: {ctx.process_name}",
        f"Relevante Gesetze: {laws}",
        f"Schlagworte: {keywords}",
    ]


def collect_summary_tasks(catalog: RawCatalog) -> list[SummaryTask]:
    """One task per element-level and message-level process context."""
    tasks: list[SummaryTask] = []
    for element in catalog.elements:
        base = _element_context(element)
        common_terms = [element.element_name, element.segment_name]

        for ctx in element.process_context:
            tasks.append(SummaryTask(
                id=f"element:{element.edifact_id}:process:{ctx.process_name}",
                prompt=ctx.summary,
                process_name=ctx.process_name,
                context_block="\n".join([base, *_process_lines(ctx)]),
                search_terms=[t for t in (ctx.process_name, *ctx.keywords, *common_terms) if t],
                target=ctx,
            ))

        for message in element.messages:
            version = message.message_version or "default"
            for ctx in message.process_context:
                lines = [base, f"Nachricht: {message.message_type} v{message.message_version or '—'}"]
                if message.description:
                    lines.append(f"Nachrichtenbeschreibung: {message.description}")
                lines.extend(_process_lines(ctx))
                tasks.append(SummaryTask(
                    id=(
                        f"element:{element.edifact_id}:message:{message.message_type}:"
                        f"{version}:process:{ctx.process_name}"
                    ),
                    prompt=ctx.summary,
                    process_name=ctx.process_name,
                    context_block="\n".join(lines),
                    search_terms=[
                        t for t in (ctx.process_name, *ctx.keywords, *common_terms, message.message_type) if t
                    ],
                    target=ctx,
                ))
    return tasks


@dataclass
class ProgressStore:
    """Per-task record of generated summaries, persisted as JSON."""

    path: Path
    version: int = 1
    entries: dict[str, dict] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> ProgressStore:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return cls(path)
        return cls(path, version=raw.get("version", 1), entries=raw.get("entries") or {})

    def is_current(self, task: SummaryTask) -> bool:
        entry = self.entries.get(task.id)
        return entry is not None and entry.get("summary") == task.prompt

    def record(self, task: SummaryTask, summary: str, model: str) -> None:
        self.entries[task.id] = {
            "id": task.id,
            "promptHash": _hash(task.prompt),
            "lastPrompt": task.prompt,
            "summaryHash": _hash(summary),
            "summary": summary,
            "updatedAt": _utc_now(),
            "model": model,
        }

    def save(self) -> None:
        write_json_atomic(self.path, {"version": self.version, "entries": self.entries})


def format_references(records: list[ReferenceRecord]) -> str:
    if not records:
        return "Keine zusätzlichen Dokumente gefunden."
    blocks = []
    for i, record in enumerate(records, 1):
        text = record.text
        if len(text) > MAX_REFERENCE_CHARS:
            text = text[:MAX_REFERENCE_CHARS] + "…"
        lines = [f"Quelle {i}: {record.title}"]
        if record.url:
            lines.append(f"URL: {record.url}")
        lines.append(f"Auszug: {text}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_prompt(task: SummaryTask, references: list[ReferenceRecord]) -> str:
    return "\n".join([
        f"Aufgabe: {task.prompt}",
        "",
        "Kontext aus dem Daten Atlas:",
        task.context_block,
        "",
        "Zusätzliche Wissensbasis:",
        format_references(references),
        "",
        "Anforderungen:",
        *REQUIREMENTS,
    ])


class SummaryEnricher:
    """Generates summaries for pending tasks and persists them after each one."""

    def __init__(
        self,
        paths: AtlasPaths,
        provider: GenerationProvider,
        enricher: ReferenceEnricher | None = None,
        max_attempts: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self._paths = paths
        self._provider = provider
        self._enricher = enricher or ReferenceEnricher(None)
        self._max_attempts = max_attempts
        self._backoff = backoff

    def generate(self, task: SummaryTask) -> str:
        """Ask the provider, retrying with linear back-off. Raises if every attempt fails."""
        references = self._enricher.rank([*task.prompt.split(), *task.search_terms], limit=5)
        prompt = build_prompt(task, references)
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                text = self._provider.generate(prompt, system=SYSTEM_PROMPT).strip()
                if text:
                    return text
                last_error = RuntimeError("empty response")
            except Exception as e:
                err_str = str(e)
                # Fail fast on authentication errors
                if "API_KEY_INVALID" in err_str or "PERMISSION_DENIED" in err_str:
                    raise ProviderAuthError(f"API key error, aborting: {e}") from e
                last_error = e
            logger.warning("LLM error for %s (attempt %d/%d): %s", task.id, attempt, self._max_attempts, last_error)
            if attempt < self._max_attempts:
                time.sleep(self._backoff * attempt)
        raise RuntimeError(f"No answer for {task.id}: {last_error}")

    def _backup(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        backup = self._paths.catalog.with_name(f"data_atlas.backup.{stamp}.json")
        if not backup.exists():
            shutil.copy2(self._paths.catalog, backup)
            logger.info("Backup written: %s", backup)
        return backup

    def run(self, on_progress: Callable[[dict], None] | None = None) -> dict:
        """Answer every pending prompt.

        Returns {"tasks": N, "pending": N, "summarized": N, "failed": N}.
        """
        catalog = load_catalog(self._paths.catalog)
        progress = ProgressStore.load(self._paths.summary_progress)
        tasks = collect_summary_tasks(catalog)
        pending = [
            t for t in tasks
            if not progress.is_current(t) and looks_unanswered(t.prompt)
        ]
        result = {"tasks": len(tasks), "pending": len(pending), "summarized": 0, "failed": 0}
        if not pending:
            logger.info("All %d summaries are already answered", len(tasks))
            return result

        self._backup()
        model = getattr(self._provider, "model", "unknown")
        for i, task in enumerate(pending, 1):
            if on_progress:
                on_progress({"step": "summarize", "current": i, "total": len(pending), "task": task.id})
            try:
                answer = self.generate(task)
            except ProviderAuthError:
                raise
            except RuntimeError as e:
                logger.error("Skipping %s: %s", task.id, e)
                result["failed"] += 1
                continue

            task.set_summary(answer)
            progress.record(task, answer, model)
            write_json_atomic(self._paths.catalog, catalog.to_json_dict())
            progress.save()
            result["summarized"] += 1
            logger.info("Summary saved for %s (%d words)", task.id, len(answer.split()))

        return result
