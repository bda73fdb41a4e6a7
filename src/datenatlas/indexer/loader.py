"""Load and validate the raw atlas inputs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    TypeAdapter,
    ValidationError,
    ValidatorFunctionWrapHandler,
    model_validator,
)

logger = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    """A primary input file is missing, not JSON, or does not match its schema."""


class _RawModel(BaseModel):
    # Unknown keys survive so the catalog can be written back unchanged
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    _null_keys: list[str] = PrivateAttr(default_factory=list)

    @model_validator(mode="wrap")
    @classmethod
    def _drop_nulls(cls, data: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        # `null` for a declared field means "use the default"; the key is
        # remembered so the dump writes it back as null
        if not isinstance(data, dict):
            return handler(data)
        declared = set(cls.model_fields)
        declared.update(f.alias for f in cls.model_fields.values() if f.alias)
        null_keys = [k for k, v in data.items() if v is None and k in declared]
        model = handler({k: v for k, v in data.items() if k not in null_keys})
        model._null_keys = null_keys
        return model

    def _restore_nulls(self, dumped: dict[str, Any]) -> dict[str, Any]:
        for key in self._null_keys:
            # A field assigned after loading keeps its new value
            dumped.setdefault(key, None)
        for name in self.model_fields_set & set(type(self).model_fields):
            value = getattr(self, name)
            key = type(self).model_fields[name].alias or name
            if isinstance(value, _RawModel):
                value._restore_nulls(dumped[key])
            elif isinstance(value, list):
                for child, child_dump in zip(value, dumped[key]):
                    if isinstance(child, _RawModel):
                        child._restore_nulls(child_dump)
        return dumped


class RawProcessContext(_RawModel):
    process_name: str = Field("", alias="processName")
    summary: str = ""
    relevant_laws: list[str] = Field(default_factory=list, alias="relevantLaws")
    keywords: list[str] = Field(default_factory=list)
    source: str | None = None
    summary_prompt: str | None = Field(None, alias="summaryPrompt")
    summary_source: str | None = Field(None, alias="summarySource")
    summary_updated_at: str | None = Field(None, alias="summaryUpdatedAt")


class RawMessageUsage(_RawModel):
    message_type: str = Field("", alias="messageType")
    message_version: str | None = Field(None, alias="messageVersion")
    role_context: str | None = Field(None, alias="roleContext")
    codes_used: list[str] = Field(default_factory=list, alias="codesUsed")
    is_mandatory: bool = Field(False, alias="isMandatory")
    citation_source: str | None = Field(None, alias="citationSource")
    description: str | None = None
    process_context: list[RawProcessContext] = Field(default_factory=list, alias="processContext")


class RawElement(_RawModel):
    edifact_id: str = Field(alias="EDIFACT_Element_ID")
    segment_name: str = Field("", alias="segmentName")
    element_code: str = Field("", alias="elementCode")
    element_name: str = Field("", alias="elementName")
    segment_group: str | None = Field(None, alias="segmentGroup")
    description: str = ""
    messages: list[RawMessageUsage] = Field(default_factory=list)
    process_context: list[RawProcessContext] = Field(default_factory=list, alias="processContext")


class RawCatalog(_RawModel):
    generated_at: str = Field("", alias="generatedAt")
    collection: str | None = None
    elements: list[RawElement] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump back to the on-disk shape, keeping only keys that were present or assigned."""
        return self._restore_nulls(self.model_dump(mode="json", by_alias=True, exclude_unset=True))


class ProcessDefinition(_RawModel):
    process_name: str
    trigger_question: str | None = None
    search_keywords: list[str] = Field(default_factory=list)
    relevant_laws: list[str] = Field(default_factory=list)


_DEFINITIONS = TypeAdapter(list[ProcessDefinition])


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CatalogError(f"Input file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot parse {path}: {e}") from e


def parse_catalog(data: Any, source: str = "<catalog>") -> RawCatalog:
    try:
        return RawCatalog.model_validate(data)
    except ValidationError as e:
        raise CatalogError(f"Invalid element catalog {source}: {e}") from e


def parse_process_definitions(data: Any, source: str = "<definitions>") -> list[ProcessDefinition]:
    try:
        return _DEFINITIONS.validate_python(data)
    except ValidationError as e:
        raise CatalogError(f"Invalid process definitions {source}: {e}") from e


def load_catalog(path: Path) -> RawCatalog:
    """Read the element catalog (data_atlas.json). Fails fast on any problem."""
    catalog = parse_catalog(_read_json(path), str(path))
    logger.info("Loaded %d elements from %s", len(catalog.elements), path)
    return catalog


def load_process_definitions(path: Path) -> list[ProcessDefinition]:
    """Read process_definitions.json. Fails fast on any problem."""
    definitions = parse_process_definitions(_read_json(path), str(path))
    logger.info("Loaded %d process definitions from %s", len(definitions), path)
    return definitions


def discover_diagrams(source_dir: Path, extension: str = ".puml") -> list[str]:
    """Return the sorted ids (filename stems) of diagram sources in a directory.

    A missing directory is not an error: the atlas simply has no diagrams.
    """
    if not source_dir.is_dir():
        logger.warning("Diagram directory %s not found, continuing without diagrams", source_dir)
        return []
    ext = extension.lower()
    return sorted(
        p.name[: -len(ext)]
        for p in source_dir.iterdir()
        if p.is_file() and p.name.lower().endswith(ext)
    )


class DiagramMatcher:
    """Case-insensitive lookup from element identifiers to diagram ids.

    ``E1:01`` matches a diagram named ``e1_01``. Every diagram whose id is
    equal ignoring case is returned, in discovery order.
    """

    def __init__(self, diagram_ids: list[str]) -> None:
        self._by_key: dict[str, list[str]] = {}
        for diagram_id in diagram_ids:
            self._by_key.setdefault(diagram_id.lower(), []).append(diagram_id)

    def match(self, element_id: str) -> list[str]:
        matches = self._by_key.get(element_id.replace(":", "_").lower(), [])
        if len(matches) > 1:
            logger.debug("Element %s matches %d diagrams: %s", element_id, len(matches), matches)
        return list(matches)
