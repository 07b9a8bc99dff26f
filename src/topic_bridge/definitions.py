# topic_bridge/definitions.py
from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Union

from loguru import logger
from pydantic import ValidationError

from topic_bridge.catalog import InputCatalog, default_catalog, to_runtime_input
from topic_bridge.contracts import CatalogError, DefinitionLoadError, RuntimeInput, TopicDefinition

PathLike = Union[str, Path]

DEFINITIONS_RESOURCE = "topic_definitions.json"


class TopicDefinitionSet:
    """Immutable, ordered collection of topic definitions loaded once per process."""

    __slots__ = ("_definitions", "_by_id")

    def __init__(self, definitions: tuple[TopicDefinition, ...]) -> None:
        self._definitions = definitions
        # Duplicate ids are a content defect reported by the coverage verifier; first wins here.
        by_id: dict[str, TopicDefinition] = {}
        for definition in definitions:
            by_id.setdefault(definition.id, definition)
        self._by_id = by_id

    def __iter__(self) -> Iterator[TopicDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, topic_id: object) -> bool:
        return topic_id in self._by_id

    def get(self, topic_id: str) -> TopicDefinition | None:
        return self._by_id.get(topic_id)

    def ids(self) -> list[str]:
        return [d.id for d in self._definitions]

    def published(self) -> tuple[TopicDefinition, ...]:
        return tuple(d for d in self._definitions if d.published)


def _resolve_input(raw: object, *, catalog: InputCatalog, topic_id: str) -> RuntimeInput:
    if not isinstance(raw, Mapping):
        raise DefinitionLoadError(f"{topic_id}: input entries must be objects")

    catalog_name = raw.get("catalog")
    if catalog_name is None:
        try:
            return RuntimeInput.model_validate(dict(raw))
        except ValidationError as exc:
            raise DefinitionLoadError(f"{topic_id}: custom input is malformed: {exc}") from exc

    if catalog_name not in catalog:
        raise DefinitionLoadError(f"{topic_id}: unknown catalog input {catalog_name!r}")

    overrides = raw.get("overrides")
    if overrides is not None and not isinstance(overrides, Mapping):
        raise DefinitionLoadError(f"{topic_id}: overrides for {catalog_name!r} must be an object")
    try:
        return to_runtime_input(catalog[catalog_name], overrides)
    except CatalogError as exc:
        raise DefinitionLoadError(f"{topic_id}: {exc}") from exc


def parse_topic_definition(raw: Mapping[str, Any], *, catalog: InputCatalog) -> TopicDefinition:
    """Resolve catalog references in one raw definition and validate it."""
    if not isinstance(raw, Mapping):
        raise DefinitionLoadError("topic definitions must be JSON objects")
    topic_id = str(raw.get("id") or "<missing id>")
    payload = dict(raw)
    for field_name in ("required_inputs", "optional_inputs"):
        items = payload.get(field_name) or []
        if not isinstance(items, list):
            raise DefinitionLoadError(f"{topic_id}: {field_name} must be a list")
        payload[field_name] = [_resolve_input(item, catalog=catalog, topic_id=topic_id) for item in items]

    try:
        return TopicDefinition.model_validate(payload)
    except ValidationError as exc:
        raise DefinitionLoadError(f"{topic_id}: definition is malformed: {exc}") from exc


def load_topic_definitions(
    path: PathLike | None = None,
    *,
    catalog: InputCatalog | None = None,
) -> TopicDefinitionSet:
    if path is None:
        text = resources.files("topic_bridge.data").joinpath(DEFINITIONS_RESOURCE).read_text(encoding="utf-8")
        source = f"topic_bridge/data/{DEFINITIONS_RESOURCE}"
    else:
        p = Path(path)
        text = p.read_text(encoding="utf-8")
        source = str(p)

    raw = json.loads(text)
    if not isinstance(raw, list):
        raise DefinitionLoadError(f"{source}: expected a JSON array of topic definitions")

    resolved_catalog = catalog or default_catalog()
    definitions = tuple(parse_topic_definition(item, catalog=resolved_catalog) for item in raw)
    logger.debug(f"Loaded {len(definitions)} topic definitions from {source}")
    return TopicDefinitionSet(definitions)


@lru_cache(maxsize=1)
def default_definitions() -> TopicDefinitionSet:
    return load_topic_definitions()
