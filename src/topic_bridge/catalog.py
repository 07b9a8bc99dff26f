# topic_bridge/catalog.py
from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Union

from loguru import logger
from pydantic import ValidationError

from topic_bridge.contracts import CatalogError, CatalogInput, RuntimeInput

PathLike = Union[str, Path]

CATALOG_RESOURCE = "input_catalog.json"

_RUNTIME_FIELDS = ("key", "label", "description", "example")


class InputCatalog(Mapping[str, CatalogInput]):
    """
    Read-only registry of canonical inputs, indexed by catalog name and by key path.

    Names are what authors reference (``budget_band``); key paths are where the
    value lands in the request contract (``user_context.budget_band``). Both are
    unique, so a key path always resolves to exactly one definition.
    """

    __slots__ = ("_by_name", "_by_key")

    def __init__(self, entries: tuple[CatalogInput, ...]) -> None:
        by_name: dict[str, CatalogInput] = {}
        by_key: dict[str, CatalogInput] = {}
        for entry in entries:
            if entry.name in by_name:
                raise CatalogError(f"duplicate catalog name {entry.name!r}")
            if entry.key in by_key:
                raise CatalogError(
                    f"catalog key path {entry.key!r} is declared by both "
                    f"{by_key[entry.key].name!r} and {entry.name!r}"
                )
            by_name[entry.name] = entry
            by_key[entry.key] = entry
        self._by_name = by_name
        self._by_key = by_key

    def __getitem__(self, name: str) -> CatalogInput:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"unknown catalog input {name!r}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def resolve(self, key_path: str) -> CatalogInput | None:
        return self._by_key.get(key_path)

    def entries(self) -> tuple[CatalogInput, ...]:
        return tuple(self._by_name.values())

    def key_paths(self) -> frozenset[str]:
        return frozenset(self._by_key)


def to_runtime_input(entry: CatalogInput, overrides: Mapping[str, Any] | None = None) -> RuntimeInput:
    """Strip type metadata and apply a shallow override merge. The key path is never overridable."""
    base: dict[str, Any] = {name: getattr(entry, name) for name in _RUNTIME_FIELDS}
    if overrides:
        unknown = sorted(set(overrides) - set(_RUNTIME_FIELDS))
        if unknown:
            raise CatalogError(f"overrides for {entry.name!r} name unknown fields: {unknown}")
        if "key" in overrides and overrides["key"] != entry.key:
            raise CatalogError(
                f"override would move {entry.name!r} from {entry.key!r} to {overrides['key']!r}"
            )
        base.update(overrides)
    return RuntimeInput.model_validate(base)


def _parse_entries(raw: object, *, source: str) -> tuple[CatalogInput, ...]:
    if not isinstance(raw, list):
        raise CatalogError(f"{source}: expected a JSON array of catalog inputs")
    entries: list[CatalogInput] = []
    for index, item in enumerate(raw):
        try:
            entries.append(CatalogInput.model_validate(item))
        except ValidationError as exc:
            raise CatalogError(f"{source}: entry {index} is invalid: {exc}") from exc
    return tuple(entries)


def load_input_catalog(path: PathLike | None = None) -> InputCatalog:
    """Load a catalog from ``path`` or from the packaged data file."""
    if path is None:
        text = resources.files("topic_bridge.data").joinpath(CATALOG_RESOURCE).read_text(encoding="utf-8")
        source = f"topic_bridge/data/{CATALOG_RESOURCE}"
    else:
        p = Path(path)
        text = p.read_text(encoding="utf-8")
        source = str(p)

    catalog = InputCatalog(_parse_entries(json.loads(text), source=source))
    logger.debug(f"Loaded {len(catalog)} catalog inputs from {source}")
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> InputCatalog:
    return load_input_catalog()
