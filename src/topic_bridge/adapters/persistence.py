# topic_bridge/adapters/persistence.py
from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Tuple, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from topic_bridge.contracts import TopicBridgeError, TopicRecord

JsonObj = Dict[str, Any]
PathLike = Union[str, Path]



def _to_jsonable(x: Any) -> Any:
    if x is None:
        return None
    if isinstance(x, BaseModel):
        return x.model_dump(mode="json")
    if is_dataclass(x) and not isinstance(x, type):
        return asdict(x)
    if isinstance(x, dict):
        return {str(k): _to_jsonable(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [_to_jsonable(v) for v in x]
    return x


def append_jsonl(path: PathLike, record: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    obj = _to_jsonable(record)

    # one JSON object per line
    line = json.dumps(obj, ensure_ascii=False)
    with p.open("a", encoding="utf-8") as f:
        f.write(line + "\n")


def read_jsonl(path: PathLike) -> Iterator[Tuple[JsonObj, JsonObj]]:
    """
    Yields (meta, obj) for each JSON object line.
    - meta includes line number and source path.
    - obj is the parsed dict.
    """
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            s = line.strip()
            if not s:
                continue
            obj = json.loads(s)
            if not isinstance(obj, dict):
                raise ValueError(f"Expected JSON object on line {lineno}, got {type(obj).__name__}")
            meta: JsonObj = {"path": str(p), "lineno": lineno}
            yield meta, obj


def write_topic_records(path: PathLike, records: Iterable[TopicRecord]) -> int:
    """Replace the artifact at ``path`` with one record per line. Returns the count written."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("", encoding="utf-8")

    count = 0
    for record in records:
        append_jsonl(p, record)
        count += 1
    logger.debug(f"Wrote {count} topic records to {p}")
    return count


def read_topic_records(path: PathLike) -> list[TopicRecord]:
    records: list[TopicRecord] = []
    for meta, obj in read_jsonl(path):
        try:
            records.append(TopicRecord.model_validate(obj))
        except ValidationError as exc:
            raise TopicBridgeError(f"{meta['path']}:{meta['lineno']}: invalid topic record: {exc}") from exc
    return records


def published_slugs(records: Iterable[TopicRecord]) -> list[str]:
    """Slugs of published records, in artifact order. This is the sitemap subset."""
    return [r.slug for r in records if r.published]
