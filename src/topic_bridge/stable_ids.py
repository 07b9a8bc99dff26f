# topic_bridge/stable_ids.py
from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel


def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _canon(obj: Any) -> str:
    """
    Canonical JSON string (stable across runs) for hashing.
    """
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def content_digest(model: BaseModel) -> str:
    """
    Digest of a model's JSON form. Field order and whitespace never affect it,
    so a record carrying the digest of its source definition can be checked
    for staleness by recomputing.
    """
    return "sha256:" + _sha256_hex(_canon(model.model_dump(mode="json")))
