from __future__ import annotations

import importlib.metadata
import importlib.util
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
MODULE_PATH = ROOT / "src" / "safariindex" / "__init__.py"


def test_safariindex_version_falls_back_when_distribution_is_absent(monkeypatch) -> None:
    spec = importlib.util.spec_from_file_location("safariindex_init_under_test", MODULE_PATH)
    assert spec and spec.loader

    module = importlib.util.module_from_spec(spec)

    def _raise_not_found(_: str) -> str:
        raise importlib.metadata.PackageNotFoundError

    monkeypatch.setattr(importlib.metadata, "version", _raise_not_found)

    spec.loader.exec_module(module)

    assert module.__version__ == "0+unknown"
    assert "build_request_contract" in module.__all__
    assert module.compile_topic is not None
