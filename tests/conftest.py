from __future__ import annotations
from pathlib import Path
import json

import pytest

MCMETA = {"pack": {"pack_format": 48, "description": "Demo pack"}}


def write_tree(root: Path, files: dict) -> Path:
    """Write {relative path: str | bytes | JSON value} under root."""
    for rel, content in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            content = json.dumps(content)
        if isinstance(content, str):
            content = content.encode("utf-8")
        p.write_bytes(content)
    return root


@pytest.fixture
def make_pack(tmp_path: Path):
    def _make(files: dict, name: str = "pack", mcmeta=MCMETA) -> Path:
        if mcmeta is not None:
            files = {"pack.mcmeta": mcmeta, **files}
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        return write_tree(root, files)
    return _make
