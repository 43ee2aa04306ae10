from __future__ import annotations
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict
import json

import jsonschema

SCHEMA_DIR = Path(__file__).resolve().parent

PACK_MCMETA = "pack_mcmeta"
TAG = "tag"


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    return json.loads((SCHEMA_DIR / f"{name}.schema.json").read_text(encoding="utf-8"))


def validate(instance: Any, name: str) -> None:
    """Raise jsonschema.ValidationError if `instance` does not match schema `name`."""
    jsonschema.validate(instance=instance, schema=load_schema(name))
