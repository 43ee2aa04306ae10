from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Tuple
import re


class UnitKind(str, Enum):
    MANIFEST = "manifest"
    FUNCTION = "function"
    TAG = "tag"
    ASSET = "asset"


@dataclass(frozen=True)
class SourceUnit:
    """One file-level item discovered in a legacy datapack.

    `relative_path` is relative to the unit's kind folder inside its namespace
    (`greet.mcfunction`, `function/load.json`, `advancements/root.json`).
    `source_path` is relative to the pack root and is what diagnostics show.
    """
    namespace: str
    kind: UnitKind
    relative_path: str
    raw_content: bytes
    source_path: str

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.namespace, self.kind.value, self.relative_path)

    def text(self) -> str:
        return decode_content(self.raw_content)


_re_identifier = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_re_invalid_ident_char = re.compile(r"[^A-Za-z0-9_]")


def is_identifier(name: str) -> bool:
    return _re_identifier.fullmatch(name) is not None


def sanitize_identifier(name: str) -> str:
    out = _re_invalid_ident_char.sub("_", name)
    if not out or out[0].isdigit():
        out = "_" + out
    return out


def decode_content(data: bytes) -> str:
    # mcfunction files are utf-8; latin-1 never fails and keeps the bytes visible
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def is_utf8(data: bytes) -> bool:
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True
