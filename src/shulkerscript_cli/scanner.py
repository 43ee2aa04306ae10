"""
Source tree scanner: legacy datapack -> ordered inventory of SourceUnits.

- no side effects (reads only)
- lexical walk order, so two scans of an unchanged tree are identical
- files it does not understand are reported as notices, never errors
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List

import jsonschema

from . import errors as E
from . import schemas
from .model import SourceUnit, UnitKind

log = logging.getLogger(__name__)

MANIFEST_FILE = "pack.mcmeta"
MANIFEST_NAMESPACE = "."
DATA_DIR = "data"
FUNCTION_DIRS = ("function", "functions")
TAGS_DIR = "tags"
FUNCTION_EXT = ".mcfunction"
TAG_EXT = ".json"


def locate_pack_root(path: str | Path) -> Path:
    """First of `path` and its ancestors holding a pack.mcmeta, else `path` itself."""
    p = Path(path)
    if not p.exists():
        raise E.ScanError.build(E.BAD_ROOT, "No file or directory found at the given path.", str(p))
    if not p.is_dir():
        raise E.ScanError.build(E.BAD_ROOT, "The given path is not a directory.", str(p))
    p = p.resolve()
    for candidate in (p, *p.parents):
        if (candidate / MANIFEST_FILE).is_file():
            return candidate
    return p


def parse_manifest(raw: bytes, source_path: str = MANIFEST_FILE) -> Dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise E.ScanError.build(E.BAD_MANIFEST, f"Manifest is not valid JSON: {e}", source_path)
    try:
        schemas.validate(data, schemas.PACK_MCMETA)
    except jsonschema.ValidationError as e:
        raise E.ScanError.build(
            E.BAD_MANIFEST,
            f"Manifest does not match the pack.mcmeta schema: {e.message}",
            source_path,
            "pack.mcmeta needs a 'pack' object with 'description' and an integer 'pack_format'.",
        )
    return data


def _read(p: Path, rel: str) -> bytes:
    try:
        return p.read_bytes()
    except OSError as e:
        raise E.ScanError.build(E.BAD_ROOT, f"Could not read file: {e.strerror or e}", rel)


class Scanner:
    """Lazy, restartable inventory of a legacy datapack.

    Each iteration re-walks the tree and resets `notices`.
    """

    def __init__(self, path: str | Path, *, include_assets: bool = False):
        self.root = locate_pack_root(path)
        self.include_assets = include_assets
        self.notices: List[E.MigrationDiagnostic] = []

    def __iter__(self) -> Iterator[SourceUnit]:
        self.notices = []
        return self._walk()

    def scan(self) -> List[SourceUnit]:
        return list(self)

    def _rel(self, p: Path) -> str:
        return p.relative_to(self.root).as_posix()

    def _skip(self, p: Path) -> None:
        rel = self._rel(p)
        log.debug("skipping unrecognized file %s", rel)
        self.notices.append(E.notice(E.UNRECOGNIZED_FILE, "Unrecognized file, not migrated.", rel))

    def _walk(self) -> Iterator[SourceUnit]:
        manifest = self.root / MANIFEST_FILE
        if manifest.is_file():
            raw = _read(manifest, MANIFEST_FILE)
            parse_manifest(raw)
            yield SourceUnit(MANIFEST_NAMESPACE, UnitKind.MANIFEST, MANIFEST_FILE, raw, MANIFEST_FILE)

        data = self.root / DATA_DIR
        if not data.is_dir():
            self.notices.append(E.notice(E.NO_DATA_FOLDER, "Could not find a data folder.", DATA_DIR))
            return

        for ns_dir in sorted(data.iterdir()):
            if not ns_dir.is_dir():
                self._skip(ns_dir)
                continue
            for sub in sorted(ns_dir.iterdir()):
                if not sub.is_dir():
                    self._skip(sub)
                elif sub.name in FUNCTION_DIRS:
                    yield from self._functions(ns_dir.name, sub)
                elif sub.name == TAGS_DIR:
                    yield from self._tags(ns_dir.name, sub)
                elif self.include_assets:
                    yield from self._assets(ns_dir.name, sub)
                else:
                    for p in _files(sub):
                        self._skip(p)

    def _functions(self, namespace: str, folder: Path) -> Iterator[SourceUnit]:
        for p in _files(folder):
            if p.suffix != FUNCTION_EXT:
                self._skip(p)
                continue
            rel = self._rel(p)
            yield SourceUnit(namespace, UnitKind.FUNCTION, p.relative_to(folder).as_posix(), _read(p, rel), rel)

    def _tags(self, namespace: str, folder: Path) -> Iterator[SourceUnit]:
        for p in _files(folder):
            # tags/<type>/<path>.json; anything directly in tags/ has no type
            if p.suffix != TAG_EXT or p.parent == folder:
                self._skip(p)
                continue
            rel = self._rel(p)
            yield SourceUnit(namespace, UnitKind.TAG, p.relative_to(folder).as_posix(), _read(p, rel), rel)

    def _assets(self, namespace: str, folder: Path) -> Iterator[SourceUnit]:
        for p in _files(folder):
            rel = self._rel(p)
            yield SourceUnit(namespace, UnitKind.ASSET, p.relative_to(folder.parent).as_posix(), _read(p, rel), rel)


def _files(folder: Path) -> List[Path]:
    return [p for p in sorted(folder.rglob("*")) if p.is_file()]
