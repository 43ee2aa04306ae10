from __future__ import annotations
from pathlib import Path

import pytest

from shulkerscript_cli import errors as E
from shulkerscript_cli.model import UnitKind
from shulkerscript_cli.scanner import Scanner, locate_pack_root

REPO_ROOT = Path(__file__).resolve().parents[1]
DEMO = REPO_ROOT / "tests" / "packs" / "demo"


def test_demo_pack_scan_order():
    s = Scanner(DEMO)
    units = s.scan()
    assert [(u.kind, u.namespace, u.relative_path) for u in units] == [
        (UnitKind.MANIFEST, ".", "pack.mcmeta"),
        (UnitKind.FUNCTION, "example", "greet.mcfunction"),
        (UnitKind.FUNCTION, "example", "sub/tick.mcfunction"),
        (UnitKind.TAG, "example", "block/ores.json"),
        (UnitKind.TAG, "example", "function/load.json"),
        (UnitKind.TAG, "minecraft", "function/load.json"),
        (UnitKind.TAG, "minecraft", "function/tick.json"),
    ]
    assert units[1].source_path == "data/example/function/greet.mcfunction"
    assert units[1].raw_content == b"say hello\n"


def test_unrecognized_files_are_notices():
    s = Scanner(DEMO)
    s.scan()
    assert [(n.code, n.severity, n.path) for n in s.notices] == [
        (E.UNRECOGNIZED_FILE, E.SEVERITY_NOTICE, "data/example/advancements/root.json"),
    ]


def test_scan_is_restartable():
    s = Scanner(DEMO)
    first = list(s)
    second = list(s)
    assert first == second
    assert len(s.notices) == 1


def test_root_is_found_from_a_subfolder():
    assert Scanner(DEMO / "data" / "example").root == DEMO.resolve()
    assert locate_pack_root(DEMO / "data") == DEMO.resolve()


def test_missing_root(tmp_path: Path):
    with pytest.raises(E.ScanError) as e:
        Scanner(tmp_path / "nope")
    assert e.value.diag.code == E.BAD_ROOT


def test_root_is_a_file(tmp_path: Path):
    f = tmp_path / "pack.mcmeta"
    f.write_text("{}", encoding="utf-8")
    with pytest.raises(E.ScanError) as e:
        Scanner(f)
    assert e.value.diag.code == E.BAD_ROOT


@pytest.mark.parametrize("mcmeta", [
    "{not json",
    {"pack": {"description": "no format"}},
    {"pack": {"pack_format": "48", "description": "x"}},
    {"name": "no pack object"},
])
def test_bad_manifest(make_pack, mcmeta):
    root = make_pack({"data/ns/function/a.mcfunction": "say a\n"}, mcmeta=mcmeta)
    with pytest.raises(E.ScanError) as e:
        Scanner(root).scan()
    assert e.value.diag.code == E.BAD_MANIFEST
    assert e.value.diag.path == "pack.mcmeta"


def test_no_data_folder(make_pack):
    s = Scanner(make_pack({}))
    units = s.scan()
    assert [u.kind for u in units] == [UnitKind.MANIFEST]
    assert [n.code for n in s.notices] == [E.NO_DATA_FOLDER]


def test_pack_without_manifest(make_pack):
    root = make_pack({"data/ns/function/a.mcfunction": "say a\n"}, mcmeta=None)
    units = Scanner(root).scan()
    assert [(u.kind, u.relative_path) for u in units] == [(UnitKind.FUNCTION, "a.mcfunction")]


def test_stray_files_in_known_folders(make_pack):
    root = make_pack({
        "data/ns/function/a.mcfunction": "say a\n",
        "data/ns/function/notes.txt": "todo",
        "data/ns/tags/untyped.json": {"values": []},
        "data/ns/tags/function/load.txt": "x",
        "data/stray.txt": "x",
        "data/ns/readme.md": "x",
    })
    s = Scanner(root)
    units = s.scan()
    assert [u.relative_path for u in units if u.kind != UnitKind.MANIFEST] == ["a.mcfunction"]
    assert sorted(n.path for n in s.notices) == [
        "data/ns/function/notes.txt",
        "data/ns/readme.md",
        "data/ns/tags/function/load.txt",
        "data/ns/tags/untyped.json",
        "data/stray.txt",
    ]


def test_legacy_and_current_function_folders(make_pack):
    root = make_pack({
        "data/ns/functions/old.mcfunction": "say old\n",
        "data/ns/function/new.mcfunction": "say new\n",
        "data/ns/tags/functions/load.json": {"values": ["ns:old"]},
    })
    units = [u for u in Scanner(root).scan() if u.kind != UnitKind.MANIFEST]
    assert [(u.kind, u.relative_path, u.source_path) for u in units] == [
        (UnitKind.FUNCTION, "new.mcfunction", "data/ns/function/new.mcfunction"),
        (UnitKind.FUNCTION, "old.mcfunction", "data/ns/functions/old.mcfunction"),
        (UnitKind.TAG, "functions/load.json", "data/ns/tags/functions/load.json"),
    ]


def test_assets_are_units_when_included():
    s = Scanner(DEMO, include_assets=True)
    assets = [u for u in s.scan() if u.kind == UnitKind.ASSET]
    assert [(u.namespace, u.relative_path) for u in assets] == [("example", "advancements/root.json")]
    assert s.notices == []
