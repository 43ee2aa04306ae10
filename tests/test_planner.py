from __future__ import annotations
from collections import Counter
from pathlib import Path

import pytest

from shulkerscript_cli import errors as E
from shulkerscript_cli.config import DEFAULT_DESCRIPTION, DEFAULT_PACK_FORMAT, MigrateOptions
from shulkerscript_cli.migrate import build_plan
from shulkerscript_cli.model import UnitKind
from shulkerscript_cli.planner import (
    OUTCOME_EXCLUDED,
    OUTCOME_MIGRATED,
    OUTCOME_SANITIZED,
    Strategy,
    flatten_text_component,
    plan_migration,
)
from shulkerscript_cli.scanner import Scanner

REPO_ROOT = Path(__file__).resolve().parents[1]
DEMO = REPO_ROOT / "tests" / "packs" / "demo"


def test_demo_destinations():
    _s, plan = build_plan(DEMO)
    assert plan.destinations == [
        "src/example/greet.shu",
        "src/example/sub/tick.shu",
        "src/example/_tags.shu",
        "src/minecraft/_tags.shu",
    ]
    assert [e.strategy for e in plan.entries] == [
        Strategy.FUNCTION, Strategy.FUNCTION, Strategy.MERGED_TAGS, Strategy.MERGED_TAGS,
    ]
    assert plan.manifest.name == "demo"
    assert plan.manifest.description == "Demo pack"
    assert plan.manifest.pack_format == 48
    assert plan.manifest.namespaces == ("example", "minecraft")


def test_planning_is_deterministic():
    _s1, plan1 = build_plan(DEMO)
    _s2, plan2 = build_plan(DEMO)
    assert plan1 == plan2
    assert [e.content for e in plan1.entries] == [e.content for e in plan2.entries]


def test_every_unit_has_exactly_one_outcome():
    scanner, plan = build_plan(DEMO)
    units = scanner.scan()
    outcomes = plan.outcomes()
    counts = Counter(u.source_path for u, _o in outcomes)
    assert set(counts) == {u.source_path for u in units}
    assert set(counts.values()) == {1}


def test_demo_outcomes():
    _s, plan = build_plan(DEMO)
    outcomes = {u.source_path: o for u, o in plan.outcomes()}
    assert outcomes["pack.mcmeta"] == OUTCOME_EXCLUDED
    assert outcomes["data/example/function/greet.mcfunction"] == OUTCOME_MIGRATED
    # the `required` flag on one entry is dropped
    assert outcomes["data/example/tags/function/load.json"] == OUTCOME_SANITIZED
    assert [w.code for w in plan.warnings] == [E.TAG_ENTRY_FLAGS_DROPPED]
    assert [n.code for n in plan.notices] == [E.UNRECOGNIZED_FILE]


def test_sanitized_namespace(make_pack):
    root = make_pack({"data/my-pack/function/a.mcfunction": "say a\n"})
    _s, plan = build_plan(root)
    assert plan.destinations == ["src/my_pack/a.shu"]
    assert b'namespace "my-pack";' in plan.entries[0].content
    assert [(w.code, w.path) for w in plan.warnings] == [(E.SANITIZED_NAMESPACE, "data/my-pack/function/a.mcfunction")]
    outcomes = {u.source_path: o for u, o in plan.outcomes()}
    assert outcomes["data/my-pack/function/a.mcfunction"] == OUTCOME_SANITIZED


def test_destination_collision_is_fatal(make_pack):
    root = make_pack({
        "data/my-pack/function/a.mcfunction": "say 1\n",
        "data/my_pack/function/a.mcfunction": "say 2\n",
    })
    with pytest.raises(E.PlanningError) as e:
        build_plan(root)
    assert e.value.diag.code == E.DESTINATION_COLLISION
    assert "src/my_pack/a.shu" in e.value.diag.message
    assert "data/my-pack/function/a.mcfunction" in e.value.diag.message
    assert "data/my_pack/function/a.mcfunction" in e.value.diag.message


def test_function_and_functions_folders_with_the_same_file(make_pack):
    root = make_pack({
        "data/ns/function/a.mcfunction": "say new\n",
        "data/ns/functions/a.mcfunction": "say old\n",
    })
    with pytest.raises(E.DuplicateUnitError) as e:
        build_plan(root)
    assert isinstance(e.value, E.ScanError)
    assert isinstance(e.value, E.PlanningError)
    assert e.value.diag.code == E.DUPLICATE_UNIT


def test_options_override_manifest(make_pack):
    root = make_pack({})
    _s, plan = build_plan(root, MigrateOptions(name="Custom", description="Other"))
    assert plan.manifest.name == "Custom"
    assert plan.manifest.description == "Other"
    assert plan.manifest.pack_format == 48


def test_empty_options_are_kept(make_pack):
    _s, plan = build_plan(make_pack({}), MigrateOptions(name="", description=""))
    assert plan.manifest.name == ""
    assert plan.manifest.description == ""


def test_defaults_without_manifest(make_pack):
    root = make_pack({"data/ns/function/a.mcfunction": "say a\n"}, name="legacy", mcmeta=None)
    _s, plan = build_plan(root)
    assert plan.manifest.name == "legacy"
    assert plan.manifest.description == DEFAULT_DESCRIPTION
    assert plan.manifest.pack_format == DEFAULT_PACK_FORMAT


@pytest.mark.parametrize("description,expected", [
    ("plain", "plain"),
    ({"text": "A", "extra": [{"text": "B"}, "C"]}, "ABC"),
    (["", {"text": "x", "color": "red"}, "y"], "xy"),
])
def test_text_component_descriptions(description, expected):
    assert flatten_text_component(description) == expected


MCMETA_EXTRAS = [
    {"pack": {"pack_format": 48, "description": "d"}, "overlays": {"entries": []}},
    {"pack": {"pack_format": 48, "description": "d"}, "filter": {"block": []}},
    {"pack": {"pack_format": 48, "description": "d", "supported_formats": [48, 57]}},
]


@pytest.mark.parametrize("mcmeta", MCMETA_EXTRAS)
def test_incompatible_manifest_needs_force(make_pack, mcmeta):
    root = make_pack({"data/ns/function/a.mcfunction": "say a\n"}, mcmeta=mcmeta)
    with pytest.raises(E.PlanningError) as e:
        build_plan(root)
    assert e.value.diag.code == E.INCOMPATIBLE_MANIFEST


@pytest.mark.parametrize("mcmeta", MCMETA_EXTRAS)
def test_incompatible_manifest_with_force(make_pack, mcmeta):
    root = make_pack({"data/ns/function/a.mcfunction": "say a\n"}, mcmeta=mcmeta)
    _s, plan = build_plan(root, MigrateOptions(force=True))
    assert [w.code for w in plan.warnings] == [E.MANIFEST_FEATURES_LOST]
    assert plan.destinations == ["src/ns/a.shu"]


def test_invalid_tag_only_namespace_has_no_tag_file(make_pack):
    root = make_pack({"data/ns/tags/function/load.json": "nope"})
    _s, plan = build_plan(root)
    assert plan.destinations == []
    outcomes = {u.source_path: o for u, o in plan.outcomes()}
    assert outcomes["data/ns/tags/function/load.json"] == OUTCOME_EXCLUDED
    assert [w.code for w in plan.warnings] == [E.INVALID_TAG]


def test_tag_references_stay_separate_per_namespace(make_pack):
    root = make_pack({
        "data/a/tags/function/load.json": {"values": ["shared:func"]},
        "data/b/tags/function/load.json": {"values": ["shared:func"]},
    })
    _s, plan = build_plan(root)
    assert plan.destinations == ["src/a/_tags.shu", "src/b/_tags.shu"]
    for entry in plan.entries:
        assert entry.content.count(b'"shared:func"') == 1


def test_assets_are_copied_verbatim():
    _s, plan = build_plan(DEMO, MigrateOptions(include_assets=True))
    copies = [e for e in plan.entries if e.strategy == Strategy.COPY]
    assert [e.destination for e in copies] == ["assets/data/example/advancements/root.json"]
    assert copies[0].content == (DEMO / "data/example/advancements/root.json").read_bytes()
    assert plan.manifest.assets == "./assets"
    assert plan.notices == ()


def test_plan_from_units_directly():
    units = [u for u in Scanner(DEMO).scan() if u.kind == UnitKind.FUNCTION]
    plan = plan_migration(units, pack_name="direct")
    assert plan.manifest.name == "direct"
    assert plan.manifest.pack_format == DEFAULT_PACK_FORMAT
    assert plan.exclusions == ()
