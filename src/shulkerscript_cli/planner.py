"""
Unit classifier & mapper: SourceUnits -> immutable MigrationPlan.

Nothing here touches the disk. Content is rendered while planning so that two
plans of the same tree compare equal byte for byte, and the writer never has
to re-derive a mapping decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from . import errors as E
from .config import DEFAULT_DESCRIPTION, DEFAULT_PACK_FORMAT, MigrateOptions, ProjectManifest, SOURCE_DIR
from .model import SourceUnit, UnitKind, is_identifier, sanitize_identifier
from .scanner import parse_manifest
from .transcribe import transcribe_function, transcribe_tags

log = logging.getLogger(__name__)

SOURCE_EXT = ".shu"
MERGED_TAGS_FILE = "_tags" + SOURCE_EXT
ASSETS_DIR = "assets"

OUTCOME_MIGRATED = "migrated"
OUTCOME_SANITIZED = "warned-and-sanitized"
OUTCOME_EXCLUDED = "excluded"


class Strategy(str, Enum):
    FUNCTION = "function"
    MERGED_TAGS = "merged-tags"
    COPY = "copy"


@dataclass(frozen=True)
class PlanEntry:
    units: Tuple[SourceUnit, ...]
    destination: str
    strategy: Strategy
    content: bytes


@dataclass(frozen=True)
class Exclusion:
    unit: SourceUnit
    reason: str


@dataclass(frozen=True)
class MigrationPlan:
    entries: Tuple[PlanEntry, ...]
    exclusions: Tuple[Exclusion, ...]
    manifest: ProjectManifest
    warnings: Tuple[E.MigrationDiagnostic, ...] = ()
    notices: Tuple[E.MigrationDiagnostic, ...] = ()

    @property
    def destinations(self) -> List[str]:
        return [e.destination for e in self.entries]

    def outcomes(self) -> List[Tuple[SourceUnit, str]]:
        """One outcome per planned unit, entries first, then exclusions."""
        warned = {w.path for w in self.warnings}
        out: List[Tuple[SourceUnit, str]] = []
        for entry in self.entries:
            for unit in entry.units:
                out.append((unit, OUTCOME_SANITIZED if unit.source_path in warned else OUTCOME_MIGRATED))
        out += [(x.unit, OUTCOME_EXCLUDED) for x in self.exclusions]
        return out


def flatten_text_component(value: Any) -> str:
    """pack.mcmeta descriptions may be JSON text components; keep their plain text."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(flatten_text_component(v) for v in value)
    if isinstance(value, dict):
        return str(value.get("text", "")) + "".join(flatten_text_component(v) for v in value.get("extra", []))
    return str(value)


def _lost_manifest_features(data: Dict[str, Any]) -> List[str]:
    # a project manifest can only express pack.description and pack.pack_format
    lost = [k for k in data if k != "pack"]
    if "supported_formats" in data["pack"]:
        lost.append("pack.supported_formats")
    return lost


def namespace_directory(namespace: str) -> str:
    return namespace if is_identifier(namespace) else sanitize_identifier(namespace)


def _check_duplicates(units: Sequence[SourceUnit]) -> None:
    seen: Dict[Tuple[str, str, str], SourceUnit] = {}
    for u in units:
        other = seen.get(u.identity)
        if other is not None:
            raise E.DuplicateUnitError.build(
                E.DUPLICATE_UNIT,
                f"'{u.source_path}' and '{other.source_path}' are the same unit "
                f"({u.kind.value} '{u.relative_path}' in namespace '{u.namespace}').",
                u.source_path,
                "Keep only one of the two files.",
            )
        seen[u.identity] = u


def _check_collisions(entries: Sequence[PlanEntry]) -> None:
    by_dest: Dict[str, PlanEntry] = {}
    for entry in entries:
        other = by_dest.get(entry.destination)
        if other is not None:
            a = ", ".join(u.source_path for u in other.units)
            b = ", ".join(u.source_path for u in entry.units)
            raise E.PlanningError.build(
                E.DESTINATION_COLLISION,
                f"Destination '{entry.destination}' is produced by both [{a}] and [{b}].",
                entry.units[0].source_path,
                "Rename one of the legacy files or namespaces so their sanitized names differ.",
            )
        by_dest[entry.destination] = entry


def _seed_manifest(
    manifest_unit: Optional[SourceUnit],
    options: MigrateOptions,
    pack_name: str,
    namespaces: Iterable[str],
    warnings: List[E.MigrationDiagnostic],
) -> ProjectManifest:
    description = DEFAULT_DESCRIPTION
    pack_format = DEFAULT_PACK_FORMAT
    if manifest_unit is not None:
        data = parse_manifest(manifest_unit.raw_content, manifest_unit.source_path)
        lost = _lost_manifest_features(data)
        if lost and not options.force:
            raise E.PlanningError.build(
                E.INCOMPATIBLE_MANIFEST,
                f"pack.mcmeta uses features that are not supported by Shulkerscript projects: {', '.join(lost)}.",
                manifest_unit.source_path,
                "Use --force to migrate anyway; these entries will be lost.",
            )
        if lost:
            warnings.append(E.warning(
                E.MANIFEST_FEATURES_LOST,
                f"pack.mcmeta entries dropped: {', '.join(lost)}.",
                manifest_unit.source_path,
            ))
        description = flatten_text_component(data["pack"]["description"])
        pack_format = int(data["pack"]["pack_format"])
    return ProjectManifest(
        name=options.name if options.name is not None else pack_name,
        description=options.description if options.description is not None else description,
        pack_format=pack_format,
        namespaces=tuple(sorted(set(namespaces))),
    )


def plan_migration(
    units: Iterable[SourceUnit],
    options: MigrateOptions = MigrateOptions(),
    *,
    pack_name: str,
    notices: Sequence[E.MigrationDiagnostic] = (),
) -> MigrationPlan:
    units = list(units)
    _check_duplicates(units)

    warnings: List[E.MigrationDiagnostic] = []
    entries: List[PlanEntry] = []
    exclusions: List[Exclusion] = []

    manifest_units = [u for u in units if u.kind == UnitKind.MANIFEST]
    for u in manifest_units:
        exclusions.append(Exclusion(u, "manifest; its fields seed pack.toml"))

    by_namespace: Dict[str, List[SourceUnit]] = {}
    for u in units:
        if u.kind != UnitKind.MANIFEST:
            by_namespace.setdefault(u.namespace, []).append(u)

    has_assets = False
    for namespace in sorted(by_namespace):
        ns_units = by_namespace[namespace]
        ns_dir = namespace_directory(namespace)
        if ns_dir != namespace:
            for u in ns_units:
                if u.kind == UnitKind.ASSET:
                    continue
                warnings.append(E.warning(
                    E.SANITIZED_NAMESPACE,
                    f"Namespace '{namespace}' is not a valid identifier; sources are placed under '{SOURCE_DIR}/{ns_dir}'.",
                    u.source_path,
                    "The namespace declaration inside the file keeps the original name.",
                ))

        for u in ns_units:
            if u.kind == UnitKind.FUNCTION:
                t = transcribe_function(u)
                warnings += t.warnings
                rel = PurePosixPath(u.relative_path).with_suffix(SOURCE_EXT).as_posix()
                entries.append(PlanEntry((u,), f"{SOURCE_DIR}/{ns_dir}/{rel}", Strategy.FUNCTION, t.text.encode("utf-8")))

        tags = [u for u in ns_units if u.kind == UnitKind.TAG]
        if tags:
            t = transcribe_tags(namespace, tags)
            warnings += t.warnings
            exclusions += [Exclusion(u, "invalid tag file") for u in t.excluded]
            kept = tuple(u for u in tags if u not in t.excluded)
            if kept:
                entries.append(PlanEntry(kept, f"{SOURCE_DIR}/{ns_dir}/{MERGED_TAGS_FILE}", Strategy.MERGED_TAGS, t.text.encode("utf-8")))

        for u in ns_units:
            if u.kind == UnitKind.ASSET:
                has_assets = True
                entries.append(PlanEntry((u,), f"{ASSETS_DIR}/data/{namespace}/{u.relative_path}", Strategy.COPY, u.raw_content))

    _check_collisions(entries)

    manifest = _seed_manifest(
        manifest_units[0] if manifest_units else None,
        options,
        pack_name,
        by_namespace.keys(),
        warnings,
    )
    if has_assets:
        manifest = replace(manifest, assets=f"./{ASSETS_DIR}")

    log.debug("planned %d entries, %d exclusions, %d warnings", len(entries), len(exclusions), len(warnings))
    return MigrationPlan(tuple(entries), tuple(exclusions), manifest, tuple(warnings), tuple(notices))
