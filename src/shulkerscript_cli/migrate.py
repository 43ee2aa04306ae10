"""Migration pipeline: scan -> plan -> write, single-threaded and deterministic."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from .config import MigrateOptions
from .planner import MigrationPlan, plan_migration
from .scanner import Scanner
from .writer import MigrationReport, write_plan

log = logging.getLogger(__name__)


def build_plan(path: str | Path, options: MigrateOptions = MigrateOptions()) -> Tuple[Scanner, MigrationPlan]:
    scanner = Scanner(path, include_assets=options.include_assets)
    units = scanner.scan()
    log.debug("scanned %d units under %s", len(units), scanner.root)
    plan = plan_migration(units, options, pack_name=scanner.root.name, notices=scanner.notices)
    return scanner, plan


def migrate(
    path: str | Path,
    target: Optional[str | Path] = None,
    options: MigrateOptions = MigrateOptions(),
) -> MigrationReport:
    """Migrate the datapack at `path` into a Shulkerscript project at `target`.

    `target` defaults to the datapack's own root, so `src/` and `pack.toml`
    land next to the legacy `data/` folder.
    """
    scanner, plan = build_plan(path, options)
    return write_plan(plan, target if target is not None else scanner.root, force=options.force, dry_run=options.dry_run)
