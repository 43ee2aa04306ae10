"""
Project writer: MigrationPlan -> files on disk.

- existing non-empty files are preserved unless forced
- pack.toml is written last, only when every entry was written
- not transactional: on a write error, files already written stay and the
  error carries the exact list of them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from . import errors as E
from .config import PROJECT_MANIFEST_FILE
from .planner import MigrationPlan

log = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    target: Path
    dry_run: bool = False
    written: List[str] = field(default_factory=list)
    preserved: List[str] = field(default_factory=list)
    outcomes: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[E.MigrationDiagnostic] = field(default_factory=list)
    notices: List[E.MigrationDiagnostic] = field(default_factory=list)
    manifest_written: bool = False
    complete: bool = False

    @property
    def partial(self) -> bool:
        return bool(self.preserved or self.warnings) or not self.complete

    def render(self) -> str:
        verb = "Would write" if self.dry_run else "Written"
        out = [f"Migration report for {self.target}"]
        out.append(f"{verb} ({len(self.written)}):")
        out += [f"  + {p}" for p in self.written]
        if self.preserved:
            out.append(f"Preserved existing files ({len(self.preserved)}):")
            out += [f"  = {p}" for p in self.preserved]
        out.append(f"Units ({len(self.outcomes)}):")
        out += [f"  {outcome:<22} {src}" for src, outcome in self.outcomes]
        if self.notices:
            out.append(f"Notices ({len(self.notices)}):")
            out += [f"  {d.code}: {d.message} ({d.path})" for d in self.notices]
        if not self.complete:
            out.append("Migration stopped before completion; pack.toml was not written.")
        return "\n".join(out) + "\n"


def atomic_write_bytes(dst: Path, data: bytes) -> None:
    """Write to a sibling temp file, then replace, so readers never see a half-written file."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    tmp = dst.parent / (dst.name + ".tmp__writing__")
    try:
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, dst)
    finally:
        if tmp.exists():
            tmp.unlink()


def _occupied(p: Path) -> bool:
    return p.is_file() and p.stat().st_size > 0


def write_plan(plan: MigrationPlan, target: str | Path, *, force: bool = False, dry_run: bool = False) -> MigrationReport:
    target = Path(target)
    report = MigrationReport(
        target=target,
        dry_run=dry_run,
        outcomes=[(u.source_path, outcome) for u, outcome in plan.outcomes()],
        warnings=list(plan.warnings),
        notices=list(plan.notices),
    )

    files = [(e.destination, e.content) for e in plan.entries]
    files.append((PROJECT_MANIFEST_FILE, plan.manifest.to_toml().encode("utf-8")))

    for rel, content in files:
        dst = target / rel
        try:
            if _occupied(dst) and not force:
                report.preserved.append(rel)
                report.notices.append(E.notice(
                    E.PRESERVED_FILE, "Destination already exists and is not empty; kept as is.", rel,
                    "Use --force to overwrite.",
                ))
                continue
            if not dry_run:
                atomic_write_bytes(dst, content)
                log.debug("wrote %s (%d bytes)", dst, len(content))
        except OSError as e:
            diag = E.MigrationDiagnostic(
                E.WRITE_FAILED, E.SEVERITY_ERROR,
                f"Could not write file: {e.strerror or e}. {len(report.written)} file(s) were written before the failure.",
                rel,
                "Fix the problem and run the migration again; written files are preserved without --force.",
            )
            raise E.WriteError(diag, report) from e
        report.written.append(rel)
        if rel == PROJECT_MANIFEST_FILE:
            report.manifest_written = True

    report.complete = True
    return report
