"""
Adapter for the external Shulkerscript compiler.

The compiler is an independent program; this module only runs it and reports
success or failure together with its diagnostic text, uninterpreted.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .config import CompilerSettings, DEFAULT_DIST_DIR

log = logging.getLogger(__name__)

ACTION_BUILD = "build"
ACTION_PACKAGE = "package"
ACTIONS = (ACTION_BUILD, ACTION_PACKAGE)


@dataclass(frozen=True)
class CompileOptions:
    output: Optional[Path] = None
    zip: bool = False
    check: bool = False
    validate: bool = True
    assets: Optional[Path] = None


@dataclass(frozen=True)
class CompileResult:
    ok: bool
    output_path: Optional[Path]
    diagnostics: str
    returncode: int
    command: str
    duration: float


class Compiler:
    def __init__(self, settings: Optional[CompilerSettings] = None):
        self.settings = settings or CompilerSettings.from_env()

    def output_dir(self, project_root: Path, options: CompileOptions) -> Path:
        if options.output is not None:
            return Path(options.output)
        if self.settings.datapack_dir is not None:
            return self.settings.datapack_dir
        return Path(project_root) / DEFAULT_DIST_DIR

    def command_for(self, project_root: Path, options: CompileOptions) -> List[str]:
        cmd = [*self.settings.command, str(project_root), "--output", str(self.output_dir(project_root, options))]
        if options.zip:
            cmd.append("--zip")
        if options.check:
            cmd.append("--check")
        if not options.validate:
            cmd.append("--no-validate")
        if options.assets is not None:
            cmd += ["--assets", str(options.assets)]
        return cmd

    def compile(self, project_root: str | Path, options: CompileOptions = CompileOptions()) -> CompileResult:
        project_root = Path(project_root)
        command = self.command_for(project_root, options)
        printable = " ".join(shlex.quote(part) for part in command)
        log.info("running compiler: %s", printable)
        started = time.time()
        try:
            # own session: a Ctrl-C aimed at the watcher must not kill a running build
            result = subprocess.run(
                command,
                cwd=str(project_root),
                env=os.environ.copy(),
                text=True,
                capture_output=True,
                check=False,
                start_new_session=True,
            )
        except OSError as e:
            return CompileResult(
                ok=False,
                output_path=None,
                diagnostics=f"Could not run compiler '{command[0]}': {e.strerror or e}",
                returncode=-1,
                command=printable,
                duration=round(time.time() - started, 2),
            )
        diagnostics = "".join(part for part in (result.stdout, result.stderr) if part)
        return CompileResult(
            ok=result.returncode == 0,
            output_path=None if options.check else self.output_dir(project_root, options),
            diagnostics=diagnostics,
            returncode=result.returncode,
            command=printable,
            duration=round(time.time() - started, 2),
        )


@dataclass(frozen=True)
class ShellResult:
    command: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one watch trigger; `shell` stops at the first failing command."""
    compiled: Optional[CompileResult]
    shell: Tuple[ShellResult, ...] = ()

    @property
    def ok(self) -> bool:
        compiled_ok = self.compiled is None or self.compiled.ok
        return compiled_ok and all(r.ok for r in self.shell)


def shell_argv(command: str) -> List[str]:
    if sys.platform == "win32":
        return ["cmd", "/C", command]
    return [os.environ.get("SHELL") or "sh", "-c", command]


def run_shell_command(command: str, cwd: Path) -> ShellResult:
    """Run `command` through the user's shell with the terminal as its output."""
    log.info("running shell command: %s", command)
    try:
        result = subprocess.run(shell_argv(command), cwd=str(cwd), check=False, start_new_session=True)
    except OSError as e:
        log.debug("shell command could not start: %s", e)
        return ShellResult(command, -1)
    return ShellResult(command, result.returncode)


def make_action(
    name: str,
    project_root: Path,
    compiler: Optional[Compiler] = None,
    *,
    execute: bool = True,
    shell: Sequence[str] = (),
    on_compiled: Optional[Callable[[CompileResult], None]] = None,
) -> Callable[[], ActionResult]:
    """The action a watch loop triggers: build/package unless `execute` is off, then `shell` commands in order.

    A command only runs when everything before it succeeded.
    """
    if name not in ACTIONS:
        raise ValueError(f"Unknown action '{name}', expected one of {ACTIONS}")
    compiler = compiler or Compiler()
    options = CompileOptions(zip=name == ACTION_PACKAGE)
    shell = tuple(shell)

    def action() -> ActionResult:
        compiled = None
        if execute:
            compiled = compiler.compile(project_root, options)
            if on_compiled:
                on_compiled(compiled)
            if not compiled.ok:
                return ActionResult(compiled)
        results: List[ShellResult] = []
        for command in shell:
            r = run_shell_command(command, Path(project_root))
            results.append(r)
            if not r.ok:
                break
        return ActionResult(compiled, tuple(results))

    return action


def clean_output(project_root: Path) -> Optional[Path]:
    """Remove `<project>/dist`. Returns the removed folder, or None if there was none."""
    dist = Path(project_root) / DEFAULT_DIST_DIR
    if not dist.exists():
        return None
    shutil.rmtree(dist)
    log.debug("removed %s", dist)
    return dist
