from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from . import __version__
from .compiler import ACTIONS, ACTION_BUILD, ActionResult, CompileOptions, CompileResult, Compiler, clean_output, make_action
from .config import (
    DEFAULT_DEBOUNCE_MS,
    MigrateOptions,
    ProjectConfigError,
    WatchOptions,
    default_watch_paths,
    load_project_config,
)
from .errors import MigrationError, WriteError
from .migrate import migrate
from .terminal_output import print_error, print_info, print_success, print_warning
from .watch import WatchOrchestrator, path_filter, start_observer

TRACE_LEVELS = ("trace", "debug", "info", "warn", "error")
_LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def setup_tracing(level: Optional[str]) -> None:
    if level is None:
        return
    logging.basicConfig(
        level=_LOG_LEVELS[level],
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="shulkerscript", description="Command line tool to compile Shulkerscript projects.")
    p.add_argument("--version", action="version", version=f"%(prog)s v{__version__}")
    p.add_argument("--trace", nargs="?", const="info", default=None, choices=TRACE_LEVELS, metavar="LEVEL",
                   help="Enable tracing output (default level: info)")
    sub = p.add_subparsers(dest="command", required=True)

    m = sub.add_parser("migrate", help="Migrate a regular datapack to a Shulkerscript project.")
    m.add_argument("path", nargs="?", default=".", help="Path of the datapack to migrate (default: .)")
    m.add_argument("target", nargs="?", default=None, help="Folder of the new project (default: the datapack root)")
    m.add_argument("-f", "--force", action="store_true",
                   help="Overwrite existing files and migrate even if pack.mcmeta features will be lost")
    m.add_argument("--name", default=None, help="Project name (default: datapack folder name)")
    m.add_argument("--description", default=None, help="Project description (default: from pack.mcmeta)")
    m.add_argument("--assets", action="store_true", help="Copy other namespace folders to assets/")
    m.add_argument("--dry-run", action="store_true", help="Plan and report without writing")

    w = sub.add_parser("watch", help="Watch for changes and rebuild.")
    w.add_argument("action", nargs="?", default=None, metavar="SUBCOMMAND",
                   help=f"Command to run on changes: {' or '.join(ACTIONS)} (default: {ACTION_BUILD})")
    w.add_argument("path", nargs="?", default=None, help="Path of the project to watch (default: .)")
    w.add_argument("-n", "--no-initial", action="store_true", help="Only run after changes are detected")
    w.add_argument("-d", "--debounce-time", type=int, default=DEFAULT_DEBOUNCE_MS, metavar="MS",
                   help=f"Time to wait in ms after the last change before running (default: {DEFAULT_DEBOUNCE_MS})")
    w.add_argument("-w", "--watch", action="append", default=[], metavar="PATH", help="Additional path to watch (repeatable)")
    w.add_argument("-X", "--no-execute", action="store_true", help="Do not run build/package, only the --shell commands")
    w.add_argument("-s", "--shell", action="append", default=[], metavar="COMMAND",
                   help="Shell command to run in the project directory after a successful build (repeatable)")

    for name, help_text in (("build", "Build the project."), ("package", "Build the project and package it into a zip file.")):
        b = sub.add_parser(name, help=help_text)
        b.add_argument("path", nargs="?", default=".", help="Path of the project (default: .)")
        b.add_argument("-o", "--output", default=None, help="Output directory (default: $DATAPACK_DIR or <project>/dist)")
        b.add_argument("-a", "--assets", default=None, metavar="PATH",
                       help="Assets folder copied into the datapack; overrides [compiler] assets in pack.toml")
        if name == "build":
            b.add_argument("--check", action="store_true", help="Only check that the project builds")
        b.add_argument("--no-validate", action="store_true", help="Skip pack format validation")

    c = sub.add_parser("clean", help="Remove build artifacts (<project>/dist).")
    c.add_argument("path", nargs="?", default=".", help="Path of the project (default: .)")
    return p


# ---------------- migrate ----------------

def cmd_migrate(args: argparse.Namespace) -> int:
    options = MigrateOptions(
        force=args.force,
        name=args.name,
        description=args.description,
        include_assets=args.assets,
        dry_run=args.dry_run,
    )
    print_info(f"Migrating from {args.path}" + (f" to {args.target}" if args.target else ""))
    try:
        report = migrate(args.path, args.target, options)
    except WriteError as e:
        for w in e.report.warnings:
            print_warning(w.render())
        sys.stdout.write(e.report.render())
        print_error(str(e))
        return 1
    except MigrationError as e:
        print_error(str(e))
        return 1

    for w in report.warnings:
        print_warning(w.render())
    sys.stdout.write(report.render())
    if report.dry_run:
        print_success("Dry run finished; nothing was written.")
    elif report.partial:
        print_success("Migration finished with warnings or preserved files.")
    else:
        print_success("Migration successful.")
    return 0


# ---------------- build / package ----------------

def _report_result(action: str, result: CompileResult) -> None:
    if result.ok:
        if result.diagnostics:
            sys.stdout.write(result.diagnostics)
        where = f" to {result.output_path}" if result.output_path else ""
        print_success(f"Finished {action}{where} ({result.duration}s)")
    else:
        if result.diagnostics:
            sys.stderr.write(result.diagnostics)
            if not result.diagnostics.endswith("\n"):
                sys.stderr.write("\n")
        print_error(f"{action} failed (exit code {result.returncode})")


def cmd_compile(args: argparse.Namespace) -> int:
    try:
        config = load_project_config(args.path)
    except ProjectConfigError as e:
        print_error(str(e))
        return 1
    assets = Path(args.assets).resolve() if args.assets else None
    effective_assets = assets or config.assets
    if effective_assets is not None and not effective_assets.exists():
        print_error(f"The specified assets path does not exist: {effective_assets}")
        return 1
    options = CompileOptions(
        output=Path(args.output) if args.output else None,
        zip=args.command == "package",
        check=getattr(args, "check", False),
        validate=not args.no_validate,
        assets=assets,
    )
    print_info(f"Running {args.command} for project at {config.root}")
    result = Compiler().compile(config.root, options)
    _report_result(args.command, result)
    return 0 if result.ok else 1


# ---------------- watch ----------------

def _watch_options(args: argparse.Namespace) -> tuple[WatchOptions, str]:
    action, path = args.action, args.path
    # `watch some/dir` means the project path, not an action
    if action is not None and action not in ACTIONS:
        if path is not None:
            raise ValueError(f"Unknown watch subcommand '{action}', expected one of {ACTIONS}")
        action, path = None, action
    options = WatchOptions(
        action=action or ACTION_BUILD,
        initial_run=not args.no_initial,
        debounce_ms=args.debounce_time,
        extra_paths=tuple(Path(p) for p in args.watch),
        execute=not args.no_execute,
        shell=tuple(args.shell),
    )
    return options, path or "."


def _report_shell_results(result: ActionResult, total: int) -> None:
    if total == 0:
        return
    if result.compiled is not None and not result.compiled.ok:
        print_error("Not running shell commands.")
        return
    for i, r in enumerate(result.shell, start=1):
        if r.ok:
            continue
        if r.returncode < 0:
            print_error(f"Error running shell command {i}: {r.command}")
        else:
            print_error(f"Shell command {i} exited unsuccessfully with status code {r.returncode}")
        if i < total:
            print_warning("Not running further shell commands.")
        return
    print_success(f"Ran {total} shell command(s)")


def cmd_watch(args: argparse.Namespace) -> int:
    try:
        options, path = _watch_options(args)
        config = load_project_config(path)
    except (ValueError, ProjectConfigError) as e:
        print_error(str(e))
        return 1
    if options.debounce_ms < 0:
        print_error("--debounce-time must not be negative")
        return 1

    if not options.execute and not options.shell:
        print_error("--no-execute needs at least one --shell command")
        return 1

    paths = default_watch_paths(config, options.extra_paths)
    action_name = options.action
    label = action_name if options.execute else "shell commands"

    def on_start(initial: bool) -> None:
        if initial:
            print_info(f"Running {label} initially...")
        else:
            print_info(f"Changes have been detected. Running {label}...")

    def on_result(result: ActionResult) -> None:
        _report_shell_results(result, len(options.shell))

    def on_error(e: BaseException) -> None:
        print_error(f"{label} failed: {e}")

    orchestrator = WatchOrchestrator(
        make_action(
            action_name,
            config.root,
            execute=options.execute,
            shell=options.shell,
            on_compiled=lambda r: _report_result(action_name, r),
        ),
        debounce=options.debounce_seconds,
        initial_run=options.initial_run,
        is_qualifying=path_filter(paths),
        on_start=on_start,
        on_result=on_result,
        on_error=on_error,
    )

    print_info(f"Watching project at {config.root}")
    if not options.initial_run:
        print_info("Skipping initial run because of cli flag.")
    observer, missing = start_observer(paths, orchestrator)
    for p in missing:
        if p in [q.resolve() for q in options.extra_paths]:
            print_warning(f"Path {p} does not exist. Skipping...")

    def on_sigint(_signum, _frame) -> None:
        orchestrator.stop()
        # a second Ctrl-C aborts without waiting for the running action
        signal.signal(signal.SIGINT, signal.default_int_handler)

    in_main = threading.current_thread() is threading.main_thread()
    previous = signal.signal(signal.SIGINT, on_sigint) if in_main else None
    print_info("Press Ctrl-C to stop watching")
    try:
        orchestrator.run()
    except KeyboardInterrupt:
        print_warning("Interrupted while an action was running.")
        return 130
    finally:
        observer.stop()
        observer.join()
        if in_main and previous is not None:
            signal.signal(signal.SIGINT, previous)
    print_info("Stopped watching.")
    return 0


# ---------------- clean ----------------

def cmd_clean(args: argparse.Namespace) -> int:
    try:
        config = load_project_config(args.path)
    except ProjectConfigError as e:
        print_error(str(e))
        return 1
    print_info(f"Cleaning project at {config.root}")
    try:
        clean_output(config.root)
    except OSError as e:
        print_error(f"Could not remove build output: {e}")
        return 1
    print_success("Project cleaned successfully.")
    return 0


COMMANDS = {
    "migrate": cmd_migrate,
    "watch": cmd_watch,
    "build": cmd_compile,
    "package": cmd_compile,
    "clean": cmd_clean,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_tracing(args.trace)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    raise SystemExit(main())
