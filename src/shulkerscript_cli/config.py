"""Option records, environment settings and the project manifest (pack.toml)."""

from __future__ import annotations

import os
import shlex
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

PROJECT_MANIFEST_FILE = "pack.toml"
PACK_ICON_FILE = "pack.png"
SOURCE_DIR = "src"
DEFAULT_DIST_DIR = "dist"
DEFAULT_PACK_FORMAT = 26
DEFAULT_PROJECT_VERSION = "0.1.0"
DEFAULT_DESCRIPTION = "A Minecraft datapack created with shulkerscript"
DEFAULT_DEBOUNCE_MS = 2000

ENV_DATAPACK_DIR = "DATAPACK_DIR"
ENV_COMPILER = "SHULKERSCRIPT_COMPILER"
DEFAULT_COMPILER_COMMAND = "shulkerscript-compiler"


class ProjectConfigError(Exception):
    pass


@dataclass(frozen=True)
class MigrateOptions:
    """Recognized migration options.

    force: overwrite existing non-empty destination files, and accept a
        pack.mcmeta whose extra features cannot be carried over.
    name: project name; overrides the pack root's directory name.
    description: project description; overrides the pack.mcmeta description.
    include_assets: copy non-function, non-tag namespace folders to
        `assets/data/...` instead of reporting them as not migrated.
    dry_run: plan and report without writing anything.
    """
    force: bool = False
    name: Optional[str] = None
    description: Optional[str] = None
    include_assets: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class WatchOptions:
    action: str = "build"
    initial_run: bool = True
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    extra_paths: Tuple[Path, ...] = ()
    execute: bool = True
    shell: Tuple[str, ...] = ()

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


@dataclass(frozen=True)
class CompilerSettings:
    command: Tuple[str, ...] = (DEFAULT_COMPILER_COMMAND,)
    datapack_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "CompilerSettings":
        env = os.environ if environ is None else environ
        command = tuple(shlex.split(env.get(ENV_COMPILER) or DEFAULT_COMPILER_COMMAND))
        dp = env.get(ENV_DATAPACK_DIR)
        return cls(command=command, datapack_dir=Path(dp) if dp else None)


@dataclass(frozen=True)
class ProjectManifest:
    name: str
    description: str
    pack_format: int = DEFAULT_PACK_FORMAT
    namespaces: Tuple[str, ...] = ()
    version: str = DEFAULT_PROJECT_VERSION
    assets: Optional[str] = None

    def to_toml(self) -> str:
        out = [
            "[pack]",
            f"name = {toml_quote_string(self.name)}",
            f"description = {toml_quote_string(self.description)}",
            f"pack_format = {int(self.pack_format)}",
            f"version = {toml_quote_string(self.version)}",
        ]
        if self.assets:
            out += ["", "[compiler]", f"assets = {toml_quote_string(self.assets)}"]
        return "\n".join(out) + "\n"


_TOML_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def toml_quote_string(value: str) -> str:
    """TOML basic string; other control characters (U+0000-U+001F, U+007F) become \\uXXXX."""
    out = []
    for ch in value:
        if ch in _TOML_ESCAPES:
            out.append(_TOML_ESCAPES[ch])
        elif ch < " " or ch == "\x7f":
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


@dataclass(frozen=True)
class ProjectConfig:
    root: Path
    name: str
    description: str
    pack_format: int
    version: str
    assets: Optional[Path] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def find_project_manifest(path: str | Path) -> Path:
    """Resolve a project directory or a pack.toml path to the pack.toml file."""
    p = Path(path).resolve()
    if not p.exists():
        raise ProjectConfigError(f"The specified path does not exist: {p}")
    if p.is_dir():
        toml_path = p / PROJECT_MANIFEST_FILE
        if not toml_path.is_file():
            raise ProjectConfigError(f"The specified directory does not contain a {PROJECT_MANIFEST_FILE} file: {p}")
        return toml_path
    if p.name == PROJECT_MANIFEST_FILE:
        return p
    raise ProjectConfigError(f"The specified path is neither a directory nor a {PROJECT_MANIFEST_FILE} file: {p}")


def load_project_config(path: str | Path) -> ProjectConfig:
    toml_path = find_project_manifest(path)
    try:
        data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ProjectConfigError(f"Could not read {toml_path}: {e}") from e

    pack = data.get("pack")
    if not isinstance(pack, dict):
        raise ProjectConfigError(f"{toml_path} has no [pack] table")
    root = toml_path.parent
    # the compiler accepts both spellings
    pack_format = pack.get("pack_format", pack.get("format", DEFAULT_PACK_FORMAT))
    assets = (data.get("compiler") or {}).get("assets")
    return ProjectConfig(
        root=root,
        name=str(pack.get("name", root.name)),
        description=str(pack.get("description", DEFAULT_DESCRIPTION)),
        pack_format=int(pack_format),
        version=str(pack.get("version", DEFAULT_PROJECT_VERSION)),
        assets=(root / assets) if assets else None,
        raw=data,
    )


def default_watch_paths(config: ProjectConfig, extra: Tuple[Path, ...] = ()) -> List[Path]:
    paths = [config.root / SOURCE_DIR, config.root / PROJECT_MANIFEST_FILE, config.root / PACK_ICON_FILE]
    if config.assets is not None:
        paths.append(config.assets)
    paths += [Path(p).resolve() for p in extra]
    return paths
