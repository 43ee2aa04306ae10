"""
Content transcriber: legacy unit bodies -> Shulkerscript source text.

Pure functions over SourceUnits (no disk access). Function bodies are kept
line-for-line so a migrated file can be diffed against the legacy one.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import jsonschema

from . import __version__
from . import errors as E
from . import schemas
from .model import SourceUnit, UnitKind, decode_content, is_identifier, is_utf8, sanitize_identifier

INDENT = " " * 4
DEFAULT_NAMESPACE = "minecraft"

# pre-1.21 folder names -> registry names used in `tag ... of "<type>"`
LEGACY_TAG_TYPES = {
    "functions": "function",
    "blocks": "block",
    "items": "item",
    "fluids": "fluid",
    "entity_types": "entity_type",
    "game_events": "game_event",
}


@dataclass(frozen=True)
class Transcription:
    text: str
    warnings: Tuple[E.MigrationDiagnostic, ...] = ()
    excluded: Tuple[SourceUnit, ...] = ()


def escape_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _header(origin: str) -> str:
    return f"// This file was automatically migrated by Shulkerscript CLI v{__version__} from {origin}"


# ---------------- functions ----------------

def function_path(unit: SourceUnit) -> str:
    """`sub/greet.mcfunction` -> `sub/greet`"""
    path = unit.relative_path
    return path[: -len(".mcfunction")] if path.endswith(".mcfunction") else path


def function_name(unit: SourceUnit) -> str:
    return function_path(unit).rsplit("/", 1)[-1]


def split_lines(body: str) -> List[str]:
    """Split on `\\n` and `\\r\\n` only; other Unicode separators belong to the command."""
    lines = body.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def transcribe_lines(body: str) -> List[str]:
    out: List[str] = []
    continued = False
    for line in split_lines(body):
        stripped = line.strip()
        if not stripped:
            out.append("")
            continued = False
            continue
        if continued:
            # continuation of a backslash-terminated command
            out.append(INDENT + INDENT + stripped)
        elif stripped.startswith("#"):
            out.append(INDENT + stripped.replace("#", "///", 1))
        else:
            out.append(INDENT + "/" + line.lstrip())
        continued = stripped.endswith("\\") and not stripped.startswith("#")
    return out


def transcribe_function(unit: SourceUnit) -> Transcription:
    if unit.kind != UnitKind.FUNCTION:
        raise ValueError(f"Not a function unit: {unit.source_path}")
    warnings: List[E.MigrationDiagnostic] = []

    name = function_name(unit)
    if not is_identifier(name):
        fallback = sanitize_identifier(name)
        warnings.append(E.warning(
            E.SANITIZED_FUNCTION,
            f"Function name '{name}' is not a valid identifier; declared as '{fallback}'.",
            unit.source_path,
            "The compiled function keeps its original name through #[deobfuscate].",
        ))
        name = fallback
    if not is_utf8(unit.raw_content):
        warnings.append(E.warning(
            E.NON_UTF8_CONTENT,
            "File is not valid UTF-8; it was read as latin-1.",
            unit.source_path,
        ))

    lines = [
        _header(f'file "{escape_string(unit.source_path)}"'),
        f'namespace "{escape_string(unit.namespace)}";',
        "",
        f'#[deobfuscate = "{escape_string(function_path(unit))}"]',
        f"fn {name}() {{",
        *transcribe_lines(decode_content(unit.raw_content)),
        "}",
    ]
    return Transcription("\n".join(lines) + "\n", tuple(warnings))


# ---------------- tags ----------------

@dataclass
class TagBlock:
    path: str
    tag_type: str
    replace: bool = False
    values: List[str] = field(default_factory=list)

    def add(self, value: str) -> None:
        if value not in self.values:
            self.values.append(value)

    def render(self) -> List[str]:
        of_type = "" if self.tag_type == "function" else f' of "{escape_string(self.tag_type)}"'
        replace = " replace" if self.replace else ""
        head = f'tag "{escape_string(self.path)}"{of_type}{replace} ['
        if not self.values:
            return [head + "]"]
        body = ",\n".join(f'{INDENT}"{escape_string(v)}"' for v in self.values)
        return [head, body, "]"]


def tag_type_and_path(unit: SourceUnit) -> Tuple[str, str]:
    """`functions/sub/load.json` -> (`function`, `sub/load`)"""
    folder, _, rest = unit.relative_path.partition("/")
    if rest.endswith(".json"):
        rest = rest[: -len(".json")]
    return LEGACY_TAG_TYPES.get(folder, folder), rest


def qualify(ref: str, default_namespace: str = DEFAULT_NAMESPACE) -> str:
    """Resource locations without a namespace resolve to `minecraft`, as in the game."""
    prefix = ""
    if ref.startswith("#"):
        prefix, ref = "#", ref[1:]
    if ":" not in ref:
        ref = f"{default_namespace}:{ref}"
    return prefix + ref


def parse_tag(unit: SourceUnit) -> Optional[Dict]:
    try:
        data = json.loads(decode_content(unit.raw_content))
        schemas.validate(data, schemas.TAG)
    except (json.JSONDecodeError, jsonschema.ValidationError):
        return None
    return data


def transcribe_tags(namespace: str, units: Sequence[SourceUnit]) -> Transcription:
    """Merge every tag file of one namespace into a single source file."""
    warnings: List[E.MigrationDiagnostic] = []
    excluded: List[SourceUnit] = []
    blocks: Dict[Tuple[str, str], TagBlock] = {}
    sources: List[str] = []

    for unit in units:
        if unit.kind != UnitKind.TAG or unit.namespace != namespace:
            raise ValueError(f"Not a tag unit of namespace '{namespace}': {unit.source_path}")
        data = parse_tag(unit)
        if data is None:
            warnings.append(E.warning(
                E.INVALID_TAG,
                "Tag file is not valid tag JSON; it was not migrated.",
                unit.source_path,
                "A tag needs a 'values' list of resource locations.",
            ))
            excluded.append(unit)
            continue
        sources.append(unit.source_path)
        tag_type, path = tag_type_and_path(unit)
        block = blocks.setdefault((tag_type, path), TagBlock(path, tag_type))
        block.replace = block.replace or bool(data.get("replace", False))
        for entry in data["values"]:
            if isinstance(entry, dict):
                if "required" in entry:
                    warnings.append(E.warning(
                        E.TAG_ENTRY_FLAGS_DROPPED,
                        f"Entry '{entry['id']}' has a 'required' flag, which is dropped.",
                        unit.source_path,
                    ))
                entry = entry["id"]
            block.add(qualify(entry))

    lines = [_header(f'tags in namespace "{escape_string(namespace)}"')]
    lines += [f"//   {src}" for src in sources]
    lines += [f'namespace "{escape_string(namespace)}";']
    for block in blocks.values():
        lines.append("")
        lines += block.render()
    return Transcription("\n".join(lines) + "\n", tuple(warnings), tuple(excluded))
