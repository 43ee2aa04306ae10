from __future__ import annotations
import sys
from typing import TextIO


def _emit(label: str, pad: str, msg: str, stream: TextIO) -> None:
    print(f"[{label}]{pad}{msg}", file=stream, flush=True)


def print_info(msg: str) -> None:
    _emit("INFO", "    ", msg, sys.stdout)


def print_success(msg: str) -> None:
    _emit("SUCCESS", " ", msg, sys.stdout)


def print_warning(msg: str) -> None:
    _emit("WARNING", " ", msg, sys.stderr)


def print_error(msg: str) -> None:
    _emit("ERROR", "   ", msg, sys.stderr)
