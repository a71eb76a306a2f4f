"""Fallback values for harness settings from `.env.defaults` and `.env`.

Shell environment always wins; these files only fill keys that are unset,
typically on a developer machine. `.env.defaults` holds the checked-in
catalog, `.env` the local overrides. Both are looked up in the project root
and in the current working directory.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator

ENV_FILES = (".env.defaults", ".env")


def _search_dirs() -> Iterator[Path]:
    project_root = Path(__file__).resolve().parents[2]
    yield project_root
    try:
        cwd = Path.cwd().resolve()
    except OSError:
        # working directory was removed under us
        return
    if cwd != project_root:
        yield cwd


@lru_cache(maxsize=1)
def load_defaults() -> Dict[str, str]:
    """Merge every env file found; later files (and `.env` over `.env.defaults`) win."""
    merged: Dict[str, str] = {}
    dirs = list(_search_dirs())
    for name in ENV_FILES:
        for directory in dirs:
            candidate = directory / name
            if candidate.is_file():
                merged.update(parse_env_file(candidate))
    return merged


def get_default(key: str, fallback: str | None = None) -> str | None:
    return load_defaults().get(key, fallback)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_env_file(env_path: Path) -> Dict[str, str]:
    """Parse ``KEY=value`` lines; blank lines, comments and malformed lines are skipped."""
    values: Dict[str, str] = {}
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = _unquote(value.strip())
    return values
