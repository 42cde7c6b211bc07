"""
L1 Domain — Install categories, path rules and placeholders (pure).

No I/O: every check works on path strings only, except
``is_within`` which resolves symlinks for an existing filesystem.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath


@dataclass(frozen=True)
class Category:
    """A coarse install destination under the prefix."""

    name: str
    subdir: str
    mode: int
    placeholder: str


CATEGORIES: dict[str, Category] = {
    c.name: c
    for c in (
        Category("executable", "bin", 0o755, "bin"),
        Category("system-executable", "sbin", 0o755, "sbin"),
        Category("library", "lib", 0o644, "lib"),
        Category("header", "include", 0o644, "include"),
        Category("data", "share", 0o644, "share"),
        Category("manual-page", "share/man/man1", 0o644, "man1"),
        Category("documentation", "share/doc", 0o644, "doc"),
        Category("config", "etc", 0o644, "etc"),
    )
}

# Placeholders available to build and install directives.
MANIFEST_PLACEHOLDERS = frozenset({"name", "version"})

# Test directives may also reference the install locations.
TEST_PLACEHOLDERS = MANIFEST_PLACEHOLDERS | {"prefix"} | {
    c.placeholder for c in CATEGORIES.values()
}

_PLACEHOLDER_RE = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")


def find_placeholders(template: str) -> list[str]:
    """Return every ``{word}`` placeholder in ``template``."""
    return _PLACEHOLDER_RE.findall(template)


def render(template: str, values: dict[str, str]) -> str:
    """Substitute ``{word}`` placeholders; unknown ones are left as-is."""
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def install_locations(prefix: Path) -> dict[str, str]:
    """Map each test placeholder to its absolute directory under ``prefix``."""
    values = {"prefix": str(prefix)}
    for c in CATEGORIES.values():
        values[c.placeholder] = str(prefix / c.subdir)
    return values


def check_relative_path(path: str) -> str | None:
    """Validate a path that must stay inside the tree it is joined to.

    Returns:
        Error message, or ``None`` if the path is relative, non-empty
        and never climbs above its root.
    """
    if not path or not path.strip():
        return "Path is empty"
    if "\x00" in path:
        return "Path contains a NUL byte"
    p = PurePosixPath(path.replace("\\", "/"))
    if p.is_absolute() or re.match(r"^[A-Za-z]:", path):
        return f"Path must be relative: {path}"
    depth = 0
    for part in p.parts:
        if part == "..":
            depth -= 1
        elif part not in (".", ""):
            depth += 1
        if depth < 0:
            return f"Path escapes its root: {path}"
    if depth == 0:
        return f"Path does not name a file: {path}"
    return None


def is_within(root: Path, path: Path) -> bool:
    """Whether ``path`` resolves to ``root`` or somewhere below it."""
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True
