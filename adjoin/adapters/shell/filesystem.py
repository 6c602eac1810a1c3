"""
Managed text files — idempotent edits of host configuration.

Every configuration change adjoin makes goes through here so that a
second run over the same host is a no-op: toggled settings are
substituted in place, inserted lines are guarded by an existence
check, and files are only rewritten when their content changes.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


def read_text(path: Path) -> str | None:
    """Return the file's text, or None when it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def write_if_changed(path: Path, content: str, mode: int | None = None) -> bool:
    """Write *content* to *path* unless it already holds exactly that.

    Writes are atomic (temp file in the same directory, then rename).

    Returns:
        True if the file was created or modified.
    """
    current = read_text(path)
    if current == content:
        logger.debug("No change needed: %s", path)
        if mode is not None and current is not None:
            _chmod(path, mode)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        if mode is not None:
            os.chmod(tmp_name, mode)
        elif current is not None:
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info("%s %s", "Updated" if current is not None else "Created", path)
    return True


def _chmod(path: Path, mode: int) -> None:
    if path.stat().st_mode & 0o7777 != mode:
        os.chmod(path, mode)


def _directive_re(key: str) -> re.Pattern[str]:
    return re.compile(r"^\s*(#\s*)?" + re.escape(key) + r"(\s|=|$)")


def has_directive(text: str, key: str) -> bool:
    """True if an uncommented *key* directive is present."""
    pattern = re.compile(r"^\s*" + re.escape(key) + r"(\s|=|$)")
    return any(pattern.match(line) for line in text.splitlines())


def apply_directives(
    text: str,
    directives: Mapping[str, str],
    stop_at: str | None = None,
) -> str:
    """Set each ``key → line`` directive in *text* in one pass.

    The first line matching a key, commented or not, is replaced with
    the supplied line.  Keys with no match are inserted before the first
    line matching *stop_at* (e.g. an sshd ``Match`` block) or appended.
    """
    lines = text.splitlines()
    remaining = dict(directives)
    stop_re = re.compile(stop_at) if stop_at else None
    limit = len(lines)

    if stop_re is not None:
        for idx, existing in enumerate(lines):
            if stop_re.match(existing):
                limit = idx
                break

    for idx in range(limit):
        for key, line in list(remaining.items()):
            if _directive_re(key).match(lines[idx]):
                lines[idx] = line
                del remaining[key]
                break

    if remaining:
        lines = lines[:limit] + list(remaining.values()) + lines[limit:]

    return "\n".join(lines) + "\n"


def insert_block(text: str, block: str, stop_at: str | None = None) -> str:
    """Insert *block* before the first *stop_at* line, or append it.

    A blank line separates the block from the preceding content.
    """
    lines = text.splitlines()
    limit = len(lines)
    if stop_at:
        stop_re = re.compile(stop_at)
        for idx, existing in enumerate(lines):
            if stop_re.match(existing):
                limit = idx
                break

    head, tail = lines[:limit], lines[limit:]
    if head and head[-1].strip():
        head.append("")
    new_lines = head + block.rstrip("\n").splitlines()
    if tail:
        new_lines.append("")
        new_lines.extend(tail)
    return "\n".join(new_lines) + "\n"


def ensure_line(text: str, line: str, present_if: str | None = None) -> str:
    """Append *line* unless it (or a line matching *present_if*) exists."""
    pattern = re.compile(present_if) if present_if else None
    for existing in text.splitlines():
        if existing.strip() == line.strip():
            return text
        if pattern is not None and pattern.search(existing) and not existing.lstrip().startswith("#"):
            return text
    prefix = text if not text or text.endswith("\n") else text + "\n"
    return prefix + line + "\n"
