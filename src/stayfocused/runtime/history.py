from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence


def merge_window(window: Sequence[str], lines: Iterable[str], capacity: int) -> list[str]:
    merged = list(window)
    merged.extend(lines)
    if capacity <= 0:
        return []
    return merged[-capacity:]


def split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def find_anchor(lines: Sequence[str], window: Sequence[str], cursor: int = 0) -> int | None:
    """Return the index just past the last already-merged line in ``lines``.

    The longest trailing run of ``window`` found in ``lines`` wins. Among
    equal runs the one ending at ``cursor`` is preferred, then the latest.
    ``None`` means nothing from the window survives in the file.
    """
    for size in range(len(window), 0, -1):
        run = list(window[-size:])
        if size <= cursor <= len(lines) and list(lines[cursor - size : cursor]) == run:
            return cursor
        for end in range(len(lines), size - 1, -1):
            if list(lines[end - size : end]) == run:
                return end
    return None


def read_new_lines(
    path: Path, window: Sequence[str], cursor: int, capacity: int
) -> tuple[list[str], int]:
    """Return the trailing unmerged lines of ``path`` and the new cursor.

    Capped history files drop their oldest line on every append, so new
    lines are located by matching the end of ``window`` against the file
    content rather than by line count. ``cursor`` is the line count seen at
    the previous read. When no part of the window is found the file was
    rotated and its last ``capacity`` lines are taken.
    """
    lines = split_lines(path.read_text(encoding="utf-8", errors="replace"))
    total = len(lines)
    if capacity <= 0:
        return [], total
    anchor = find_anchor(lines, window, cursor)
    fresh = lines if anchor is None else lines[anchor:]
    return fresh[-capacity:], total
