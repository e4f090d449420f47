"""
Patch Engine — Applies unified diffs to file content.

Two-stage strategy:
1. Structured apply: parse the diff and apply every hunk against the current
   content. Each hunk's old side must match exactly (line endings ignored),
   either at its declared position or at the nearest offset.
2. Line extraction: when the diff no longer matches (stale base), rebuild the
   content from the added lines only. Lossy, but it always makes progress.

The returned PatchOutcome records which stage produced the content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from unidiff import PatchSet, UnidiffParseError

from changeguard.config import settings
from changeguard.errors import PatchError
from changeguard.models.change_models import PatchStage

logger = logging.getLogger("changeguard.engine.patch")

_SYNTHETIC_HEADER = "--- a/file\n+++ b/file\n"


@dataclass(frozen=True)
class PatchOutcome:
    """Result of applying a diff."""

    stage: PatchStage
    content: str = ""
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.stage is not PatchStage.FAILED


def _failed(reason: str) -> PatchOutcome:
    return PatchOutcome(stage=PatchStage.FAILED, reason=reason)


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _with_headers(diff_text: str) -> str:
    """Prefix bare hunks with file headers so they parse as a patch."""
    for line in diff_text.splitlines():
        if line.startswith("--- "):
            return diff_text
        if line.startswith("@@"):
            return _SYNTHETIC_HEADER + diff_text
    return diff_text


def _locate(
    lines: list[str],
    old: list[str],
    expected: int,
    lower_bound: int,
    max_offset: int,
) -> int | None:
    """Find where the hunk's old side matches, searching outward from expected."""
    upper_bound = len(lines) - len(old)
    if upper_bound < lower_bound:
        return None

    wanted = [_strip_eol(line) for line in old]

    def matches(pos: int) -> bool:
        return all(
            _strip_eol(lines[pos + i]) == wanted[i] for i in range(len(wanted))
        )

    expected = min(max(expected, lower_bound), upper_bound)
    for distance in range(max_offset + 1):
        forward = expected + distance
        backward = expected - distance
        if forward > upper_bound and backward < lower_bound:
            break
        if forward <= upper_bound and matches(forward):
            return forward
        if distance and backward >= lower_bound and matches(backward):
            return backward
    return None


def apply_diff(
    current_content: str,
    diff_text: str,
    max_offset: int | None = None,
) -> PatchOutcome:
    """
    Apply a unified diff to current content.

    Args:
        current_content: The live file content
        diff_text: Unified diff (file headers optional)
        max_offset: Max line distance searched per hunk (default from config)

    Returns:
        PatchOutcome with stage STRUCTURED and the patched content, or stage
        FAILED with a reason when the diff cannot be parsed or a hunk no
        longer matches.
    """
    max_offset = settings.patch_max_offset if max_offset is None else max_offset

    try:
        patch_set = PatchSet(_with_headers(diff_text))
    except UnidiffParseError as e:
        return _failed(f"Invalid diff: {e}")

    if len(patch_set) != 1:
        return _failed(f"Diff must describe exactly one file, found {len(patch_set)}")

    patched_file = patch_set[0]
    if len(patched_file) == 0:
        return _failed("Diff contains no hunks")

    eol = "\r\n" if "\r\n" in current_content else "\n"
    lines = current_content.splitlines(keepends=True)
    drift = 0
    lower_bound = 0

    for index, hunk in enumerate(patched_file, start=1):
        body = [
            line for line in hunk
            if line.is_context or line.is_added or line.is_removed
        ]
        old = [line.value for line in body if not line.is_added]
        # An empty old side (-N,0) means "insert after line N".
        if hunk.source_length == 0:
            declared = hunk.source_start
        else:
            declared = max(hunk.source_start - 1, 0)

        pos = _locate(lines, old, declared + drift, lower_bound, max_offset)
        if pos is None:
            logger.debug(f"Hunk {index} does not match current content")
            return _failed(f"Hunk {index} does not match current content")

        # Context lines are copied from the file so their endings survive.
        replacement: list[str] = []
        cursor = pos
        for line in body:
            if line.is_added:
                replacement.append(_strip_eol(line.value) + eol)
            elif line.is_context:
                replacement.append(lines[cursor])
                cursor += 1
            else:
                cursor += 1

        lines[pos:pos + len(old)] = replacement
        drift = pos + len(replacement) - (declared + len(old))
        lower_bound = pos + len(replacement)

    for i in range(len(lines) - 1):
        if not lines[i].endswith("\n"):
            lines[i] += eol

    patched = "".join(lines)
    if current_content and not current_content.endswith("\n"):
        patched = patched[: -len(eol)] if patched.endswith(eol) else patched

    return PatchOutcome(stage=PatchStage.STRUCTURED, content=patched)


def extract_added_lines(diff_text: str) -> str:
    """
    Rebuild content from a diff's added lines only.

    Context and removed lines are ignored. Added lines are joined with newlines
    in the order they appear across all hunks.

    Raises:
        PatchError: if the text contains no hunk.
    """
    raw = diff_text.splitlines()
    added: list[str] = []
    in_hunk = False
    saw_hunk = False

    for i, line in enumerate(raw):
        if line.startswith("@@"):
            in_hunk = True
            saw_hunk = True
            continue
        if line.startswith("diff "):
            in_hunk = False
            continue
        if line.startswith("--- ") and i + 1 < len(raw) and raw[i + 1].startswith("+++ "):
            in_hunk = False
            continue
        if not in_hunk or line.startswith("+++"):
            continue
        if line.startswith("+"):
            added.append(line[1:])

    if not saw_hunk:
        raise PatchError("Invalid diff format: no hunks found")

    return "\n".join(added)


def resolve_diff(current_content: str, diff_text: str) -> PatchOutcome:
    """
    Run the two-stage strategy: structured apply, then line extraction.

    Raises:
        PatchError: if neither stage can produce content.
    """
    outcome = apply_diff(current_content, diff_text)
    if outcome.ok:
        return outcome

    logger.warning(f"Structured apply failed ({outcome.reason}), falling back to added lines")
    content = extract_added_lines(diff_text)
    return PatchOutcome(
        stage=PatchStage.LINE_EXTRACTION,
        content=content,
        reason=outcome.reason,
    )
