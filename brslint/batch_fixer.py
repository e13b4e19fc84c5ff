import os
import logging
from typing import List, Dict, Tuple

from brslint.brs_ast import Position, Range
from brslint.diagnostics import TextEdit

logger = logging.getLogger(__name__)


def get_line_offsets(text: str) -> List[int]:
    """Character offset of the start of every line."""
    offsets = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            offsets.append(i + 1)
    return offsets


def position_to_offset(offsets: List[int], position: Position, text_length: int) -> int:
    if position.line >= len(offsets):
        return text_length
    return min(offsets[position.line] + position.character, text_length)


def range_to_offsets(offsets: List[int], range: Range, text_length: int):
    return (position_to_offset(offsets, range.start, text_length),
            position_to_offset(offsets, range.end, text_length))


def apply_edits(text: str, edits: List[TextEdit], label: str = "<text>") -> Tuple[str, int]:
    """
    Apply edits to ``text``.  Returns (new_text, applied_count).
    Edits are applied bottom-up so earlier offsets stay valid; an edit
    overlapping one already applied is skipped.
    """
    offsets = get_line_offsets(text)
    spans = []
    for edit in edits:
        start, end = range_to_offsets(offsets, edit.range, len(text))
        spans.append((start, end, edit.text))
    spans.sort(key=lambda s: (s[0], s[1]), reverse=True)

    last_start = float("inf")
    applied = 0
    for start, end, replacement in spans:
        if end > last_start:
            logger.warning("Overlap detected in %s at offset %d-%d. Skipping edit.", label, start, end)
            continue
        text = text[:start] + replacement + text[end:]
        last_start = start
        applied += 1
    return text, applied


class BatchFixer:
    """
    Applies multiple text edits to files safely.
    Handles offset shifts by applying edits in reverse order (bottom-up).
    """

    def apply_fixes_by_file(self, file_map: Dict[str, List[TextEdit]], dry_run: bool = False) -> Dict[str, int]:
        """
        file_map: { file_path: [TextEdit, ...] }
        Returns {file_path: number_of_fixes_applied}.
        """
        summary = {}

        for file_path, edits in file_map.items():
            if not edits:
                continue

            try:
                applied = self._apply_to_file(file_path, edits, dry_run)
                summary[file_path] = applied
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Failed to apply fixes to %s: %s", file_path, e)
                summary[file_path] = 0

        return summary

    def _apply_to_file(self, file_path: str, edits: List[TextEdit], dry_run: bool) -> int:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        # newline="" keeps \r\n so offsets match what gets written back
        with open(file_path, "r", encoding="utf-8", newline="") as f:
            content = f.read()

        new_content, applied = apply_edits(content, edits, file_path)

        if dry_run:
            logger.info("[Dry Run] Would apply %d fixes to %s", applied, file_path)
        else:
            with open(file_path, "w", encoding="utf-8", newline="") as f:
                f.write(new_content)
            logger.info("Applied %d fixes to %s", applied, file_path)
        return applied
