# accessreader/components/text_renderer.py
"""
Render pipeline for a single paragraph

Combines the paragraph text, its highlight ranges and the bionic reading flag
into an ordered list of TextRun objects. The runs can be joined back into
plain text for speech, or written into a QTextDocument for display.
"""

from typing import Iterable, List, NamedTuple, Optional, Tuple

from PySide6.QtGui import QColor, QFont, QTextCharFormat, QTextCursor, QTextFormat

from accessreader.components.highlight_store import Highlight, is_valid_range
from accessreader.nlp.bionic_reading import Emphasis, bionic_segments

HIGHLIGHT_COLOR = QColor(254, 240, 138)
DIMMED_ALPHA = 153  # 60% opacity


class TextRun(NamedTuple):
    text: str
    highlighted: bool
    highlight_id: Optional[str]
    segments: Tuple[Tuple[str, Emphasis], ...]


def _make_run(text, bionic, highlight=None):
    if bionic:
        segments = tuple(bionic_segments(text))
    else:
        segments = ((text, Emphasis.NORMAL),)
    return TextRun(text, highlight is not None, highlight.id if highlight else None, segments)


def render_paragraph(text: str, highlights: Iterable[Highlight], bionic: bool = False) -> List[TextRun]:
    """
    Resolve overlapping highlights and produce the display runs of a paragraph.

    Highlights are walked in order of their start offset; the first one wins and
    any later highlight starting before the end of the previous one is dropped
    entirely rather than clipped. Stored ranges that are invalid for the text
    are skipped as well.
    """
    runs = []
    last_index = 0

    # sorted() is stable, so equal starts keep insertion order
    for highlight in sorted(highlights, key=lambda h: h.start):
        if not is_valid_range(text, highlight.start, highlight.end):
            continue
        if highlight.start < last_index:
            continue

        if highlight.start > last_index:
            runs.append(_make_run(text[last_index:highlight.start], bionic))
        runs.append(_make_run(text[highlight.start:highlight.end], bionic, highlight))
        last_index = highlight.end

    if last_index < len(text):
        runs.append(_make_run(text[last_index:], bionic))

    return runs


def plain_text(runs: Iterable[TextRun]) -> str:
    """Strip all markup from rendered runs"""
    return "".join(run.text for run in runs)


def apply_runs(cursor: QTextCursor, runs: Iterable[TextRun], base_format: Optional[QTextCharFormat] = None,
               highlight_color: QColor = HIGHLIGHT_COLOR):
    """Insert rendered runs at the cursor position using character formats"""
    if base_format is None:
        base_format = cursor.charFormat()

    dimmed_color = QColor(base_format.foreground().color())
    dimmed_color.setAlpha(DIMMED_ALPHA)

    for run in runs:
        run_format = QTextCharFormat(base_format)
        if run.highlighted:
            run_format.setBackground(highlight_color)
            run_format.setProperty(QTextFormat.UserProperty, run.highlight_id)

        for segment, emphasis in run.segments:
            if not segment:
                continue
            segment_format = QTextCharFormat(run_format)
            if emphasis is Emphasis.BOLD:
                segment_format.setFontWeight(QFont.Bold)
            elif emphasis is Emphasis.DIMMED:
                segment_format.setForeground(dimmed_color)
            cursor.insertText(segment, segment_format)
