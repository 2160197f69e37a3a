# accessreader/components/highlight_store.py
import itertools
import logging
from typing import Dict, List, NamedTuple, Optional

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class HighlightRangeError(ValueError):
    """Raised when a highlight does not describe a valid span of its paragraph"""


class Highlight(NamedTuple):
    id: str
    start: int
    end: int
    text: str


def _is_offset(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_valid_range(text: str, start: int, end: int) -> bool:
    """Check the 0 <= start < end <= len(text) invariant on integer offsets"""
    if not (_is_offset(start) and _is_offset(end)):
        return False
    return 0 <= start < end <= len(text)


class HighlightStore(QObject):
    """
    Per-paragraph collection of highlight ranges.

    Ranges may overlap; overlap resolution happens at render time. Ids come
    from a monotonic counter so rapid successive insertions never collide.
    Highlights only live for the current document and are dropped by reset().
    """

    highlightsChanged = Signal(int)  # paragraph index

    def __init__(self, paragraphs=None, parent=None):
        super().__init__(parent)
        self._texts: List[str] = []
        self._highlights: Dict[int, List[Highlight]] = {}
        self._ids = itertools.count(1)
        self.reset(paragraphs or [])

    def reset(self, paragraphs):
        """Forget every highlight and bind the store to a new paragraph list"""
        self._texts = [paragraph.text for paragraph in paragraphs]
        self._highlights = {}

    def add_highlight(self, paragraph_index: int, start: int, end: int, text: Optional[str] = None) -> Highlight:
        """
        Add a highlight to a paragraph.

        Args:
            paragraph_index: Index of the owning paragraph
            start: Start offset (inclusive) within the paragraph text
            end: End offset (exclusive) within the paragraph text
            text: Selected text; must match the covered slice. Taken from the
                paragraph when omitted.

        Returns:
            The stored Highlight

        Raises:
            HighlightRangeError: if the paragraph is unknown or the range is invalid
        """
        if not _is_offset(paragraph_index) or not 0 <= paragraph_index < len(self._texts):
            raise HighlightRangeError(f"No paragraph with index {paragraph_index}")

        paragraph_text = self._texts[paragraph_index]
        if not is_valid_range(paragraph_text, start, end):
            raise HighlightRangeError(
                f"Invalid range [{start}, {end}) for paragraph {paragraph_index} "
                f"of length {len(paragraph_text)}")

        covered = paragraph_text[start:end]
        if text is None:
            text = covered
        elif text != covered:
            raise HighlightRangeError(
                f"Highlight text {text!r} does not match paragraph slice {covered!r}")

        highlight = Highlight(f"hl-{next(self._ids)}", start, end, text)
        self._highlights.setdefault(paragraph_index, []).append(highlight)
        logger.debug("Added highlight %s to paragraph %d: [%d, %d)", highlight.id, paragraph_index, start, end)
        self.highlightsChanged.emit(paragraph_index)
        return highlight

    def remove_highlight(self, paragraph_index: int, highlight_id: str) -> bool:
        """Remove a highlight by id. Returns False if there was nothing to remove."""
        current = self._highlights.get(paragraph_index, [])
        remaining = [h for h in current if h.id != highlight_id]
        if len(remaining) == len(current):
            return False

        if remaining:
            self._highlights[paragraph_index] = remaining
        else:
            del self._highlights[paragraph_index]
        self.highlightsChanged.emit(paragraph_index)
        return True

    def highlights_for(self, paragraph_index: int) -> List[Highlight]:
        """Highlights of a paragraph in insertion order"""
        return list(self._highlights.get(paragraph_index, []))

    def has_highlights(self, paragraph_index: int) -> bool:
        return bool(self._highlights.get(paragraph_index))

    def count(self) -> int:
        return sum(len(items) for items in self._highlights.values())
