# accessreader/components/loupe.py
"""
Cursor-following magnifier

Finds the word (or UI label) under the pointer and works out where the lens
goes so it stays on screen.
"""

import logging
from typing import NamedTuple, Optional, Tuple

from PySide6.QtCore import QObject, QPoint, Signal
from PySide6.QtWidgets import QAbstractButton, QLabel, QLineEdit, QPlainTextEdit, QTextEdit

logger = logging.getLogger(__name__)

LOUPE_SIZE = 256
LOUPE_OFFSET = 20
MAX_LABEL_LENGTH = 50

# Element kinds whose visible text can be shown in the lens. Inputs and text
# areas are left out on purpose: their whole value or placeholder is noise.
LABEL_TAGS = {"button", "label", "a", "h1", "h2", "h3", "span", "mark"}


class ElementInfo(NamedTuple):
    tag: str
    text: str = ""
    aria_label: str = ""


def is_word_char(char: str) -> bool:
    """ASCII letters, digits and underscore, Latin-1 letters and CJK ideographs"""
    if not char:
        return False
    if char == "_" or ("a" <= char <= "z") or ("A" <= char <= "Z") or ("0" <= char <= "9"):
        return True
    code = ord(char)
    return 0x00C0 <= code <= 0x00FF or 0x4E00 <= code <= 0x9FFF


def extract_word(text: str, offset: int) -> str:
    """
    Expand a caret offset to the surrounding word.

    A caret just past the end of a word (on a space, punctuation, or the end
    of the text) still selects that word.
    """
    if not text:
        return ""

    offset = max(0, min(offset, len(text)))
    start = offset
    end = offset

    current = text[start] if start < len(text) else ""
    if not is_word_char(current) and start > 0 and is_word_char(text[start - 1]):
        start -= 1
        end = start

    while start > 0 and is_word_char(text[start - 1]):
        start -= 1
    while end < len(text) and is_word_char(text[end]):
        end += 1

    return text[start:end].strip()


def label_text(element: Optional[ElementInfo]) -> str:
    """Visible text (or accessible label) of an allowed UI element, truncated"""
    if element is None or element.tag.lower() not in LABEL_TAGS:
        return ""

    text = element.text or element.aria_label or ""
    if len(text) > MAX_LABEL_LENGTH:
        text = text[:MAX_LABEL_LENGTH] + "..."
    return text


def resolve_hover_text(hit_tester, x, y) -> str:
    """Word under the pointer, falling back to the label of the element there"""
    caret = hit_tester.resolve_caret(x, y)
    if caret is not None:
        text, offset = caret
        word = extract_word(text, offset)
        if word:
            return word

    return label_text(hit_tester.resolve_element(x, y))


def lens_position(cursor_x, cursor_y, viewport_width, viewport_height,
                  size=LOUPE_SIZE, offset=LOUPE_OFFSET) -> Tuple[int, int]:
    """Top-left corner of the lens; flips to the other side of the cursor at the edges"""
    left = cursor_x + offset
    top = cursor_y + offset

    if left + size > viewport_width:
        left = cursor_x - size - offset
    if top + size > viewport_height:
        top = cursor_y - size - offset

    return left, top


class QtHitTester:
    """
    Hit testing over a Qt window.

    Coordinates are relative to the root widget. Text under the pointer comes
    from the reader's QTextEdit; other widgets are mapped to element kinds.
    """

    def __init__(self, root, text_edit):
        self.root = root
        self.text_edit = text_edit

    def resolve_caret(self, x, y):
        viewport = self.text_edit.viewport()
        local = viewport.mapFrom(self.root, QPoint(x, y))
        if not viewport.rect().contains(local):
            return None

        cursor = self.text_edit.cursorForPosition(local)
        return cursor.block().text(), cursor.positionInBlock()

    def resolve_element(self, x, y):
        widget = self.root.childAt(QPoint(x, y))
        if widget is None:
            return None

        if isinstance(widget, QAbstractButton):
            return ElementInfo("button", widget.text(), widget.accessibleName())
        if isinstance(widget, QLabel):
            return ElementInfo("label", widget.text(), widget.accessibleName())
        if isinstance(widget, QLineEdit):
            return ElementInfo("input")
        if isinstance(widget, (QTextEdit, QPlainTextEdit)):
            return ElementInfo("textarea")
        return ElementInfo(type(widget).__name__.lower(), "", widget.accessibleName())


class LoupeTracker(QObject):
    """
    Tracks the hovered word and lens position while the magnifier is on.

    The window overlay forwards pointer moves and resizes only while the
    tracker is active (see activeChanged).
    """

    activeChanged = Signal(bool)
    hoverTextChanged = Signal(str)
    lensMoved = Signal(int, int)

    def __init__(self, hit_tester=None, size=LOUPE_SIZE, offset=LOUPE_OFFSET, parent=None):
        super().__init__(parent)
        self.hit_tester = hit_tester
        self.size = size
        self.offset = offset
        self._active = False
        self._hover_text = ""
        self._viewport = (0, 0)
        self._position = (0, 0)

    @property
    def hover_text(self):
        return self._hover_text

    @property
    def position(self):
        return self._position

    def is_active(self):
        return self._active

    def is_visible(self):
        return self._active and bool(self._hover_text)

    def set_active(self, active):
        if active == self._active:
            return
        self._active = active
        if not active:
            self._set_hover_text("")
        self.activeChanged.emit(active)

    def viewport_resized(self, width, height):
        self._viewport = (width, height)

    def pointer_moved(self, x, y):
        if not self._active:
            return

        if self.hit_tester is not None:
            self._set_hover_text(resolve_hover_text(self.hit_tester, x, y))

        self._position = lens_position(x, y, self._viewport[0], self._viewport[1], self.size, self.offset)
        self.lensMoved.emit(*self._position)

    def _set_hover_text(self, text):
        if text != self._hover_text:
            self._hover_text = text
            self.hoverTextChanged.emit(text)
