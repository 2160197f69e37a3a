# accessreader/components/reader_view.py
import logging

from PySide6.QtCore import QRect, Qt, Signal
from PySide6.QtGui import QColor, QFont, QPainter, QTextBlockFormat, QTextCharFormat, QTextCursor, QTextFormat
from PySide6.QtWidgets import QTextEdit, QVBoxLayout, QWidget

from accessreader.components.text_renderer import apply_runs

logger = logging.getLogger(__name__)

FONT_FAMILY_NAMES = {
    "sans": ("sans-serif", QFont.SansSerif),
    "serif": ("serif", QFont.Serif),
    "mono": ("monospace", QFont.Monospace),
    "system-ui": ("", QFont.System),
}

ACTIVE_PARAGRAPH_COLOR = QColor(219, 234, 254)
FOCUS_DIM_ALPHA = 51  # 20% opacity

# Paragraph indicators drawn in the right margin
NOTE_MARK = "\U0001F4DD"
HIGHLIGHT_MARK = "\U0001F58D"
INDICATOR_MARGIN = 40

# Settings that change how paragraph text is laid out
LAYOUT_KEYS = {"font_size", "font_family", "line_height", "letter_spacing", "is_bionic_reading"}


def reader_font(settings):
    """QFont for the paragraph text built from the reader settings"""
    family, hint = FONT_FAMILY_NAMES[settings.get("font_family")]
    font = QFont(family) if family else QFont()
    font.setStyleHint(hint)
    font.setPixelSize(settings.get("font_size"))
    # letter_spacing is in em
    font.setLetterSpacing(QFont.AbsoluteSpacing, settings.get("letter_spacing") * settings.get("font_size"))
    return font


class ReaderTextEdit(QTextEdit):
    """Read-only paragraph display that reports clicks and marked selections"""

    paragraphClicked = Signal(int)
    selectionMarked = Signal(int, int, int)  # paragraph index, start, end
    zoomRequested = Signal(int)              # +1 or -1

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setReadOnly(True)
        self.marker_mode = False
        self.indicators = {}  # paragraph index -> marks

    def set_indicators(self, indicators):
        if indicators != self.indicators:
            self.indicators = indicators
            self.viewport().update()

    def paintEvent(self, event):
        super().paintEvent(event)
        if not self.indicators:
            return

        painter = QPainter(self.viewport())
        layout = self.document().documentLayout()
        line_height = painter.fontMetrics().height() + 4
        left = self.viewport().width() - INDICATOR_MARGIN
        scroll = self.verticalScrollBar().value()
        for index, marks in self.indicators.items():
            block = self.document().findBlockByNumber(index)
            if not block.isValid():
                continue
            top = int(layout.blockBoundingRect(block).top()) - scroll
            for row, mark in enumerate(marks):
                painter.drawText(QRect(left, top + row * line_height, INDICATOR_MARGIN, line_height),
                                 Qt.AlignCenter, mark)
        painter.end()

    def wheelEvent(self, event):
        """Handle mouse wheel events for zooming when Ctrl is pressed"""
        if event.modifiers() & Qt.ControlModifier:
            delta = event.angleDelta().y()
            if delta:
                self.zoomRequested.emit(1 if delta > 0 else -1)
            event.accept()
        else:
            super().wheelEvent(event)

    def mouseReleaseEvent(self, event):
        super().mouseReleaseEvent(event)
        if event.button() != Qt.LeftButton:
            return

        cursor = self.textCursor()
        if not cursor.hasSelection():
            self.paragraphClicked.emit(self.cursorForPosition(event.position().toPoint()).blockNumber())
            return

        if not self.marker_mode:
            return

        document = self.document()
        start_block = document.findBlock(cursor.selectionStart())
        end_block = document.findBlock(cursor.selectionEnd())
        if start_block.blockNumber() != end_block.blockNumber():
            logger.debug("Ignoring highlight selection spanning several paragraphs")
        else:
            start = cursor.selectionStart() - start_block.position()
            end = cursor.selectionEnd() - start_block.position()
            self.selectionMarked.emit(start_block.blockNumber(), start, end)

        cursor.clearSelection()
        self.setTextCursor(cursor)


class ReaderView(QWidget):
    """
    Shows the session's paragraphs, one text block per paragraph.

    Keeps the display in step with the session: rebuilds on document load and
    layout setting changes, re-renders single paragraphs when their highlights
    change, marks the active paragraph (dimming the rest in focus mode) and
    flags paragraphs that carry a note or highlights.
    """

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        self.settings = session.settings

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.text_edit = ReaderTextEdit(self)
        self.text_edit.setAccessibleName("Document text")
        layout.addWidget(self.text_edit)

        # Session -> view
        session.documentLoaded.connect(self.rebuild)
        session.activeParagraphChanged.connect(self.update_paragraph_marks)
        session.scrollRequested.connect(self.scroll_to_paragraph)
        session.highlights.highlightsChanged.connect(self.refresh_paragraph)
        session.annotations.annotationChanged.connect(self.update_paragraph_marks)
        self.settings.settingsChanged.connect(self._on_settings_changed)

        # View -> session
        self.text_edit.paragraphClicked.connect(self.session.set_active_paragraph)
        self.text_edit.selectionMarked.connect(self._on_selection_marked)
        self.text_edit.zoomRequested.connect(self._on_zoom_requested)

        self.rebuild()

    # --- Rendering ---

    def _char_format(self):
        char_format = QTextCharFormat()
        char_format.setFont(reader_font(self.settings))
        char_format.setForeground(self.text_edit.palette().text().color())
        return char_format

    def _block_format(self):
        block_format = QTextBlockFormat()
        block_format.setLineHeight(
            self.settings.get("line_height") * 100,
            QTextBlockFormat.LineHeightTypes.ProportionalHeight.value
        )
        block_format.setBottomMargin(self.settings.get("font_size") * 0.8)
        block_format.setRightMargin(INDICATOR_MARGIN)
        return block_format

    def rebuild(self, *args):
        """Render every paragraph from scratch"""
        document = self.text_edit.document()
        document.clear()
        char_format = self._char_format()
        block_format = self._block_format()

        cursor = QTextCursor(document)
        cursor.beginEditBlock()
        for paragraph in self.session.paragraphs:
            if paragraph.index == 0:
                cursor.setBlockFormat(block_format)
            else:
                cursor.insertBlock(block_format)
            apply_runs(cursor, self.session.render_paragraph(paragraph.index), char_format)
        cursor.endEditBlock()

        self.update_paragraph_marks()

    def refresh_paragraph(self, index):
        """Re-render one paragraph in place"""
        block = self.text_edit.document().findBlockByNumber(index)
        if not block.isValid():
            return

        cursor = QTextCursor(block)
        cursor.beginEditBlock()
        cursor.movePosition(QTextCursor.EndOfBlock, QTextCursor.KeepAnchor)
        cursor.removeSelectedText()
        apply_runs(cursor, self.session.render_paragraph(index), self._char_format())
        cursor.endEditBlock()
        self.update_paragraph_marks()

    def update_paragraph_marks(self, *args):
        """Mark the active paragraph, dim the others in focus mode and flag notes and highlights"""
        active = self.session.active_paragraph_index
        focus = self.settings.get("is_focus_mode") and active is not None
        dimmed = QColor(self.text_edit.palette().text().color())
        dimmed.setAlpha(FOCUS_DIM_ALPHA)

        selections = []
        indicators = {}
        block = self.text_edit.document().begin()
        while block.isValid():
            index = block.blockNumber()
            if index == active or focus:
                selection = QTextEdit.ExtraSelection()
                cursor = QTextCursor(block)
                cursor.movePosition(QTextCursor.EndOfBlock, QTextCursor.KeepAnchor)
                selection.cursor = cursor
                mark_format = QTextCharFormat()
                if index == active:
                    mark_format.setBackground(ACTIVE_PARAGRAPH_COLOR)
                    mark_format.setProperty(QTextFormat.FullWidthSelection, True)
                else:
                    mark_format.setForeground(dimmed)
                selection.format = mark_format
                selections.append(selection)

            marks = self.paragraph_indicators(index)
            if marks:
                indicators[index] = marks
            block = block.next()

        self.text_edit.setExtraSelections(selections)
        self.text_edit.set_indicators(indicators)

    def paragraph_indicators(self, index):
        """Marks shown beside a paragraph: a note first, then highlights"""
        marks = []
        if self.session.annotations.has_annotation(index):
            marks.append(NOTE_MARK)
        if self.session.highlights.has_highlights(index):
            marks.append(HIGHLIGHT_MARK)
        return tuple(marks)

    def scroll_to_paragraph(self, index):
        block = self.text_edit.document().findBlockByNumber(index)
        if not block.isValid():
            return
        self.text_edit.setTextCursor(QTextCursor(block))
        self.text_edit.ensureCursorVisible()

    def set_marker_mode(self, enabled):
        self.text_edit.marker_mode = enabled
        self.text_edit.viewport().setCursor(Qt.IBeamCursor if enabled else Qt.PointingHandCursor)

    def _on_settings_changed(self, changed):
        if changed.keys() & LAYOUT_KEYS:
            self.rebuild()
        elif "is_focus_mode" in changed:
            self.update_paragraph_marks()

    def _on_selection_marked(self, index, start, end):
        self.session.add_highlight(index, start, end)

    def _on_zoom_requested(self, direction):
        if direction > 0:
            self.settings.increase_font_size()
        else:
            self.settings.decrease_font_size()
