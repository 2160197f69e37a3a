# accessreader/components/annotation_store.py
from PySide6.QtCore import QObject, Signal


class AnnotationStore(QObject):
    """
    Free-form notes keyed by paragraph index, at most one per paragraph.

    An empty note is treated as no note: setting "" removes the entry, so the
    annotation indicator and the notes summary never list blank notes.
    """

    annotationChanged = Signal(int)  # paragraph index

    def __init__(self, parent=None):
        super().__init__(parent)
        self._notes = {}

    def set_annotation(self, paragraph_index, text):
        """Set, replace or (with empty text) clear the note of a paragraph"""
        if text:
            if self._notes.get(paragraph_index) == text:
                return
            self._notes[paragraph_index] = text
        elif paragraph_index in self._notes:
            del self._notes[paragraph_index]
        else:
            return
        self.annotationChanged.emit(paragraph_index)

    def annotation_for(self, paragraph_index):
        return self._notes.get(paragraph_index, "")

    def has_annotation(self, paragraph_index):
        return paragraph_index in self._notes

    def annotations(self):
        """All notes as (paragraph_index, text) pairs in document order"""
        return sorted(self._notes.items())

    def clear(self):
        self._notes = {}
