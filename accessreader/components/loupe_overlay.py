# accessreader/components/loupe_overlay.py
import logging

from PySide6.QtCore import QEvent, Qt
from PySide6.QtWidgets import QApplication, QLabel, QWidget

from accessreader.components.loupe import QtHitTester

logger = logging.getLogger(__name__)

LOUPE_FONT_SCALE = 2.0

# Marks widgets whose mouse tracking was switched on for the loupe
TRACKING_PROPERTY = "loupeTracking"


class LoupeOverlay(QLabel):
    """
    Floating lens over the whole host window.

    While the loupe is active every widget of the window reports pointer
    moves, an application event filter forwards them to the session's
    LoupeTracker in window coordinates, and the label follows the lens
    position. When the loupe is switched off the filter is removed and
    mouse tracking goes back to what it was.
    """

    def __init__(self, session, host, text_edit, font_factory):
        super().__init__(host)
        self.session = session
        self.host = host
        self.font_factory = font_factory
        self._filtering = False

        self.setAlignment(Qt.AlignCenter)
        self.setWordWrap(True)
        self.setAttribute(Qt.WA_TransparentForMouseEvents)
        self.setFixedSize(session.loupe.size, session.loupe.size // 2)
        self.setStyleSheet(
            "QLabel { background-color: #FFFFFF; color: #111111; border: 2px solid #2563EB; border-radius: 8px; }"
        )
        self.hide()

        session.loupe.hit_tester = QtHitTester(host, text_edit)
        session.loupe.activeChanged.connect(self.on_active_changed)
        session.loupe.hoverTextChanged.connect(self.on_hover_text_changed)
        session.loupe.lensMoved.connect(self.on_lens_moved)

        self.on_active_changed(session.loupe.is_active())

    def on_active_changed(self, active):
        # Pointer and resize listeners only exist while the loupe is on
        self._set_tracking(active)
        if active:
            self.session.loupe.viewport_resized(self.host.width(), self.host.height())
        else:
            self.hide()

        app = QApplication.instance()
        if app is None:
            return
        if active and not self._filtering:
            app.installEventFilter(self)
            self._filtering = True
            logger.debug("Loupe pointer listeners installed")
        elif not active and self._filtering:
            app.removeEventFilter(self)
            self._filtering = False
            logger.debug("Loupe pointer listeners removed")

    def _set_tracking(self, enabled):
        widgets = [self.host] + self.host.findChildren(QWidget)
        for widget in widgets:
            if widget is self:
                continue
            if enabled and not widget.hasMouseTracking():
                widget.setMouseTracking(True)
                widget.setProperty(TRACKING_PROPERTY, True)
            elif not enabled and widget.property(TRACKING_PROPERTY):
                widget.setMouseTracking(False)
                widget.setProperty(TRACKING_PROPERTY, None)

    def eventFilter(self, watched, event):
        if event.type() == QEvent.MouseMove and isinstance(watched, QWidget):
            if watched is self.host or watched.window() is self.host:
                pos = event.position().toPoint()
                if watched is not self.host:
                    pos = watched.mapTo(self.host, pos)
                self.session.loupe.pointer_moved(pos.x(), pos.y())
        elif event.type() == QEvent.Resize and watched is self.host:
            self.session.loupe.viewport_resized(event.size().width(), event.size().height())
        return False

    def on_hover_text_changed(self, text):
        self.setText(text)
        if text:
            font = self.font_factory()
            font.setPixelSize(int(font.pixelSize() * LOUPE_FONT_SCALE))
            self.setFont(font)
        self.setVisible(self.session.loupe.is_visible())

    def on_lens_moved(self, x, y):
        self.move(x, y)
        self.raise_()
