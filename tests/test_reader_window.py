"""UI tests for the reader window using pytest-qt."""

import pytest
from PySide6.QtCore import QEvent, QPointF, Qt
from PySide6.QtGui import QMouseEvent, QTextCursor, QTextFormat
from PySide6.QtWidgets import QApplication

from accessreader.components.reader_view import HIGHLIGHT_MARK, NOTE_MARK
from accessreader.main_window import ReaderMainWindow
from accessreader.tts.playback_manager import IDLE

DOCUMENT = "First paragraph here.\n\nSecond paragraph here.\nThird one.\n"


@pytest.fixture
def window(qtbot, session):
    main_window = ReaderMainWindow(session)
    qtbot.addWidget(main_window)
    return main_window


@pytest.fixture
def document_path(tmp_path):
    path = tmp_path / "sample.txt"
    path.write_text(DOCUMENT, encoding="utf-8")
    return path


class TestReaderWindow:

    def test_open_file_renders_paragraphs(self, window, document_path):
        assert window.open_file(document_path)

        document = window.reader_view.text_edit.document()
        assert document.blockCount() == 3
        assert document.findBlockByNumber(1).text() == "Second paragraph here."
        assert "sample.txt" in window.windowTitle()

    def test_invalid_utf8_is_replaced(self, window, tmp_path):
        path = tmp_path / "broken.txt"
        path.write_bytes(b"caf\xe9 au lait\n")
        window.open_file(path)
        assert window.session.paragraph_text(0) == "caf\ufffd au lait"

    def test_click_selects_paragraph(self, window, document_path):
        window.open_file(document_path)
        window.reader_view.text_edit.paragraphClicked.emit(2)
        assert window.session.active_paragraph_index == 2
        assert window.paragraph_label.text() == "Paragraph 3 of 3"

    def test_marked_selection_adds_highlight(self, window, document_path):
        window.open_file(document_path)
        window.reader_view.text_edit.selectionMarked.emit(1, 0, 6)

        assert [h.text for h in window.session.highlights.highlights_for(1)] == ["Second"]

        document = window.reader_view.text_edit.document()
        block = document.findBlockByNumber(1)
        assert block.text() == "Second paragraph here."
        cursor = QTextCursor(document)
        cursor.setPosition(block.position() + 3)
        assert cursor.charFormat().property(QTextFormat.UserProperty).startswith("hl-")

    def test_note_editor_updates_annotations(self, window, document_path):
        window.open_file(document_path)
        window.session.set_active_paragraph(0)
        window.note_edit.setPlainText("remember this")

        assert window.session.annotations.annotation_for(0) == "remember this"
        assert window.notes_list.count() == 1

    def test_remove_highlight_button(self, window, document_path):
        window.open_file(document_path)
        window.session.set_active_paragraph(0)
        window.session.add_highlight(0, 0, 5)
        assert window.highlight_list.count() == 1

        window.remove_highlight_button.click()
        assert window.highlight_list.count() == 0
        assert not window.session.highlights.has_highlights(0)

    def test_font_size_change_keeps_text(self, window, document_path, settings):
        window.open_file(document_path)
        settings.increase_font_size()
        assert window.reader_view.text_edit.document().blockCount() == 3

    def test_loupe_toggle_controls_pointer_tracking(self, window, settings):
        button = window.remove_highlight_button
        assert not button.hasMouseTracking()

        settings.update(is_loupe_active=True)
        assert button.hasMouseTracking()
        assert window.reader_view.text_edit.viewport().hasMouseTracking()
        assert window.setting_actions["is_loupe_active"].isChecked()

        settings.update(is_loupe_active=False)
        assert not button.hasMouseTracking()
        assert not window.loupe_overlay.isVisible()

    def test_loupe_shows_side_panel_button_label(self, window, settings, qtbot):
        window.resize(1000, 700)
        with qtbot.waitExposed(window):
            window.show()
        settings.update(is_loupe_active=True)

        button = window.remove_highlight_button
        center = button.mapTo(window, button.rect().center())
        window.session.loupe.pointer_moved(center.x(), center.y())
        assert window.session.loupe.hover_text == "Remove highlight"

    def test_loupe_follows_mouse_moves_over_the_window(self, window, settings, qtbot):
        window.resize(1000, 700)
        with qtbot.waitExposed(window):
            window.show()
        settings.update(is_loupe_active=True)

        button = window.remove_highlight_button
        local = QPointF(button.rect().center())
        move = QMouseEvent(QEvent.MouseMove, local, QPointF(button.mapToGlobal(local)),
                           Qt.NoButton, Qt.NoButton, Qt.NoModifier)
        QApplication.sendEvent(button, move)

        assert window.session.loupe.hover_text == "Remove highlight"
        assert window.loupe_overlay.text() == "Remove highlight"
        assert window.loupe_overlay.isVisible()

    def test_mouse_moves_ignored_while_loupe_off(self, window, qtbot):
        with qtbot.waitExposed(window):
            window.show()
        button = window.remove_highlight_button
        local = QPointF(button.rect().center())
        with qtbot.assertNotEmitted(window.session.loupe.lensMoved):
            QApplication.sendEvent(button, QMouseEvent(QEvent.MouseMove, local, QPointF(button.mapToGlobal(local)),
                                                       Qt.NoButton, Qt.NoButton, Qt.NoModifier))
        assert window.session.loupe.hover_text == ""

    def test_paragraph_indicators(self, window, document_path, qtbot):
        window.open_file(document_path)
        text_edit = window.reader_view.text_edit
        assert text_edit.indicators == {}

        window.session.set_annotation(1, "look again")
        window.session.add_highlight(2, 0, 5)
        window.session.add_highlight(1, 0, 6)
        assert text_edit.indicators == {1: (NOTE_MARK, HIGHLIGHT_MARK), 2: (HIGHLIGHT_MARK,)}

        with qtbot.waitExposed(window):
            window.show()
        assert not text_edit.viewport().grab().isNull()

        window.session.set_annotation(1, "")
        assert text_edit.indicators[1] == (HIGHLIGHT_MARK,)

        window.open_file(document_path)
        assert text_edit.indicators == {}

    def test_voice_list_offers_default_and_engine_voices(self, window):
        combo = window.voice_combo
        assert combo.count() == 2
        assert combo.itemData(0) == ""
        assert combo.itemData(1) == "amy"
        assert combo.currentIndex() == 0

    def test_chosen_voice_is_used_for_speech(self, window, document_path, settings, speech_engine):
        window.open_file(document_path)
        window.session.set_active_paragraph(0)

        window.voice_combo.setCurrentIndex(window.voice_combo.findData("amy"))
        assert settings.get("speech_voice_uri") == "amy"
        window.session.speak_current()
        assert speech_engine.spoken[-1][2] == "amy"

        window.voice_combo.setCurrentIndex(0)
        assert settings.get("speech_voice_uri") == ""
        window.session.speak_current()
        assert speech_engine.spoken[-1][2] is None

    def test_voice_list_follows_settings(self, window, settings):
        settings.update(speech_voice_uri="amy")
        assert window.voice_combo.currentData() == "amy"

    def test_setting_actions_update_settings(self, window, settings):
        window.setting_actions["is_focus_mode"].setChecked(True)
        assert settings.get("is_focus_mode")

    def test_theme_change(self, window, settings):
        settings.update(theme="high-contrast")
        assert "#FACC15" in window.styleSheet()

    def test_close_shuts_down_session(self, window, document_path, speech_engine, recognition_engine):
        window.open_file(document_path)
        window.session.speak_all()
        window.show()
        window.close()
        assert window.session.playback.state == IDLE
        assert recognition_engine.abort_count == 1
