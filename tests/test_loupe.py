"""Tests for the cursor word extractor and lens placement."""

import pytest
from PySide6.QtWidgets import QPushButton, QTextEdit, QVBoxLayout, QWidget

from accessreader.components.loupe import (
    ElementInfo, LoupeTracker, QtHitTester, extract_word, label_text, lens_position, resolve_hover_text
)


class TestExtractWord:
    """Test cases for extract_word."""

    def test_caret_inside_word(self):
        assert extract_word("hello brave world", 8) == "brave"

    def test_caret_at_word_start(self):
        assert extract_word("hello brave world", 6) == "brave"

    def test_caret_just_after_word(self):
        """A caret on the following space or punctuation still picks the word."""
        assert extract_word("hello brave world", 11) == "brave"
        assert extract_word("Stop, now", 4) == "Stop"

    def test_caret_at_end_of_text(self):
        assert extract_word("hello", 5) == "hello"

    def test_caret_between_separators(self):
        assert extract_word("a  , b", 3) == ""

    def test_latin1_and_cjk_letters(self):
        assert extract_word("un café noir", 5) == "café"
        assert extract_word("中文字", 1) == "中文字"

    def test_empty_text(self):
        assert extract_word("", 0) == ""


class TestLabelText:

    def test_allowed_element(self):
        assert label_text(ElementInfo("button", "Read all")) == "Read all"

    def test_aria_label_fallback(self):
        assert label_text(ElementInfo("button", "", "Close panel")) == "Close panel"

    def test_disallowed_element(self):
        assert label_text(ElementInfo("textarea", "lots of typed text")) == ""
        assert label_text(None) == ""

    def test_truncation(self):
        label = label_text(ElementInfo("label", "x" * 80))
        assert label == "x" * 50 + "..."


class TestResolveHoverText:

    def test_word_takes_priority(self, make_hit_tester, button_element):
        tester = make_hit_tester(caret=("some words", 2), element=button_element)
        assert resolve_hover_text(tester, 0, 0) == "some"

    def test_falls_back_to_label(self, make_hit_tester, button_element):
        tester = make_hit_tester(caret=("  ", 1), element=button_element)
        assert resolve_hover_text(tester, 0, 0) == "Read all"

    def test_nothing_found(self, make_hit_tester):
        assert resolve_hover_text(make_hit_tester(), 0, 0) == ""


class TestLensPosition:

    def test_default_placement(self):
        assert lens_position(100, 100, 1024, 768) == (120, 120)

    def test_flips_at_right_edge(self):
        assert lens_position(1000, 10, 1024, 768) == (724, 30)

    def test_flips_at_bottom_edge(self):
        assert lens_position(10, 700, 1024, 768) == (30, 424)


class TestLoupeTracker:

    def test_inactive_tracker_ignores_pointer(self, make_hit_tester, qtbot):
        tester = make_hit_tester(caret=("word", 1))
        tracker = LoupeTracker(tester)
        with qtbot.assertNotEmitted(tracker.lensMoved):
            tracker.pointer_moved(5, 5)
        assert tester.calls == []

    def test_tracks_word_and_position(self, make_hit_tester, qtbot):
        tracker = LoupeTracker(make_hit_tester(caret=("reading aid", 3)))
        tracker.set_active(True)
        tracker.viewport_resized(1024, 768)

        with qtbot.waitSignal(tracker.lensMoved) as blocker:
            tracker.pointer_moved(1000, 10)
        assert blocker.args == [724, 30]
        assert tracker.hover_text == "reading"
        assert tracker.is_visible()

    def test_deactivation_clears_text(self, make_hit_tester):
        tracker = LoupeTracker(make_hit_tester(caret=("word", 0)))
        tracker.set_active(True)
        tracker.pointer_moved(1, 1)
        tracker.set_active(False)
        assert tracker.hover_text == ""
        assert not tracker.is_visible()

    def test_hidden_when_nothing_under_pointer(self, make_hit_tester):
        tracker = LoupeTracker(make_hit_tester())
        tracker.set_active(True)
        tracker.pointer_moved(1, 1)
        assert not tracker.is_visible()


class TestQtHitTester:

    @pytest.fixture
    def window(self, qtbot):
        root = QWidget()
        layout = QVBoxLayout(root)
        text_edit = QTextEdit()
        text_edit.setPlainText("hover over me")
        button = QPushButton("Read all")
        layout.addWidget(text_edit)
        layout.addWidget(button)
        root.resize(400, 300)
        qtbot.addWidget(root)
        with qtbot.waitExposed(root):
            root.show()
        return root, text_edit, button

    def test_button_element(self, window):
        root, text_edit, button = window
        center = button.geometry().center()
        element = QtHitTester(root, text_edit).resolve_element(center.x(), center.y())
        assert element == ElementInfo("button", "Read all", "")

    def test_caret_inside_text_edit(self, window):
        root, text_edit, button = window
        origin = text_edit.viewport().mapTo(root, text_edit.viewport().rect().topLeft())
        caret = QtHitTester(root, text_edit).resolve_caret(origin.x() + 2, origin.y() + 2)
        assert caret is not None
        assert caret[0] == "hover over me"

    def test_caret_outside_text_edit(self, window):
        root, text_edit, button = window
        center = button.geometry().center()
        assert QtHitTester(root, text_edit).resolve_caret(center.x(), center.y()) is None
