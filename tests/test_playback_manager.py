"""Tests for the paragraph playback state machine."""

import pytest

from accessreader.nlp.paragraph_segmenter import segment_paragraphs
from accessreader.tts.playback_manager import IDLE, AdvanceMode, PlaybackManager, PlaybackMode
from accessreader.tts.speech_engine import Voice

DOCUMENT = "First paragraph.\nSecond paragraph.\nThird paragraph."


@pytest.fixture
def playback(speech_engine, plain_settings):
    manager = PlaybackManager(speech_engine, plain_settings)
    manager.set_paragraphs(segment_paragraphs(DOCUMENT))
    return manager


class TestSingleParagraph:
    """Speaking one paragraph."""

    def test_speak_then_idle(self, playback, speech_engine):
        assert playback.speak_paragraph(1)
        assert playback.state.mode is PlaybackMode.SPEAKING_SINGLE
        assert playback.state.paragraph_index == 1
        assert speech_engine.spoken_texts == ["Second paragraph."]

        speech_engine.finish()
        assert playback.state == IDLE

    def test_out_of_range_is_ignored(self, playback, speech_engine):
        assert not playback.speak_paragraph(3)
        assert not playback.speak_paragraph(-1)
        assert playback.state == IDLE
        assert speech_engine.spoken == []

    def test_new_utterance_cancels_the_previous_one(self, playback, speech_engine):
        playback.speak_paragraph(0)
        cancels = speech_engine.cancel_count
        playback.speak_paragraph(2)
        assert speech_engine.cancel_count == cancels + 1
        assert playback.state.paragraph_index == 2


class TestContinuousPlayback:
    """Reading from a paragraph to the end of the document."""

    def test_advances_through_document(self, playback, speech_engine):
        advanced = []
        states = []
        playback.paragraphAdvanced.connect(advanced.append)
        playback.stateChanged.connect(states.append)

        playback.speak_continuous(0)
        assert playback.state.advance_mode is AdvanceMode.MANUAL

        speech_engine.finish()
        assert advanced == [1]
        assert playback.state.mode is PlaybackMode.SPEAKING_CONTINUOUS
        assert playback.state.paragraph_index == 1
        assert playback.state.advance_mode is AdvanceMode.PROGRAMMATIC
        # No idle between paragraphs
        assert IDLE not in states

        speech_engine.finish()
        assert advanced == [1, 2]
        assert speech_engine.spoken_texts == ["First paragraph.", "Second paragraph.", "Third paragraph."]

        speech_engine.finish()
        assert playback.state == IDLE
        assert advanced == [1, 2]

    def test_start_on_last_paragraph(self, playback, speech_engine):
        playback.speak_continuous(2)
        speech_engine.finish()
        assert playback.state == IDLE
        assert len(speech_engine.spoken) == 1

    def test_stop_inside_advance_handler(self, playback, speech_engine):
        """A listener stopping playback on advance prevents the next utterance."""
        playback.paragraphAdvanced.connect(lambda index: playback.stop())
        playback.speak_continuous(0)
        speech_engine.finish()
        assert playback.state == IDLE
        assert len(speech_engine.spoken) == 1


class TestErrorsAndStaleEvents:

    def test_error_forces_idle(self, playback, speech_engine, qtbot):
        playback.speak_continuous(0)
        with qtbot.waitSignal(playback.playbackError) as blocker:
            speech_engine.fail("device busy")
        assert blocker.args == ["device busy"]
        assert playback.state == IDLE
        assert len(speech_engine.spoken) == 1

    def test_events_after_stop_are_ignored(self, playback, speech_engine, qtbot):
        playback.speak_continuous(0)
        stale_id = speech_engine.last_id
        playback.stop()

        with qtbot.assertNotEmitted(playback.stateChanged):
            speech_engine.finish(stale_id)
            speech_engine.fail("late", stale_id)
        assert playback.state == IDLE
        assert len(speech_engine.spoken) == 1

    def test_superseded_utterance_events_are_ignored(self, playback, speech_engine):
        playback.speak_continuous(0)
        old_id = speech_engine.last_id
        playback.speak_paragraph(2)

        speech_engine.finish(old_id)
        assert playback.state.mode is PlaybackMode.SPEAKING_SINGLE
        assert playback.state.paragraph_index == 2

    def test_stop_is_idempotent(self, playback, qtbot):
        with qtbot.assertNotEmitted(playback.stateChanged):
            playback.stop()
            playback.stop()
        assert playback.state == IDLE

    def test_set_paragraphs_stops(self, playback, speech_engine):
        playback.speak_paragraph(0)
        playback.set_paragraphs(segment_paragraphs("Other"))
        assert playback.state == IDLE


class TestVoiceSelection:

    def test_configured_voice_is_used(self, playback, speech_engine, plain_settings):
        plain_settings.update(speech_voice_uri="amy")
        playback.speak_paragraph(0)
        assert speech_engine.spoken[-1][2] == "amy"

    def test_missing_voice_falls_back_to_default(self, playback, speech_engine, plain_settings):
        plain_settings.update(speech_voice_uri="nobody")
        playback.speak_paragraph(0)
        assert speech_engine.spoken[-1][2] is None

    def test_voice_list_is_checked_at_speak_time(self, playback, speech_engine, plain_settings):
        plain_settings.update(speech_voice_uri="lessac")
        playback.speak_paragraph(0)
        assert speech_engine.spoken[-1][2] is None

        speech_engine.voices.append(Voice("lessac", "lessac (piper)", "en_US"))
        playback.speak_paragraph(0)
        assert speech_engine.spoken[-1][2] == "lessac"
