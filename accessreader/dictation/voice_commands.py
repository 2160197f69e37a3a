# accessreader/dictation/voice_commands.py
"""
Voice command interpretation

Transcripts are matched by substring containment against a fixed, ordered
table. The first matching entry wins, so one transcript never triggers more
than one action.
"""

from enum import Enum
from typing import Optional


class VoiceCommand(Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    READ_ALL = "read_all"
    STOP = "stop"
    MAGNIFIER_ON = "magnifier_on"
    MAGNIFIER_OFF = "magnifier_off"
    FOCUS_ON = "focus_on"
    FOCUS_OFF = "focus_off"
    BIONIC_ON = "bionic_on"
    BIONIC_OFF = "bionic_off"


# Priority order matters
COMMAND_PHRASES = (
    (VoiceCommand.NEXT, ("next",)),
    (VoiceCommand.PREVIOUS, ("previous", "back")),
    (VoiceCommand.READ_ALL, ("read all", "start reading")),
    (VoiceCommand.STOP, ("stop", "pause")),
    (VoiceCommand.MAGNIFIER_ON, ("magnifier on",)),
    (VoiceCommand.MAGNIFIER_OFF, ("magnifier off",)),
    (VoiceCommand.FOCUS_ON, ("focus mode on", "focus on")),
    (VoiceCommand.FOCUS_OFF, ("focus mode off", "focus off")),
    (VoiceCommand.BIONIC_ON, ("bionic on", "bionic reading on")),
    (VoiceCommand.BIONIC_OFF, ("bionic off", "bionic reading off")),
)

# Settings toggled by mode commands
SETTING_COMMANDS = {
    VoiceCommand.MAGNIFIER_ON: ("is_loupe_active", True),
    VoiceCommand.MAGNIFIER_OFF: ("is_loupe_active", False),
    VoiceCommand.FOCUS_ON: ("is_focus_mode", True),
    VoiceCommand.FOCUS_OFF: ("is_focus_mode", False),
    VoiceCommand.BIONIC_ON: ("is_bionic_reading", True),
    VoiceCommand.BIONIC_OFF: ("is_bionic_reading", False),
}


def normalize_transcript(transcript: str) -> str:
    return transcript.strip().lower()


def interpret_command(transcript: str) -> Optional[VoiceCommand]:
    """Map a transcript to a VoiceCommand, or None if nothing matches"""
    transcript = normalize_transcript(transcript)
    if not transcript:
        return None

    for command, phrases in COMMAND_PHRASES:
        if any(phrase in transcript for phrase in phrases):
            return command
    return None
