# accessreader/nlp/bionic_reading.py
"""
Bionic reading transform

Emphasises a length-dependent prefix of every word so the eye gets an
artificial fixation point. Whitespace runs are passed through untouched.
"""

import math
import re
from enum import Enum
from typing import List, Tuple

_WHITESPACE_SPLIT = re.compile(r"(\s+)")


class Emphasis(Enum):
    NORMAL = "normal"
    BOLD = "bold"
    DIMMED = "dimmed"


def bold_length(length: int) -> int:
    """Number of leading characters to emphasise for a word of the given length"""
    if length <= 3:
        return 1
    if length <= 5:
        return 2
    return math.ceil(length * 0.4)


def bionic_segments(text: str) -> List[Tuple[str, Emphasis]]:
    """
    Split text into (segment, emphasis) pairs.

    Each word produces a BOLD prefix followed by a DIMMED remainder (which is
    empty for one-letter words). Whitespace is emitted as NORMAL segments in
    its original position.
    """
    segments = []
    # Odd positions of the split are the captured whitespace runs
    for position, part in enumerate(_WHITESPACE_SPLIT.split(text)):
        if not part:
            continue
        if position % 2:
            segments.append((part, Emphasis.NORMAL))
            continue

        split_at = bold_length(len(part))
        segments.append((part[:split_at], Emphasis.BOLD))
        segments.append((part[split_at:], Emphasis.DIMMED))

    return segments
