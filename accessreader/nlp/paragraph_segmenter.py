# accessreader/nlp/paragraph_segmenter.py
"""
Paragraph segmentation for the reader view.

Every non-blank line of a loaded document becomes one paragraph. Lines keep
their original content (no trimming), blank lines are dropped and the
remaining paragraphs are numbered contiguously from 0.
"""

import re
from typing import List, NamedTuple

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class Paragraph(NamedTuple):
    """One addressable paragraph of the loaded document"""
    index: int
    text: str


def segment_paragraphs(text: str) -> List[Paragraph]:
    """
    Split raw document text into paragraphs.

    Args:
        text: Raw document text as delivered by the document source

    Returns:
        List of Paragraph tuples in document order
    """
    if not text:
        return []

    paragraphs = []
    for line in _LINE_BREAK.split(text):
        if not line.strip():
            continue
        paragraphs.append(Paragraph(len(paragraphs), line))

    return paragraphs
