"""Sentence splitting for prompt fragments."""

from __future__ import annotations

import re
from collections.abc import Iterable

DEFAULT_ABBREVIATIONS: tuple[str, ...] = (
    "Mr.", "Mrs.", "Ms.", "Dr.", "Prof.", "Sr.", "Jr.", "St.", "vs.", "etc.",
    "i.e.", "e.g.", "Fig.", "Inc.", "Ltd.", "Co.", "Corp.", "Jan.", "Feb.",
    "Mar.", "Apr.", "Jun.", "Jul.", "Aug.", "Sep.", "Sept.", "Oct.", "Nov.",
    "Dec.", "U.S.", "U.K.", "Ph.D.", "M.D.", "a.m.", "p.m.", "No.", "Mt.",
    "ft.", "in.", "Ave.", "Blvd.", "Rd.", "Bros.",
)

# Half-width terminators must be followed by whitespace, an opening
# quote/bracket, or the end of text; full-width terminators need nothing.
_SENTENCE_END = re.compile(
    r"((?<!\.)(?:[.!?](?!\.))+['\"”’»」』)\]}]*(?=\s|[\"“‘«「『(\[{]|$))"
    r"|([。！？]['\"”’»」』)\]}]*)"
)
_LOWERCASE_CONTINUATION = re.compile(r"[\s ]*[a-z]")

_PAIRS = {
    "“": "”", "«": "»", "「": "」", "『": "』",
    "(": ")", "[": "]", "{": "}", "（": "）", "【": "】",
}
_CLOSERS = {close: open_ for open_, close in _PAIRS.items()}


def _abbreviation_pattern(abbreviations: Iterable[str]) -> re.Pattern[str]:
    return re.compile(
        "(?<![A-Za-z])(?:" + "|".join(re.escape(item) for item in abbreviations) + ")$",
        re.IGNORECASE,
    )


_DEFAULT_ABBREVIATION_PATTERN = _abbreviation_pattern(DEFAULT_ABBREVIATIONS)


def _is_balanced(segment: str) -> bool:
    stack: list[str] = []
    for char in segment:
        if char == '"':
            if stack and stack[-1] == '"':
                stack.pop()
            else:
                stack.append(char)
        elif char in _PAIRS:
            stack.append(char)
        elif char in _CLOSERS and stack and stack[-1] == _CLOSERS[char]:
            stack.pop()
    return not stack


def split_sentences(text: str, abbreviations: Iterable[str] | None = None) -> list[str]:
    """Split ``text`` into sentences.

    Does not split after common abbreviations, inside quotes or brackets, or
    where a lowercase letter follows half-width punctuation.
    """
    text = text.strip()
    if not text:
        return []

    abbreviation_pattern = (
        _abbreviation_pattern(abbreviations)
        if abbreviations is not None
        else _DEFAULT_ABBREVIATION_PATTERN
    )

    sentences: list[str] = []
    last_index = 0
    for match in _SENTENCE_END.finditer(text):
        end_index = match.end()
        segment = text[last_index:end_index].strip()

        if abbreviation_pattern.search(segment):
            continue
        if not _is_balanced(segment):
            continue
        if match.group(1) is not None and _LOWERCASE_CONTINUATION.match(text, end_index):
            continue

        sentences.append(segment)
        last_index = end_index

    remainder = text[last_index:].strip()
    if remainder:
        sentences.append(remainder)

    return [sentence for sentence in sentences if sentence.strip()]
