"""
Message Divider

Decides whether a finished assistant reply should be shown as one chat
bubble or several. The explicit separator written by the streaming layer is
authoritative; the remaining rules are structural guesses.

Each rule is an independent matcher returning either None (no match) or a
partition of the text. Matchers are tried in priority order and the first
partition wins. Every partition covers the whole text, so nothing the model
wrote is lost; at worst the reply stays in a single bubble.
"""

from typing import Callable, Iterator, List, Optional, Tuple
import re

MESSAGE_SEPARATOR = "\n\n---MESSAGE_SEPARATOR---\n\n"
_SEPARATOR_TOKEN = MESSAGE_SEPARATOR.strip()

_BLANK_LINE = re.compile(r"\n\s*\n")

# Openers of a trailing "want me to do more?" line, in the working languages
OFFER_PHRASES = (
    "Se desejar",
    "Quer que",
    "Posso também",
    "Posso",
    "Deseja",
    "Gostaria",
    "Would you like",
    "Do you want",
    "Shall I",
    "I can also",
    "If you'd like",
    "If you want",
)
_OFFER_LINE = re.compile(r"\n\s*(?:" + "|".join(re.escape(p) for p in OFFER_PHRASES) + ")")

Matcher = Callable[[str], Optional[List[str]]]


def _question_marks(text: str) -> Iterator[int]:
    position = text.find("?")
    while position != -1:
        yield position
        position = text.find("?", position + 1)


def _question_free_segments(text: str) -> Iterator[Tuple[int, int]]:
    """(start, end) spans between consecutive question marks; end is a '?' index."""
    start = 0
    for position in _question_marks(text):
        yield start, position
        start = position + 1


def _line_break_follows(text: str, position: int) -> bool:
    """True if the next non-blank character after `position` sits on a new line."""
    rest = text[position:]
    gap = rest[: len(rest) - len(rest.lstrip())]
    return "\n" in gap and bool(rest.strip())


def _partition(text: str, cut: int) -> List[str]:
    return [text[:cut].strip(), text[cut:].strip()]


def match_explicit_separator(text: str) -> Optional[List[str]]:
    if _SEPARATOR_TOKEN not in text:
        return None
    return [part.strip() for part in text.split(_SEPARATOR_TOKEN) if part.strip()]


def match_blank_line(text: str) -> Optional[List[str]]:
    parts = [part.strip() for part in _BLANK_LINE.split(text) if part.strip()]
    return parts if len(parts) > 1 else None


def match_statement_then_question(text: str) -> Optional[List[str]]:
    """A statement ending in a full stop, then a question on its own line."""
    for start, question_mark in _question_free_segments(text):
        line_break = text.rfind("\n", start, question_mark)
        while line_break != -1:
            if "." not in text[start:line_break]:
                break
            if text[line_break + 1:question_mark].strip():
                before, after = _partition(text, line_break)
                if len(before) > 20 and len(after) > 10:
                    return [before, after]
                return None
            line_break = text.rfind("\n", start, line_break)
    return None


def _first_question_with_remark(text: str) -> Optional[int]:
    for position in _question_marks(text):
        if position == 0 or text[position - 1] == "?":
            continue
        if _line_break_follows(text, position + 1):
            return position
    return None


def match_question_then_remark(text: str) -> Optional[List[str]]:
    """A question, then any further line of text."""
    position = _first_question_with_remark(text)
    if position is None:
        return None
    before, after = _partition(text, position + 1)
    if before and after:
        return [before, after]
    return None


def match_question_then_capitalized_remark(text: str) -> Optional[List[str]]:
    """Stricter form of the previous rule: the remark starts a new sentence."""
    for position in _question_marks(text):
        if position == 0 or text[position - 1] == "?":
            continue
        if not _line_break_follows(text, position + 1):
            continue
        before, after = _partition(text, position + 1)
        if "A" <= after[0] <= "Z":
            if before and len(after) > 10:
                return [before, after]
            return None
    return None


def match_offer_of_help(text: str) -> Optional[List[str]]:
    """A statement, then a line offering further help."""
    for offer in _OFFER_LINE.finditer(text):
        line_break = offer.start()
        segment_start = text.rfind("?", 0, line_break) + 1
        if "." not in text[segment_start:line_break]:
            continue
        before, after = _partition(text, line_break)
        if len(before) > 20 and len(after) > 10:
            return [before, after]
        return None
    return None


MATCHERS: List[Matcher] = [
    match_explicit_separator,
    match_blank_line,
    match_statement_then_question,
    match_question_then_remark,
    match_question_then_capitalized_remark,
    match_offer_of_help,
]


def detect_message_parts(text: Optional[str]) -> List[str]:
    """Split a reply into display bubbles. Blank input gives []."""
    if not text or not text.strip():
        return []

    trimmed = text.strip()
    for matcher in MATCHERS:
        parts = matcher(trimmed)
        if parts:
            return parts
    return [trimmed]


def should_divide_message(text: Optional[str]) -> bool:
    return len(detect_message_parts(text)) > 1


def get_message_separator() -> str:
    return MESSAGE_SEPARATOR
