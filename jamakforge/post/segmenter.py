from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Sequence, Tuple

from ..korean.particles import find_particle_spans

# ---------- lexicon / heuristics ----------
SENTENCE_END = (".", "!", "?", "。", "…", "！", "？")
COMMAS = (",", "，")
CONNECTIVES = ("그리고", "하지만", "그러나", "따라서", "또한", "즉", "and", "but", "therefore", "that is")
KEYWORD_TERMS = ("함수", "클래스", "메서드", "변수", "객체", "배열", "서버", "클라이언트", "데이터베이스")

DEFAULT_MAX_CHARS_PER_LINE = 35
DEFAULT_MAX_LINES = 2

SPACES = re.compile(r"\s+")
_SENTENCE_SPLIT = re.compile(r"(?<=[" + re.escape("".join(SENTENCE_END)) + r"])\s+")
_COMMA = re.compile("[" + re.escape("".join(COMMAS)) + "]")
_CONNECTIVE = re.compile(
    r"(\s+)(" + "|".join(re.escape(word) for word in CONNECTIVES) + r")(?=\s|[,，]|$)",
    re.IGNORECASE,
)
_CAPITALISED = re.compile(r"(?<![A-Za-z])[A-Z][a-zA-Z]+(?![A-Za-z])")
_ACRONYM = re.compile(r"(?<![A-Za-z])[A-Z]{2,}(?![A-Za-z])")


class BreakKind(IntEnum):
    """Break candidates, best first."""

    COMMA = 1
    CONNECTIVE = 2
    SPACE = 3


def _norm(t: str) -> str:
    return SPACES.sub(" ", (t or "")).strip()


def _inside(pos: int, spans: Sequence[Tuple[int, int]]) -> bool:
    return any(start < pos < end for start, end in spans)


def split_sentences(text: str) -> List[str]:
    """Split on sentence-final punctuation followed by whitespace."""

    return [s for s in (_norm(part) for part in _SENTENCE_SPLIT.split(text or "")) if s]


def classify_breaks(text: str) -> List[Tuple[int, BreakKind]]:
    """Return ``(offset, kind)`` for every allowed line break in ``text``.

    An offset splits ``text[:offset]`` from ``text[offset:]``; offsets inside a
    word+particle span are never returned. When several rules yield the same
    offset the best-ranked kind is kept.
    """

    spans = find_particle_spans(text)
    found: Dict[int, BreakKind] = {}

    def add(pos: int, kind: BreakKind) -> None:
        if pos <= 0 or pos >= len(text) or _inside(pos, spans):
            return
        if pos not in found or kind < found[pos]:
            found[pos] = kind

    for match in _COMMA.finditer(text):
        add(match.end(), BreakKind.COMMA)
    for match in _CONNECTIVE.finditer(text):
        add(match.start(), BreakKind.CONNECTIVE)
        add(match.end(), BreakKind.CONNECTIVE)
    for match in SPACES.finditer(text):
        add(match.start(), BreakKind.SPACE)
    return sorted(found.items())


def find_natural_breaks(text: str) -> List[int]:
    """Sorted, de-duplicated break offsets that never separate a word from its particle."""

    return [pos for pos, _ in classify_breaks(text)]


def _units(text: str) -> List[str]:
    """Whitespace-delimited units, keeping a detached particle with its word."""

    spans = find_particle_spans(text)
    units: List[str] = []
    start = 0
    for match in SPACES.finditer(text):
        if _inside(match.start(), spans):
            continue
        units.append(text[start:match.start()])
        start = match.end()
    units.append(text[start:])
    return [_norm(unit) for unit in units if unit.strip()]


def wrap_words(sentence: str, max_chars_per_line: int) -> List[str]:
    """Greedy word wrap; a unit longer than the limit is cut at character boundaries."""

    if max_chars_per_line < 1:
        raise ValueError("max_chars_per_line must be at least 1")
    lines: List[str] = []
    current = ""
    for unit in _units(_norm(sentence)):
        candidate = f"{current} {unit}" if current else unit
        if len(candidate) <= max_chars_per_line:
            current = candidate
            continue
        if current:
            lines.append(current)
        while len(unit) > max_chars_per_line:
            lines.append(unit[:max_chars_per_line])
            unit = unit[max_chars_per_line:]
        current = unit
    if current:
        lines.append(current)
    return lines


def merge_lines(lines: Sequence[str], max_lines: int) -> List[str]:
    """Join contiguous runs into exactly ``max_lines`` groups; the last group takes the remainder."""

    if max_lines < 1:
        raise ValueError("max_lines must be at least 1")
    if len(lines) <= max_lines:
        return list(lines)
    per_group = len(lines) // max_lines
    groups = [lines[i * per_group:(i + 1) * per_group] for i in range(max_lines - 1)]
    groups.append(lines[(max_lines - 1) * per_group:])
    return [" ".join(group) for group in groups]


def split_into_lines(
    text: str,
    max_chars_per_line: int = DEFAULT_MAX_CHARS_PER_LINE,
    max_lines: int = DEFAULT_MAX_LINES,
) -> List[str]:
    """Split ``text`` into display chunks: sentences, wrapped, then capped at ``max_lines`` each."""

    chunks: List[str] = []
    for sentence in split_sentences(text):
        lines = wrap_words(sentence, max_chars_per_line)
        if len(lines) > max_lines:
            lines = merge_lines(lines, max_lines)
        chunks.extend(lines)
    return chunks


def extract_keywords(text: str) -> List[str]:
    """Capitalised Latin words, acronyms and a few Korean tech nouns, in order of appearance."""

    hits: List[Tuple[int, str]] = []
    for pattern in (_CAPITALISED, _ACRONYM):
        hits.extend((m.start(), m.group()) for m in pattern.finditer(text))
    for term in KEYWORD_TERMS:
        idx = text.find(term)
        if idx >= 0:
            hits.append((idx, term))
    seen: Dict[str, None] = {}
    for _, word in sorted(hits):
        seen.setdefault(word, None)
    return list(seen)


@dataclass(slots=True)
class TextSegmenter:
    """Bundles the line limits used when cutting narrative text into subtitle chunks."""

    max_chars_per_line: int = DEFAULT_MAX_CHARS_PER_LINE
    max_lines: int = DEFAULT_MAX_LINES

    def split(self, text: str) -> List[str]:
        return split_into_lines(text, self.max_chars_per_line, self.max_lines)

    def find_natural_breaks(self, text: str) -> List[int]:
        return find_natural_breaks(text)


__all__ = [
    "BreakKind",
    "TextSegmenter",
    "classify_breaks",
    "extract_keywords",
    "find_natural_breaks",
    "merge_lines",
    "split_into_lines",
    "split_sentences",
    "wrap_words",
]
